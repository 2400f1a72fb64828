from __future__ import annotations

import asyncio
import random

import pytest

from jamakforge.errors import (
    DuplicateEntryId,
    EntryNotFound,
    InsufficientEntries,
    InvalidSplitOffset,
)
from jamakforge.history import EditHistory
from jamakforge.models import Position, SubtitleEntry, SubtitleStyle
from jamakforge.timeline import Timeline, validate_subtitles


def _timeline(**kwargs) -> Timeline:
    return Timeline(
        [
            SubtitleEntry("1", 0.0, 2.0, "안녕하세요 여러분"),
            SubtitleEntry("2", 2.5, 4.5, "Hello World"),
            SubtitleEntry("3", 5.0, 6.0, "API이 재밌다"),
        ],
        **kwargs,
    )


def _assert_no_overlaps(timeline: Timeline) -> None:
    entries = timeline.entries()
    for index, entry in enumerate(entries):
        for other in entries[index + 1:]:
            assert not entry.overlaps(other), (entry, other)


def _recorder(timeline: Timeline) -> list[tuple[str, dict]]:
    seen: list[tuple[str, dict]] = []
    timeline.events.subscribe(lambda name, payload: seen.append((name, payload)))
    return seen


def test_load_orders_by_start_and_rejects_duplicates() -> None:
    timeline = Timeline([SubtitleEntry("b", 3.0, 4.0, "둘"), SubtitleEntry("a", 0.0, 1.0, "하나")])
    assert [entry.id for entry in timeline] == ["a", "b"]
    assert "a" in timeline and len(timeline) == 2
    with pytest.raises(DuplicateEntryId):
        timeline.insert_or_replace([SubtitleEntry("x", 0, 1, "a"), SubtitleEntry("x", 1, 2, "b")])


def test_load_emits_event_and_resets_history() -> None:
    timeline = _timeline()
    timeline.edit_text("1", "바뀐 자막")
    seen = _recorder(timeline)
    timeline.insert_or_replace([SubtitleEntry("9", 0, 1, "새 자막")])
    assert seen[0][0] == "subtitles:loaded"
    assert seen[0][1]["count"] == 1
    assert not timeline.history.can_undo


def test_edit_text_undo_redo() -> None:
    clock = iter([1.0, 1.25]).__next__
    timeline = _timeline(clock=clock)
    seen = _recorder(timeline)

    timeline.edit_text("1", "반갑습니다")
    name, payload = seen[-1]
    assert name == "subtitle:edited"
    assert payload["latency"] == pytest.approx(0.25)
    assert "반갑습니다" in payload["preview"]

    timeline.undo()
    assert timeline.get("1").text == "안녕하세요 여러분"
    timeline.redo()
    assert timeline.get("1").text == "반갑습니다"
    assert [name for name, _ in seen] == ["subtitle:edited", "undo", "redo"]


def test_edit_text_errors() -> None:
    timeline = _timeline()
    with pytest.raises(EntryNotFound) as excinfo:
        timeline.edit_text("missing", "x")
    assert isinstance(excinfo.value, KeyError)
    assert str(excinfo.value) == "Subtitle missing not found"
    with pytest.raises(ValueError):
        timeline.edit_text("1", "   ")


def test_new_edit_clears_redo_and_empty_stacks_are_noops() -> None:
    timeline = _timeline()
    assert timeline.undo() is None
    timeline.edit_text("1", "a")
    timeline.undo()
    assert timeline.history.can_redo
    timeline.edit_text("2", "b")
    assert not timeline.history.can_redo
    assert timeline.redo() is None


def test_move_pushes_first_order_conflicts_only() -> None:
    timeline = _timeline()
    seen = _recorder(timeline)

    moved = timeline.move("1", 2.0)

    assert (moved.start, moved.end) == (2.0, 4.0)
    pushed = timeline.get("2")
    assert pushed.start == pytest.approx(4.1)
    assert pushed.duration == pytest.approx(2.0)
    # the push itself creates a new overlap with entry 3, which is left alone
    assert (timeline.get("3").start, timeline.get("3").end) == (5.0, 6.0)
    assert seen[-1][0] == "timeline:updated"
    assert seen[-1][1]["conflicts"] == ["2"]


def test_move_with_cascade_leaves_no_overlaps() -> None:
    timeline = _timeline(cascade=True)
    timeline.move("1", 2.0)
    assert timeline.get("3").start == pytest.approx(6.2)
    _assert_no_overlaps(timeline)


@pytest.mark.parametrize("seed", range(5))
def test_random_cascading_moves_keep_timeline_disjoint(seed: int) -> None:
    rng = random.Random(seed)
    timeline = Timeline(
        [SubtitleEntry(str(i), i * 2.0, i * 2.0 + 1.5, f"자막 {i}") for i in range(8)],
        cascade=True,
    )
    for _ in range(20):
        timeline.move(str(rng.randrange(8)), rng.uniform(0, 20))
        _assert_no_overlaps(timeline)


def test_move_is_undone_as_one_command() -> None:
    timeline = _timeline()
    timeline.move("1", 2.0)
    timeline.undo()
    assert (timeline.get("1").start, timeline.get("1").end) == (0.0, 2.0)
    assert (timeline.get("2").start, timeline.get("2").end) == (2.5, 4.5)


def test_move_rejects_negative_start_and_unknown_ids() -> None:
    timeline = _timeline()
    with pytest.raises(ValueError):
        timeline.move("1", -1.0)
    with pytest.raises(EntryNotFound):
        timeline.move("nope", 1.0)


def test_move_allows_overlap_when_configured() -> None:
    timeline = _timeline(allow_overlap=True)
    timeline.move("1", 2.0)
    assert timeline.get("2").start == 2.5
    assert timeline.detect_conflicts("1")[0].id == "2"


def test_update_style_merges_and_undoes() -> None:
    timeline = _timeline()
    seen = _recorder(timeline)
    timeline.update_style("1", {"color": "#FF0000"}, position="top")
    timeline.update_style("1", SubtitleStyle(font_size=30))

    entry = timeline.get("1")
    assert entry.style == SubtitleStyle(font_size=30, color="#FF0000")
    assert entry.position is Position.TOP
    assert seen[0][0] == "style:updated"
    assert seen[0][1]["old_style"] is None

    timeline.undo()
    timeline.undo()
    assert timeline.get("1").style is None
    assert timeline.get("1").position is None


def test_split_at_produces_derived_ids() -> None:
    timeline = _timeline()
    seen = _recorder(timeline)
    first, second = timeline.split_at("1", 5)

    assert (first.id, first.text, first.start, first.end) == ("1_1", "안녕하세요", 0.0, 1.0)
    assert (second.id, second.text, second.start, second.end) == ("1_2", "여러분", 1.0, 2.0)
    assert "1" not in timeline
    assert seen[-1][0] == "subtitle:split"


@pytest.mark.parametrize("offset", [0, 17, 100, -1])
def test_split_at_rejects_offsets_outside_text(offset: int) -> None:
    timeline = _timeline()
    with pytest.raises(InvalidSplitOffset):
        timeline.split_at("1", offset)


def test_split_at_rejects_empty_half() -> None:
    timeline = Timeline([SubtitleEntry("1", 0, 1, " 가나")])
    with pytest.raises(InvalidSplitOffset):
        timeline.split_at("1", 1)


def test_split_then_merge_restores_text() -> None:
    timeline = _timeline()
    timeline.split_at("1", 5)
    merged = timeline.merge(["1_2", "1_1"])

    assert merged.id == "1"
    assert merged.text == "안녕하세요 여러분"
    assert (merged.start, merged.end) == (0.0, 2.0)
    assert [entry.id for entry in timeline] == ["1", "2", "3"]


def test_split_and_merge_are_undoable() -> None:
    timeline = _timeline()
    timeline.split_at("1", 5)
    timeline.merge(["1_1", "1_2"])

    timeline.undo()
    assert {"1_1", "1_2"} <= {entry.id for entry in timeline}
    timeline.undo()
    assert timeline.get("1").text == "안녕하세요 여러분"
    assert "1_1" not in timeline
    timeline.redo()
    assert "1_1" in timeline and "1" not in timeline


def test_merge_inherits_earliest_style_and_validates_ids() -> None:
    timeline = _timeline()
    timeline.update_style("2", {"color": "#00FF00"})
    seen = _recorder(timeline)
    merged = timeline.merge(["3", "2"])

    assert merged.id == "2"
    assert merged.text == "Hello World API이 재밌다"
    assert (merged.start, merged.end) == (2.5, 6.0)
    assert merged.style == SubtitleStyle(color="#00FF00")
    assert seen[-1][1]["merged"] == ["2", "3"]

    with pytest.raises(InsufficientEntries):
        timeline.merge(["1"])
    with pytest.raises(InsufficientEntries):
        timeline.merge(["1", "1"])
    with pytest.raises(EntryNotFound):
        timeline.merge(["1", "nope"])


def test_search_is_case_insensitive_in_timeline_order() -> None:
    timeline = _timeline()
    assert [entry.id for entry in timeline.search("hello")] == ["2"]
    assert [entry.id for entry in timeline.search("다")] == ["3"]
    assert timeline.search("없음") == []


def test_validate_reports_without_raising() -> None:
    entries = [
        SubtitleEntry("1", 0.0, 2.0, "a"),
        SubtitleEntry("2", 1.5, 1.0, "b"),
        SubtitleEntry("3", 3.0, 4.0, "  "),
    ]
    assert validate_subtitles(entries) == [
        "Subtitle 2: Start time must be before end time",
        "Subtitle 2: Overlaps with previous subtitle",
        "Subtitle 3: Empty text",
    ]
    assert validate_subtitles(entries, allow_overlap=True) == [
        "Subtitle 2: Start time must be before end time",
        "Subtitle 3: Empty text",
    ]
    assert _timeline().validate() == []


def test_auto_fix_particles_is_undoable() -> None:
    timeline = _timeline()
    assert timeline.auto_fix_particles() == ["3"]
    assert timeline.get("3").text == "API가 재밌다"
    timeline.undo()
    assert timeline.get("3").text == "API이 재밌다"


def test_auto_align_keeps_entries_valid_and_skips_history() -> None:
    timeline = _timeline()
    seen = _recorder(timeline)
    aligned = asyncio.run(timeline.auto_align(jitter=0.5, rng=random.Random(7)))

    assert [name for name, _ in seen] == ["auto:aligning", "auto:aligned"]
    assert len(aligned) == 3
    for entry in aligned:
        assert entry.start >= 0
        assert entry.start < entry.end
    _assert_no_overlaps(timeline)
    assert not timeline.history.can_undo
    with pytest.raises(ValueError):
        asyncio.run(timeline.auto_align(jitter=-1))


def test_preview_is_cached_and_refreshed_on_edit() -> None:
    timeline = _timeline()
    first = timeline.preview("2")
    assert "Hello World" in first
    assert timeline.preview("2") is first
    timeline.edit_text("2", "<i>Bye</i>")
    assert "&lt;i&gt;Bye&lt;/i&gt;" in timeline.preview("2")


def test_history_limit_and_log() -> None:
    timeline = _timeline(history=EditHistory(limit=2))
    for text in ("a", "b", "c"):
        timeline.edit_text("1", text)
    assert len(timeline.history.log) == 3
    assert timeline.undo() is not None
    assert timeline.undo() is not None
    assert timeline.undo() is None
    assert timeline.get("1").text == "a"


def test_export_through_timeline() -> None:
    assert _timeline().export("srt").startswith("1\n00:00:00,000 --> 00:00:02,000\n안녕하세요 여러분\n")
