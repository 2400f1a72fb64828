from __future__ import annotations

import pytest

from jamakforge.models import SubtitleEntry
from jamakforge.post.timing import TimingOptions, allocate, estimate_duration, retime


def test_estimate_duration_is_clamped() -> None:
    assert estimate_duration("가" * 10) == pytest.approx(2.0)
    assert estimate_duration("짧다") == 1.5
    assert estimate_duration("가" * 100) == 4.0


def test_allocate_two_chunks_over_ten_seconds() -> None:
    entries = allocate(["첫 번째 자막", "두 번째 자막"], 10)

    assert [entry.id for entry in entries] == ["1", "2"]
    first, second = entries
    assert first.start == 0.0
    assert first.end == pytest.approx(14 / 3)
    assert second.start == pytest.approx(5.0)
    assert second.end == 10.0
    assert second.start >= first.end


@pytest.mark.parametrize("total", [0.5, 3.0, 7.25, 60.0])
def test_last_end_matches_total(total: float) -> None:
    chunks = ["하나", "둘 셋 넷", "다섯 여섯 일곱 여덟 아홉 열 열하나 열둘"]
    entries = allocate(chunks, total)
    assert entries[-1].end == pytest.approx(total)
    for previous, current in zip(entries, entries[1:]):
        assert previous.end < current.start


def test_allocate_edge_cases() -> None:
    assert allocate([], 10) == []
    with pytest.raises(ValueError):
        allocate(["x"], 0)


def test_timing_options_are_validated() -> None:
    with pytest.raises(ValueError):
        TimingOptions(reading_speed=0)
    with pytest.raises(ValueError):
        TimingOptions(min_duration=5, max_duration=1)


def test_gap_not_taken_when_it_would_empty_a_slot() -> None:
    options = TimingOptions(min_duration=0.05, max_duration=0.05, gap=0.1)
    entries = allocate(["a", "b"], 1.0, options)
    assert entries[0].end == pytest.approx(0.5)
    assert entries[1].start == pytest.approx(0.5)


def test_retime_keeps_ids_and_text() -> None:
    original = [
        SubtitleEntry("b", 5.0, 6.0, "두 번째 자막"),
        SubtitleEntry("a", 0.0, 1.0, "첫 번째 자막"),
    ]
    timed = retime(original, 10)
    assert [(entry.id, entry.text) for entry in timed] == [("a", "첫 번째 자막"), ("b", "두 번째 자막")]
    assert timed[-1].end == 10.0
