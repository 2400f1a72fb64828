"""Mutable, conflict-aware subtitle timeline with undoable edit commands."""

from __future__ import annotations

import asyncio
import logging
import math
import random
import re
import time
from typing import Any, Callable, Dict, Iterable, Iterator, List, Optional, Sequence

from .errors import DuplicateEntryId, EntryNotFound, InsufficientEntries, InvalidSplitOffset
from .events import (
    AUTO_ALIGNED,
    AUTO_ALIGNING,
    REDO,
    STYLE_UPDATED,
    SUBTITLE_EDITED,
    SUBTITLE_SPLIT,
    SUBTITLES_LOADED,
    SUBTITLES_MERGED,
    TIMELINE_UPDATED,
    UNDO,
    EventEmitter,
)
from .history import EditCommand, EditEvent, EditField, EditHistory
from .korean import process_text
from .models import Position, SubtitleEntry, SubtitleStyle
from .post.export import SubtitleFormat, export, render_preview

logger = logging.getLogger(__name__)

DEFAULT_GAP = 0.1
DEFAULT_JITTER = 0.1
MIN_SPAN = 0.01

_DERIVED_ID = re.compile(r"^(?P<base>.+)_(?P<part>\d+)$")


def _sort_key(entry: SubtitleEntry) -> tuple[float, str]:
    return entry.start, entry.id


def validate_subtitles(entries: Iterable[SubtitleEntry], allow_overlap: bool = False) -> List[str]:
    """Return human-readable warnings; never raises and never fixes anything."""

    warnings: List[str] = []
    previous: Optional[SubtitleEntry] = None
    for entry in sorted(entries, key=_sort_key):
        if entry.start >= entry.end:
            warnings.append(f"Subtitle {entry.id}: Start time must be before end time")
        if previous is not None and not allow_overlap and entry.start < previous.end:
            warnings.append(f"Subtitle {entry.id}: Overlaps with previous subtitle")
        if not entry.text.strip():
            warnings.append(f"Subtitle {entry.id}: Empty text")
        previous = entry
    return warnings


class Timeline:
    """Id-keyed entry store; every public mutation is one undoable command.

    Ordering is always derived from ``(start, id)`` rather than from insertion
    order, so moves and splits never leave a stale sequence behind. Callers are
    expected to serialise mutations; there is no internal locking.
    """

    def __init__(
        self,
        entries: Optional[Iterable[SubtitleEntry]] = None,
        *,
        gap: float = DEFAULT_GAP,
        allow_overlap: bool = False,
        cascade: bool = False,
        history: Optional[EditHistory] = None,
        events: Optional[EventEmitter] = None,
        clock: Callable[[], float] = time.perf_counter,
    ) -> None:
        if gap < 0:
            raise ValueError("gap must be non-negative")
        self.gap = gap
        self.allow_overlap = allow_overlap
        self.cascade = cascade
        self.history = history if history is not None else EditHistory()
        self.events = events if events is not None else EventEmitter()
        self._clock = clock
        self._store: Dict[str, SubtitleEntry] = {}
        self._previews: Dict[str, str] = {}
        if entries is not None:
            self.insert_or_replace(entries)

    # ---------- store ----------
    def insert_or_replace(self, entries: Iterable[SubtitleEntry]) -> List[SubtitleEntry]:
        """Replace the whole timeline content; history is reset."""

        store: Dict[str, SubtitleEntry] = {}
        for entry in entries:
            if entry.id in store:
                raise DuplicateEntryId(f"Duplicate subtitle id: {entry.id}")
            store[entry.id] = entry.copy()
        self._store = store
        self._previews.clear()
        self.history.clear()
        loaded = self.entries()
        logger.debug("loaded %d subtitles", len(loaded))
        self.events.emit(SUBTITLES_LOADED, {"entries": loaded, "count": len(loaded)})
        return loaded

    def get(self, entry_id: str) -> SubtitleEntry:
        entry = self._store.get(entry_id)
        if entry is None:
            raise EntryNotFound(entry_id)
        return entry

    def entries(self) -> List[SubtitleEntry]:
        return sorted(self._store.values(), key=_sort_key)

    def __len__(self) -> int:
        return len(self._store)

    def __iter__(self) -> Iterator[SubtitleEntry]:
        return iter(self.entries())

    def __contains__(self, entry_id: object) -> bool:
        return entry_id in self._store

    @property
    def duration(self) -> float:
        return max((entry.end for entry in self._store.values()), default=0.0)

    # ---------- edits ----------
    def edit_text(self, entry_id: str, new_text: str) -> SubtitleEntry:
        started = self._clock()
        entry = self.get(entry_id)
        if not new_text.strip():
            raise ValueError(f"Subtitle {entry_id}: text must not be empty")
        event = EditEvent(entry_id, EditField.TEXT, entry.text, new_text)
        entry.text = new_text
        self.history.record("edit_text", [event])
        preview = self._refresh_preview(entry)
        latency = self._clock() - started
        self.events.emit(SUBTITLE_EDITED, {"entry": entry, "preview": preview, "latency": latency})
        return entry

    def detect_conflicts(self, entry_id: str) -> List[SubtitleEntry]:
        """Entries whose ``[start, end)`` interval intersects ``entry_id``'s."""

        entry = self.get(entry_id)
        return [other for other in self.entries() if other.id != entry.id and entry.overlaps(other)]

    def move(self, entry_id: str, new_start: float) -> SubtitleEntry:
        """Shift an entry keeping its duration, then push overlapping entries past it.

        Without ``cascade`` only the entries overlapping the moved one are pushed
        (each to ``moved.end + gap``); overlaps created by those pushes are left for
        a later move. With ``cascade`` the push is propagated down the timeline.
        """

        if not math.isfinite(new_start) or new_start < 0:
            raise ValueError(f"Subtitle {entry_id}: start time must be a non-negative number")
        entry = self.get(entry_id)
        events = self._retime(entry, new_start, new_start + entry.duration)

        conflicts: List[str] = []
        if not self.allow_overlap:
            if self.cascade:
                conflicts = self._push_cascading(entry, events)
            else:
                for other in self.detect_conflicts(entry_id):
                    start = entry.end + self.gap
                    events.extend(self._retime(other, start, start + other.duration))
                    conflicts.append(other.id)
        if conflicts:
            logger.debug("move %s pushed %s", entry_id, ", ".join(conflicts))

        self.history.record("move", events)
        self.events.emit(TIMELINE_UPDATED, {"entry": entry, "conflicts": conflicts})
        return entry

    def _push_cascading(self, moved: SubtitleEntry, events: List[EditEvent]) -> List[str]:
        pushed: List[str] = []
        boundary = moved.end
        for other in self.entries():
            if other.id == moved.id or other.end <= moved.start:
                continue
            if other.start < boundary:
                start = boundary + self.gap
                events.extend(self._retime(other, start, start + other.duration))
                pushed.append(other.id)
            boundary = max(boundary, other.end)
        return pushed

    @staticmethod
    def _retime(entry: SubtitleEntry, start: float, end: float) -> List[EditEvent]:
        events: List[EditEvent] = []
        if start != entry.start:
            events.append(EditEvent(entry.id, EditField.START, entry.start, start))
        if end != entry.end:
            events.append(EditEvent(entry.id, EditField.END, entry.end, end))
        entry.start, entry.end = start, end
        return events

    def update_style(
        self,
        entry_id: str,
        style: SubtitleStyle | Dict[str, Any] | None = None,
        position: Position | str | None = None,
    ) -> SubtitleEntry:
        entry = self.get(entry_id)
        delta = SubtitleStyle.from_dict(style) if isinstance(style, dict) else style
        old_style, old_position = entry.style, entry.position
        events: List[EditEvent] = []
        if delta is not None:
            new_style = (old_style or SubtitleStyle()).merged(delta)
            if new_style != old_style:
                events.append(EditEvent(entry_id, EditField.STYLE, old_style, new_style))
                entry.style = new_style
        if position is not None:
            new_position = Position(position)
            if new_position != old_position:
                events.append(EditEvent(entry_id, EditField.POSITION, old_position, new_position))
                entry.position = new_position
        self.history.record("update_style", events)
        self._refresh_preview(entry)
        self.events.emit(
            STYLE_UPDATED,
            {
                "entry": entry,
                "old_style": old_style,
                "new_style": entry.style,
                "old_position": old_position,
                "new_position": entry.position,
            },
        )
        return entry

    def split_at(self, entry_id: str, offset: int) -> tuple[SubtitleEntry, SubtitleEntry]:
        """Split at a character offset and at the temporal midpoint into ``<id>_1``/``<id>_2``."""

        entry = self.get(entry_id)
        text = entry.text
        if not 0 < offset < len(text):
            raise InvalidSplitOffset(f"Subtitle {entry_id}: split offset {offset} outside 1..{len(text) - 1}")
        head, tail = text[:offset].strip(), text[offset:].strip()
        if not head or not tail:
            raise InvalidSplitOffset(f"Subtitle {entry_id}: split at {offset} leaves an empty part")

        middle = entry.start + entry.duration / 2
        first = entry.copy(id=f"{entry_id}_1", end=middle, text=head)
        second = entry.copy(id=f"{entry_id}_2", start=middle, text=tail)
        for part in (first, second):
            if part.id in self._store:
                raise DuplicateEntryId(f"Duplicate subtitle id: {part.id}")

        self._commit(
            "split",
            [
                EditEvent(entry_id, EditField.ENTRY, entry.copy(), None),
                EditEvent(first.id, EditField.ENTRY, None, first),
                EditEvent(second.id, EditField.ENTRY, None, second),
            ],
        )
        parts = (self._store[first.id], self._store[second.id])
        self.events.emit(SUBTITLE_SPLIT, {"original": entry_id, "entries": list(parts)})
        return parts

    def merge(self, entry_ids: Sequence[str]) -> SubtitleEntry:
        ids = list(dict.fromkeys(entry_ids))
        if len(ids) < 2:
            raise InsufficientEntries("merge needs at least two subtitles")
        parts = sorted((self.get(entry_id) for entry_id in ids), key=_sort_key)
        earliest = parts[0]
        merged = SubtitleEntry(
            id=self._merged_id(parts),
            start=earliest.start,
            end=max(part.end for part in parts),
            text=" ".join(part.text.strip() for part in parts),
            style=earliest.style,
            position=earliest.position,
            keywords=tuple(dict.fromkeys(keyword for part in parts for keyword in part.keywords)),
        )
        events = [EditEvent(part.id, EditField.ENTRY, part.copy(), None) for part in parts]
        events.append(EditEvent(merged.id, EditField.ENTRY, None, merged))
        self._commit("merge", events)
        result = self._store[merged.id]
        self.events.emit(SUBTITLES_MERGED, {"entry": result, "merged": [part.id for part in parts]})
        return result

    def _merged_id(self, parts: Sequence[SubtitleEntry]) -> str:
        # halves produced by split_at get their original id back
        matches = [_DERIVED_ID.match(part.id) for part in parts]
        if all(matches):
            bases = {match.group("base") for match in matches if match}
            suffixes = sorted(int(match.group("part")) for match in matches if match)
            if len(bases) == 1 and suffixes == list(range(1, len(parts) + 1)):
                base = bases.pop()
                if base not in self._store:
                    return base
        return parts[0].id

    def _commit(self, label: str, events: List[EditEvent]) -> Optional[EditCommand]:
        command = self.history.record(label, events)
        if command is not None:
            command.redo(self._store)
            self._forget_previews(command.entry_ids)
        return command

    # ---------- history ----------
    def undo(self) -> Optional[EditCommand]:
        command = self.history.pop_undo()
        if command is None:
            return None
        command.undo(self._store)
        self.history.push_redo(command)
        self._forget_previews(command.entry_ids)
        self.events.emit(UNDO, {"command": command, "entry_ids": command.entry_ids})
        return command

    def redo(self) -> Optional[EditCommand]:
        command = self.history.pop_redo()
        if command is None:
            return None
        command.redo(self._store)
        self.history.push_undo(command)
        self._forget_previews(command.entry_ids)
        self.events.emit(REDO, {"command": command, "entry_ids": command.entry_ids})
        return command

    # ---------- queries ----------
    def search(self, query: str) -> List[SubtitleEntry]:
        needle = query.casefold()
        return [entry for entry in self.entries() if needle in entry.text.casefold()]

    def validate(self) -> List[str]:
        return validate_subtitles(self._store.values(), allow_overlap=self.allow_overlap)

    def auto_fix_particles(self) -> List[str]:
        """Rewrite mismatched Korean particles; each fix is its own undoable edit."""

        changed: List[str] = []
        for entry in self.entries():
            fixed = process_text(entry.text)
            if fixed != entry.text:
                self.edit_text(entry.id, fixed)
                changed.append(entry.id)
        return changed

    async def auto_align(
        self,
        jitter: float = DEFAULT_JITTER,
        rng: Optional[random.Random] = None,
        delay: float = 0.0,
    ) -> List[SubtitleEntry]:
        """Nudge every boundary by uniform jitter in ``[-jitter, jitter]``.

        Stands in for an audio-driven correction. The new timings are computed
        first and written in one pass after ``delay``; the change is not recorded
        in the edit history.
        """

        if jitter < 0:
            raise ValueError("jitter must be non-negative")
        rng = rng or random.Random()
        self.events.emit(AUTO_ALIGNING, {"count": len(self._store)})
        await asyncio.sleep(delay)

        planned = []
        previous_end = 0.0
        for entry in self.entries():
            start = max(0.0, entry.start + rng.uniform(-jitter, jitter))
            end = entry.end + rng.uniform(-jitter, jitter)
            if not self.allow_overlap:
                start = max(start, previous_end)
            end = max(end, start + MIN_SPAN)
            planned.append((entry, start, end))
            previous_end = end
        for entry, start, end in planned:
            entry.start, entry.end = start, end

        aligned = self.entries()
        self.events.emit(AUTO_ALIGNED, {"entries": aligned})
        return aligned

    # ---------- output ----------
    def preview(self, entry_id: str) -> str:
        cached = self._previews.get(entry_id)
        if cached is None:
            cached = self._refresh_preview(self.get(entry_id))
        return cached

    def _refresh_preview(self, entry: SubtitleEntry) -> str:
        markup = render_preview(entry)
        self._previews[entry.id] = markup
        return markup

    def _forget_previews(self, entry_ids: Iterable[str]) -> None:
        for entry_id in entry_ids:
            self._previews.pop(entry_id, None)

    def export(self, fmt: SubtitleFormat | str, **options: Any) -> str:
        return export(self, fmt, **options)


__all__ = ["DEFAULT_GAP", "DEFAULT_JITTER", "MIN_SPAN", "Timeline", "validate_subtitles"]
