"""Reading-speed driven timing for segmented subtitle chunks.

Durations are first estimated per chunk from its character count, then the
whole layout is dilated uniformly so it ends exactly on the caller's target.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence

from ..models import SubtitleEntry

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class TimingOptions:
    """Reading-speed model and per-entry clamps, all in seconds."""

    reading_speed: float = 300.0  # characters per minute
    min_duration: float = 1.5
    max_duration: float = 4.0
    gap: float = 0.1

    def __post_init__(self) -> None:
        if self.reading_speed <= 0:
            raise ValueError("reading_speed must be positive")
        if self.min_duration <= 0 or self.max_duration < self.min_duration:
            raise ValueError("duration clamps must satisfy 0 < min_duration <= max_duration")
        if self.gap < 0:
            raise ValueError("gap must not be negative")


def estimate_duration(text: str, options: Optional[TimingOptions] = None) -> float:
    """Seconds needed to read ``text``, clamped to ``[min_duration, max_duration]``."""

    opts = options or TimingOptions()
    reading_time = len(text) / opts.reading_speed * 60.0
    return max(opts.min_duration, min(opts.max_duration, reading_time))


def allocate(
    chunks: Sequence[str],
    total_duration: float,
    options: Optional[TimingOptions] = None,
    start_id: int = 1,
) -> List[SubtitleEntry]:
    """Lay ``chunks`` out back to back and rescale them onto ``[0, total_duration]``.

    Every entry but the last gives up ``gap`` seconds at its end so neighbours
    never touch. The final entry always ends exactly at ``total_duration``.
    """

    if not chunks:
        return []
    if total_duration <= 0:
        raise ValueError("total_duration must be positive")
    opts = options or TimingOptions()

    slots: List[tuple[float, float]] = []
    cursor = 0.0
    last = len(chunks) - 1
    for index, text in enumerate(chunks):
        duration = estimate_duration(text, opts)
        end = cursor + duration
        if index < last and duration > opts.gap:
            slots.append((cursor, end - opts.gap))
        else:
            slots.append((cursor, end))
        cursor = end

    accumulated = cursor
    scale = total_duration / accumulated
    if scale != 1.0:
        logger.debug("Rescaling %d chunks from %.3fs to %.3fs", len(chunks), accumulated, total_duration)

    entries: List[SubtitleEntry] = []
    for offset, (text, (start, end)) in enumerate(zip(chunks, slots)):
        entries.append(
            SubtitleEntry(
                id=str(start_id + offset),
                start=start * scale,
                end=end * scale,
                text=text,
            )
        )
    entries[-1].end = float(total_duration)
    return entries


def retime(
    entries: Sequence[SubtitleEntry],
    total_duration: float,
    options: Optional[TimingOptions] = None,
) -> List[SubtitleEntry]:
    """Recompute timings for existing entries, keeping ids, text and styling."""

    ordered = sorted(entries, key=lambda e: (e.start, e.id))
    timed = allocate([e.text for e in ordered], total_duration, options)
    return [entry.copy(start=slot.start, end=slot.end) for entry, slot in zip(ordered, timed)]


__all__ = ["TimingOptions", "allocate", "estimate_duration", "retime"]
