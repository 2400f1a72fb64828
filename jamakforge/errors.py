"""Exceptions raised by the timeline, segmentation and export layers."""

from __future__ import annotations


class JamakforgeError(Exception):
    """Base class for every error raised by jamakforge."""


class EntryNotFound(JamakforgeError, KeyError):
    """Raised when an edit command names an id the timeline does not hold."""

    def __init__(self, entry_id: str) -> None:
        super().__init__(entry_id)
        self.entry_id = entry_id

    def __str__(self) -> str:
        return f"Subtitle {self.entry_id} not found"


class InsufficientEntries(JamakforgeError, ValueError):
    """Raised when ``merge`` receives fewer than two ids."""


class InvalidSplitOffset(JamakforgeError, ValueError):
    """Raised when a split offset falls outside the entry text."""


class UnsupportedExportFormat(JamakforgeError, ValueError):
    """Raised for export/import formats other than srt, vtt, ass and json."""


class DuplicateEntryId(JamakforgeError, ValueError):
    """Raised when a bulk load contains the same id twice."""


class SubtitleParseError(JamakforgeError, ValueError):
    """Raised when an imported subtitle document cannot be parsed."""


__all__ = [
    "DuplicateEntryId",
    "EntryNotFound",
    "InsufficientEntries",
    "InvalidSplitOffset",
    "JamakforgeError",
    "SubtitleParseError",
    "UnsupportedExportFormat",
]
