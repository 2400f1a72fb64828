"""Undo/redo log of reversible field diffs."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, List, MutableMapping, Optional, Sequence, Tuple

from .models import SubtitleEntry


class EditField(str, Enum):
    TEXT = "text"
    START = "startTime"
    END = "endTime"
    STYLE = "style"
    POSITION = "position"
    ENTRY = "entry"  # whole-entry existence; ``None`` means absent


_ATTRIBUTES = {
    EditField.TEXT: "text",
    EditField.START: "start",
    EditField.END: "end",
    EditField.STYLE: "style",
    EditField.POSITION: "position",
}


@dataclass(frozen=True, slots=True)
class EditEvent:
    """One field of one entry changing from ``old_value`` to ``new_value``."""

    entry_id: str
    field: EditField
    old_value: Any
    new_value: Any
    timestamp: float = field(default_factory=time.time)

    def apply(self, store: MutableMapping[str, SubtitleEntry], *, forward: bool) -> None:
        """Write the new (``forward``) or old value back into ``store``."""

        value = self.new_value if forward else self.old_value
        if self.field is EditField.ENTRY:
            if value is None:
                store.pop(self.entry_id, None)
            else:
                store[self.entry_id] = value.copy()
            return
        entry = store.get(self.entry_id)
        if entry is None:
            return
        setattr(entry, _ATTRIBUTES[self.field], value)


@dataclass(frozen=True, slots=True)
class EditCommand:
    """The events produced by a single user action, applied as a unit."""

    label: str
    events: Tuple[EditEvent, ...]
    timestamp: float = field(default_factory=time.time)

    def undo(self, store: MutableMapping[str, SubtitleEntry]) -> None:
        for event in reversed(self.events):
            event.apply(store, forward=False)

    def redo(self, store: MutableMapping[str, SubtitleEntry]) -> None:
        for event in self.events:
            event.apply(store, forward=True)

    @property
    def entry_ids(self) -> List[str]:
        return list(dict.fromkeys(event.entry_id for event in self.events))


class EditHistory:
    """Two-stack command log; recording a new command clears the redo stack."""

    def __init__(self, limit: Optional[int] = None) -> None:
        self.limit = limit
        self._undo: List[EditCommand] = []
        self._redo: List[EditCommand] = []
        self.log: List[EditCommand] = []

    def record(self, label: str, events: Sequence[EditEvent]) -> Optional[EditCommand]:
        if not events:
            return None
        command = EditCommand(label, tuple(events))
        self._undo.append(command)
        if self.limit is not None and len(self._undo) > self.limit:
            del self._undo[: len(self._undo) - self.limit]
        self._redo.clear()
        self.log.append(command)
        return command

    def pop_undo(self) -> Optional[EditCommand]:
        return self._undo.pop() if self._undo else None

    def pop_redo(self) -> Optional[EditCommand]:
        return self._redo.pop() if self._redo else None

    def push_undo(self, command: EditCommand) -> None:
        self._undo.append(command)

    def push_redo(self, command: EditCommand) -> None:
        self._redo.append(command)

    @property
    def can_undo(self) -> bool:
        return bool(self._undo)

    @property
    def can_redo(self) -> bool:
        return bool(self._redo)

    def clear(self) -> None:
        self._undo.clear()
        self._redo.clear()


__all__ = ["EditCommand", "EditEvent", "EditField", "EditHistory"]
