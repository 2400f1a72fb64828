"""Observer list used by the timeline to notify rendering/persistence layers."""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import Any, Callable, DefaultDict, Dict, List, Optional

logger = logging.getLogger(__name__)

SUBTITLES_LOADED = "subtitles:loaded"
SUBTITLE_EDITED = "subtitle:edited"
TIMELINE_UPDATED = "timeline:updated"
STYLE_UPDATED = "style:updated"
SUBTITLE_SPLIT = "subtitle:split"
SUBTITLES_MERGED = "subtitles:merged"
UNDO = "undo"
REDO = "redo"
AUTO_ALIGNING = "auto:aligning"
AUTO_ALIGNED = "auto:aligned"

EVENT_NAMES = (
    SUBTITLES_LOADED,
    SUBTITLE_EDITED,
    TIMELINE_UPDATED,
    STYLE_UPDATED,
    SUBTITLE_SPLIT,
    SUBTITLES_MERGED,
    UNDO,
    REDO,
    AUTO_ALIGNING,
    AUTO_ALIGNED,
)

Listener = Callable[[Dict[str, Any]], None]
Subscriber = Callable[[str, Dict[str, Any]], None]


class EventEmitter:
    """Synchronous publish/subscribe hub; listeners run in registration order."""

    def __init__(self) -> None:
        self._listeners: DefaultDict[str, List[Listener]] = defaultdict(list)
        self._subscribers: List[Subscriber] = []

    def on(self, name: str, listener: Listener) -> Listener:
        """Register ``listener`` for ``name`` and return it (usable as a decorator target)."""

        self._listeners[name].append(listener)
        return listener

    def off(self, name: str, listener: Listener) -> None:
        listeners = self._listeners.get(name)
        if listeners and listener in listeners:
            listeners.remove(listener)

    def subscribe(self, subscriber: Subscriber) -> Callable[[], None]:
        """Receive every event as ``(name, payload)``; returns an unsubscribe callable."""

        self._subscribers.append(subscriber)

        def _unsubscribe() -> None:
            if subscriber in self._subscribers:
                self._subscribers.remove(subscriber)

        return _unsubscribe

    def emit(self, name: str, payload: Optional[Dict[str, Any]] = None) -> None:
        data = payload or {}
        logger.debug("event %s", name)
        for listener in list(self._listeners.get(name, ())):
            listener(data)
        for subscriber in list(self._subscribers):
            subscriber(name, data)


__all__ = [
    "AUTO_ALIGNED",
    "AUTO_ALIGNING",
    "EVENT_NAMES",
    "EventEmitter",
    "REDO",
    "STYLE_UPDATED",
    "SUBTITLES_LOADED",
    "SUBTITLES_MERGED",
    "SUBTITLE_EDITED",
    "SUBTITLE_SPLIT",
    "TIMELINE_UPDATED",
    "UNDO",
]
