"""Core data types shared by the segmenter, timeline and exporter."""

from __future__ import annotations

from dataclasses import dataclass, fields, replace
from enum import Enum
from typing import Any, Optional


class Position(str, Enum):
    TOP = "top"
    CENTER = "center"
    BOTTOM = "bottom"


class Animation(str, Enum):
    NONE = "none"
    FADE = "fade"
    SLIDE = "slide"
    TYPEWRITER = "typewriter"


_STYLE_KEYS = {
    "font_size": "fontSize",
    "color": "color",
    "background_color": "backgroundColor",
    "font_weight": "fontWeight",
    "animation": "animation",
}


@dataclass(frozen=True, slots=True)
class SubtitleStyle:
    """Presentation hints carried by an entry; ``None`` means "renderer default"."""

    font_size: Optional[int] = None
    color: Optional[str] = None
    background_color: Optional[str] = None
    font_weight: Optional[str] = None
    animation: Optional[Animation] = None

    def merged(self, delta: "SubtitleStyle") -> "SubtitleStyle":
        """Return a copy where every non-``None`` field of ``delta`` wins."""

        updates = {f.name: getattr(delta, f.name) for f in fields(delta) if getattr(delta, f.name) is not None}
        return replace(self, **updates)

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {}
        for name, key in _STYLE_KEYS.items():
            value = getattr(self, name)
            if value is None:
                continue
            payload[key] = value.value if isinstance(value, Animation) else value
        return payload

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SubtitleStyle":
        kwargs: dict[str, Any] = {}
        for name, key in _STYLE_KEYS.items():
            value = data.get(key, data.get(name))
            if value is None:
                continue
            if name == "animation":
                value = Animation(value)
            elif name == "font_size":
                value = int(value)
            kwargs[name] = value
        return cls(**kwargs)


@dataclass(slots=True)
class SubtitleEntry:
    """A single time-coded subtitle; all times are seconds."""

    id: str
    start: float
    end: float
    text: str
    style: Optional[SubtitleStyle] = None
    position: Optional[Position] = None
    keywords: tuple[str, ...] = ()

    @property
    def duration(self) -> float:
        return self.end - self.start

    def overlaps(self, other: "SubtitleEntry") -> bool:
        """Half-open ``[start, end)`` intersection test."""

        return self.start < other.end and other.start < self.end

    def copy(self, **changes: Any) -> "SubtitleEntry":
        return replace(self, **changes)

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "id": self.id,
            "startTime": self.start,
            "endTime": self.end,
            "text": self.text,
        }
        if self.style is not None:
            payload["style"] = self.style.to_dict()
        if self.position is not None:
            payload["position"] = self.position.value
        if self.keywords:
            payload["keywords"] = list(self.keywords)
        return payload

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SubtitleEntry":
        style = data.get("style")
        position = data.get("position")
        return cls(
            id=str(data["id"]),
            start=float(data.get("startTime", data.get("start", 0.0))),
            end=float(data.get("endTime", data.get("end", 0.0))),
            text=str(data.get("text", "")),
            style=SubtitleStyle.from_dict(style) if isinstance(style, dict) else None,
            position=Position(position) if position else None,
            keywords=tuple(data.get("keywords") or ()),
        )


@dataclass(slots=True)
class Section:
    """One block of generated narrative text with its target duration."""

    text: str
    duration: float

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Section":
        duration = data.get("duration", data.get("durationSeconds"))
        if duration is None:
            raise ValueError(f"section is missing a duration: {data!r}")
        return cls(text=str(data.get("text") or data.get("content") or ""), duration=float(duration))


__all__ = [
    "Animation",
    "Position",
    "Section",
    "SubtitleEntry",
    "SubtitleStyle",
]
