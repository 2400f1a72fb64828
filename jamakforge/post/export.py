"""Serialisation of timelines to SRT, WebVTT, ASS and JSON, plus the matching importers."""

from __future__ import annotations

import html
import json
import math
import re
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

import srt

from ..config import EXPORT_VERSION, GENERATOR_NAME
from ..errors import SubtitleParseError, UnsupportedExportFormat
from ..models import Animation, Position, SubtitleEntry, SubtitleStyle


class SubtitleFormat(str, Enum):
    SRT = "srt"
    VTT = "vtt"
    ASS = "ass"
    JSON = "json"

    @classmethod
    def parse(cls, value: "SubtitleFormat | str") -> "SubtitleFormat":
        if isinstance(value, SubtitleFormat):
            return value
        key = str(value).strip().lower().lstrip(".")
        key = {"webvtt": "vtt", "ssa": "ass"}.get(key, key)
        try:
            return cls(key)
        except ValueError:
            raise UnsupportedExportFormat(f"Unsupported subtitle format: {value!r}") from None

    @classmethod
    def from_path(cls, path: Path) -> "SubtitleFormat":
        return cls.parse(path.suffix)


ASS_HEADER = """[Script Info]
Title: jamakforge Generated Subtitles
ScriptType: v4.00+
Collisions: Normal
PlayDepth: 0

[V4+ Styles]
Format: Name, Fontname, Fontsize, PrimaryColour, SecondaryColour, OutlineColour, BackColour, Bold, Italic, Underline, StrikeOut, ScaleX, ScaleY, Spacing, Angle, BorderStyle, Outline, Shadow, Alignment, MarginL, MarginR, MarginV, Encoding
Style: Default,Arial,20,&H00FFFFFF,&H000000FF,&H00000000,&H64000000,0,0,0,0,100,100,0,0,1,2,0,2,10,10,10,1
Style: Fade,Arial,20,&H00FFFFFF,&H000000FF,&H00000000,&H64000000,0,0,0,0,100,100,0,0,1,2,0,2,10,10,10,1
"""
ASS_EVENTS_FORMAT = "Format: Layer, Start, End, Style, Name, MarginL, MarginR, MarginV, Effect, Text"


# ---------- time codes ----------
def _to_ms(seconds: float) -> int:
    return 0 if not math.isfinite(seconds) or seconds < 0 else int(round(seconds * 1000))


def _hms(total_ms: int) -> tuple[int, int, int, int]:
    ms = total_ms % 1000
    total_s = total_ms // 1000
    return total_s // 3600, (total_s // 60) % 60, total_s % 60, ms


def format_srt_time(seconds: float) -> str:
    """``HH:MM:SS,mmm``"""

    h, m, s, ms = _hms(_to_ms(seconds))
    return f"{h:02d}:{m:02d}:{s:02d},{ms:03d}"


def format_vtt_time(seconds: float) -> str:
    """``HH:MM:SS.mmm``"""

    return format_srt_time(seconds).replace(",", ".")


def format_ass_time(seconds: float) -> str:
    """``H:MM:SS.cc``; the hour is not padded and centiseconds are truncated."""

    h, m, s, ms = _hms(_to_ms(seconds))
    return f"{h:d}:{m:02d}:{s:02d}.{ms // 10:02d}"


def format_clock_time(seconds: float) -> str:
    """``M:SS.s`` as shown in the JSON export."""

    total_ms = _to_ms(seconds)
    minutes = total_ms // 60000
    # Halves round up: 1.25s -> 0:01.3
    tenths = (total_ms % 60000 + 50) // 100
    return f"{minutes}:{tenths // 10:02d}.{tenths % 10}"


def _sorted(source: Any) -> List[SubtitleEntry]:
    items = source.entries() if hasattr(source, "entries") else list(source)
    return sorted(items, key=lambda e: (e.start, e.id))


# ---------- writers ----------
def _blocks(entries: Iterable[SubtitleEntry], fmt_time) -> str:
    return "\n".join(
        f"{index}\n{fmt_time(entry.start)} --> {fmt_time(entry.end)}\n{entry.text}\n"
        for index, entry in enumerate(entries, start=1)
    )


def to_srt(source: Any) -> str:
    return _blocks(_sorted(source), format_srt_time)


def to_vtt(source: Any) -> str:
    return "WEBVTT\n\n" + _blocks(_sorted(source), format_vtt_time)


def to_ass(source: Any) -> str:
    lines = [ASS_HEADER, "\n[Events]\n", ASS_EVENTS_FORMAT, "\n"]
    for entry in _sorted(source):
        style = "Fade" if entry.style is not None and entry.style.animation is Animation.FADE else "Default"
        text = entry.text.replace("\n", r"\N")
        lines.append(
            f"Dialogue: 0,{format_ass_time(entry.start)},{format_ass_time(entry.end)},{style},,0,0,0,,{text}\n"
        )
    return "".join(lines)


def to_json(
    source: Any,
    *,
    generated: Optional[datetime] = None,
    generator: str = GENERATOR_NAME,
    version: str = EXPORT_VERSION,
) -> str:
    stamp = generated or datetime.now(timezone.utc)
    payload = {
        "version": version,
        "generated": stamp.isoformat(),
        "generator": generator,
        "subtitles": [
            {
                **entry.to_dict(),
                "startTimeFormatted": format_clock_time(entry.start),
                "endTimeFormatted": format_clock_time(entry.end),
            }
            for entry in _sorted(source)
        ],
    }
    return json.dumps(payload, ensure_ascii=False, indent=2)


def export(source: Any, fmt: SubtitleFormat | str, **json_options: Any) -> str:
    """Serialise a timeline (or any iterable of entries) to ``fmt``."""

    kind = SubtitleFormat.parse(fmt)
    if kind is SubtitleFormat.SRT:
        return to_srt(source)
    if kind is SubtitleFormat.VTT:
        return to_vtt(source)
    if kind is SubtitleFormat.ASS:
        return to_ass(source)
    return to_json(source, **json_options)


def write_subtitles(source: Any, path: str | Path, fmt: SubtitleFormat | str | None = None, **json_options: Any) -> Path:
    out_path = Path(path).expanduser().resolve()
    kind = SubtitleFormat.parse(fmt) if fmt is not None else SubtitleFormat.from_path(out_path)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    out_path.write_text(export(source, kind, **json_options), encoding="utf-8")
    return out_path


# ---------- readers ----------
_VTT_TIME = re.compile(r"(?<![\d:])(?:(\d+):)?(\d{2}):(\d{2})\.(\d{3})")
_ASS_TIME = re.compile(r"^(\d+):(\d{2}):(\d{2})\.(\d{2})$")


def parse_srt(text: str) -> List[SubtitleEntry]:
    try:
        subtitles = list(srt.parse(text))
    except srt.SRTParseError as exc:
        raise SubtitleParseError(str(exc)) from exc
    return [
        SubtitleEntry(
            id=str(sub.index) if sub.index is not None else str(position),
            start=sub.start.total_seconds(),
            end=sub.end.total_seconds(),
            text=sub.content,
        )
        for position, sub in enumerate(subtitles, start=1)
    ]


def _vtt_to_srt_time(match: re.Match) -> str:
    hours = match.group(1) or "00"
    return f"{int(hours):02d}:{match.group(2)}:{match.group(3)},{match.group(4)}"


def parse_vtt(text: str) -> List[SubtitleEntry]:
    body = text.lstrip("﻿")
    if not body.startswith("WEBVTT"):
        raise SubtitleParseError("missing WEBVTT header")
    _, _, body = body.partition("\n\n")
    cues: List[str] = []
    for line in body.splitlines():
        if "-->" in line:
            start, _, rest = line.partition("-->")
            end = rest.strip().split(" ")[0]
            line = f"{_VTT_TIME.sub(_vtt_to_srt_time, start.strip())} --> {_VTT_TIME.sub(_vtt_to_srt_time, end)}"
        cues.append(line)
    return parse_srt("\n".join(cues) + "\n")


def parse_ass(text: str) -> List[SubtitleEntry]:
    entries: List[SubtitleEntry] = []
    for line in text.splitlines():
        if not line.startswith("Dialogue:"):
            continue
        fields = line[len("Dialogue:"):].strip().split(",", 9)
        if len(fields) != 10:
            raise SubtitleParseError(f"malformed Dialogue line: {line!r}")
        start, end = (_ASS_TIME.match(value.strip()) for value in fields[1:3])
        if start is None or end is None:
            raise SubtitleParseError(f"malformed ASS time code: {line!r}")
        style = SubtitleStyle(animation=Animation.FADE) if fields[3].strip() == "Fade" else None
        entries.append(
            SubtitleEntry(
                id=str(len(entries) + 1),
                start=_ass_seconds(start),
                end=_ass_seconds(end),
                text=fields[9].replace(r"\N", "\n"),
                style=style,
            )
        )
    return entries


def _ass_seconds(match: re.Match) -> float:
    h, m, s, cs = (int(part) for part in match.groups())
    return h * 3600 + m * 60 + s + cs / 100


def parse_json(text: str) -> List[SubtitleEntry]:
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise SubtitleParseError(str(exc)) from exc
    items = data.get("subtitles", []) if isinstance(data, dict) else data
    if not isinstance(items, list):
        raise SubtitleParseError("expected a list of subtitles")
    return [SubtitleEntry.from_dict(item) for item in items]


def load(text: str, fmt: SubtitleFormat | str) -> List[SubtitleEntry]:
    """Parse ``text`` in ``fmt`` back into entries."""

    kind = SubtitleFormat.parse(fmt)
    parser = {
        SubtitleFormat.SRT: parse_srt,
        SubtitleFormat.VTT: parse_vtt,
        SubtitleFormat.ASS: parse_ass,
        SubtitleFormat.JSON: parse_json,
    }[kind]
    return parser(text)


def read_subtitles(path: str | Path, fmt: SubtitleFormat | str | None = None) -> List[SubtitleEntry]:
    in_path = Path(path).expanduser()
    kind = SubtitleFormat.parse(fmt) if fmt is not None else SubtitleFormat.from_path(in_path)
    return load(in_path.read_text(encoding="utf-8-sig"), kind)


# ---------- markup ----------
_ANIMATION_KEYFRAMES: Dict[Animation, List[Dict[str, Any]]] = {
    Animation.FADE: [
        {"opacity": 0, "offset": 0},
        {"opacity": 1, "offset": 0.2},
        {"opacity": 1, "offset": 0.8},
        {"opacity": 0, "offset": 1},
    ],
    Animation.SLIDE: [
        {"transform": "translateY(50px)", "opacity": 0, "offset": 0},
        {"transform": "translateY(0)", "opacity": 1, "offset": 0.2},
        {"transform": "translateY(0)", "opacity": 1, "offset": 0.8},
        {"transform": "translateY(-50px)", "opacity": 0, "offset": 1},
    ],
    Animation.TYPEWRITER: [
        {"width": "0%", "offset": 0},
        {"width": "100%", "offset": 0.5},
        {"width": "100%", "offset": 1},
    ],
}


def build_animations(source: Any) -> Dict[str, Dict[str, Any]]:
    """Keyframe descriptors per entry; entries without a style fade in and out."""

    animations: Dict[str, Dict[str, Any]] = {}
    for entry in _sorted(source):
        kind = entry.style.animation if entry.style and entry.style.animation else Animation.FADE
        keyframes = _ANIMATION_KEYFRAMES.get(kind)
        if keyframes is None:
            continue
        animations[f"subtitle-{entry.id}"] = {
            "keyframes": [dict(frame) for frame in keyframes],
            "duration": entry.end - entry.start,
            "delay": entry.start,
        }
    return animations


_PREVIEW_BOTTOM = {Position.BOTTOM: "10%", Position.TOP: "80%"}


def render_preview(entry: SubtitleEntry) -> str:
    """Inline-styled HTML snippet for an instant preview of ``entry``."""

    style = entry.style or SubtitleStyle()
    declarations = "; ".join(
        [
            "position: absolute",
            f"bottom: {_PREVIEW_BOTTOM.get(entry.position, '50%')}",
            "left: 50%",
            "transform: translateX(-50%)",
            "padding: 8px 16px",
            f"background: {style.background_color or 'rgba(0,0,0,0.8)'}",
            f"color: {style.color or '#FFFFFF'}",
            f"font-size: {style.font_size or 24}px",
            f"font-weight: {style.font_weight or '500'}",
            "border-radius: 4px",
        ]
    )
    return f'<div class="subtitle-preview" style="{declarations};">{html.escape(entry.text)}</div>'


__all__ = [
    "ASS_HEADER",
    "SubtitleFormat",
    "build_animations",
    "export",
    "format_ass_time",
    "format_clock_time",
    "format_srt_time",
    "format_vtt_time",
    "load",
    "parse_ass",
    "parse_json",
    "parse_srt",
    "parse_vtt",
    "read_subtitles",
    "render_preview",
    "to_ass",
    "to_json",
    "to_srt",
    "to_vtt",
    "write_subtitles",
]
