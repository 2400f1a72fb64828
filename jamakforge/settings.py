"""Runtime configuration loaded from YAML for jamakforge."""
from __future__ import annotations

import os
from dataclasses import dataclass, field, fields, is_dataclass
from pathlib import Path
from typing import Any, Optional, Union, get_args, get_origin, get_type_hints

import yaml

from .config import PACKAGE_ROOT, PROJECT_ROOT

CONFIG_ENV_VAR = "JAMAKFORGE_CONFIG"
DEFAULT_CONFIG_FILENAME = "config.yaml"


def _resolve_path(value: str | Path | None) -> Optional[Path]:
    if value is None:
        return None
    path = Path(value).expanduser()
    if not path.is_absolute():
        path = (PROJECT_ROOT / path).resolve()
    return path


def _unwrap_optional(type_hint: Any) -> Any:
    origin = get_origin(type_hint)
    if origin is Union:
        args = [arg for arg in get_args(type_hint) if arg is not type(None)]
        return args[0] if args else Any
    return type_hint


@dataclass(slots=True)
class SegmenterSettings:
    """Line limits used when cutting section text into subtitle chunks."""

    max_chars_per_line: int = 35
    max_lines: int = 2


@dataclass(slots=True)
class TimingSettings:
    """Reading-speed model for duration estimates (seconds, characters per minute)."""

    reading_speed: float = 300.0
    min_duration: float = 1.5
    max_duration: float = 4.0
    gap: float = 0.1


@dataclass(slots=True)
class EditorSettings:
    """Behaviour of the interactive timeline."""

    gap: float = 0.1
    allow_overlap: bool = False
    cascade: bool = False
    history_limit: Optional[int] = None
    jitter: float = 0.1


@dataclass(slots=True)
class ExportSettings:
    """Defaults for written subtitle files."""

    format: str = "srt"
    output_dir: Optional[Path] = None
    fix_particles: bool = True


@dataclass(slots=True)
class AppSettings:
    """Top-level settings exposed to the rest of the application."""

    language: str = "ko"
    segmenter: SegmenterSettings = field(default_factory=SegmenterSettings)
    timing: TimingSettings = field(default_factory=TimingSettings)
    editor: EditorSettings = field(default_factory=EditorSettings)
    export: ExportSettings = field(default_factory=ExportSettings)


def _coerce_value(value: Any, target_type: Any) -> Any:
    """Convert ``value`` into ``target_type`` when possible."""

    base_type = _unwrap_optional(target_type)
    if value is None:
        return None
    if base_type is Path:
        return _resolve_path(value)
    if base_type is str:
        return str(value)
    if base_type is bool:
        if isinstance(value, bool):
            return value
        if isinstance(value, str):
            lowered = value.strip().lower()
            if lowered in {"true", "1", "yes", "on"}:
                return True
            if lowered in {"false", "0", "no", "off"}:
                return False
        return bool(value)
    if base_type is int:
        return int(value)
    if base_type is float:
        return float(value)
    return value


def _merge_dataclass(instance: Any, data: dict[str, Any]) -> Any:
    hints = get_type_hints(type(instance))
    for field_info in fields(instance):
        key = field_info.name
        if key not in data:
            continue
        value = data[key]
        current = getattr(instance, key)
        if is_dataclass(current) and isinstance(value, dict):
            _merge_dataclass(current, value)
        else:
            setattr(instance, key, _coerce_value(value, hints.get(key, field_info.type)))
    return instance


def load_settings(path: Optional[Path] = None) -> AppSettings:
    """Load configuration from ``path`` falling back to defaults."""

    config_path = path
    if config_path is None:
        env_value = os.environ.get(CONFIG_ENV_VAR)
        if env_value:
            config_path = Path(env_value).expanduser()
        else:
            config_path = PACKAGE_ROOT / DEFAULT_CONFIG_FILENAME
    config = AppSettings()
    if config_path and Path(config_path).exists():
        with open(config_path, "r", encoding="utf8") as handle:
            payload = yaml.safe_load(handle) or {}
        if isinstance(payload, dict):
            _merge_dataclass(config, payload)
    config.export.output_dir = _resolve_path(config.export.output_dir)
    return config


settings = load_settings()

__all__ = [
    "AppSettings",
    "EditorSettings",
    "ExportSettings",
    "SegmenterSettings",
    "TimingSettings",
    "load_settings",
    "settings",
]
