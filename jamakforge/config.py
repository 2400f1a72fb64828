"""Static configuration and default paths used by jamakforge."""

from __future__ import annotations

from pathlib import Path

PACKAGE_ROOT = Path(__file__).resolve().parent
PROJECT_ROOT = PACKAGE_ROOT.parent
DEFAULT_OUTPUT_SUFFIX = ".srt"
GENERATOR_NAME = "jamakforge Subtitle Generator"
EXPORT_VERSION = "1.0"
