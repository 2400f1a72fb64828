"""Section text → timed subtitle entries, and the file-to-file generation run."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable, List, Optional, Sequence

import yaml
from rich.table import Table

from .config import DEFAULT_OUTPUT_SUFFIX
from .history import EditHistory
from .korean import process_text
from .logging import RunLogger, get_console, status
from .models import Section, SubtitleEntry
from .post.export import SubtitleFormat, write_subtitles
from .post.segmenter import TextSegmenter, extract_keywords
from .post.timing import TimingOptions, allocate
from .settings import AppSettings, settings as default_settings
from .timeline import Timeline

logger = logging.getLogger(__name__)

KOREAN_TAGS = {"ko", "kor", "korean"}


def timing_options(app_settings: AppSettings) -> TimingOptions:
    timing = app_settings.timing
    return TimingOptions(
        reading_speed=timing.reading_speed,
        min_duration=timing.min_duration,
        max_duration=timing.max_duration,
        gap=timing.gap,
    )


class SubtitleGenerator:
    """Segments each section, normalises Korean particles and allocates timings."""

    def __init__(self, app_settings: Optional[AppSettings] = None) -> None:
        self.settings = app_settings or default_settings
        self.timing = timing_options(self.settings)

    def generate(
        self,
        sections: Sequence[Section],
        language: Optional[str] = None,
        max_chars_per_line: Optional[int] = None,
        max_lines: Optional[int] = None,
    ) -> List[SubtitleEntry]:
        lang = (language or self.settings.language or "").lower()
        segmenter = TextSegmenter(
            max_chars_per_line or self.settings.segmenter.max_chars_per_line,
            max_lines or self.settings.segmenter.max_lines,
        )
        korean = lang in KOREAN_TAGS

        entries: List[SubtitleEntry] = []
        cursor = 0.0
        for index, section in enumerate(sections):
            chunks = segmenter.split(section.text)
            if korean:
                chunks = [process_text(chunk) for chunk in chunks]
            timed = allocate(chunks, section.duration, self.timing, start_id=len(entries) + 1)
            if index > 0 and timed:
                cursor += self.timing.gap
            for entry in timed:
                entry.start += cursor
                entry.end += cursor
                entry.keywords = tuple(extract_keywords(entry.text))
            if timed:
                cursor = timed[-1].end
            logger.debug("section %d: %d chunks over %.2fs", index + 1, len(timed), section.duration)
            entries.extend(timed)
        return entries

    def build_timeline(self, sections: Sequence[Section], **options: Any) -> Timeline:
        editor = self.settings.editor
        return Timeline(
            self.generate(sections, **options),
            gap=editor.gap,
            allow_overlap=editor.allow_overlap,
            cascade=editor.cascade,
            history=EditHistory(limit=editor.history_limit),
        )


@dataclass(slots=True)
class SectionDocument:
    sections: List[Section] = field(default_factory=list)
    language: Optional[str] = None


def load_sections(path: Path) -> SectionDocument:
    """Read ``{language?, sections: [{text, duration}]}`` from a YAML or JSON file."""

    raw = Path(path).read_text(encoding="utf-8-sig")
    payload = json.loads(raw) if Path(path).suffix.lower() == ".json" else yaml.safe_load(raw)
    if isinstance(payload, list):
        payload = {"sections": payload}
    if not isinstance(payload, dict) or not isinstance(payload.get("sections"), list):
        raise ValueError(f"{path}: expected a mapping with a 'sections' list")
    return SectionDocument(
        sections=[Section.from_dict(item) for item in payload["sections"]],
        language=payload.get("language"),
    )


@dataclass(slots=True)
class GenerationConfig:
    """Configuration for a single generation run."""

    sections_path: Path
    output_path: Optional[Path] = None
    format: Optional[str] = None
    language: Optional[str] = None
    max_chars_per_line: Optional[int] = None
    max_lines: Optional[int] = None
    logs_dir: Optional[Path] = None
    settings: AppSettings = field(default_factory=lambda: default_settings)


@dataclass(slots=True)
class GenerationResult:
    """Summary of a completed generation run."""

    sections_path: Path
    output_path: Optional[Path]
    entries: List[SubtitleEntry] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    run_id: Optional[str] = None


class GenerationRun:
    """Sections file in, subtitle file out, with a timed step log."""

    def __init__(self, config: GenerationConfig) -> None:
        self.config = config
        self.console = get_console()

    def _determine_format(self) -> SubtitleFormat:
        if self.config.format:
            return SubtitleFormat.parse(self.config.format)
        if self.config.output_path and self.config.output_path.suffix:
            return SubtitleFormat.from_path(self.config.output_path)
        return SubtitleFormat.parse(self.config.settings.export.format or DEFAULT_OUTPUT_SUFFIX)

    def _determine_output_path(self, fmt: SubtitleFormat) -> Path:
        if self.config.output_path:
            return self.config.output_path
        stem = self.config.sections_path.stem
        if self.config.settings.export.output_dir:
            return self.config.settings.export.output_dir / f"{stem}.{fmt.value}"
        return self.config.sections_path.with_suffix(f".{fmt.value}")

    def run(self) -> GenerationResult:
        fmt = self._determine_format()
        output_path = self._determine_output_path(fmt)
        generator = SubtitleGenerator(self.config.settings)

        with RunLogger.start(self.config.logs_dir) as run_logger:
            run_logger.log(f"Sections: {self.config.sections_path}")
            run_logger.log(f"Output: {output_path}")
            self.console.log(f"[cyan]Run ID[/cyan] {run_logger.run_id}")

            with run_logger.step("Load sections"):
                document = load_sections(self.config.sections_path)
            if not document.sections:
                run_logger.mark_skipped("no sections")
                return GenerationResult(self.config.sections_path, None, run_id=run_logger.run_id)

            with status("Segmenting and timing subtitles"), run_logger.step("Generate subtitles"):
                timeline = generator.build_timeline(
                    document.sections,
                    language=self.config.language or document.language,
                    max_chars_per_line=self.config.max_chars_per_line,
                    max_lines=self.config.max_lines,
                )
                warnings = timeline.validate()
            for warning in warnings:
                run_logger.log(f"WARNING: {warning}")

            with status(f"Writing {fmt.value.upper()} subtitles"), run_logger.step("Export"):
                written = write_subtitles(timeline, output_path, fmt)

            result = GenerationResult(
                self.config.sections_path,
                written,
                timeline.entries(),
                warnings,
                run_logger.run_id,
            )
        self._show_summary(result)
        return result

    def _show_summary(self, result: GenerationResult) -> None:
        table = Table(title="jamakforge summary", show_header=True, header_style="bold magenta")
        table.add_column("Sections", style="cyan")
        table.add_column("Subtitles", style="green")
        table.add_column("Entries", justify="right")
        table.add_column("Warnings", justify="right")
        table.add_row(
            str(result.sections_path),
            str(result.output_path),
            str(len(result.entries)),
            str(len(result.warnings)),
        )
        self.console.print(table)


def run_generation(config: GenerationConfig) -> GenerationResult:
    """Convenience wrapper for launching a generation run."""

    return GenerationRun(config).run()


def generate_subtitles(
    sections: Iterable[Section | dict],
    language: str = "ko",
    max_chars_per_line: Optional[int] = None,
    max_lines: Optional[int] = None,
    app_settings: Optional[AppSettings] = None,
) -> List[SubtitleEntry]:
    items = [item if isinstance(item, Section) else Section.from_dict(item) for item in sections]
    return SubtitleGenerator(app_settings).generate(items, language, max_chars_per_line, max_lines)


__all__ = [
    "GenerationConfig",
    "GenerationResult",
    "GenerationRun",
    "SectionDocument",
    "SubtitleGenerator",
    "generate_subtitles",
    "load_sections",
    "run_generation",
    "timing_options",
]
