"""Typer CLI entry point exposing the jamakforge commands."""

from __future__ import annotations

import asyncio
import json
import os
import random
import sys
from enum import Enum
from pathlib import Path
from typing import Any, Optional

import typer

from .errors import JamakforgeError
from .generator import GenerationConfig, run_generation
from .history import EditCommand
from .korean import ParticleCategory, has_final_consonant, select_particle
from .logging import get_console
from .models import SubtitleEntry, SubtitleStyle
from .post.export import SubtitleFormat, read_subtitles, write_subtitles
from .settings import AppSettings, EditorSettings, load_settings
from .timeline import Timeline, validate_subtitles

app = typer.Typer(add_completion=False, help="Korean-aware subtitle generation, editing and export")
console = get_console()


def _settings(config: Optional[Path]) -> AppSettings:
    return load_settings(config)


@app.command()
def generate(
    sections: Path = typer.Argument(..., exists=True, dir_okay=False, help="YAML/JSON file with text sections"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Optional path for the subtitle output"),
    fmt: Optional[str] = typer.Option(None, "--format", "-f", help="srt, vtt, ass or json"),
    language: Optional[str] = typer.Option(None, "--language", "-l", help="Language tag (ko/en)"),
    max_chars: Optional[int] = typer.Option(None, "--max-chars", min=1, help="Maximum characters per line"),
    max_lines: Optional[int] = typer.Option(None, "--max-lines", min=1, help="Maximum lines per subtitle"),
    config: Optional[Path] = typer.Option(None, "--config", help="Alternative config.yaml"),
) -> None:
    """Generate a subtitle file from timed text sections."""

    try:
        result = run_generation(
            GenerationConfig(
                sections_path=sections,
                output_path=output,
                format=fmt,
                language=language,
                max_chars_per_line=max_chars,
                max_lines=max_lines,
                settings=_settings(config),
            )
        )
    except (JamakforgeError, ValueError, OSError) as exc:
        console.log(f"[bold red]Generation failed[/bold red] {sections}: {exc}")
        raise typer.Exit(code=1)
    if result.output_path is None:
        console.log(f"[yellow]Skipping[/yellow] {sections} – no sections")
        raise typer.Exit(code=2)
    console.log(f"[green]Subtitles written to[/green] {result.output_path}")
    typer.echo(json.dumps({"event": "subtitles_written", "path": str(result.output_path)}))


@app.command()
def convert(
    source: Path = typer.Argument(..., exists=True, dir_okay=False, help="Subtitle file to read"),
    output: Path = typer.Argument(..., help="Destination; the format follows its suffix unless --format is given"),
    fmt: Optional[str] = typer.Option(None, "--format", "-f", help="srt, vtt, ass or json"),
    fix_particles: Optional[bool] = typer.Option(
        None, "--fix-particles/--no-fix-particles", help="Rewrite mismatched Korean particles"
    ),
    config: Optional[Path] = typer.Option(None, "--config", help="Alternative config.yaml"),
) -> None:
    """Convert a subtitle file between formats."""

    settings = _settings(config)
    fix = settings.export.fix_particles if fix_particles is None else fix_particles
    try:
        timeline = Timeline(read_subtitles(source), allow_overlap=True)
        changed = timeline.auto_fix_particles() if fix else []
        written = write_subtitles(timeline, output, fmt)
    except (JamakforgeError, ValueError, OSError) as exc:
        console.log(f"[bold red]Conversion failed[/bold red] {source}: {exc}")
        raise typer.Exit(code=1)
    if changed:
        console.log(f"[cyan]Particles fixed[/cyan] in {len(changed)} subtitle(s)")
    console.log(f"[green]Subtitles written to[/green] {written}")
    typer.echo(json.dumps({"event": "subtitles_written", "path": str(written)}))


@app.command()
def validate(
    source: Path = typer.Argument(..., exists=True, dir_okay=False, help="Subtitle file to check"),
    allow_overlap: bool = typer.Option(False, "--allow-overlap", help="Do not report overlapping subtitles"),
) -> None:
    """Print timing and text warnings; exits with 1 when there are any."""

    try:
        entries = read_subtitles(source)
    except (JamakforgeError, OSError) as exc:
        console.log(f"[bold red]Cannot read[/bold red] {source}: {exc}")
        raise typer.Exit(code=1)
    warnings = validate_subtitles(entries, allow_overlap=allow_overlap)
    for warning in warnings:
        typer.echo(warning)
    if warnings:
        raise typer.Exit(code=1)
    console.log(f"[green]{len(entries)} subtitles OK[/green]")


@app.command()
def particle(
    word: str = typer.Argument(..., help="Word the particle attaches to"),
    category: ParticleCategory = typer.Argument(ParticleCategory.SUBJECT, help="Particle category"),
) -> None:
    """Show which particle variant follows WORD."""

    chosen = select_particle(word, category)
    typer.echo(
        json.dumps(
            {
                "word": word,
                "category": category.value,
                "batchim": has_final_consonant(word),
                "particle": chosen,
                "result": f"{word}{chosen}",
            },
            ensure_ascii=False,
        )
    )


def _emit_worker_event(payload: dict) -> None:
    """Emit a single JSON event line to stdout (the editor UI consumes this)."""
    sys.stdout.write(json.dumps(payload, ensure_ascii=False) + "\n")
    sys.stdout.flush()


def _jsonable(value: Any) -> Any:
    if isinstance(value, (SubtitleEntry, SubtitleStyle)):
        return value.to_dict()
    if isinstance(value, EditCommand):
        return {"label": value.label, "entryIds": value.entry_ids}
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, dict):
        return {key: _jsonable(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(item) for item in value]
    return value


def _run_action(timeline: Timeline, payload: dict, editor_settings: EditorSettings) -> Optional[dict]:
    action = payload.get("action")
    if action == "load":
        if payload.get("file"):
            entries = read_subtitles(Path(str(payload["file"])).expanduser())
        else:
            entries = [SubtitleEntry.from_dict(item) for item in payload.get("subtitles") or []]
        timeline.insert_or_replace(entries)
    elif action == "edit_text":
        timeline.edit_text(str(payload["id"]), str(payload["text"]))
    elif action == "move":
        timeline.move(str(payload["id"]), float(payload["start"]))
    elif action == "update_style":
        timeline.update_style(str(payload["id"]), payload.get("style"), payload.get("position"))
    elif action == "split":
        timeline.split_at(str(payload["id"]), int(payload["offset"]))
    elif action == "merge":
        timeline.merge([str(entry_id) for entry_id in payload.get("ids") or []])
    elif action == "undo":
        timeline.undo()
    elif action == "redo":
        timeline.redo()
    elif action == "fix_particles":
        timeline.auto_fix_particles()
    elif action == "auto_align":
        jitter = float(payload.get("jitter", editor_settings.jitter))
        rng = random.Random(payload["seed"]) if "seed" in payload else None
        asyncio.run(timeline.auto_align(jitter=jitter, rng=rng))
    elif action == "search":
        return {"event": "search_results", "subtitles": _jsonable(timeline.search(str(payload.get("query", ""))))}
    elif action == "validate":
        return {"event": "validation", "warnings": timeline.validate()}
    elif action == "export":
        fmt = SubtitleFormat.parse(payload.get("format") or "srt")
        if payload.get("output"):
            path = write_subtitles(timeline, Path(str(payload["output"])), fmt)
            return {"event": "subtitles_written", "path": str(path)}
        return {"event": "exported", "format": fmt.value, "content": timeline.export(fmt)}
    else:
        return {"event": "unknown_action", "action": str(action)}
    return None


@app.command()
def editor(
    config: Optional[Path] = typer.Option(None, "--config", help="Alternative config.yaml"),
) -> None:
    """
    Persistent editing session.

    Reads JSON lines from STDIN:
      {"action":"move","id":"2","start":4.5}

    Emits every timeline event as a JSON line on STDOUT:
      {"event":"timeline:updated","entry":{...},"conflicts":["3"]}
    """
    settings = _settings(config)
    timeline = Timeline(
        gap=settings.editor.gap,
        allow_overlap=settings.editor.allow_overlap,
        cascade=settings.editor.cascade,
    )
    timeline.history.limit = settings.editor.history_limit
    timeline.events.subscribe(lambda name, data: _emit_worker_event({"event": name, **_jsonable(data)}))

    _emit_worker_event({"event": "editor_ready", "pid": os.getpid()})

    while True:
        line = sys.stdin.readline()
        if not line:
            break
        line = line.strip()
        if not line:
            continue

        try:
            payload = json.loads(line)
        except json.JSONDecodeError:
            _emit_worker_event({"event": "bad_json", "line": line[:500]})
            continue

        if not isinstance(payload, dict):
            _emit_worker_event({"event": "bad_payload", "reason": "payload_not_dict"})
            continue

        if payload.get("action") == "shutdown":
            _emit_worker_event({"event": "editor_stopping"})
            break

        try:
            reply = _run_action(timeline, payload, settings.editor)
        except (JamakforgeError, ValueError, KeyError, TypeError, OSError) as exc:
            _emit_worker_event({"event": "command_failed", "action": str(payload.get("action")), "error": str(exc)})
            continue
        if reply is not None:
            _emit_worker_event(reply)


@app.callback(invoke_without_command=True)
def main(ctx: typer.Context) -> None:
    if ctx.invoked_subcommand is None:
        typer.echo(ctx.get_help())


__all__ = ["app"]
