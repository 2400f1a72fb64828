"""Console and file logging helpers built on top of Rich."""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path
from time import monotonic
from typing import Iterator, Optional
from uuid import uuid4

from rich.console import Console

from .config import PROJECT_ROOT

_console = Console()

LOGS_DIR = PROJECT_ROOT / "logs"
LATEST_LOG_NAME = "jamakforge.log"


def get_console() -> Console:
    """Return the shared :class:`~rich.console.Console` instance."""

    return _console


@contextmanager
def status(message: str) -> Iterator[None]:
    """Show a transient status spinner while a generation or export step runs."""

    with _console.status(message, spinner="dots"):
        yield


def cleanup_old_logs(logs_dir: Optional[Path] = None, max_age_hours: int = 24) -> None:
    """Remove per-run ``*.log`` files older than ``max_age_hours``."""

    directory = logs_dir or LOGS_DIR
    if not directory.exists():
        return

    cutoff = datetime.now(timezone.utc) - timedelta(hours=max_age_hours)
    for candidate in directory.glob("*.log"):
        if candidate.name == LATEST_LOG_NAME:
            continue
        try:
            modified = datetime.fromtimestamp(candidate.stat().st_mtime, tz=timezone.utc)
        except OSError:
            continue
        if modified < cutoff:
            try:
                candidate.unlink()
            except OSError:
                continue


@dataclass(slots=True)
class _TimedStep:
    """Context manager recording the duration of a logging step."""

    logger: "RunLogger"
    label: str
    _start: float = 0.0

    def __enter__(self) -> None:
        self.logger.log(f"START {self.label}")
        self._start = monotonic()

    def __exit__(self, exc_type, exc, tb) -> None:  # type: ignore[override]
        duration = monotonic() - self._start
        if exc_type:
            self.logger.log(f"ERROR in {self.label}: {exc}")
        self.logger.log(f"END {self.label} ({duration:.2f}s)")


class RunLogger:
    """Per-run log file mirrored into ``jamakforge.log`` for the latest run."""

    def __init__(self, run_id: str, log_path: Path) -> None:
        self.run_id = run_id
        self.path = log_path
        log_path.parent.mkdir(parents=True, exist_ok=True)
        cleanup_old_logs(log_path.parent)
        self._handle = log_path.open("w", encoding="utf8")
        self._latest_handle = (log_path.parent / LATEST_LOG_NAME).open("w", encoding="utf8")
        self._start = monotonic()
        self._status: str = "completed"
        self._detail: Optional[str] = None
        self.log(f"Run {run_id} started at {datetime.now(timezone.utc).isoformat()}")

    @classmethod
    def start(cls, logs_dir: Optional[Path] = None) -> "RunLogger":
        """Create a :class:`RunLogger` bound to a new UUID."""

        run_id = uuid4().hex
        return cls(run_id, (logs_dir or LOGS_DIR) / f"{run_id}.log")

    def log(self, message: str) -> None:
        """Record ``message`` with the current timestamp."""

        line = f"[{datetime.now(timezone.utc).isoformat()}] {message}\n"
        for handle in (self._handle, self._latest_handle):
            handle.write(line)
            handle.flush()

    def log_error(self, message: str) -> None:
        """Record an error message and mark the run as failed."""

        self._status = "failed"
        self._detail = message
        self.log(f"ERROR: {message}")

    def mark_skipped(self, reason: str) -> None:
        self._status = "skipped"
        self._detail = reason
        self.log(f"SKIPPED: {reason}")

    def step(self, label: str) -> _TimedStep:
        """Return a context manager recording the duration of ``label``."""

        return _TimedStep(self, label)

    def close(self) -> None:
        """Finalize the log with the run summary."""

        total = monotonic() - self._start
        detail = f" ({self._detail})" if self._detail else ""
        self.log(f"Run {self.run_id} {self._status} in {total:.2f}s{detail}")
        self._handle.close()
        self._latest_handle.close()

    def __enter__(self) -> "RunLogger":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:  # type: ignore[override]
        if exc_type:
            self.log_error(str(exc))
        self.close()


__all__ = [
    "LOGS_DIR",
    "RunLogger",
    "cleanup_old_logs",
    "get_console",
    "status",
]
