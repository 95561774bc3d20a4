"""Append-only per-session log file."""

from __future__ import annotations

import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from ..models.log import LogEvent

logger = logging.getLogger(__name__)
if not logger.handlers:
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter("%(asctime)s [%(name)s] %(levelname)s: %(message)s"))
    logger.addHandler(handler)
    logger.setLevel(logging.INFO)

SESSION_STARTED = "=== Bot Session Started ==="
SESSION_ENDED = "=== Bot Session Ended ==="
LOGS_CLEARED = "=== Logs Cleared ==="


def format_line(event: LogEvent) -> str:
    """Render an event as ``[ISO-timestamp] [LEVEL] technical message``."""
    return f"[{event.timestamp.isoformat()}] [{event.level.value.upper()}] {event.technical_message}"


class SessionLogFile:
    """One human-readable log file for one bot session.

    Write failures never propagate: they are reported on stderr and the file
    is disabled for the rest of the session, so logging carries on in memory.
    """

    def __init__(self, log_dir: Path):
        self._log_dir = Path(log_dir)
        self._path: Optional[Path] = None

    @property
    def path(self) -> Optional[Path]:
        return self._path

    @property
    def is_open(self) -> bool:
        return self._path is not None

    def open(self) -> Optional[Path]:
        try:
            self._log_dir.mkdir(parents=True, exist_ok=True)
            self._path = self._unique_path(datetime.now(timezone.utc))
            self._path.touch(exist_ok=False)
        except OSError as e:
            logger.error(f"Session log disabled, cannot create file in {self._log_dir}: {e}")
            self._path = None
            return None

        self.write_marker(SESSION_STARTED)
        return self._path

    def close(self):
        if self._path is not None:
            self.write_marker(SESSION_ENDED)
        self._path = None

    def append(self, event: LogEvent):
        self._write(format_line(event) + "\n")

    def write_marker(self, marker: str):
        self._write(f"{marker}\n")

    def _unique_path(self, now: datetime) -> Path:
        stamp = now.strftime("%Y-%m-%dT%H-%M-%S-%f")
        candidate = self._log_dir / f"bot-log-{stamp}.txt"
        n = 1
        while candidate.exists():
            candidate = self._log_dir / f"bot-log-{stamp}-{n}.txt"
            n += 1
        return candidate

    def _write(self, content: str):
        if self._path is None:
            return
        try:
            with self._path.open("a", encoding="utf-8") as f:
                f.write(content)
        except OSError as e:
            logger.error(f"Failed to write to session log {self._path}: {e}")
            self._path = None
