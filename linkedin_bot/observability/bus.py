"""Observability Bus: bounded event buffer, session log file and live fan-out.

Every notable bot occurrence is recorded here once and then:

1. kept in a bounded in-memory buffer (most recent ``capacity`` events) that
   newly attached subscribers receive as a single replay batch,
2. appended to the current session's log file, if a session is open,
3. pushed to every attached subscriber, in creation order.

Subscribers are plain callables taking a :class:`LiveMessage`. Delivery is
synchronous, so a subscriber that needs to do I/O should hand the message to
its own queue (see ``bot_manager.manager.handle_live``).
"""

from __future__ import annotations

import logging
import sys
import threading
from collections import deque
from pathlib import Path
from typing import Callable, Optional

from ..config import LOG_BUFFER_SIZE, LOG_DIR
from ..models.log import LiveMessage, LiveMessageType, LogEvent, LogLevel, LogStats
from .sink import LOGS_CLEARED, SessionLogFile

logger = logging.getLogger(__name__)
if not logger.handlers:
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter("%(asctime)s [%(name)s] %(levelname)s: %(message)s"))
    logger.addHandler(handler)
    logger.setLevel(logging.INFO)

Subscriber = Callable[[LiveMessage], None]

_PROCESS_LEVELS = {
    LogLevel.INFO: logging.INFO,
    LogLevel.SUCCESS: logging.INFO,
    LogLevel.WARNING: logging.WARNING,
    LogLevel.ERROR: logging.ERROR,
}


class ObservabilityBus:
    """Structured event log shared by the orchestrator, its steps and observers."""

    def __init__(self, capacity: int = LOG_BUFFER_SIZE, log_dir: Path = LOG_DIR):
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self._events: deque[LogEvent] = deque(maxlen=capacity)
        self._subscribers: list[Subscriber] = []
        self._log_dir = Path(log_dir)
        self._sink: Optional[SessionLogFile] = None
        self._session_open = False
        # Guards buffer, subscriber list and sink so that replay-and-subscribe
        # is atomic with respect to record() and clear().
        self._lock = threading.RLock()

    @property
    def capacity(self) -> int:
        return self._events.maxlen

    @property
    def session_open(self) -> bool:
        return self._session_open

    @property
    def session_path(self) -> Optional[Path]:
        return self._sink.path if self._sink else None

    # ── Sessions ─────────────────────────────────────────────────────────────

    def start_session(self) -> Optional[Path]:
        """Open the durable sink. Returns the log file path, if writable."""
        with self._lock:
            if self._session_open:
                logger.warning("Session already open, keeping current log file.")
                return self.session_path
            if self._sink is None:
                self._sink = SessionLogFile(self._log_dir)
            path = self._sink.open()
            self._session_open = True
            if path:
                logger.info(f"Session log: {path}")
            return path

    def end_session(self):
        with self._lock:
            if not self._session_open:
                return
            self._sink.close()
            self._session_open = False

    # ── Recording ────────────────────────────────────────────────────────────

    def record(
        self,
        level: LogLevel,
        technical_message: str,
        user_message: Optional[str] = None,
        is_advanced: bool = False,
    ) -> LogEvent:
        event = LogEvent(
            level=level,
            technical_message=technical_message,
            user_message=user_message,
            is_advanced=is_advanced,
        )
        with self._lock:
            self._events.append(event)
            if self._session_open:
                self._sink.append(event)
            logger.log(_PROCESS_LEVELS[level], technical_message)
            self._broadcast(LiveMessage(LiveMessageType.NEW_LOG, event))
        return event

    def emit(self, level: LogLevel, message, *, is_advanced: bool = False) -> LogEvent:
        """Record a catalog ``BotMessage`` (technical text plus user text)."""
        return self.record(level, message.message, message.user_message, is_advanced)

    def clear(self):
        """Empty the buffer and tell subscribers to reset their view."""
        with self._lock:
            self._events.clear()
            if self._session_open:
                self._sink.write_marker(LOGS_CLEARED)
            self._broadcast(LiveMessage(LiveMessageType.LOGS_CLEARED))

    # ── Subscribers ──────────────────────────────────────────────────────────

    def attach(self, subscriber: Subscriber):
        """Replay the buffer to ``subscriber`` as one batch, then subscribe it."""
        with self._lock:
            self._deliver(subscriber, LiveMessage(LiveMessageType.INIT_LOGS, list(self._events)))
            self._subscribers.append(subscriber)

    def detach(self, subscriber: Subscriber):
        with self._lock:
            try:
                self._subscribers.remove(subscriber)
            except ValueError:
                pass

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    # ── Queries ──────────────────────────────────────────────────────────────

    def events(self) -> list[LogEvent]:
        with self._lock:
            return list(self._events)

    def stats(self, include_advanced: bool = True) -> LogStats:
        return LogStats.from_events(self.events(), include_advanced)

    def _broadcast(self, message: LiveMessage):
        for subscriber in list(self._subscribers):
            self._deliver(subscriber, message)

    def _deliver(self, subscriber: Subscriber, message: LiveMessage):
        # Reported on the process logger only: recording a bus event here
        # could fail the same way again.
        try:
            subscriber(message)
        except Exception as e:
            logger.warning(f"Subscriber {subscriber!r} failed on {message.type.value}: {e}")
