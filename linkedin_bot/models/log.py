"""Pydantic models for observability events and live-surface messages."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class LogLevel(str, Enum):
    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


class LogEvent(BaseModel):
    """One immutable diagnostic record.

    ``technical_message`` is always present. ``user_message`` is the simplified
    text for non-technical viewers, and ``is_advanced`` hides the event from
    the simplified view entirely.
    """

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    id: str = Field(default_factory=lambda: uuid4().hex)
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    level: LogLevel
    technical_message: str
    user_message: Optional[str] = None
    is_advanced: bool = False

    def to_wire(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class LogStats(BaseModel):
    """Per-level event counts over the in-memory buffer."""

    total: int = 0
    info: int = 0
    success: int = 0
    warning: int = 0
    error: int = 0

    @classmethod
    def from_events(cls, events: list[LogEvent], include_advanced: bool = True) -> "LogStats":
        visible = [e for e in events if include_advanced or not e.is_advanced]
        counts = {level.value: 0 for level in LogLevel}
        for event in visible:
            counts[event.level.value] += 1
        return cls(total=len(visible), **counts)

    def to_wire(self) -> dict:
        return self.model_dump()


class LiveMessageType(str, Enum):
    INIT_LOGS = "INIT_LOGS"
    NEW_LOG = "NEW_LOG"
    LOGS_CLEARED = "LOGS_CLEARED"


@dataclass(frozen=True)
class LiveMessage:
    """Message pushed to live subscribers.

    ``data`` is a list of events for INIT_LOGS, a single event for NEW_LOG
    and None for LOGS_CLEARED.
    """

    type: LiveMessageType
    data: Any = None

    def to_wire(self) -> dict:
        payload: dict[str, Any] = {"type": self.type.value}
        if isinstance(self.data, list):
            payload["data"] = [event.to_wire() for event in self.data]
        elif self.data is not None:
            payload["data"] = self.data.to_wire()
        return payload
