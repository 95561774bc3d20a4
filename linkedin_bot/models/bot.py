"""Pydantic models for bot lifecycle state and control-surface responses."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class Phase(str, Enum):
    """Lifecycle phase of the single bot instance."""

    IDLE = "idle"
    STARTING = "starting"
    RUNNING = "running"
    STOPPING = "stopping"
    FAILED = "failed"


class BotState(BaseModel):
    """Snapshot of the bot state. Only the orchestrator creates new ones."""

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    phase: Phase = Phase.IDLE
    message: str = ""
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    def to_wire(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


class ApiResponse(BaseModel):
    """Envelope returned by every control-surface endpoint."""

    success: bool
    data: Optional[Any] = None
    error: Optional[str] = None

    def to_wire(self) -> dict:
        payload: dict[str, Any] = {"success": self.success}
        if self.data is not None:
            payload["data"] = _to_wire(self.data)
        if self.error is not None:
            payload["error"] = self.error
        return payload


def _to_wire(value: Any) -> Any:
    if hasattr(value, "to_wire"):
        return value.to_wire()
    if isinstance(value, list):
        return [_to_wire(v) for v in value]
    if isinstance(value, dict):
        return {k: _to_wire(v) for k, v in value.items()}
    return value
