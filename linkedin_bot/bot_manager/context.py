"""Mutable handle shared by the orchestrator and the pipeline steps."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional

from ..models.bot import BotState, Phase
from .detection import SignInResult


@dataclass
class BotContext:
    """Browser handles of the current run plus a read-only view of its state.

    Steps may set ``handle``, ``page`` and ``sign_in``. ``state`` is replaced
    by the orchestrator on every transition and must not be written by steps.
    """

    state: BotState = field(default_factory=BotState)
    handle: Optional[Any] = None
    page: Optional[Any] = None
    sign_in: Optional[SignInResult] = None

    def is_running(self) -> bool:
        return self.state.phase is Phase.RUNNING

    @property
    def has_page(self) -> bool:
        return self.page is not None
