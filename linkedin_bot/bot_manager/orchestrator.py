"""Lifecycle orchestrator: owns the bot state and sequences the pipeline.

Phases::

    idle ──start──▶ starting ──leading steps ok──▶ running ──stop──▶ stopping ──▶ idle
                        │                             │                 ▲
                        └──step raised──▶ failed ◀────┘ (follow-up)     │
                                            └───────────stop────────────┘

``start`` runs the leading steps (launch, open home page) inline and reports
Running as soon as they succeed. The follow-up steps (Google login, popup,
signed-in poll, feed scroll) then run in a background task, because they
wait on a human and may stay pending for minutes. ``stop`` cancels that task
and waits for it before releasing the browser, so nothing from a stopped run
reaches a later session.

On a failed start the browser is deliberately left open for inspection and
stays referenced by the context until ``stop``.
"""

from __future__ import annotations

import asyncio
import logging
import sys
from typing import Optional, Sequence

from ..models.bot import BotState, Phase
from ..models.log import LogLevel
from ..observability.bus import ObservabilityBus
from . import messages as msg
from .context import BotContext
from .errors import (
    AlreadyRunningError,
    BotBusyError,
    BotFailedError,
    NotRunningError,
    extract_error_message,
)
from .steps import Pipeline, PipelineStep, default_follow_up_steps, default_leading_steps

logger = logging.getLogger(__name__)
if not logger.handlers:
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter("%(asctime)s [%(name)s] %(levelname)s: %(message)s"))
    logger.addHandler(handler)
    logger.setLevel(logging.INFO)


class BotOrchestrator:
    """Finite-state controller for the single bot instance."""

    def __init__(
        self,
        bus: ObservabilityBus,
        driver=None,
        leading_steps: Optional[Sequence[PipelineStep]] = None,
        follow_up_steps: Optional[Sequence[PipelineStep]] = None,
    ):
        if driver is None:
            from .driver import PlaywrightDriver

            driver = PlaywrightDriver()
        self.bus = bus
        self.driver = driver
        self._leading = Pipeline(
            leading_steps if leading_steps is not None else default_leading_steps(driver, bus),
            bus,
            required=True,
        )
        self._follow_up = Pipeline(
            follow_up_steps if follow_up_steps is not None else default_follow_up_steps(driver, bus),
            bus,
        )
        self._state = BotState(phase=Phase.IDLE, message=msg.IDLE.message)
        self._context = BotContext(state=self._state)
        self._follow_up_task: Optional[asyncio.Task] = None

    @property
    def context(self) -> BotContext:
        return self._context

    @property
    def follow_up_task(self) -> Optional[asyncio.Task]:
        return self._follow_up_task

    def get_state(self) -> BotState:
        return self._state

    def transition(self, phase: Phase, message: str) -> BotState:
        """The only writer of the bot state."""
        self._state = BotState(phase=phase, message=message)
        self._context.state = self._state
        self.bus.emit(
            LogLevel.INFO,
            msg.BOT_STATUS.format(phase=phase.value, message=message),
            is_advanced=True,
        )
        return self._state

    # ── Commands ─────────────────────────────────────────────────────────────

    async def start(self) -> BotState:
        phase = self._state.phase
        if phase in (Phase.STARTING, Phase.RUNNING, Phase.STOPPING):
            self.bus.emit(LogLevel.WARNING, msg.ALREADY_RUNNING.format(phase=phase.value))
            raise AlreadyRunningError(msg.ALREADY_RUNNING.format(phase=phase.value).message)
        if phase is Phase.FAILED:
            self.bus.emit(LogLevel.WARNING, msg.FAILED_STATE)
            raise BotFailedError(msg.FAILED_STATE.message)

        # Phase check and the Starting transition happen before the first await
        self.bus.start_session()
        self._context = BotContext()
        self.transition(Phase.STARTING, msg.STARTING.message)
        self.bus.emit(LogLevel.INFO, msg.STARTING)

        try:
            await self._leading.run(self._context)
        except Exception as e:
            error = extract_error_message(e)
            self.transition(Phase.FAILED, f"Error: {error}")
            self.bus.emit(LogLevel.ERROR, msg.START_ERROR.format(error=error))
            if self._context.handle is not None:
                self.bus.emit(LogLevel.INFO, msg.BROWSER_KEPT_OPEN, is_advanced=True)
            raise

        self.transition(Phase.RUNNING, msg.RUNNING.message)
        self.bus.emit(LogLevel.SUCCESS, msg.RUNNING)
        self._follow_up_task = asyncio.create_task(
            self._run_follow_up(self._context), name="bot-follow-up"
        )
        return self._state

    async def stop(self) -> BotState:
        phase = self._state.phase
        if phase is Phase.IDLE:
            self.bus.emit(LogLevel.WARNING, msg.NOT_RUNNING)
            raise NotRunningError(msg.NOT_RUNNING.message)
        # Stopping mid-start would skip the Running phase; the caller retries once it settles
        if phase in (Phase.STARTING, Phase.STOPPING):
            self.bus.emit(LogLevel.WARNING, msg.BUSY.format(phase=phase.value))
            raise BotBusyError(msg.BUSY.format(phase=phase.value).message)

        self.bus.emit(LogLevel.INFO, msg.STOPPING)
        self.transition(Phase.STOPPING, msg.STOPPING.message)
        await self._cancel_follow_up()
        await self._release(self._context)

        self.transition(Phase.IDLE, msg.STOPPED.message)
        self.bus.emit(LogLevel.SUCCESS, msg.STOPPED)
        self.bus.end_session()
        return self._state

    async def shutdown(self):
        """Process teardown: cancel background work and release the browser."""
        await self._cancel_follow_up()
        if self._state.phase in (Phase.RUNNING, Phase.FAILED):
            await self.stop()
        else:
            await self._release(self._context)
            self.bus.end_session()

    # ── Internals ────────────────────────────────────────────────────────────

    async def _cancel_follow_up(self):
        task = self._follow_up_task
        if task is None or task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def _run_follow_up(self, context: BotContext):
        try:
            await self._follow_up.run(context)
        except Exception as e:
            error = extract_error_message(e)
            self.transition(Phase.FAILED, f"Error: {error}")
            self.bus.emit(LogLevel.ERROR, msg.RUN_ERROR.format(error=error))
            self.bus.emit(LogLevel.INFO, msg.BROWSER_KEPT_OPEN, is_advanced=True)

    async def _release(self, context: BotContext):
        """Close page then browser. Errors are logged, never raised."""
        if context.page is not None:
            try:
                await self.driver.close_page(context.page)
                self.bus.emit(LogLevel.INFO, msg.PAGE_CLOSED, is_advanced=True)
            except Exception as e:
                self.bus.emit(
                    LogLevel.ERROR, msg.CLEANUP_ERROR.format(error=extract_error_message(e)), is_advanced=True
                )
            finally:
                context.page = None

        if context.handle is not None:
            try:
                await self.driver.close_browser(context.handle)
                self.bus.emit(LogLevel.INFO, msg.BROWSER_CLOSED, is_advanced=True)
            except Exception as e:
                self.bus.emit(
                    LogLevel.ERROR, msg.CLEANUP_ERROR.format(error=extract_error_message(e)), is_advanced=True
                )
            finally:
                context.handle = None
