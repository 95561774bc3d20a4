"""Action pipeline: the ordered, named steps of one bot run.

Each step is a small command object with ``name``, ``can_execute`` and
``execute``. Steps only read ``context.state``; every state change goes
through the orchestrator. Retries live in the detection primitives a step
uses, never in re-running the step.
"""

from __future__ import annotations

import asyncio
from typing import Optional, Sequence

from ..config import (
    BROWSER_ENGINE,
    BROWSER_HEADLESS,
    BROWSER_USER_AGENT,
    FALLBACK_SELECTOR_TIMEOUT,
    FEED_SCROLL_ENABLED,
    FEED_SCROLL_INTERVAL,
    FEED_SCROLL_MAX_DURATION,
    FEED_SCROLL_STEP_PX,
    FRAME_BUTTON_TIMEOUT,
    FRAME_SETTLE_MS,
    NAVIGATION_TIMEOUT,
    POPUP_APPEAR_TIMEOUT,
    POPUP_CLOSE_TIMEOUT,
    POPUP_POLL_INTERVAL,
    SIGN_IN_POLL_INTERVAL,
    SIGN_IN_TIMEOUT,
)
from ..constants import (
    GOOGLE_GSI_BUTTON,
    GOOGLE_GSI_FRAME,
    GOOGLE_LOGIN_SELECTORS,
    GOOGLE_POPUP_URL,
    LINKEDIN_BASE,
    NAVIGATION_WAIT_UNTIL,
    SCROLL_BY_SCRIPT,
)
from ..models.log import LogLevel
from ..observability.bus import ObservabilityBus
from . import messages as msg
from .context import BotContext
from .detection import (
    SignInResult,
    WindowWait,
    find_frame,
    find_selector,
    wait_for_signed_in,
    wait_for_window_closed,
)
from .errors import LoginButtonNotFoundError, StepFailedError

# Report every Nth scroll so a long scroll session does not flush the buffer
SCROLL_REPORT_EVERY = 10


class PipelineStep:
    """One named unit of work over a :class:`BotContext`."""

    name = "PipelineStep"
    # Follow-up steps only make sense while the bot reports Running
    requires_running = False

    def __init__(self, driver, bus: ObservabilityBus):
        self.driver = driver
        self.bus = bus

    def can_execute(self, context: BotContext) -> bool:
        if self.requires_running and not context.is_running():
            return False
        return context.has_page

    async def execute(self, context: BotContext):
        raise NotImplementedError


# ── Leading steps ────────────────────────────────────────────────────────────


class LaunchBrowserStep(PipelineStep):
    name = "LaunchBrowser"

    def __init__(
        self,
        driver,
        bus: ObservabilityBus,
        headless: Optional[bool] = None,
        user_agent: str = BROWSER_USER_AGENT,
    ):
        super().__init__(driver, bus)
        self.headless = BROWSER_HEADLESS if headless is None else headless
        self.user_agent = user_agent

    def can_execute(self, context: BotContext) -> bool:
        return context.handle is None

    async def execute(self, context: BotContext):
        engine = getattr(self.driver, "engine", BROWSER_ENGINE)
        self.bus.emit(
            LogLevel.INFO,
            msg.LAUNCHING_BROWSER.format(engine=engine, headless=self.headless),
            is_advanced=True,
        )
        context.handle = await self.driver.launch(headless=self.headless)
        self.bus.emit(LogLevel.SUCCESS, msg.BROWSER_LAUNCHED, is_advanced=True)

        context.page = await self.driver.new_page(context.handle)
        if self.user_agent:
            await self.driver.set_identity(context.page, self.user_agent)
            self.bus.emit(LogLevel.INFO, msg.USER_AGENT_SET, is_advanced=True)
        else:
            self.bus.emit(LogLevel.INFO, msg.USER_AGENT_DEFAULT, is_advanced=True)


class OpenHomeStep(PipelineStep):
    name = "OpenHome"

    def __init__(
        self,
        driver,
        bus: ObservabilityBus,
        url: str = LINKEDIN_BASE,
        timeout_ms: int = NAVIGATION_TIMEOUT,
    ):
        super().__init__(driver, bus)
        self.url = url
        self.timeout_ms = timeout_ms

    async def execute(self, context: BotContext):
        self.bus.emit(LogLevel.INFO, msg.NAVIGATING_LINKEDIN.format(url=self.url))
        await self.driver.goto(
            context.page, self.url, wait_until=NAVIGATION_WAIT_UNTIL, timeout_ms=self.timeout_ms
        )
        self.bus.emit(LogLevel.SUCCESS, msg.NAVIGATION_SUCCESS.format(url=self.url))


# ── Follow-up steps ──────────────────────────────────────────────────────────


class ClickGoogleLoginStep(PipelineStep):
    """Click "Sign in with Google", preferring the embedded GSI widget."""

    name = "ClickGoogleLogin"
    requires_running = True

    def __init__(
        self,
        driver,
        bus: ObservabilityBus,
        settle_ms: int = FRAME_SETTLE_MS,
        button_timeout_ms: int = FRAME_BUTTON_TIMEOUT,
        fallback_timeout_ms: int = FALLBACK_SELECTOR_TIMEOUT,
        fallback_selectors: Sequence[str] = GOOGLE_LOGIN_SELECTORS,
    ):
        super().__init__(driver, bus)
        self.settle_ms = settle_ms
        self.button_timeout_ms = button_timeout_ms
        self.fallback_timeout_ms = fallback_timeout_ms
        self.fallback_selectors = list(fallback_selectors)

    async def execute(self, context: BotContext):
        page = context.page
        self.bus.emit(LogLevel.INFO, msg.LOOKING_FOR_GMAIL_BUTTON)
        self.bus.emit(LogLevel.INFO, msg.LOOKING_FOR_IFRAME, is_advanced=True)

        frame = await find_frame(self.driver, page, GOOGLE_GSI_FRAME, self.settle_ms)
        self.bus.emit(
            LogLevel.INFO,
            msg.FOUND_FRAMES.format(count=len(self.driver.frames(page))),
            is_advanced=True,
        )

        if frame is not None:
            self.bus.emit(LogLevel.SUCCESS, msg.FOUND_GOOGLE_IFRAME, is_advanced=True)
            self.bus.emit(LogLevel.INFO, msg.LOOKING_FOR_BUTTON_IN_IFRAME, is_advanced=True)
            await self.driver.wait_for_selector(frame, GOOGLE_GSI_BUTTON, self.button_timeout_ms)
            await self.driver.click(frame, GOOGLE_GSI_BUTTON)
        else:
            self.bus.emit(LogLevel.INFO, msg.IFRAME_NOT_FOUND_FALLBACK, is_advanced=True)
            selector = await find_selector(
                self.driver, page, self.fallback_selectors, self.fallback_timeout_ms
            )
            if selector is None:
                self.bus.emit(LogLevel.WARNING, msg.GMAIL_BUTTON_NOT_FOUND)
                raise LoginButtonNotFoundError(msg.GMAIL_BUTTON_NOT_FOUND.message)
            self.bus.emit(
                LogLevel.INFO,
                msg.GMAIL_BUTTON_FOUND_WITH_SELECTOR.format(selector=selector),
                is_advanced=True,
            )
            await self.driver.click(page, selector)

        self.bus.emit(LogLevel.SUCCESS, msg.GMAIL_BUTTON_CLICKED)


class AwaitLoginPopupStep(PipelineStep):
    """Wait for the Google account chooser window to be closed by the user."""

    name = "AwaitLoginPopup"
    requires_running = True

    def __init__(
        self,
        driver,
        bus: ObservabilityBus,
        appear_timeout_ms: int = POPUP_APPEAR_TIMEOUT,
        close_timeout_ms: int = POPUP_CLOSE_TIMEOUT,
        interval_ms: int = POPUP_POLL_INTERVAL,
        url_substring: str = GOOGLE_POPUP_URL,
    ):
        super().__init__(driver, bus)
        self.appear_timeout_ms = appear_timeout_ms
        self.close_timeout_ms = close_timeout_ms
        self.interval_ms = interval_ms
        self.url_substring = url_substring

    def can_execute(self, context: BotContext) -> bool:
        return super().can_execute(context) and context.handle is not None

    async def execute(self, context: BotContext):
        self.bus.emit(
            LogLevel.INFO, msg.WAITING_FOR_POPUP.format(url=self.url_substring), is_advanced=True
        )
        result = await wait_for_window_closed(
            self.driver,
            context.handle,
            self.url_substring,
            self.appear_timeout_ms,
            self.close_timeout_ms,
            self.interval_ms,
            exclude=[context.page],
            on_appear=lambda: self.bus.emit(LogLevel.INFO, msg.GOOGLE_POPUP_WAITING_FOR_USER),
        )

        if result is WindowWait.CLOSED:
            self.bus.emit(LogLevel.SUCCESS, msg.GOOGLE_POPUP_CLOSED)
        elif result is WindowWait.NO_WINDOW:
            self.bus.emit(LogLevel.INFO, msg.GOOGLE_POPUP_NOT_SEEN)
        else:
            self.bus.emit(
                LogLevel.WARNING,
                msg.GOOGLE_POPUP_STILL_OPEN.format(seconds=self.close_timeout_ms // 1000),
            )


class AwaitSignedInStep(PipelineStep):
    """Poll the page until it looks signed in. Never fails on timeout."""

    name = "AwaitSignedIn"
    requires_running = True

    def __init__(
        self,
        driver,
        bus: ObservabilityBus,
        timeout_ms: int = SIGN_IN_TIMEOUT,
        interval_ms: int = SIGN_IN_POLL_INTERVAL,
    ):
        super().__init__(driver, bus)
        self.timeout_ms = timeout_ms
        self.interval_ms = interval_ms

    async def execute(self, context: BotContext):
        self.bus.emit(
            LogLevel.INFO,
            msg.WAITING_FOR_SIGN_IN_COMPLETE.format(seconds=self.timeout_ms // 1000),
        )
        result = await wait_for_signed_in(
            self.driver, context.page, self.timeout_ms, self.interval_ms
        )
        context.sign_in = result
        url = self.driver.page_url(context.page) if context.has_page else ""

        if result is SignInResult.SIGNED_IN:
            self.bus.emit(LogLevel.SUCCESS, msg.SIGN_IN_COMPLETE.format(url=url))
        elif result is SignInResult.ASSUMED:
            self.bus.emit(LogLevel.WARNING, msg.SIGN_IN_ASSUMED.format(url=url))
        else:
            self.bus.emit(
                LogLevel.WARNING,
                msg.SIGN_IN_PENDING.format(seconds=self.timeout_ms // 1000, url=url),
            )


class ScrollFeedStep(PipelineStep):
    """Keep scrolling the feed while the bot runs, up to ``max_duration_ms``."""

    name = "ScrollFeed"
    requires_running = True

    def __init__(
        self,
        driver,
        bus: ObservabilityBus,
        enabled: bool = FEED_SCROLL_ENABLED,
        interval_ms: int = FEED_SCROLL_INTERVAL,
        max_duration_ms: int = FEED_SCROLL_MAX_DURATION,
        step_px: int = FEED_SCROLL_STEP_PX,
    ):
        super().__init__(driver, bus)
        self.enabled = enabled
        self.interval_ms = interval_ms
        self.max_duration_ms = max_duration_ms
        self.step_px = step_px

    def can_execute(self, context: BotContext) -> bool:
        return (
            self.enabled
            and super().can_execute(context)
            and context.sign_in in (SignInResult.SIGNED_IN, SignInResult.ASSUMED)
        )

    async def execute(self, context: BotContext):
        self.bus.emit(
            LogLevel.INFO,
            msg.FEED_SCROLL_STARTED.format(
                interval=self.interval_ms, seconds=self.max_duration_ms // 1000
            ),
        )
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.max_duration_ms / 1000
        count = 0
        while context.is_running() and loop.time() < deadline:
            height = await self.driver.evaluate(context.page, SCROLL_BY_SCRIPT, self.step_px)
            count += 1
            if count % SCROLL_REPORT_EVERY == 1:
                self.bus.emit(
                    LogLevel.INFO, msg.FEED_SCROLLED.format(count=count, height=height), is_advanced=True
                )
            await asyncio.sleep(self.interval_ms / 1000)

        self.bus.emit(LogLevel.INFO, msg.FEED_SCROLL_STOPPED.format(count=count))


# ── Pipeline ─────────────────────────────────────────────────────────────────


class Pipeline:
    """Runs steps strictly in order; the first failure aborts the rest.

    With ``required=True`` a step whose preconditions do not hold is a
    failure instead of a skip.
    """

    def __init__(self, steps: Sequence[PipelineStep], bus: ObservabilityBus, required: bool = False):
        self.steps = list(steps)
        self.bus = bus
        self.required = required

    @property
    def names(self) -> list[str]:
        return [step.name for step in self.steps]

    async def run(self, context: BotContext):
        for step in self.steps:
            if step.requires_running and not context.is_running():
                # The bot was stopped or failed; nothing left to do for this run
                return
            if not step.can_execute(context):
                if self.required:
                    error = RuntimeError("preconditions not met")
                    self.bus.emit(
                        LogLevel.WARNING,
                        msg.STEP_FAILED.format(name=step.name, error=error),
                        is_advanced=True,
                    )
                    raise StepFailedError(step.name, error)
                self.bus.emit(LogLevel.INFO, msg.STEP_SKIPPED.format(name=step.name), is_advanced=True)
                continue

            self.bus.emit(LogLevel.INFO, msg.STEP_ATTEMPT.format(name=step.name), is_advanced=True)
            try:
                await step.execute(context)
            except Exception as e:
                self.bus.emit(
                    LogLevel.WARNING,
                    msg.STEP_FAILED.format(name=step.name, error=e),
                    is_advanced=True,
                )
                raise StepFailedError(step.name, e) from e
            self.bus.emit(LogLevel.SUCCESS, msg.STEP_SUCCEEDED.format(name=step.name), is_advanced=True)


def default_leading_steps(driver, bus: ObservabilityBus) -> list[PipelineStep]:
    """Launch and navigate: must succeed before the bot reports Running."""
    return [LaunchBrowserStep(driver, bus), OpenHomeStep(driver, bus)]


def default_follow_up_steps(driver, bus: ObservabilityBus) -> list[PipelineStep]:
    """Login and feed steps, allowed to stay pending without blocking Running."""
    return [
        ClickGoogleLoginStep(driver, bus),
        AwaitLoginPopupStep(driver, bus),
        AwaitSignedInStep(driver, bus),
        ScrollFeedStep(driver, bus),
    ]
