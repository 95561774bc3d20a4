"""Lifecycle tests for the bot orchestrator against the in-memory driver."""

import asyncio

import pytest

from linkedin_bot.bot_manager.detection import SignInResult
from linkedin_bot.bot_manager.driver import DriverError
from linkedin_bot.bot_manager.errors import (
    AlreadyRunningError,
    BotBusyError,
    BotFailedError,
    NotRunningError,
    StepFailedError,
)
from linkedin_bot.bot_manager.orchestrator import BotOrchestrator
from linkedin_bot.bot_manager.steps import (
    AwaitLoginPopupStep,
    AwaitSignedInStep,
    ClickGoogleLoginStep,
    ScrollFeedStep,
)
from linkedin_bot.constants import GOOGLE_GSI_BUTTON
from linkedin_bot.models.bot import Phase
from linkedin_bot.models.log import LogLevel
from linkedin_bot.observability.sink import SESSION_ENDED

from conftest import FakeDriver, FakeFrame, FakePage


def make_bot(bus, driver, follow_up_steps=()):
    return BotOrchestrator(bus, driver=driver, follow_up_steps=list(follow_up_steps))


async def wait_until(predicate, timeout=2.0):
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.01)


class TestStart:
    async def test_start_reaches_running(self, bus, recorder, driver):
        bot = make_bot(bus, driver)

        state = await bot.start()

        assert state.phase is Phase.RUNNING
        assert bot.get_state() is state
        assert recorder.phases() == ["starting", "running"]
        assert driver.calls[:3] == ["launch", "new_page", "goto https://www.linkedin.com"]

        messages = [e.technical_message for e in recorder.events]
        starting = messages.index("Starting bot...")
        navigated = messages.index("Successfully navigated to https://www.linkedin.com")
        running = messages.index("LinkedIn page loaded successfully")
        assert starting < navigated < running

    async def test_second_start_is_rejected_while_first_is_in_flight(self, bus, recorder):
        driver = FakeDriver(launch_delay=0.05)
        bot = make_bot(bus, driver)

        results = await asyncio.gather(bot.start(), bot.start(), return_exceptions=True)

        assert [type(r) for r in results].count(AlreadyRunningError) == 1
        assert driver.calls.count("launch") == 1
        assert bot.get_state().phase is Phase.RUNNING
        assert recorder.phases() == ["starting", "running"]

    async def test_start_while_running_changes_nothing(self, bus, driver):
        bot = make_bot(bus, driver)
        await bot.start()
        before = bot.get_state()

        with pytest.raises(AlreadyRunningError):
            await bot.start()

        assert bot.get_state() is before
        assert driver.calls.count("launch") == 1

    async def test_start_from_failed_requires_stop_first(self, bus):
        bot = make_bot(bus, FakeDriver(goto_error=DriverError("net::ERR_NAME_NOT_RESOLVED")))
        with pytest.raises(StepFailedError):
            await bot.start()

        with pytest.raises(BotFailedError):
            await bot.start()
        assert bot.get_state().phase is Phase.FAILED

    async def test_navigation_failure_fails_and_keeps_browser(self, bus, recorder):
        driver = FakeDriver(goto_error=DriverError("net::ERR_NAME_NOT_RESOLVED"))
        bot = make_bot(bus, driver)

        with pytest.raises(StepFailedError):
            await bot.start()

        state = bot.get_state()
        assert state.phase is Phase.FAILED
        assert state.message == "Error: net::ERR_NAME_NOT_RESOLVED"
        assert recorder.phases() == ["starting", "failed"]

        errors = [e for e in recorder.events if e.level is LogLevel.ERROR]
        assert len(errors) == 1
        assert errors[0].technical_message == "Failed to start bot: net::ERR_NAME_NOT_RESOLVED"
        assert errors[0].user_message == "Failed to start: net::ERR_NAME_NOT_RESOLVED"

        assert bot.context.handle is driver.handle
        assert driver.handle.closed is False
        assert "close_browser" not in driver.calls
        assert bot.follow_up_task is None

    async def test_launch_failure_fails_without_handle(self, bus, recorder):
        bot = make_bot(bus, FakeDriver(launch_error=DriverError("Executable doesn't exist")))

        with pytest.raises(StepFailedError):
            await bot.start()

        assert bot.get_state().phase is Phase.FAILED
        assert bot.context.handle is None
        messages = [e.technical_message for e in recorder.events]
        assert "Browser left open for inspection after failure" not in messages

    async def test_empty_error_message_falls_back_to_unknown(self, bus):
        bot = make_bot(bus, FakeDriver(goto_error=DriverError()))
        with pytest.raises(StepFailedError):
            await bot.start()
        assert bot.get_state().message == "Error: Unknown error"


class TestStop:
    async def test_stop_returns_to_idle_and_ends_session(self, bus, recorder, driver):
        bot = make_bot(bus, driver)
        await bot.start()
        session_path = bus.session_path

        state = await bot.stop()

        assert state.phase is Phase.IDLE
        assert recorder.phases() == ["starting", "running", "stopping", "idle"]
        assert driver.calls[-2:] == ["close_page", "close_browser"]
        assert bot.context.handle is None and bot.context.page is None
        assert session_path.read_text(encoding="utf-8").splitlines()[-1] == SESSION_ENDED
        assert bus.session_open is False

    async def test_stop_when_idle_is_rejected(self, bus, driver):
        bot = make_bot(bus, driver)
        with pytest.raises(NotRunningError):
            await bot.stop()
        assert bot.get_state().phase is Phase.IDLE

    async def test_stop_while_starting_is_rejected(self, bus):
        bot = make_bot(bus, FakeDriver(launch_delay=0.05))
        start = asyncio.create_task(bot.start())
        await asyncio.sleep(0)

        with pytest.raises(BotBusyError):
            await bot.stop()

        await start
        assert bot.get_state().phase is Phase.RUNNING

    async def test_stop_from_failed_closes_kept_browser(self, bus):
        driver = FakeDriver(goto_error=DriverError("timeout"))
        bot = make_bot(bus, driver)
        with pytest.raises(StepFailedError):
            await bot.start()

        state = await bot.stop()

        assert state.phase is Phase.IDLE
        assert driver.handle.closed is True

    async def test_cleanup_errors_are_logged_not_raised(self, bus, recorder):
        driver = FakeDriver(close_page_error=DriverError("page gone"))
        bot = make_bot(bus, driver)
        await bot.start()

        state = await bot.stop()

        assert state.phase is Phase.IDLE
        assert driver.handle.closed is True
        cleanup = [e for e in recorder.events if e.technical_message.startswith("Error during cleanup")]
        assert cleanup[0].technical_message == "Error during cleanup: page gone"

    async def test_restart_after_stop_opens_new_session(self, bus, driver):
        bot = make_bot(bus, driver)
        await bot.start()
        first = bus.session_path
        await bot.stop()
        await bot.start()

        assert bot.get_state().phase is Phase.RUNNING
        assert bus.session_path != first
        assert driver.calls.count("launch") == 2


class TestPhaseLegality:
    async def test_phases_never_skip_transitional_states(self, bus, recorder, driver):
        bot = make_bot(bus, driver)
        for _ in range(3):
            await bot.start()
            await bot.stop()
        with pytest.raises(NotRunningError):
            await bot.stop()

        allowed = {
            ("idle", "starting"),
            ("starting", "running"),
            ("starting", "failed"),
            ("running", "stopping"),
            ("running", "failed"),
            ("failed", "stopping"),
            ("stopping", "idle"),
        }
        phases = ["idle"] + recorder.phases()
        for previous, current in zip(phases, phases[1:]):
            assert (previous, current) in allowed


class TestFollowUp:
    def login_page(self):
        gsi = FakeFrame("https://accounts.google.com/gsi/button", selectors={GOOGLE_GSI_BUTTON})
        page = FakePage(frames=[gsi])
        page.signals = True
        return page

    def fast_steps(self, driver, bus):
        return [
            ClickGoogleLoginStep(driver, bus, settle_ms=5, button_timeout_ms=50, fallback_timeout_ms=5),
            AwaitLoginPopupStep(driver, bus, appear_timeout_ms=100, close_timeout_ms=1000, interval_ms=5),
            AwaitSignedInStep(driver, bus, timeout_ms=1000, interval_ms=5),
            ScrollFeedStep(driver, bus, enabled=True, interval_ms=5, max_duration_ms=50),
        ]

    async def test_google_login_flow_runs_after_running(self, bus, recorder):
        driver = FakeDriver(page_factory=self.login_page)

        def open_popup(target, selector):
            popup = FakePage("https://accounts.google.com/o/oauth2/auth")
            driver.handle.pages.append(popup)

            def user_picks_account():
                popup.closed = True
                driver.handle.pages[0].url = "https://www.linkedin.com/feed/"

            asyncio.get_running_loop().call_later(0.03, user_picks_account)

        driver.on_click = open_popup
        bot = make_bot(bus, driver, self.fast_steps(driver, bus))

        state = await bot.start()
        assert state.phase is Phase.RUNNING
        await asyncio.wait_for(bot.follow_up_task, timeout=2)

        assert bot.get_state().phase is Phase.RUNNING
        assert bot.context.sign_in is SignInResult.SIGNED_IN
        assert bot.context.page.scrolls > 0

        messages = [e.technical_message for e in recorder.events]
        for expected in (
            "Gmail login button clicked",
            "Google login popup opened, waiting for user action",
            "Google login popup closed",
            "Sign-in detected at https://www.linkedin.com/feed/",
        ):
            assert expected in messages
        assert messages.index("LinkedIn page loaded successfully") < messages.index(
            "Gmail login button clicked"
        )

    async def test_follow_up_failure_moves_bot_to_failed(self, bus, recorder):
        driver = FakeDriver()  # blank page: no Google button anywhere
        steps = [ClickGoogleLoginStep(driver, bus, settle_ms=5, fallback_timeout_ms=5)]
        bot = make_bot(bus, driver, steps)

        await bot.start()
        await asyncio.wait_for(bot.follow_up_task, timeout=2)

        state = bot.get_state()
        assert state.phase is Phase.FAILED
        assert state.message == "Error: Gmail login button not found on page"
        assert recorder.phases() == ["starting", "running", "failed"]
        errors = [e for e in recorder.events if e.level is LogLevel.ERROR]
        assert len(errors) == 1
        assert driver.handle.closed is False

    async def test_stop_cancels_follow_up_before_releasing(self, bus, recorder):
        page = FakePage("https://www.linkedin.com/feed/")
        page.signals = True
        driver = FakeDriver(page_factory=lambda: page)
        steps = [
            AwaitSignedInStep(driver, bus, timeout_ms=100, interval_ms=5),
            ScrollFeedStep(driver, bus, enabled=True, interval_ms=10, max_duration_ms=10_000),
        ]
        bot = make_bot(bus, driver, steps)

        await bot.start()
        await wait_until(lambda: page.scrolls >= 2)
        task = bot.follow_up_task
        await bot.stop()

        assert task.cancelled()
        scrolls = page.scrolls
        await asyncio.sleep(0.05)
        assert page.scrolls == scrolls
        assert bot.get_state().phase is Phase.IDLE
        assert [e for e in recorder.events if e.level is LogLevel.ERROR] == []

    async def test_stopped_run_does_not_leak_into_next_session(self, bus, recorder):
        driver = FakeDriver()
        steps = [AwaitSignedInStep(driver, bus, timeout_ms=300, interval_ms=50)]
        bot = make_bot(bus, driver, steps)

        await bot.start()
        first_task = bot.follow_up_task
        await asyncio.sleep(0.05)
        await bot.stop()
        await bot.start()
        second_session = bus.session_path
        await asyncio.sleep(0.6)

        assert first_task.cancelled()
        assert bot.get_state().phase is Phase.RUNNING

        messages = [e.technical_message for e in recorder.events]
        restart = len(messages) - 1 - messages[::-1].index("[Bot Status] starting: Starting bot...")
        second_run = messages[restart:]
        assert second_run.count("Executing step AwaitSignedIn") == 1
        assert second_run.count("Step AwaitSignedIn completed") == 1
        assert not any("failed" in m for m in second_run)

        lines = second_session.read_text(encoding="utf-8").splitlines()
        assert not any("failed" in line for line in lines)
        assert sum("Executing step AwaitSignedIn" in line for line in lines) == 1

        await bot.stop()

    async def test_shutdown_cancels_follow_up_and_releases_browser(self, bus):
        page = FakePage("https://www.linkedin.com/login")
        driver = FakeDriver(page_factory=lambda: page)
        steps = [AwaitSignedInStep(driver, bus, timeout_ms=10_000, interval_ms=10)]
        bot = make_bot(bus, driver, steps)

        await bot.start()
        await bot.shutdown()

        assert bot.follow_up_task.cancelled()
        assert bot.get_state().phase is Phase.IDLE
        assert driver.handle.closed is True
