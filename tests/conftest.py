"""Shared fixtures: an in-memory browser driver and a bus writing to tmp_path."""

import asyncio
import os
import tempfile

# Keep ensure_dirs() away from the source tree
os.environ.setdefault("DATA_DIR", tempfile.mkdtemp(prefix="linkedin-bot-test-"))

import pytest

from linkedin_bot.bot_manager.driver import DriverError, DriverTimeoutError
from linkedin_bot.constants import SCROLL_BY_SCRIPT, SIGNALS_PRESENT_SCRIPT
from linkedin_bot.models.log import LiveMessageType
from linkedin_bot.observability.bus import ObservabilityBus


class FakeFrame:
    def __init__(self, url, selectors=()):
        self.url = url
        self.selectors = set(selectors)
        self.clicked = []


class FakePage:
    def __init__(self, url="about:blank", selectors=(), frames=()):
        self.url = url
        self.selectors = set(selectors)
        self.frames = list(frames)
        self.clicked = []
        self.closed = False
        self.signals = False
        self.user_agent = None
        self.scrolls = 0


class FakeHandle:
    def __init__(self):
        self.pages = []
        self.closed = False


class FakeDriver:
    """Duck-typed stand-in for PlaywrightDriver."""

    engine = "fake"

    def __init__(
        self,
        page_factory=None,
        launch_error=None,
        goto_error=None,
        close_page_error=None,
        close_browser_error=None,
        launch_delay=0.0,
    ):
        self.page_factory = page_factory or FakePage
        self.launch_error = launch_error
        self.goto_error = goto_error
        self.close_page_error = close_page_error
        self.close_browser_error = close_browser_error
        self.launch_delay = launch_delay
        self.calls = []
        self.handle = None
        self.on_click = None

    async def launch(self, headless=None):
        self.calls.append("launch")
        await asyncio.sleep(self.launch_delay)
        if self.launch_error:
            raise self.launch_error
        self.handle = FakeHandle()
        return self.handle

    async def new_page(self, handle):
        self.calls.append("new_page")
        page = self.page_factory()
        handle.pages.append(page)
        return page

    async def set_identity(self, page, user_agent):
        page.user_agent = user_agent

    async def goto(self, page, url, wait_until="domcontentloaded", timeout_ms=30000):
        self.calls.append(f"goto {url}")
        if self.goto_error:
            raise self.goto_error
        page.url = url

    def frames(self, page):
        return list(page.frames)

    def frame_url(self, frame):
        return frame.url

    async def wait_for_selector(self, target, selector, timeout_ms):
        if selector in target.selectors:
            return
        await asyncio.sleep(timeout_ms / 1000)
        raise DriverTimeoutError(f"Timeout {timeout_ms}ms waiting for {selector}")

    async def click(self, target, selector):
        if selector not in target.selectors:
            raise DriverError(f"No element for {selector}")
        target.clicked.append(selector)
        if self.on_click:
            self.on_click(target, selector)

    async def evaluate(self, page, script, *args):
        if page.closed:
            raise DriverError("Target page has been closed")
        if script == SIGNALS_PRESENT_SCRIPT:
            return page.signals
        if script == SCROLL_BY_SCRIPT:
            page.scrolls += 1
            return 1000 + page.scrolls * args[0]
        return None

    def pages(self, handle):
        return [p for p in handle.pages if not p.closed]

    def page_url(self, page):
        return page.url

    def is_closed(self, page):
        return page.closed

    async def close_page(self, page):
        self.calls.append("close_page")
        if self.close_page_error:
            raise self.close_page_error
        page.closed = True

    async def close_browser(self, handle):
        self.calls.append("close_browser")
        if self.close_browser_error:
            raise self.close_browser_error
        handle.closed = True


class Recorder:
    """Bus subscriber that keeps every live message it receives."""

    def __init__(self):
        self.messages = []

    def __call__(self, message):
        self.messages.append(message)

    def of_type(self, message_type: LiveMessageType):
        return [m for m in self.messages if m.type is message_type]

    @property
    def events(self):
        return [m.data for m in self.of_type(LiveMessageType.NEW_LOG)]

    def phases(self):
        """Phases in the order the orchestrator reported them."""
        phases = []
        for event in self.events:
            if event.technical_message.startswith("[Bot Status] "):
                phases.append(event.technical_message[len("[Bot Status] "):].split(":", 1)[0])
        return phases


@pytest.fixture
def bus(tmp_path):
    return ObservabilityBus(capacity=100, log_dir=tmp_path / "logs")


@pytest.fixture
def recorder(bus):
    rec = Recorder()
    bus.attach(rec)
    return rec


@pytest.fixture
def driver():
    return FakeDriver()
