"""Browser driver adapter: Camoufox (default) or Playwright Chromium.

The rest of the bot only talks to :class:`PlaywrightDriver`. Every call that
can fail raises :class:`DriverError` or :class:`DriverTimeoutError`, never a
Playwright exception.
"""

from __future__ import annotations

import functools
import json
import logging
import sys
from dataclasses import dataclass
from typing import Any, Optional

from camoufox.async_api import AsyncCamoufox
from playwright.async_api import Browser, BrowserContext, Frame, Page, Playwright, async_playwright
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from ..config import BROWSER_ENGINE, BROWSER_HEADLESS, NAVIGATION_TIMEOUT
from ..constants import CHROMIUM_ARGS, NAVIGATION_WAIT_UNTIL

logger = logging.getLogger(__name__)
if not logger.handlers:
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter("%(asctime)s [%(name)s] %(levelname)s: %(message)s"))
    logger.addHandler(handler)
    logger.setLevel(logging.INFO)


class DriverError(Exception):
    """A browser operation failed."""


class DriverTimeoutError(DriverError):
    """A browser operation did not complete within its timeout."""


@dataclass
class BrowserHandle:
    """Everything needed to drive and later release one browser instance."""

    engine: str
    browser: Browser
    context: BrowserContext
    camoufox: Optional[AsyncCamoufox] = None
    playwright: Optional[Playwright] = None


def _translate_errors(func):
    @functools.wraps(func)
    async def wrapper(*args, **kwargs):
        try:
            return await func(*args, **kwargs)
        except PlaywrightTimeoutError as e:
            raise DriverTimeoutError(str(e)) from e
        except PlaywrightError as e:
            raise DriverError(str(e)) from e

    return wrapper


class PlaywrightDriver:
    """Thin call-through layer over Playwright's async API."""

    def __init__(self, engine: str = BROWSER_ENGINE, headless: bool = BROWSER_HEADLESS):
        if engine not in ("camoufox", "chromium"):
            raise ValueError(f"Unsupported browser engine: {engine}")
        self.engine = engine
        self.headless = headless

    async def launch(self, headless: Optional[bool] = None) -> BrowserHandle:
        use_headless = self.headless if headless is None else headless
        logger.info(f"Launching {self.engine} (headless={use_headless})...")
        try:
            if self.engine == "camoufox":
                return await self._launch_camoufox(use_headless)
            return await self._launch_chromium(use_headless)
        except DriverError:
            raise
        except Exception as e:
            raise DriverError(f"Failed to launch {self.engine}: {e}") from e

    async def _launch_camoufox(self, headless: bool) -> BrowserHandle:
        camoufox = AsyncCamoufox(
            headless=headless,
            humanize=True,
            i_know_what_im_doing=True,
            config={"forceScopeAccess": True},
            # Google Sign-In talks to its popup through window.opener
            disable_coop=True,
        )
        browser = await camoufox.__aenter__()
        try:
            context = await browser.new_context(viewport={"width": 1366, "height": 768})
        except Exception:
            await camoufox.__aexit__(None, None, None)
            raise
        return BrowserHandle(engine="camoufox", browser=browser, context=context, camoufox=camoufox)

    async def _launch_chromium(self, headless: bool) -> BrowserHandle:
        playwright = await async_playwright().start()
        try:
            browser = await playwright.chromium.launch(headless=headless, args=CHROMIUM_ARGS)
            context = await browser.new_context(no_viewport=True)
        except Exception:
            await playwright.stop()
            raise
        return BrowserHandle(
            engine="chromium", browser=browser, context=context, playwright=playwright
        )

    @_translate_errors
    async def new_page(self, handle: BrowserHandle) -> Page:
        page = await handle.context.new_page()
        page.set_default_timeout(NAVIGATION_TIMEOUT)
        return page

    @_translate_errors
    async def set_identity(self, page: Page, user_agent: str):
        await page.set_extra_http_headers({"User-Agent": user_agent})
        await page.add_init_script(
            f"Object.defineProperty(navigator, 'userAgent', {{ get: () => {json.dumps(user_agent)} }});"
        )

    @_translate_errors
    async def goto(
        self,
        page: Page,
        url: str,
        wait_until: str = NAVIGATION_WAIT_UNTIL,
        timeout_ms: int = NAVIGATION_TIMEOUT,
    ):
        await page.goto(url, wait_until=wait_until, timeout=timeout_ms)

    def frames(self, page: Page) -> list[Frame]:
        return list(page.frames)

    def frame_url(self, frame: Frame) -> str:
        return frame.url

    @_translate_errors
    async def wait_for_selector(self, target: Page | Frame, selector: str, timeout_ms: int):
        await target.wait_for_selector(selector, timeout=timeout_ms)

    @_translate_errors
    async def click(self, target: Page | Frame, selector: str):
        await target.click(selector)

    @_translate_errors
    async def evaluate(self, page: Page, script: str, *args) -> Any:
        if not args:
            return await page.evaluate(script)
        return await page.evaluate(script, args[0] if len(args) == 1 else list(args))

    def pages(self, handle: BrowserHandle) -> list[Page]:
        return list(handle.context.pages)

    def page_url(self, page: Page) -> str:
        return page.url

    def is_closed(self, page: Page) -> bool:
        return page.is_closed()

    @_translate_errors
    async def close_page(self, page: Page):
        if not page.is_closed():
            await page.close()

    async def close_browser(self, handle: BrowserHandle):
        """Close context and browser. Raises the first error after trying both."""
        first_error: Optional[Exception] = None
        try:
            await handle.context.close()
        except Exception as e:
            logger.warning(f"Error closing context: {e}")
            first_error = e

        try:
            if handle.camoufox is not None:
                await handle.camoufox.__aexit__(None, None, None)
            else:
                await handle.browser.close()
                if handle.playwright is not None:
                    await handle.playwright.stop()
        except Exception as e:
            logger.warning(f"Error closing {handle.engine}: {e}")
            first_error = first_error or e

        if first_error is not None:
            raise DriverError(str(first_error)) from first_error
