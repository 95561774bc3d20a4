"""Bounded polling routines that turn unreliable page state into yes/no/timeout.

None of these raise on a miss. A selector that never shows up, a popup that
never opens or a sign-in that never completes all come back as a negative
result, and the calling step decides whether that is fatal.
"""

from __future__ import annotations

import asyncio
import logging
import sys
from enum import Enum
from typing import Any, Callable, Optional, Sequence
from urllib.parse import urlparse

from ..constants import LINKEDIN_HOST, LOGIN_PATHS, SIGNALS_PRESENT_SCRIPT, SIGNED_IN_SIGNALS
from .driver import DriverError

logger = logging.getLogger(__name__)
if not logger.handlers:
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter("%(asctime)s [%(name)s] %(levelname)s: %(message)s"))
    logger.addHandler(handler)
    logger.setLevel(logging.INFO)


class WindowWait(str, Enum):
    NO_WINDOW = "no_window"
    CLOSED = "closed"
    STILL_OPEN = "still_open"


class SignInResult(str, Enum):
    SIGNED_IN = "signed_in"
    ASSUMED = "assumed"
    PENDING = "pending"


def _now() -> float:
    return asyncio.get_running_loop().time()


async def find_selector(
    driver, target, selectors: Sequence[str], timeout_ms: int
) -> Optional[str]:
    """Return the first selector that resolves within its own timeout, or None."""
    for selector in selectors:
        try:
            await driver.wait_for_selector(target, selector, timeout_ms)
            return selector
        except DriverError as e:
            logger.debug(f"Selector '{selector}' not found: {e}")
            continue
    return None


async def find_frame(
    driver, page, url_substring: str, settle_ms: int, rescans: int = 1
) -> Optional[Any]:
    """Return the first frame whose address contains ``url_substring``.

    Embedded documents can attach after the parent reports loaded, so a miss
    is retried up to ``rescans`` times after waiting ``settle_ms``.
    """
    for attempt in range(rescans + 1):
        for frame in driver.frames(page):
            if url_substring in driver.frame_url(frame):
                return frame
        if attempt < rescans:
            await asyncio.sleep(settle_ms / 1000)
    return None


def _find_window(driver, handle, url_substring: str, exclude: Sequence[Any]):
    for page in driver.pages(handle):
        if any(page is excluded for excluded in exclude) or driver.is_closed(page):
            continue
        try:
            url = driver.page_url(page)
        except DriverError:
            continue
        if url_substring in url:
            return page
    return None


async def wait_for_window_closed(
    driver,
    handle,
    url_substring: str,
    appear_timeout_ms: int,
    close_timeout_ms: int,
    interval_ms: int,
    exclude: Sequence[Any] = (),
    on_appear: Optional[Callable[[], None]] = None,
) -> WindowWait:
    """Wait for a secondary window matching ``url_substring`` to go away.

    If no such window exists or appears within ``appear_timeout_ms`` this is
    NO_WINDOW: some login flows finish without a popup. Pages in ``exclude``
    (typically the bot's own tab) are never treated as the window.
    """
    interval = interval_ms / 1000
    deadline = _now() + appear_timeout_ms / 1000
    window = _find_window(driver, handle, url_substring, exclude)
    while window is None and _now() < deadline:
        await asyncio.sleep(interval)
        window = _find_window(driver, handle, url_substring, exclude)
    if window is None:
        return WindowWait.NO_WINDOW
    if on_appear is not None:
        on_appear()

    deadline = _now() + close_timeout_ms / 1000
    while _now() < deadline:
        if driver.is_closed(window) or window not in driver.pages(handle):
            return WindowWait.CLOSED
        await asyncio.sleep(interval)
    if driver.is_closed(window) or window not in driver.pages(handle):
        return WindowWait.CLOSED
    return WindowWait.STILL_OPEN


def is_signed_in_address(
    url: str, host: str = LINKEDIN_HOST, login_paths: Sequence[str] = LOGIN_PATHS
) -> bool:
    """True when ``url`` is on ``host`` and not on one of the login paths."""
    parsed = urlparse(url)
    if parsed.hostname != host:
        return False
    return not any(parsed.path.startswith(path) for path in login_paths)


async def _signals_present(driver, page, signals: Sequence[str]) -> bool:
    try:
        return bool(await driver.evaluate(page, SIGNALS_PRESENT_SCRIPT, list(signals)))
    except DriverError as e:
        logger.debug(f"Signed-in signal check failed: {e}")
        return False


async def wait_for_signed_in(
    driver,
    page,
    timeout_ms: int,
    interval_ms: int,
    host: str = LINKEDIN_HOST,
    login_paths: Sequence[str] = LOGIN_PATHS,
    signals: Sequence[str] = SIGNED_IN_SIGNALS,
) -> SignInResult:
    """Poll until the page looks signed in.

    A sample is positive when the address passes :func:`is_signed_in_address`
    AND at least one of ``signals`` is on the page. On deadline the result is
    ASSUMED if the address alone passes, else PENDING. A missing or closed
    page is a negative sample.
    """
    deadline = _now() + timeout_ms / 1000
    address_ok = False
    while True:
        if page is None or driver.is_closed(page):
            address_ok = False
        else:
            try:
                address_ok = is_signed_in_address(driver.page_url(page), host, login_paths)
            except DriverError:
                address_ok = False
        if address_ok and await _signals_present(driver, page, signals):
            return SignInResult.SIGNED_IN
        if _now() >= deadline:
            break
        await asyncio.sleep(interval_ms / 1000)

    return SignInResult.ASSUMED if address_ok else SignInResult.PENDING
