"""Catalog of bot log messages: technical text plus the simplified user text."""

from __future__ import annotations

from typing import NamedTuple, Optional


class BotMessage(NamedTuple):
    message: str
    user_message: Optional[str] = None

    def format(self, **kwargs) -> "BotMessage":
        return BotMessage(
            self.message.format(**kwargs),
            self.user_message.format(**kwargs) if self.user_message else None,
        )


# ── Lifecycle ────────────────────────────────────────────────────────────────

IDLE = BotMessage("Bot is idle", "Bot is idle")
ALREADY_RUNNING = BotMessage("Bot is already running ({phase})", "Bot is already active")
FAILED_STATE = BotMessage(
    "Bot is in failed state, stop it before starting again",
    "Bot needs to be stopped before it can start again",
)
BUSY = BotMessage("Bot is busy ({phase}), try again shortly", "Bot is busy, try again shortly")
STARTING = BotMessage("Starting bot...", "Starting bot...")
RUNNING = BotMessage("LinkedIn page loaded successfully", "LinkedIn opened successfully")
NOT_RUNNING = BotMessage("Bot is not running", "Bot is not active")
STOPPING = BotMessage("Stopping bot", "Stopping bot...")
STOPPED = BotMessage("Bot stopped successfully", "Bot stopped")
BOT_STATUS = BotMessage("[Bot Status] {phase}: {message}", "[Bot Status] {phase}: {message}")
START_ERROR = BotMessage("Failed to start bot: {error}", "Failed to start: {error}")
RUN_ERROR = BotMessage("Bot step failed while running: {error}", "The bot ran into a problem")
UNKNOWN_ERROR = BotMessage("Unknown error", "An unknown error occurred")

# ── Pipeline ─────────────────────────────────────────────────────────────────

STEP_ATTEMPT = BotMessage("Executing step {name}")
STEP_SUCCEEDED = BotMessage("Step {name} completed")
STEP_FAILED = BotMessage("Step {name} failed: {error}")
STEP_SKIPPED = BotMessage("Step {name} skipped: preconditions not met")

# ── Browser ──────────────────────────────────────────────────────────────────

LAUNCHING_BROWSER = BotMessage("Launching {engine} browser (headless={headless})")
BROWSER_LAUNCHED = BotMessage("Browser launched successfully", "Browser opened")
USER_AGENT_SET = BotMessage("User agent set")
USER_AGENT_DEFAULT = BotMessage("No user agent configured, keeping browser fingerprint")
PAGE_CLOSED = BotMessage("Browser page closed")
BROWSER_CLOSED = BotMessage("Browser closed", "Browser closed")
BROWSER_KEPT_OPEN = BotMessage("Browser left open for inspection after failure")
CLEANUP_ERROR = BotMessage("Error during cleanup: {error}")

# ── Navigation ───────────────────────────────────────────────────────────────

NAVIGATING_LINKEDIN = BotMessage("Navigating to {url}", "Opening LinkedIn...")
NAVIGATION_SUCCESS = BotMessage("Successfully navigated to {url}", "Opening LinkedIn... - Complete")

# ── Google login ─────────────────────────────────────────────────────────────

LOOKING_FOR_GMAIL_BUTTON = BotMessage(
    "Looking for Gmail login button", "Searching for Gmail login option..."
)
LOOKING_FOR_IFRAME = BotMessage("Looking for Google Sign-In iframe", "Searching for login options...")
FOUND_FRAMES = BotMessage("Found {count} frames on the page")
FOUND_GOOGLE_IFRAME = BotMessage("Found Google Sign-In iframe", "Found Google login")
LOOKING_FOR_BUTTON_IN_IFRAME = BotMessage("Looking for button inside iframe")
IFRAME_NOT_FOUND_FALLBACK = BotMessage(
    "Google iframe not found, trying regular selectors", "Trying alternative login method..."
)
GMAIL_BUTTON_FOUND_WITH_SELECTOR = BotMessage(
    "Gmail button found with selector: {selector}", "Gmail button found"
)
GMAIL_BUTTON_NOT_FOUND = BotMessage(
    "Gmail login button not found on page", "Could not find Gmail login option"
)
GMAIL_BUTTON_CLICKED = BotMessage("Gmail login button clicked", "Proceeding with Gmail login...")

WAITING_FOR_POPUP = BotMessage(
    "Waiting for Google login popup ({url})", "Waiting for the Google login window..."
)
GOOGLE_POPUP_WAITING_FOR_USER = BotMessage(
    "Google login popup opened, waiting for user action",
    "Please select your Google account in the popup",
)
GOOGLE_POPUP_CLOSED = BotMessage("Google login popup closed", "Google login window closed")
GOOGLE_POPUP_NOT_SEEN = BotMessage(
    "No Google login popup appeared, continuing", "Continuing with login..."
)
GOOGLE_POPUP_STILL_OPEN = BotMessage(
    "Google login popup still open after {seconds}s, continuing",
    "Still waiting for you to finish in the Google window",
)

WAITING_FOR_SIGN_IN_COMPLETE = BotMessage(
    "Polling for signed-in page (timeout {seconds}s)", "Waiting for sign-in to complete..."
)
SIGN_IN_COMPLETE = BotMessage("Sign-in detected at {url}", "Signed in to LinkedIn")
SIGN_IN_ASSUMED = BotMessage(
    "Signed-in signals not found, address {url} looks signed in; assuming sign-in",
    "Looks signed in to LinkedIn",
)
SIGN_IN_PENDING = BotMessage(
    "Sign-in not detected within {seconds}s (last address {url})",
    "Waiting for you to sign in to LinkedIn",
)

# ── Feed ─────────────────────────────────────────────────────────────────────

FEED_SCROLL_STARTED = BotMessage(
    "Scrolling feed every {interval}ms for up to {seconds}s", "Scrolling your feed..."
)
FEED_SCROLLED = BotMessage("Scroll {count}: page height {height}")
FEED_SCROLL_STOPPED = BotMessage("Feed scrolling stopped after {count} scrolls", "Stopped scrolling")
