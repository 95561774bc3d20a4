"""Application configuration loaded from environment variables."""

import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

# Paths
DATA_DIR = Path(os.getenv("DATA_DIR", Path(__file__).parent.parent / "data"))
LOG_DIR = Path(os.getenv("LOG_DIR", DATA_DIR / "logs"))

# Bot service (HTTP control surface + live WebSocket)
BOT_SERVICE_HOST = os.getenv("BOT_SERVICE_HOST", "127.0.0.1")
BOT_SERVICE_PORT = int(os.getenv("BOT_SERVICE_PORT", "3001"))
BOT_SERVICE_URL = f"http://{BOT_SERVICE_HOST}:{BOT_SERVICE_PORT}"

# Browser
BROWSER_ENGINE = os.getenv("BROWSER_ENGINE", "camoufox").lower()  # camoufox | chromium
BROWSER_HEADLESS = os.getenv("BROWSER_HEADLESS", "false").lower() == "true"
BROWSER_USER_AGENT = os.getenv("BROWSER_USER_AGENT", "")
NAVIGATION_TIMEOUT = int(os.getenv("NAVIGATION_TIMEOUT", "30000"))

# Observability
LOG_BUFFER_SIZE = int(os.getenv("LOG_BUFFER_SIZE", "100"))
# Messages queued per live client before it is disconnected as too slow
LIVE_QUEUE_SIZE = int(os.getenv("LIVE_QUEUE_SIZE", "1000"))

# Login detection (all values in milliseconds)
FRAME_SETTLE_MS = int(os.getenv("FRAME_SETTLE_MS", "2000"))
FRAME_BUTTON_TIMEOUT = int(os.getenv("FRAME_BUTTON_TIMEOUT", "5000"))
FALLBACK_SELECTOR_TIMEOUT = int(os.getenv("FALLBACK_SELECTOR_TIMEOUT", "3000"))
POPUP_APPEAR_TIMEOUT = int(os.getenv("POPUP_APPEAR_TIMEOUT", "10000"))
POPUP_CLOSE_TIMEOUT = int(os.getenv("POPUP_CLOSE_TIMEOUT", "300000"))  # 5 minutes
POPUP_POLL_INTERVAL = int(os.getenv("POPUP_POLL_INTERVAL", "1000"))
SIGN_IN_TIMEOUT = int(os.getenv("SIGN_IN_TIMEOUT", "300000"))
SIGN_IN_POLL_INTERVAL = int(os.getenv("SIGN_IN_POLL_INTERVAL", "2000"))

# Feed scrolling
FEED_SCROLL_ENABLED = os.getenv("FEED_SCROLL_ENABLED", "true").lower() == "true"
FEED_SCROLL_INTERVAL = int(os.getenv("FEED_SCROLL_INTERVAL", "3000"))
FEED_SCROLL_MAX_DURATION = int(os.getenv("FEED_SCROLL_MAX_DURATION", "600000"))  # 10 minutes
FEED_SCROLL_STEP_PX = int(os.getenv("FEED_SCROLL_STEP_PX", "800"))


def ensure_dirs():
    """Create required data directories if they don't exist."""
    DATA_DIR.mkdir(parents=True, exist_ok=True)
    LOG_DIR.mkdir(parents=True, exist_ok=True)
