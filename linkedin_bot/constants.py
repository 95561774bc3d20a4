"""LinkedIn URLs, Google Sign-In markers, CSS selectors and page signals."""

# ── URLs ─────────────────────────────────────────────────────────────────────

LINKEDIN_HOST = "www.linkedin.com"
LINKEDIN_BASE = f"https://{LINKEDIN_HOST}"

# Paths that mean the user is still somewhere in the login flow
LOGIN_PATHS = [
    "/login",
    "/uas/login",
    "/checkpoint",
    "/signup",
    "/authwall",
]

# ── Google Sign-In ───────────────────────────────────────────────────────────

# Embedded "Sign in with Google" widget (GSI) is served from this address
GOOGLE_GSI_FRAME = "accounts.google.com/gsi"
GOOGLE_GSI_BUTTON = 'div[role="button"]'

# Account chooser popup opened by the GSI button
GOOGLE_POPUP_URL = "accounts.google.com"

# Used when the GSI frame never attaches; ordered from most to least specific
GOOGLE_LOGIN_SELECTORS = [
    'button[aria-label*="Google"]',
    'button[data-tracking-control-name*="google"]',
    'a[href*="google"]',
    'button:has-text("Continue with Google")',
    'button:has-text("Sign in with Google")',
    ".sign-in-with-google-button",
    '[data-test-id*="google"]',
]

# ── Signed-in Detection ──────────────────────────────────────────────────────

# Any one of these on the page means the feed shell rendered for a member
SIGNED_IN_SIGNALS = [
    "nav.global-nav",
    "#global-nav",
    "img.global-nav__me-photo",
    "#global-nav-search",
    ".feed-identity-module",
    '[data-view-name="identity-module"]',
]

# Evaluated in page context with SIGNED_IN_SIGNALS as its argument
SIGNALS_PRESENT_SCRIPT = "(selectors) => selectors.some((s) => document.querySelector(s) !== null)"

# Evaluated in page context with the scroll step in pixels as its argument
SCROLL_BY_SCRIPT = "(px) => { window.scrollBy(0, px); return document.body.scrollHeight; }"

# ── Browser ──────────────────────────────────────────────────────────────────

CHROMIUM_ARGS = [
    "--start-maximized",
    "--disable-blink-features=AutomationControlled",
]

# goto() completion condition for the home page
NAVIGATION_WAIT_UNTIL = "domcontentloaded"
