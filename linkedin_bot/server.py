"""MCP Server entry point for the LinkedIn bot.

Exposes 5 tools via the Model Context Protocol:
- Control: start_bot, stop_bot, bot_status
- Logs: recent_logs, clear_logs

The Bot Manager HTTP service (aiohttp on localhost:3001) is auto-started
as part of the MCP server lifecycle, so no separate process is needed.
"""

from __future__ import annotations

import logging
import sys
from contextlib import asynccontextmanager

from aiohttp.web import AppRunner, TCPSite
from mcp.server.fastmcp import FastMCP

from .config import BOT_SERVICE_HOST, BOT_SERVICE_PORT, ensure_dirs
from .tools.bot_tools import bot_status, clear_logs, recent_logs, start_bot, stop_bot

# Configure logging to stderr (stdout is reserved for MCP JSON-RPC)
logging.basicConfig(
    stream=sys.stderr,
    level=logging.INFO,
    format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
)
logger = logging.getLogger("linkedin-bot")

# Ensure data directories exist; session logs degrade to memory-only if not
try:
    ensure_dirs()
except OSError as e:
    logger.error(f"Cannot create data directories, session log files disabled: {e}")


# ── Lifespan: auto-start Bot Manager ─────────────────────────────────────────


@asynccontextmanager
async def lifespan(server: FastMCP):
    """Start the Bot Manager HTTP service alongside the MCP server."""
    from .bot_manager.manager import create_app

    app = create_app()
    runner = AppRunner(app)
    await runner.setup()
    site = TCPSite(runner, BOT_SERVICE_HOST, BOT_SERVICE_PORT)
    managed = False
    try:
        await site.start()
        logger.info("Bot Manager auto-started on %s:%s", BOT_SERVICE_HOST, BOT_SERVICE_PORT)
        managed = True
    except OSError:
        # Port already in use: Bot Manager was started manually
        logger.info("Bot Manager already running on %s:%s", BOT_SERVICE_HOST, BOT_SERVICE_PORT)
        await runner.cleanup()

    try:
        yield {}
    finally:
        if managed:
            await runner.cleanup()
            logger.info("Bot Manager stopped.")


# ── MCP Server ───────────────────────────────────────────────────────────────

mcp = FastMCP(
    "linkedin-bot",
    lifespan=lifespan,
    instructions=(
        "LinkedIn Bot - Tools to drive a browser session on LinkedIn. "
        "The Bot Manager starts automatically with this server. "
        "Call start_bot to open LinkedIn and begin the Google sign-in; the user "
        "completes the account selection in the browser window. "
        "Use bot_status and recent_logs to follow progress, stop_bot to close the browser."
    ),
)


@mcp.tool()
async def tool_start_bot() -> str:
    """Start the LinkedIn bot.

    Launches the browser, opens LinkedIn and clicks "Sign in with Google".
    The user then selects their Google account in the browser window.
    """
    return await start_bot()


@mcp.tool()
async def tool_stop_bot() -> str:
    """Stop the LinkedIn bot and close the browser."""
    return await stop_bot()


@mcp.tool()
async def tool_bot_status() -> str:
    """Check the bot state: phase, message and when it last changed."""
    return await bot_status()


@mcp.tool()
async def tool_recent_logs(include_advanced: bool = False, limit: int = 25) -> str:
    """Show recent bot log events.

    Args:
        include_advanced: Include technical events (default False).
        limit: Maximum events to show (default 25).
    """
    return await recent_logs(include_advanced, limit)


@mcp.tool()
async def tool_clear_logs() -> str:
    """Clear the in-memory bot log. The session log file on disk is kept."""
    return await clear_logs()


# ── Entry Point ──────────────────────────────────────────────────────────────


def main():
    """Run the MCP server on STDIO transport."""
    logger.info("Starting LinkedIn Bot MCP server...")
    mcp.run(transport="stdio")


if __name__ == "__main__":
    main()
