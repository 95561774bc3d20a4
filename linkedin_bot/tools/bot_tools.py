"""MCP tools for controlling the LinkedIn bot and reading its logs."""

from __future__ import annotations

import json

import httpx

from ..config import BOT_SERVICE_URL


async def _call_bot_service(method: str, path: str, json_body: dict | None = None) -> dict:
    """Make a request to the bot manager HTTP service."""
    url = f"{BOT_SERVICE_URL}{path}"
    try:
        async with httpx.AsyncClient(timeout=120.0) as client:
            if method == "GET":
                resp = await client.get(url)
            else:
                resp = await client.post(url, json=json_body or {})

            if resp.status_code >= 400:
                data = resp.json()
                return {"error": data.get("error", f"HTTP {resp.status_code}")}
            return resp.json()

    except httpx.ConnectError:
        return {
            "error": "Bot service is not reachable at "
            f"{BOT_SERVICE_URL}. It should auto-start with the MCP server. "
            "If running standalone: python -m linkedin_bot.bot_manager"
        }
    except httpx.TimeoutException:
        return {"error": "Bot service timed out. The browser may still be loading."}
    except Exception as e:
        return {"error": f"Failed to connect to bot service: {e}"}


def _describe_state(state: dict) -> str:
    phase = state.get("phase", "unknown")
    message = state.get("message", "")
    return f"Bot is {phase}. {message}".strip()


async def start_bot() -> str:
    """Start the LinkedIn bot.

    Opens a browser on LinkedIn and clicks "Sign in with Google". The user
    then picks their Google account in the browser window; the bot detects
    the completed sign-in on its own and starts scrolling the feed.

    Returns:
        Bot state message.
    """
    result = await _call_bot_service("POST", "/api/bot/start")

    if "error" in result:
        return f"Error: {result['error']}"

    return (
        f"{_describe_state(result.get('data', {}))}\n\n"
        "Please choose your Google account in the browser window. "
        "Use bot_status or recent_logs to follow the sign-in."
    )


async def stop_bot() -> str:
    """Stop the LinkedIn bot and close its browser.

    Returns:
        Confirmation message.
    """
    result = await _call_bot_service("POST", "/api/bot/stop")

    if "error" in result:
        return f"Error: {result['error']}"

    return _describe_state(result.get("data", {}))


async def bot_status() -> str:
    """Return the current bot state as JSON."""
    result = await _call_bot_service("GET", "/api/bot/status")

    if "error" in result:
        return f"Error: {result['error']}"

    return json.dumps(result.get("data", {}), indent=2)


async def recent_logs(include_advanced: bool = False, limit: int = 25) -> str:
    """Show the most recent bot log events.

    Args:
        include_advanced: Include technical events hidden from the simple view.
        limit: Maximum number of events to show (most recent last).

    Returns:
        Per-level counts followed by one line per event.
    """
    advanced = "true" if include_advanced else "false"
    result = await _call_bot_service("GET", f"/api/logs?advanced={advanced}")

    if "error" in result:
        return f"Error: {result['error']}"

    data = result.get("data", {})
    logs = data.get("logs", [])
    stats = data.get("stats", {})

    if not logs:
        return "No log events yet."

    lines = [
        f"{stats.get('total', len(logs))} events "
        f"(info {stats.get('info', 0)}, success {stats.get('success', 0)}, "
        f"warning {stats.get('warning', 0)}, error {stats.get('error', 0)})\n"
    ]
    for event in logs[-limit:]:
        text = event.get("technicalMessage", "")
        if not include_advanced:
            text = event.get("userMessage") or text
        lines.append(f"[{event.get('timestamp', '')}] {event.get('level', '').upper()}: {text}")

    return "\n".join(lines)


async def clear_logs() -> str:
    """Clear the bot's in-memory log buffer. The session log file is kept."""
    result = await _call_bot_service("POST", "/api/logs/clear")

    if "error" in result:
        return f"Error: {result['error']}"

    return "Logs cleared."
