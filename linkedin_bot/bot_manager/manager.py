"""Bot Manager HTTP service.

Runs as a lightweight local web server that exposes the bot orchestrator
and streams its log events to any number of observers.

Endpoints:
    POST /api/bot/start   - Launch browser, open LinkedIn, begin Google login
    POST /api/bot/stop    - Close browser, end the log session
    GET  /api/bot/status  - Return bot state
    GET  /api/logs        - Return buffered log events and per-level counts
    POST /api/logs/clear  - Clear buffered log events
    GET  /ws              - Live log stream (INIT_LOGS, NEW_LOG, LOGS_CLEARED)
"""

from __future__ import annotations

import asyncio
import logging
import sys
from typing import Optional

from aiohttp import WSCloseCode, WSMsgType, web

from ..config import (
    BOT_SERVICE_HOST,
    BOT_SERVICE_PORT,
    LIVE_QUEUE_SIZE,
    LOG_BUFFER_SIZE,
    LOG_DIR,
    ensure_dirs,
)
from ..models.bot import ApiResponse
from ..models.log import LiveMessage
from ..observability.bus import ObservabilityBus
from .errors import BotStateError, extract_error_message
from .orchestrator import BotOrchestrator

logger = logging.getLogger(__name__)
if not logger.handlers:
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter("%(asctime)s [%(name)s] %(levelname)s: %(message)s"))
    logger.addHandler(handler)
    logger.setLevel(logging.INFO)


class BotManager:
    """Owns the process-wide Observability Bus and the bot orchestrator."""

    def __init__(self, bus: Optional[ObservabilityBus] = None, bot: Optional[BotOrchestrator] = None):
        self.bus = bus or ObservabilityBus(capacity=LOG_BUFFER_SIZE, log_dir=LOG_DIR)
        self.bot = bot or BotOrchestrator(self.bus)

    async def setup(self):
        try:
            ensure_dirs()
        except OSError as e:
            # The bus reports the same problem per session and keeps logging in memory
            logger.error(f"Cannot create data directories: {e}")

    async def cleanup(self):
        """Clean up resources."""
        await self.bot.shutdown()


def _json(response: ApiResponse, status: int = 200) -> web.Response:
    return web.json_response(response.to_wire(), status=status)


def _error(e: Exception) -> web.Response:
    status = 409 if isinstance(e, BotStateError) else 500
    return _json(ApiResponse(success=False, error=extract_error_message(e)), status=status)


# ── HTTP Handlers ────────────────────────────────────────────────────────────


async def handle_start(request: web.Request) -> web.Response:
    mgr: BotManager = request.app["manager"]
    try:
        state = await mgr.bot.start()
    except BotStateError as e:
        logger.warning(f"Bot start rejected: {e}")
        return _error(e)
    except Exception as e:
        logger.error(f"Bot start failed: {e}", exc_info=True)
        return _error(e)
    return _json(ApiResponse(success=True, data=state))


async def handle_stop(request: web.Request) -> web.Response:
    mgr: BotManager = request.app["manager"]
    try:
        state = await mgr.bot.stop()
    except BotStateError as e:
        logger.warning(f"Bot stop rejected: {e}")
        return _error(e)
    except Exception as e:
        logger.error(f"Bot stop failed: {e}", exc_info=True)
        return _error(e)
    return _json(ApiResponse(success=True, data=state))


async def handle_status(request: web.Request) -> web.Response:
    mgr: BotManager = request.app["manager"]
    return _json(ApiResponse(success=True, data=mgr.bot.get_state()))


async def handle_logs(request: web.Request) -> web.Response:
    mgr: BotManager = request.app["manager"]
    include_advanced = request.query.get("advanced", "true").lower() != "false"

    events = [e for e in mgr.bus.events() if include_advanced or not e.is_advanced]
    return _json(
        ApiResponse(
            success=True,
            data={"logs": events, "stats": mgr.bus.stats(include_advanced)},
        )
    )


async def handle_clear_logs(request: web.Request) -> web.Response:
    mgr: BotManager = request.app["manager"]
    mgr.bus.clear()
    return _json(ApiResponse(success=True))


async def _pump(ws: web.WebSocketResponse, queue: asyncio.Queue):
    """Send queued live messages in order until the connection goes away."""
    while True:
        message: LiveMessage = await queue.get()
        try:
            await ws.send_json(message.to_wire())
        except ConnectionResetError:
            return
        except Exception as e:
            logger.warning(f"Live send failed, dropping client: {e}")
            return


async def handle_live(request: web.Request) -> web.WebSocketResponse:
    mgr: BotManager = request.app["manager"]
    ws = web.WebSocketResponse(heartbeat=30)
    await ws.prepare(request)

    queue: asyncio.Queue = asyncio.Queue(maxsize=LIVE_QUEUE_SIZE)
    closing: list[asyncio.Future] = []

    def subscriber(message: LiveMessage):
        try:
            queue.put_nowait(message)
        except asyncio.QueueFull:
            if closing:
                return
            logger.warning(f"Live client fell {queue.qsize()} messages behind, disconnecting")
            mgr.bus.detach(subscriber)
            closing.append(asyncio.ensure_future(ws.close(code=WSCloseCode.TRY_AGAIN_LATER)))

    mgr.bus.attach(subscriber)
    sender = asyncio.create_task(_pump(ws, queue))
    logger.info(f"Live client connected ({mgr.bus.subscriber_count} attached)")

    try:
        # Observation only: inbound frames are read to notice the close
        async for frame in ws:
            if frame.type == WSMsgType.ERROR:
                logger.warning(f"Live connection error: {ws.exception()}")
    finally:
        mgr.bus.detach(subscriber)
        sender.cancel()
        try:
            await sender
        except asyncio.CancelledError:
            pass
        if closing:
            await asyncio.gather(*closing, return_exceptions=True)
        logger.info(f"Live client disconnected ({mgr.bus.subscriber_count} attached)")

    return ws


# ── App Factory ──────────────────────────────────────────────────────────────


async def on_startup(app: web.Application):
    mgr: BotManager = app["manager"]
    await mgr.setup()
    logger.info(f"Bot Manager started on {BOT_SERVICE_HOST}:{BOT_SERVICE_PORT}")


async def on_cleanup(app: web.Application):
    mgr: BotManager = app["manager"]
    await mgr.cleanup()
    logger.info("Bot Manager stopped.")


def create_app(manager: Optional[BotManager] = None) -> web.Application:
    app = web.Application()
    app["manager"] = manager or BotManager()
    app.on_startup.append(on_startup)
    app.on_cleanup.append(on_cleanup)

    app.router.add_post("/api/bot/start", handle_start)
    app.router.add_post("/api/bot/stop", handle_stop)
    app.router.add_get("/api/bot/status", handle_status)
    app.router.add_get("/api/logs", handle_logs)
    app.router.add_post("/api/logs/clear", handle_clear_logs)
    app.router.add_get("/ws", handle_live)

    return app


def main():
    """Run the bot manager as a standalone HTTP service."""
    app = create_app()
    web.run_app(app, host=BOT_SERVICE_HOST, port=BOT_SERVICE_PORT)


if __name__ == "__main__":
    main()
