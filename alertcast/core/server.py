"""HTTP / WebSocket server: overlays, EventSub callbacks, OAuth, health."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import TYPE_CHECKING

from aiohttp import web
from pydantic import ValidationError

from alertcast.hub.connection import DisplayConnection, prepare_websocket
from alertcast.hub.hub import Hub
from alertcast.shared.models.events import parse_event
from alertcast.twitch.api import TwitchAPIError
from alertcast.twitch.auth import CredentialError

if TYPE_CHECKING:
    from alertcast.shared.database import DatabaseManager
    from alertcast.twitch.eventsub import SubscriptionManager
    from alertcast.twitch.oauth import TwitchOAuthFlow
    from alertcast.twitch.webhook import EventSubWebhook
    from alertcast.youtube.poller import PollingEngine

logger = logging.getLogger("Relay.Server")

SERVICE_NAME = "alertcast"
HEARTBEAT_INTERVAL = 300


class RelayServer:
    """Public server"""

    def __init__(
        self,
        hub: Hub,
        *,
        host: str = "0.0.0.0",
        port: int = 8080,
        websocket_path: str = "/ws",
        webhook: EventSubWebhook | None = None,
        oauth: TwitchOAuthFlow | None = None,
        subscriptions: SubscriptionManager | None = None,
        poller: PollingEngine | None = None,
        database: DatabaseManager | None = None,
    ):
        self.hub = hub
        self.host = host
        self.port = port
        self.websocket_path = websocket_path
        self.webhook = webhook
        self.oauth = oauth
        self.subscriptions = subscriptions
        self.poller = poller
        self.database = database
        self.app = web.Application()
        self.runner: web.AppRunner | None = None
        self._start_time: float = time.time()
        self._heartbeat_task: asyncio.Task | None = None
        self._setup_routes()

    def _setup_routes(self) -> None:
        """Configure HTTP routes"""
        self.app.router.add_get("/", self.handle_root)
        self.app.router.add_get("/health", self.handle_health)
        self.app.router.add_get("/status", self.handle_status)
        self.app.router.add_get("/ping", self.handle_ping)
        self.app.router.add_get(self.websocket_path, self.handle_websocket)
        if self.webhook is not None:
            self.app.router.add_post("/webhooks/twitch", self.webhook.handle)
        if self.oauth is not None:
            self.app.router.add_get("/auth/twitch", self.handle_authorize)
            self.app.router.add_get("/auth/twitch/callback", self.handle_callback)

    async def handle_root(self, request: web.Request) -> web.Response:
        return web.json_response({"service": SERVICE_NAME, "status": "running"})

    async def handle_health(self, request: web.Request) -> web.Response:
        """Liveness: always 200 once the server is up, body reports dependencies"""
        database = await self.database.check_health() if self.database else None
        healthy = self.hub.running and database is not False
        return web.json_response(
            {
                "status": "healthy" if healthy else "degraded",
                "hub": self.hub.running,
                "database": database,
            }
        )

    async def handle_status(self, request: web.Request) -> web.Response:
        return web.json_response(
            {
                "service": SERVICE_NAME,
                "uptime_seconds": int(time.time() - self._start_time),
                "display_clients": self.hub.client_count,
                "twitch_user_id": self.subscriptions.primary_user_id if self.subscriptions else None,
                "twitch_user_auth": bool(self.subscriptions and self.subscriptions.user_auth_ready),
                "youtube_polling": self.poller.state.value if self.poller else None,
            }
        )

    async def handle_ping(self, request: web.Request) -> web.Response:
        return web.Response(text="pong")

    async def handle_websocket(self, request: web.Request) -> web.WebSocketResponse:
        ws = prepare_websocket()
        await ws.prepare(request)
        await DisplayConnection(self.hub, ws, remote=request.remote).serve()
        return ws

    async def handle_authorize(self, request: web.Request) -> web.Response:
        assert self.oauth is not None
        raise web.HTTPFound(self.oauth.authorize_url())

    async def handle_callback(self, request: web.Request) -> web.Response:
        assert self.oauth is not None
        if "error" in request.query:
            logger.warning(f"OAuth authorization denied: {request.query.get('error_description')}")
            return web.Response(status=400, text="Authorization was denied.")

        code = request.query.get("code", "")
        state = request.query.get("state", "")
        if not code:
            return web.Response(status=400, text="Missing authorization code.")
        try:
            creds = await self.oauth.complete(code, state)
        except CredentialError as e:
            logger.warning(f"OAuth callback rejected: {e}")
            return web.Response(status=400, text="Authorization failed.")
        except TwitchAPIError as e:
            logger.error(f"OAuth callback failed: {e}")
            return web.Response(status=502, text="Twitch is unavailable, try again.")

        if self.subscriptions is not None and creds.user_id == self.subscriptions.primary_user_id:
            self.subscriptions.user_auth_ready = True
        return web.Response(text="Authorization complete. You can close this window.")

    async def _heartbeat(self) -> None:
        """Periodic heartbeat: log uptime and client count"""
        while True:
            await asyncio.sleep(HEARTBEAT_INTERVAL)
            uptime = int(time.time() - self._start_time)
            logger.info(f"Heartbeat: uptime={uptime}s, display_clients={self.hub.client_count}")

    async def start(self) -> None:
        try:
            self.runner = web.AppRunner(self.app)
            await self.runner.setup()

            site = web.TCPSite(self.runner, self.host, self.port)
            await site.start()

            self._heartbeat_task = asyncio.create_task(self._heartbeat())

            logger.info(f"Server started on {self.host}:{self.port}")
            logger.info(f"  WS   {self.websocket_path} - Overlay alerts")
            if self.webhook is not None:
                logger.info("  POST /webhooks/twitch - EventSub callback")
        except OSError as e:
            logger.exception(f"Failed to start server: {e}")
            raise

    async def stop(self) -> None:
        if self._heartbeat_task:
            self._heartbeat_task.cancel()
        if self.runner:
            await self.runner.cleanup()
            logger.info("Server stopped")


class TestAlertServer:
    """Loopback-only endpoint that injects alerts for overlay testing."""

    __test__ = False  # not a pytest class

    def __init__(self, hub: Hub, *, port: int, host: str = "127.0.0.1"):
        self.hub = hub
        self.host = host
        self.port = port
        self.app = web.Application()
        self.app.router.add_post("/test/alert", self.handle_alert)
        self.runner: web.AppRunner | None = None

    async def handle_alert(self, request: web.Request) -> web.Response:
        body = await request.read()
        try:
            event = parse_event(body)
        except ValidationError as e:
            return web.Response(status=400, text=f"Invalid alert: {e.error_count()} error(s)")
        self.hub.publish(event)
        logger.info(f"Test alert injected: {event.type}")
        return web.Response(text="OK")

    async def start(self) -> None:
        self.runner = web.AppRunner(self.app)
        await self.runner.setup()
        await web.TCPSite(self.runner, self.host, self.port).start()
        logger.info(f"Test alert server on http://{self.host}:{self.port}/test/alert")

    async def stop(self) -> None:
        if self.runner:
            await self.runner.cleanup()
