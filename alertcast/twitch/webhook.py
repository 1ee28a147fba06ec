"""Inbound EventSub webhook endpoint."""

from __future__ import annotations

import asyncio
import hashlib
import hmac
import json
import logging
from collections.abc import Awaitable, Callable
from typing import Any

from aiohttp import web
from cachetools import TTLCache  # type: ignore[import-untyped]

from alertcast.hub.hub import Hub
from alertcast.twitch.notifications import EVENT_CHAT_MESSAGE, translate_notification

logger = logging.getLogger("EventSub.Webhook")

HEADER_MESSAGE_ID = "Twitch-Eventsub-Message-Id"
HEADER_TIMESTAMP = "Twitch-Eventsub-Message-Timestamp"
HEADER_SIGNATURE = "Twitch-Eventsub-Message-Signature"
HEADER_MESSAGE_TYPE = "Twitch-Eventsub-Message-Type"

MESSAGE_VERIFICATION = "webhook_callback_verification"
MESSAGE_NOTIFICATION = "notification"
MESSAGE_REVOCATION = "revocation"

# Twitch retries a notification for up to 10 minutes
DEDUPE_TTL = 600


def compute_signature(secret: str, message_id: str, timestamp: str, body: bytes) -> str:
    mac = hmac.new(secret.encode(), message_id.encode() + timestamp.encode() + body, hashlib.sha256)
    return "sha256=" + mac.hexdigest()


def verify_signature(
    secret: str, message_id: str, timestamp: str, body: bytes, signature: str
) -> bool:
    expected = compute_signature(secret, message_id, timestamp, body)
    return hmac.compare_digest(expected.encode(), signature.encode())


def _parse_json(body: bytes) -> dict[str, Any] | None:
    try:
        data = json.loads(body)
    except (UnicodeDecodeError, json.JSONDecodeError):
        return None
    return data if isinstance(data, dict) else None


class EventSubWebhook:
    """Verifies and routes EventSub callbacks.

    Alert notifications are translated and published to the hub inline.
    Chat notifications run in a background task so that a slow command
    reply never delays the acknowledgement Twitch waits for.
    """

    def __init__(
        self,
        secret: str,
        hub: Hub,
        *,
        on_revocation: Callable[[str], Awaitable[None]],
        on_chat_message: Callable[[dict[str, Any]], Awaitable[None]] | None = None,
        dedupe_ttl: float = DEDUPE_TTL,
    ) -> None:
        self.secret = secret
        self.hub = hub
        self.on_revocation = on_revocation
        self.on_chat_message = on_chat_message
        self._seen: TTLCache = TTLCache(maxsize=4096, ttl=dedupe_ttl)
        self._tasks: set[asyncio.Task] = set()

    async def handle(self, request: web.Request) -> web.Response:
        # The signature covers the raw bytes
        body = await request.read()
        headers = request.headers

        message_id = headers.get(HEADER_MESSAGE_ID, "")
        if not verify_signature(
            self.secret,
            message_id,
            headers.get(HEADER_TIMESTAMP, ""),
            body,
            headers.get(HEADER_SIGNATURE, ""),
        ):
            logger.warning(f"Invalid webhook signature from {request.remote}")
            return web.Response(status=401, text="Invalid Signature")

        message_type = headers.get(HEADER_MESSAGE_TYPE, "")

        if message_type == MESSAGE_VERIFICATION:
            return self._handle_verification(body)
        if message_type == MESSAGE_NOTIFICATION:
            return self._handle_notification(message_id, body)
        if message_type == MESSAGE_REVOCATION:
            return await self._handle_revocation(body)

        logger.warning(f"Received unknown message type: {message_type}")
        return web.Response(status=204)

    def _handle_verification(self, body: bytes) -> web.Response:
        data = _parse_json(body)
        if data is None or not isinstance(data.get("challenge"), str):
            logger.error("Failed to parse webhook verification body")
            return web.Response(status=400, text="Bad Request")
        subscription = data.get("subscription") or {}
        logger.info(f"Webhook verification for {subscription.get('type', 'unknown')} received")
        return web.Response(status=200, text=data["challenge"])

    def _handle_notification(self, message_id: str, body: bytes) -> web.Response:
        data = _parse_json(body)
        if data is None or not isinstance(data.get("subscription"), dict):
            logger.error("Failed to parse notification body")
            return web.Response(status=400, text="Bad Request")

        if message_id and message_id in self._seen:
            logger.debug(f"Duplicate notification {message_id} ignored")
            return web.Response(status=200, text="OK")
        if message_id:
            self._seen[message_id] = True

        event_type = data["subscription"].get("type", "")
        event = data.get("event")
        logger.info(f"Notification received: {event_type}")

        if event_type == EVENT_CHAT_MESSAGE:
            if self.on_chat_message is not None and isinstance(event, dict):
                self._spawn(self.on_chat_message(event))
            return web.Response(status=200, text="OK")

        alert = translate_notification(event_type, event)
        if alert is not None:
            self.hub.publish(alert)
        return web.Response(status=200, text="OK")

    async def _handle_revocation(self, body: bytes) -> web.Response:
        data = _parse_json(body)
        subscription = (data or {}).get("subscription")
        if not isinstance(subscription, dict) or not subscription.get("id"):
            logger.warning(f"Subscription revoked but body could not be parsed: {body[:200]!r}")
            return web.Response(status=200, text="OK")

        logger.warning(
            f"Subscription {subscription['id']} ({subscription.get('type')}) revoked: "
            f"{subscription.get('status')}"
        )
        try:
            await self.on_revocation(subscription["id"])
        except Exception as e:
            logger.exception(f"Failed to delete revoked subscription {subscription['id']}: {e}")
        return web.Response(status=200, text="OK")

    def _spawn(self, coro: Awaitable[None]) -> None:
        task = asyncio.ensure_future(coro)
        self._tasks.add(task)
        task.add_done_callback(self._task_done)

    def _task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error(f"Chat message handling failed: {task.exception()!r}")

    async def drain(self) -> None:
        """Wait for in-flight chat handling (used on shutdown and in tests)."""
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
