"""YouTube live chat polling engine.

One engine per monitored channel. The continuation token is persisted
as soon as a page is fetched and before any of its items are handled,
so a crash mid-page loses those messages instead of replaying them.

States: UNINITIALIZED -> SESSION_ACTIVE -> SESSION_EXPIRED -> (re-resolve)
SESSION_ACTIVE ... and TERMINATED when the engine gives up.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable
from enum import Enum
from typing import Any

from alertcast.commands.dispatcher import COMMAND_PREFIX, CommandDispatcher
from alertcast.core.guards import ChatterRoles
from alertcast.hub.hub import Hub
from alertcast.shared.models.events import SuperChatEvent, SuperStickerEvent
from alertcast.shared.models.polling import PollingCursor
from alertcast.shared.repositories.stores import CursorStore
from alertcast.youtube.api import LiveChatEndedError, YouTubeAPIClient, YouTubeAPIError

LOGGER = logging.getLogger("YouTubePoller")

# Minimum wait between live-broadcast searches after a session ends
DEFAULT_RESOLVE_BACKOFF = 300.0


class PollingState(str, Enum):
    UNINITIALIZED = "uninitialized"
    SESSION_ACTIVE = "session_active"
    SESSION_EXPIRED = "session_expired"
    TERMINATED = "terminated"


class PollingStateError(Exception):
    """Polling was attempted without a stored live chat session."""


def roles_from_author(author: dict[str, Any]) -> ChatterRoles:
    return ChatterRoles(
        broadcaster=bool(author.get("isChatOwner")),
        moderator=bool(author.get("isChatModerator")),
        # Channel members
        subscriber=bool(author.get("isChatSponsor")),
    )


class PollingEngine:
    def __init__(
        self,
        api: YouTubeAPIClient,
        cursors: CursorStore,
        hub: Hub,
        dispatcher: CommandDispatcher,
        *,
        channel_id: str,
        interval: float,
        resolve_backoff: float = DEFAULT_RESOLVE_BACKOFF,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.api = api
        self.cursors = cursors
        self.hub = hub
        self.dispatcher = dispatcher
        self.channel_id = channel_id
        self.interval = interval
        self.resolve_backoff = resolve_backoff
        self._clock = clock
        self.state = PollingState.UNINITIALIZED
        self._server_interval = 0.0
        self._last_resolve_at: float | None = None

    # ------------------------------------------------------------------
    # Session
    # ------------------------------------------------------------------

    async def resolve_session(self) -> bool:
        """Find the channel's live chat and persist it as the cursor.

        Returns False when the channel is not live. API failures raise
        YouTubeAPIError.
        """
        self._last_resolve_at = self._clock()

        video_id = await self.api.find_live_video_id(self.channel_id)
        if video_id is None:
            LOGGER.info(f"No active live stream found for channel {self.channel_id}")
            return False

        live_chat_id = await self.api.get_active_live_chat_id(video_id)
        if live_chat_id is None:
            LOGGER.warning(f"Live stream {video_id} has no active chat (or chat is disabled)")
            return False

        # Keep the token when resuming the same session after a restart
        existing = await self.cursors.get_cursor(self.channel_id)
        token = None
        if existing is not None and existing.live_chat_id == live_chat_id:
            token = existing.next_page_token

        await self.cursors.upsert_cursor(
            PollingCursor(
                channel_id=self.channel_id, live_chat_id=live_chat_id, next_page_token=token
            )
        )
        self.state = PollingState.SESSION_ACTIVE
        LOGGER.info(
            f"Live chat {live_chat_id} active for channel {self.channel_id} (video {video_id})"
        )
        return True

    # ------------------------------------------------------------------
    # Polling
    # ------------------------------------------------------------------

    async def poll_once(self) -> int:
        """Fetch one page, persist its token, then handle its items.

        Returns the number of items in the page.
        """
        cursor = await self.cursors.get_cursor(self.channel_id)
        if cursor is None or not cursor.live_chat_id:
            raise PollingStateError(f"no live chat session stored for channel {self.channel_id}")

        try:
            page = await self.api.list_chat_messages(cursor.live_chat_id, cursor.next_page_token)
        except LiveChatEndedError:
            self.state = PollingState.SESSION_EXPIRED
            LOGGER.info(f"Live chat {cursor.live_chat_id} ended for channel {self.channel_id}")
            raise

        next_token = page.get("nextPageToken") or cursor.next_page_token
        await self.cursors.upsert_cursor(
            PollingCursor(
                channel_id=self.channel_id,
                live_chat_id=cursor.live_chat_id,
                next_page_token=next_token,
            )
        )
        self._server_interval = (page.get("pollingIntervalMillis") or 0) / 1000

        items = page.get("items") or []
        if page.get("offlineAt"):
            self.state = PollingState.SESSION_EXPIRED
            LOGGER.info(f"Live chat {cursor.live_chat_id} went offline at {page['offlineAt']}")

        await self.process_items(items)
        return len(items)

    async def process_items(self, items: list[dict[str, Any]]) -> None:
        for item in items:
            snippet = item.get("snippet") or {}
            author = item.get("authorDetails") or {}
            user_name = author.get("displayName") or ""

            super_chat = snippet.get("superChatDetails")
            if super_chat:
                LOGGER.info(f"Super Chat: {user_name} sent {super_chat.get('amountDisplayString')}")
                self.hub.publish(
                    SuperChatEvent(
                        user_name=user_name,
                        amount_string=super_chat.get("amountDisplayString") or "",
                        message=super_chat.get("userComment") or "",
                        tier=super_chat.get("tier") or 0,
                    )
                )
                continue

            sticker = snippet.get("superStickerDetails")
            if sticker:
                LOGGER.info(f"Super Sticker from {user_name}")
                metadata = sticker.get("superStickerMetadata") or {}
                self.hub.publish(
                    SuperStickerEvent(
                        user_name=user_name,
                        amount_string=sticker.get("amountDisplayString") or "",
                        sticker_alt=metadata.get("altText") or "",
                    )
                )
                continue

            text = (snippet.get("displayMessage") or "").strip()
            if text.startswith(COMMAND_PREFIX):
                await self.dispatcher.dispatch(
                    text,
                    roles_from_author(author),
                    user_name=user_name,
                    source="youtube",
                )

    # ------------------------------------------------------------------
    # Scheduling
    # ------------------------------------------------------------------

    def next_delay(self) -> float:
        return max(self.interval, self._server_interval)

    async def tick(self) -> None:
        if self.state == PollingState.SESSION_EXPIRED:
            elapsed = self._clock() - (self._last_resolve_at or 0.0)
            if self._last_resolve_at is not None and elapsed < self.resolve_backoff:
                return
            if not await self.resolve_session():
                return
        await self.poll_once()

    async def run(self) -> None:
        LOGGER.info(f"Starting YouTube polling for channel {self.channel_id}")
        try:
            resolved = await self.resolve_session()
        except YouTubeAPIError as e:
            LOGGER.error(f"Session lookup failed: {e}")
            resolved = False
        except Exception as e:
            LOGGER.exception(f"Session lookup failed: {type(e).__name__}: {e}")
            resolved = False
        if not resolved:
            self.state = PollingState.TERMINATED
            LOGGER.error(f"No live chat for channel {self.channel_id}, polling will NOT start")
            return

        while self.state != PollingState.TERMINATED:
            started = self._clock()
            try:
                await self.tick()
            except PollingStateError as e:
                self.state = PollingState.TERMINATED
                LOGGER.error(f"Polling stopped for channel {self.channel_id}: {e}")
                return
            except LiveChatEndedError:
                pass
            except YouTubeAPIError as e:
                LOGGER.error(f"Polling cycle failed for channel {self.channel_id}: {e}")
            except Exception as e:
                LOGGER.exception(f"Polling cycle failed for channel {self.channel_id}: {e}")

            elapsed = self._clock() - started
            await asyncio.sleep(max(self.next_delay() - elapsed, 0.0))
