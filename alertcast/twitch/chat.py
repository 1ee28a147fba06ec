"""Twitch chat (channel.chat.message) handling: emote wall and media commands."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from typing import Any

from cachetools import TTLCache  # type: ignore[import-untyped]

from alertcast.commands.dispatcher import COMMAND_PREFIX, CommandDispatcher
from alertcast.core.guards import ChatterRoles
from alertcast.hub.hub import Hub
from alertcast.shared.models.events import EmoteWallEvent

LOGGER = logging.getLogger("TwitchChat")

EMOTE_CDN = "https://static-cdn.jtvnw.net/emoticons/v2/{emote_id}/default/dark/3.0"


def roles_from_badges(badges: list[dict[str, Any]] | None) -> ChatterRoles:
    set_ids = {b.get("set_id") for b in badges or []}
    return ChatterRoles(
        broadcaster="broadcaster" in set_ids,
        moderator="moderator" in set_ids,
        vip="vip" in set_ids,
        subscriber="subscriber" in set_ids or "founder" in set_ids,
    )


def emote_urls(fragments: list[dict[str, Any]] | None) -> list[str]:
    """One CDN URL per emote occurrence, in message order."""
    urls = []
    for fragment in fragments or []:
        if fragment.get("type") != "emote":
            continue
        emote = fragment.get("emote") or {}
        if emote.get("id"):
            urls.append(EMOTE_CDN.format(emote_id=emote["id"]))
    return urls


class TwitchChatHandler:
    def __init__(
        self,
        hub: Hub,
        dispatcher: CommandDispatcher,
        send_message: Callable[[str], Awaitable[None]] | None = None,
    ) -> None:
        self.hub = hub
        self.dispatcher = dispatcher
        self.send_message = send_message
        # Our own replies come back as chat messages; don't treat them as commands
        self._sent: TTLCache = TTLCache(maxsize=32, ttl=120)

    async def _reply(self, text: str) -> None:
        if self.send_message is None:
            return
        self._sent[text] = True
        await self.send_message(text)

    async def handle(self, event: dict[str, Any]) -> None:
        message = event.get("message") or {}
        text = (message.get("text") or "").strip()
        user_name = event.get("chatter_user_name") or ""

        if event.get("chatter_user_id") == event.get("broadcaster_user_id") and text in self._sent:
            return

        urls = emote_urls(message.get("fragments"))
        if urls:
            self.hub.publish(EmoteWallEvent(emotes=urls))

        if not text.startswith(COMMAND_PREFIX):
            return

        await self.dispatcher.dispatch(
            text,
            roles_from_badges(event.get("badges")),
            user_name=user_name,
            source="twitch",
            reply=self._reply if self.send_message is not None else None,
        )
