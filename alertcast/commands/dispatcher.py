"""Chat command dispatch shared by the Twitch and YouTube chat paths."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable, Mapping

from alertcast.commands.table import MediaCommand
from alertcast.core.guards import (
    TIER_EVERYONE,
    TIER_SUBSCRIBER,
    TIER_VIP,
    ChatterRoles,
    CooldownLedger,
    has_role,
)
from alertcast.core.rate_limiter import RateLimiter
from alertcast.hub.hub import Hub
from alertcast.shared.models.events import SoundCommandEvent

LOGGER = logging.getLogger("CommandDispatcher")

COMMAND_PREFIX = "!"
LIST_COMMANDS = frozenset({"commands", "comandi"})
NO_COMMANDS_REPLY = "No active commands found."

ReplyFunc = Callable[[str], Awaitable[None]]


def parse_command(text: str) -> str | None:
    """Return the lowercased command name, or None if *text* is not a command."""
    if not text.startswith(COMMAND_PREFIX):
        return None
    parts = text.split()
    if not parts:
        return None
    name = parts[0][len(COMMAND_PREFIX) :].lower()
    return name or None


def format_command_list(commands: Mapping[str, MediaCommand]) -> str:
    """Group commands by tier: everyone first, then subscribers, then VIPs."""
    groups: dict[str, list[str]] = {TIER_EVERYONE: [], TIER_SUBSCRIBER: [], TIER_VIP: []}
    for name, command in commands.items():
        if command.tier in groups:
            groups[command.tier].append(f"{COMMAND_PREFIX}{name}")

    sections = []
    if groups[TIER_EVERYONE]:
        sections.append(", ".join(sorted(groups[TIER_EVERYONE])))
    if groups[TIER_SUBSCRIBER]:
        sections.append("Subscribers: " + ", ".join(sorted(groups[TIER_SUBSCRIBER])))
    if groups[TIER_VIP]:
        sections.append("Vips: " + ", ".join(sorted(groups[TIER_VIP])))

    return " / ".join(sections) or NO_COMMANDS_REPLY


class CommandDispatcher:
    """Lookup, permission check, cooldown, then a sound_command broadcast."""

    def __init__(
        self,
        commands: Mapping[str, MediaCommand],
        hub: Hub,
        *,
        cooldown: float,
        reply_limiter: RateLimiter,
        reply_timeout: float = 10.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.commands = dict(commands)
        self.hub = hub
        self.ledger = CooldownLedger(cooldown, clock=clock)
        self.reply_limiter = reply_limiter
        self.reply_timeout = reply_timeout

    async def dispatch(
        self,
        text: str,
        chatter: ChatterRoles,
        *,
        user_name: str = "",
        source: str = "",
        reply: ReplyFunc | None = None,
    ) -> SoundCommandEvent | None:
        """Handle one chat message. Returns the emitted event, if any."""
        name = parse_command(text)
        if name is None:
            return None

        if name in LIST_COMMANDS:
            await self._reply_command_list(reply, source)
            return None

        command = self.commands.get(name)
        if command is None:
            return None

        if not has_role(chatter, command.tier):
            LOGGER.debug(f"[{source}] {user_name} lacks '{command.tier}' for !{name}")
            return None

        if self.ledger.is_on_cooldown(name):
            LOGGER.info(f"[{source}] !{name} on cooldown (user={user_name})")
            return None

        event = SoundCommandEvent(filename=command.filename, media_type=command.media_type)
        self.hub.publish(event)
        self.ledger.record(name)
        LOGGER.info(f"[{source}] !{name} triggered by {user_name}")
        return event

    async def _reply_command_list(self, reply: ReplyFunc | None, source: str) -> None:
        if reply is None:
            LOGGER.debug(f"[{source}] command list requested but replies are unavailable")
            return
        try:
            await asyncio.wait_for(self.reply_limiter.acquire(), self.reply_timeout)
        except asyncio.TimeoutError:
            LOGGER.warning(f"[{source}] chat reply rate limit exceeded, dropping command list")
            return
        await reply(format_command_list(self.commands))
