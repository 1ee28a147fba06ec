"""Permission tiers and the per-command cooldown ledger."""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass

TIER_EVERYONE = "everyone"
TIER_SUBSCRIBER = "subscriber"
TIER_VIP = "vip"

# Role hierarchy (higher index = higher privilege)
ROLE_HIERARCHY = ["everyone", "subscriber", "vip", "moderator", "broadcaster"]


@dataclass(frozen=True)
class ChatterRoles:
    """Platform-neutral role signals for one chat author."""

    broadcaster: bool = False
    moderator: bool = False
    vip: bool = False
    subscriber: bool = False


def has_role(chatter: ChatterRoles, min_role: str) -> bool:
    """Check if chatter meets the minimum role requirement."""
    if min_role == TIER_EVERYONE:
        return True

    min_level = ROLE_HIERARCHY.index(min_role) if min_role in ROLE_HIERARCHY else 0

    # Check from highest to lowest
    if chatter.broadcaster:
        return ROLE_HIERARCHY.index("broadcaster") >= min_level
    if chatter.moderator:
        return ROLE_HIERARCHY.index("moderator") >= min_level
    if chatter.vip:
        return ROLE_HIERARCHY.index("vip") >= min_level
    if chatter.subscriber:
        return ROLE_HIERARCHY.index("subscriber") >= min_level

    return min_level == 0


class CooldownLedger:
    """Last-fired timestamps keyed by command name (in memory, reset on restart)."""

    def __init__(self, cooldown: float, clock: Callable[[], float] = time.monotonic) -> None:
        self.cooldown = cooldown
        self._clock = clock
        self._last_fired: dict[str, float] = {}

    def is_on_cooldown(self, command_name: str) -> bool:
        if self.cooldown <= 0:
            return False
        last = self._last_fired.get(command_name)
        if last is None:
            return False
        return self._clock() - last < self.cooldown

    def record(self, command_name: str) -> None:
        self._last_fired[command_name] = self._clock()
