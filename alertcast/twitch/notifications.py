"""Translate EventSub notification events into normalized alerts."""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

from pydantic import ValidationError

from alertcast.shared.models.events import (
    CheerEvent,
    FollowEvent,
    GiftSubEvent,
    NormalizedEvent,
    RaidEvent,
    ResubscribeEvent,
    SubscribeEvent,
)

logger = logging.getLogger("EventSub")

EVENT_FOLLOW = "channel.follow"
EVENT_SUBSCRIBE = "channel.subscribe"
EVENT_SUB_GIFT = "channel.subscription.gift"
EVENT_SUB_MESSAGE = "channel.subscription.message"
EVENT_CHEER = "channel.cheer"
EVENT_RAID = "channel.raid"
EVENT_CHAT_MESSAGE = "channel.chat.message"


def _follow(event: dict[str, Any]) -> FollowEvent:
    return FollowEvent(
        user_name=event.get("user_name") or "",
        channel_name=event.get("broadcaster_user_name") or "",
    )


def _subscribe(event: dict[str, Any]) -> SubscribeEvent:
    return SubscribeEvent(
        user_name=event.get("user_name") or "",
        tier=event.get("tier") or "1000",
        is_gift=bool(event.get("is_gift")),
    )


def _resubscribe(event: dict[str, Any]) -> ResubscribeEvent:
    message = event.get("message")
    text = (message.get("text") or "") if isinstance(message, dict) else ""
    return ResubscribeEvent(
        user_name=event.get("user_name") or "",
        tier=event.get("tier") or "1000",
        message=text,
        cumulative_months=event.get("cumulative_months") or 0,
        streak_months=event.get("streak_months") or 0,
    )


def _gift(event: dict[str, Any]) -> GiftSubEvent:
    # user_name is null for anonymous gifts
    return GiftSubEvent(
        gifter_name=event.get("user_name") or "",
        total_gifts=event.get("total") or 0,
        tier=event.get("tier") or "1000",
        is_anonymous=bool(event.get("is_anonymous")),
    )


def _cheer(event: dict[str, Any]) -> CheerEvent:
    return CheerEvent(
        user_name=event.get("user_name") or "",
        bits=event.get("bits") or 0,
        message=event.get("message") or "",
        is_anonymous=bool(event.get("is_anonymous")),
    )


def _raid(event: dict[str, Any]) -> RaidEvent:
    return RaidEvent(
        raider_name=event.get("from_broadcaster_user_name") or "",
        viewers=event.get("viewers") or 0,
    )


TRANSLATORS: dict[str, Callable[[dict[str, Any]], NormalizedEvent]] = {
    EVENT_FOLLOW: _follow,
    EVENT_SUBSCRIBE: _subscribe,
    EVENT_SUB_MESSAGE: _resubscribe,
    EVENT_SUB_GIFT: _gift,
    EVENT_CHEER: _cheer,
    EVENT_RAID: _raid,
}


def translate_notification(event_type: str, event: Any) -> NormalizedEvent | None:
    """Map one notification to its alert. Unknown or malformed events yield None."""
    translator = TRANSLATORS.get(event_type)
    if translator is None:
        logger.warning(f"Unhandled event type: {event_type}")
        return None
    if not isinstance(event, dict):
        logger.error(f"Malformed {event_type} event body: {type(event).__name__}")
        return None
    try:
        return translator(event)
    except ValidationError as e:
        logger.error(f"Failed to translate {event_type} event: {e}")
        return None
