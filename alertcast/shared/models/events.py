"""Normalized alert events broadcast to overlay clients.

Every variant is immutable and carries a ``type`` discriminator; the
JSON produced by ``to_payload()`` is exactly what overlays receive.
"""

from __future__ import annotations

from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter


class _AlertEvent(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    def to_payload(self) -> bytes:
        return self.model_dump_json().encode()


class FollowEvent(_AlertEvent):
    type: Literal["twitch_follow"] = "twitch_follow"
    user_name: str
    channel_name: str = ""


class SubscribeEvent(_AlertEvent):
    type: Literal["twitch_subscribe"] = "twitch_subscribe"
    user_name: str
    tier: str = "1000"
    is_gift: bool = False


class GiftSubEvent(_AlertEvent):
    type: Literal["twitch_gift_sub"] = "twitch_gift_sub"
    gifter_name: str
    total_gifts: int = 1
    tier: str = "1000"
    is_anonymous: bool = False


class ResubscribeEvent(_AlertEvent):
    type: Literal["twitch_resubscribe"] = "twitch_resubscribe"
    user_name: str
    tier: str = "1000"
    message: str = ""
    cumulative_months: int = 0
    streak_months: int = 0


class CheerEvent(_AlertEvent):
    type: Literal["twitch_cheer"] = "twitch_cheer"
    user_name: str
    bits: int
    message: str = ""
    is_anonymous: bool = False


class RaidEvent(_AlertEvent):
    type: Literal["twitch_raid"] = "twitch_raid"
    raider_name: str
    viewers: int = 0


class SuperChatEvent(_AlertEvent):
    type: Literal["youtube_super_chat"] = "youtube_super_chat"
    user_name: str
    amount_string: str
    message: str = ""
    tier: int = 0


class SuperStickerEvent(_AlertEvent):
    type: Literal["youtube_super_sticker"] = "youtube_super_sticker"
    user_name: str
    amount_string: str
    sticker_alt: str = ""


class SoundCommandEvent(_AlertEvent):
    type: Literal["sound_command"] = "sound_command"
    filename: str
    media_type: Literal["audio", "video"]


class EmoteWallEvent(_AlertEvent):
    type: Literal["emote_wall"] = "emote_wall"
    emotes: tuple[str, ...]


NormalizedEvent = Annotated[
    Union[
        FollowEvent,
        SubscribeEvent,
        GiftSubEvent,
        ResubscribeEvent,
        CheerEvent,
        RaidEvent,
        SuperChatEvent,
        SuperStickerEvent,
        SoundCommandEvent,
        EmoteWallEvent,
    ],
    Field(discriminator="type"),
]

event_adapter: TypeAdapter[NormalizedEvent] = TypeAdapter(NormalizedEvent)


def parse_event(raw: bytes | str) -> NormalizedEvent:
    """Parse a JSON alert into its variant. Raises ``pydantic.ValidationError``."""
    return event_adapter.validate_json(raw)
