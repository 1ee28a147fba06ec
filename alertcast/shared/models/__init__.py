from .credentials import Credentials
from .events import (
    CheerEvent,
    EmoteWallEvent,
    FollowEvent,
    GiftSubEvent,
    NormalizedEvent,
    RaidEvent,
    ResubscribeEvent,
    SoundCommandEvent,
    SubscribeEvent,
    SuperChatEvent,
    SuperStickerEvent,
    parse_event,
)
from .polling import PollingCursor
from .subscription import SubscriptionRecord

__all__ = [
    "CheerEvent",
    "Credentials",
    "EmoteWallEvent",
    "FollowEvent",
    "GiftSubEvent",
    "NormalizedEvent",
    "PollingCursor",
    "RaidEvent",
    "ResubscribeEvent",
    "SoundCommandEvent",
    "SubscribeEvent",
    "SubscriptionRecord",
    "SuperChatEvent",
    "SuperStickerEvent",
    "parse_event",
]
