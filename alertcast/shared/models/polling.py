from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class PollingCursor:
    """Live chat session and continuation token for one YouTube channel."""

    channel_id: str
    live_chat_id: str
    next_page_token: str | None = None
    updated_at: datetime | None = None
