"""Data model for the twitch_subscriptions table."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

STATUS_ENABLED = "enabled"
STATUS_PENDING = "pending"
STATUS_REVOKED = "revoked"


def normalize_status(remote_status: str) -> str:
    """Collapse Twitch's status strings into enabled / pending / revoked."""
    if remote_status == "enabled":
        return STATUS_ENABLED
    if remote_status == "webhook_callback_verification_pending":
        return STATUS_PENDING
    return STATUS_REVOKED


@dataclass(frozen=True)
class SubscriptionRecord:
    """One remote EventSub subscription for an (account, event type) pair."""

    id: str
    user_id: str
    event_type: str
    status: str
    created_at: datetime | None = None

    @property
    def enabled(self) -> bool:
        return self.status == STATUS_ENABLED
