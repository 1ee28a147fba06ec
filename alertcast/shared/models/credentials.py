"""Data model for the twitch_credentials table."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone


@dataclass(frozen=True)
class Credentials:
    """OAuth access/refresh pair for one Twitch account."""

    user_id: str
    access_token: str
    refresh_token: str
    expires_at: datetime
    updated_at: datetime | None = None

    def is_expired(self, now: datetime | None = None) -> bool:
        now = now or datetime.now(timezone.utc)
        return now >= self.expires_at

    @classmethod
    def from_token_response(
        cls,
        user_id: str,
        access_token: str,
        refresh_token: str,
        expires_in: int,
        now: datetime | None = None,
    ) -> Credentials:
        now = now or datetime.now(timezone.utc)
        return cls(
            user_id=user_id,
            access_token=access_token,
            refresh_token=refresh_token,
            expires_at=now + timedelta(seconds=expires_in),
        )
