"""Persistence contracts the relay core depends on."""

from __future__ import annotations

from typing import Protocol

from alertcast.shared.models.credentials import Credentials
from alertcast.shared.models.polling import PollingCursor
from alertcast.shared.models.subscription import SubscriptionRecord


class CredentialStore(Protocol):
    async def get_credentials(self, user_id: str) -> Credentials | None: ...

    async def upsert_credentials(self, credentials: Credentials) -> None: ...


class SubscriptionStore(Protocol):
    async def get_subscription(
        self, user_id: str, event_type: str
    ) -> SubscriptionRecord | None: ...

    async def upsert_subscription(self, record: SubscriptionRecord) -> None: ...

    async def delete_subscription(self, subscription_id: str) -> bool: ...


class CursorStore(Protocol):
    async def get_cursor(self, channel_id: str) -> PollingCursor | None: ...

    async def upsert_cursor(self, cursor: PollingCursor) -> None: ...
