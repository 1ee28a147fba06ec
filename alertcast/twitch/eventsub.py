"""EventSub webhook subscription reconciliation.

For every monitored account and event type the manager makes sure one
remote webhook subscription exists and is recorded locally. A remote
409 means the subscription already exists; the manager then looks it up
and records it instead of failing.
"""

from __future__ import annotations

import logging
from typing import Any

from alertcast.shared.models.subscription import SubscriptionRecord, normalize_status
from alertcast.shared.repositories.stores import SubscriptionStore
from alertcast.twitch.api import SubscriptionConflictError, TwitchAPIClient, TwitchAPIError
from alertcast.twitch.auth import (
    CredentialManager,
    OperatorTokenStrategy,
    RefreshCredentialStrategy,
    StoredCredentialStrategy,
    resolve_credentials,
)
from alertcast.twitch.notifications import (
    EVENT_CHAT_MESSAGE,
    EVENT_CHEER,
    EVENT_FOLLOW,
    EVENT_RAID,
    EVENT_SUB_GIFT,
    EVENT_SUB_MESSAGE,
    EVENT_SUBSCRIBE,
)

LOGGER = logging.getLogger("EventSub")

SUBSCRIPTION_VERSIONS = {
    EVENT_FOLLOW: "2",
    EVENT_RAID: "1",
    EVENT_SUBSCRIBE: "1",
    EVENT_SUB_GIFT: "1",
    EVENT_SUB_MESSAGE: "1",
    EVENT_CHEER: "1",
    EVENT_CHAT_MESSAGE: "1",
}

ALERT_EVENTS = [
    EVENT_FOLLOW,
    EVENT_RAID,
    EVENT_SUBSCRIBE,
    EVENT_SUB_GIFT,
    EVENT_SUB_MESSAGE,
    EVENT_CHEER,
]


class SubscriptionError(Exception):
    """A conflict was reported but no matching remote subscription was found."""


def build_condition(event_type: str, user_id: str) -> dict[str, str]:
    if event_type == EVENT_RAID:
        # Incoming raids: the monitored account is the raid target
        return {"to_broadcaster_user_id": user_id}
    if event_type == EVENT_FOLLOW:
        return {"broadcaster_user_id": user_id, "moderator_user_id": user_id}
    if event_type == EVENT_CHAT_MESSAGE:
        return {"broadcaster_user_id": user_id, "user_id": user_id}
    return {"broadcaster_user_id": user_id}


def condition_matches(event_type: str, condition: dict[str, Any], user_id: str) -> bool:
    if event_type == EVENT_RAID:
        return condition.get("to_broadcaster_user_id") == user_id
    return condition.get("broadcaster_user_id") == user_id


def _record_from_remote(
    remote: dict[str, Any], user_id: str, event_type: str
) -> SubscriptionRecord:
    return SubscriptionRecord(
        id=remote["id"],
        user_id=user_id,
        event_type=event_type,
        status=normalize_status(remote.get("status", "")),
    )


class SubscriptionManager:
    def __init__(
        self,
        api: TwitchAPIClient,
        subscriptions: SubscriptionStore,
        credentials: CredentialManager,
        *,
        callback_url: str,
        webhook_secret: str,
        channel_logins: list[str],
        operator_token: str = "",
        subscribe_chat: bool = True,
    ) -> None:
        self.api = api
        self.subscriptions = subscriptions
        self.credentials = credentials
        self.callback_url = callback_url
        self.webhook_secret = webhook_secret
        self.channel_logins = channel_logins
        self.operator_token = operator_token
        self.subscribe_chat = subscribe_chat
        self.primary_user_id: str | None = None
        self.user_auth_ready = False

    async def start(self) -> None:
        """App token, primary identity, user credential, then reconciliation.

        Raises TwitchAPIError if the app token or user lookup fails.
        """
        await self.api.ensure_app_token()

        users = await self.api.get_users_by_logins(self.channel_logins)
        if not users:
            LOGGER.warning("No valid Twitch channels found for monitoring")
            return

        by_login = {u["login"].lower(): u for u in users}
        primary = by_login.get(self.channel_logins[0])
        if primary is None:
            LOGGER.error(f"Could not resolve primary channel '{self.channel_logins[0]}'")
        else:
            self.primary_user_id = primary["id"]
            LOGGER.info(f"Primary user ID: {self.primary_user_id} ({primary['login']})")
            await self._resolve_user_credentials(self.primary_user_id)

        await self.start_monitoring(users)

    async def _resolve_user_credentials(self, user_id: str) -> None:
        strategies = [
            StoredCredentialStrategy(self.credentials.store),
            RefreshCredentialStrategy(self.credentials),
            OperatorTokenStrategy(self.api, self.operator_token),
        ]
        outcome = await resolve_credentials(strategies, user_id)
        if not outcome.ok:
            LOGGER.warning(
                f"No usable user credential, chat replies disabled ({outcome.reason}). "
                "Authorize via /auth/twitch"
            )
            return
        if outcome.source == OperatorTokenStrategy.name:
            LOGGER.warning("Using operator token from configuration; it will NOT be refreshed")
            self.credentials.use_operator_credentials(outcome.credentials)  # type: ignore[arg-type]
        self.user_auth_ready = True

    async def start_monitoring(self, users: list[dict]) -> None:
        for user in users:
            user_id = user["id"]
            LOGGER.info(f"Starting event subscriptions for {user['login']} (ID: {user_id})")
            event_types = list(ALERT_EVENTS)
            if self.subscribe_chat and user_id == self.primary_user_id:
                event_types.append(EVENT_CHAT_MESSAGE)
            for event_type in event_types:
                try:
                    await self.ensure_subscribed(user_id, event_type)
                except (TwitchAPIError, SubscriptionError) as e:
                    LOGGER.error(f"Failed to subscribe to {event_type} for {user_id}: {e}")
                except Exception as e:
                    LOGGER.exception(
                        f"Unexpected error subscribing to {event_type} for {user_id}: "
                        f"{type(e).__name__}: {e}"
                    )

    async def ensure_subscribed(self, user_id: str, event_type: str) -> SubscriptionRecord:
        existing = await self.subscriptions.get_subscription(user_id, event_type)
        if existing is not None and existing.enabled:
            LOGGER.info(f"Subscription for {event_type} on {user_id} already active")
            return existing

        try:
            remote = await self.api.create_eventsub_subscription(
                event_type,
                SUBSCRIPTION_VERSIONS[event_type],
                build_condition(event_type, user_id),
                self.callback_url,
                self.webhook_secret,
            )
        except SubscriptionConflictError:
            LOGGER.info(f"Subscription for {event_type} on {user_id} exists remotely, recovering")
            return await self._recover_conflict(user_id, event_type)

        record = _record_from_remote(remote, user_id, event_type)
        await self.subscriptions.upsert_subscription(record)
        LOGGER.info(f"Subscribed to {event_type} for {user_id} (status: {record.status})")
        return record

    async def _recover_conflict(self, user_id: str, event_type: str) -> SubscriptionRecord:
        remote_subs = await self.api.list_eventsub_subscriptions(event_type)
        for remote in remote_subs:
            if condition_matches(event_type, remote.get("condition") or {}, user_id):
                record = _record_from_remote(remote, user_id, event_type)
                await self.subscriptions.upsert_subscription(record)
                LOGGER.info(f"Recovered {event_type} subscription {record.id} for {user_id}")
                return record
        raise SubscriptionError(
            f"conflict on {event_type} for {user_id} but no matching remote subscription"
        )

    async def handle_revocation(self, subscription_id: str) -> None:
        removed = await self.subscriptions.delete_subscription(subscription_id)
        if removed:
            LOGGER.warning(f"Subscription {subscription_id} revoked, record deleted")
        else:
            LOGGER.warning(f"Subscription {subscription_id} revoked, no local record")

    async def send_chat_message(self, text: str) -> None:
        """Send *text* to the primary channel as the monitored account."""
        if self.primary_user_id is None:
            LOGGER.warning("Cannot send chat message: primary user unknown")
            return
        creds = await self.credentials.current(self.primary_user_id)
        if creds is None:
            LOGGER.warning("Cannot send chat message: no usable user credential")
            return
        try:
            await self.api.send_chat_message(
                self.primary_user_id, self.primary_user_id, text, creds.access_token
            )
        except TwitchAPIError as e:
            LOGGER.error(f"Failed to send chat message to {self.primary_user_id}: {e}")
