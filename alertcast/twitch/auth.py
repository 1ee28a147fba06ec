"""User credential resolution and refresh.

CredentialManager is the only writer of stored Credentials. Everything
else asks it for a fresh copy per use.

Startup resolution runs an ordered list of strategies; each either
returns usable credentials or says why it declined.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Protocol

from alertcast.shared.models.credentials import Credentials
from alertcast.shared.repositories.stores import CredentialStore
from alertcast.twitch.api import TokenRefreshResult, TwitchAPIClient, TwitchAPIError

logger = logging.getLogger("TwitchAuth")

# Assumed lifetime of an operator token whose expiry is unknown
OPERATOR_TOKEN_LIFETIME = timedelta(hours=1)


class CredentialError(Exception):
    """No usable user credential for an account."""


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class AuthOutcome:
    credentials: Credentials | None = None
    reason: str = ""
    source: str = ""

    @property
    def ok(self) -> bool:
        return self.credentials is not None


class CredentialManager:
    def __init__(
        self,
        store: CredentialStore,
        api: TwitchAPIClient,
        *,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.store = store
        self.api = api
        self._clock = clock
        self._operator: Credentials | None = None

    def use_operator_credentials(self, credentials: Credentials) -> None:
        """Keep an operator-supplied token in memory; it is never persisted or refreshed."""
        self._operator = credentials

    async def refresh_if_expired(self, user_id: str) -> Credentials:
        """Return stored credentials, refreshing and persisting them first if expired.

        Raises CredentialError when nothing is stored, the refresh token is
        empty, or Twitch rejects the refresh.
        """
        creds = await self.store.get_credentials(user_id)
        if creds is None:
            raise CredentialError(f"no stored credentials for user {user_id}")

        now = self._clock()
        if not creds.is_expired(now):
            return creds

        if not creds.refresh_token:
            raise CredentialError(
                f"refresh token for user {user_id} is empty, re-authorization required"
            )

        logger.info(f"Access token for user {user_id} expired, refreshing")
        result = await self.api.refresh_access_token(creds.refresh_token)
        if not result.success or not result.access_token:
            raise CredentialError(f"token refresh failed for user {user_id}: {result.error}")

        refreshed = Credentials.from_token_response(
            user_id,
            result.access_token,
            result.refresh_token or creds.refresh_token,
            result.expires_in,
            now=now,
        )
        await self.store.upsert_credentials(refreshed)
        logger.info(f"Access token for user {user_id} refreshed")
        return refreshed

    async def record_authorization(self, user_id: str, result: TokenRefreshResult) -> Credentials:
        """Persist tokens from a completed OAuth authorization."""
        if not result.success or not result.access_token:
            raise CredentialError(f"authorization for user {user_id} failed: {result.error}")
        creds = Credentials.from_token_response(
            user_id,
            result.access_token,
            result.refresh_token or "",
            result.expires_in,
            now=self._clock(),
        )
        await self.store.upsert_credentials(creds)
        logger.info(f"Stored new credentials for user {user_id}")
        return creds

    async def current(self, user_id: str) -> Credentials | None:
        """Fresh credentials for one use, or None if none are usable."""
        try:
            return await self.refresh_if_expired(user_id)
        except CredentialError as e:
            operator = self._operator
            if operator is not None and operator.user_id == user_id:
                if not operator.is_expired(self._clock()):
                    return operator
            logger.warning(f"No usable credentials: {e}")
            return None


class CredentialStrategy(Protocol):
    name: str

    async def resolve(self, user_id: str) -> AuthOutcome: ...


class StoredCredentialStrategy:
    name = "database"

    def __init__(self, store: CredentialStore, *, clock: Callable[[], datetime] = _utcnow):
        self.store = store
        self._clock = clock

    async def resolve(self, user_id: str) -> AuthOutcome:
        creds = await self.store.get_credentials(user_id)
        if creds is None:
            return AuthOutcome(reason="no stored credentials", source=self.name)
        if creds.is_expired(self._clock()):
            return AuthOutcome(reason="stored credentials expired", source=self.name)
        return AuthOutcome(credentials=creds, source=self.name)


class RefreshCredentialStrategy:
    name = "refresh"

    def __init__(self, manager: CredentialManager):
        self.manager = manager

    async def resolve(self, user_id: str) -> AuthOutcome:
        try:
            creds = await self.manager.refresh_if_expired(user_id)
        except CredentialError as e:
            return AuthOutcome(reason=str(e), source=self.name)
        return AuthOutcome(credentials=creds, source=self.name)


class OperatorTokenStrategy:
    """Fall back to the token from configuration.

    A token Twitch rejects declines; a token that cannot be checked
    because of a network failure is accepted with a warning.
    """

    name = "config"

    def __init__(
        self,
        api: TwitchAPIClient,
        token: str,
        *,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.api = api
        self.token = token
        self._clock = clock

    async def resolve(self, user_id: str) -> AuthOutcome:
        if not self.token:
            return AuthOutcome(reason="no operator token configured", source=self.name)

        now = self._clock()
        try:
            validation = await self.api.validate_token(self.token)
        except TwitchAPIError as e:
            if e.status != 0:
                return AuthOutcome(reason=f"token validation failed: {e.message}", source=self.name)
            logger.warning(f"Could not validate operator token (network error?): {e.message}")
            expires_at = now + OPERATOR_TOKEN_LIFETIME
        else:
            if validation is None:
                return AuthOutcome(reason="operator token is invalid or expired", source=self.name)
            if validation.get("user_id") and validation["user_id"] != user_id:
                return AuthOutcome(
                    reason=f"operator token belongs to {validation.get('login')}, not {user_id}",
                    source=self.name,
                )
            logger.info(f"Operator token validated for {validation.get('login')}")
            expires_in = int(validation.get("expires_in", 0))
            expires_at = now + (
                timedelta(seconds=expires_in) if expires_in > 0 else OPERATOR_TOKEN_LIFETIME
            )

        return AuthOutcome(
            credentials=Credentials(
                user_id=user_id, access_token=self.token, refresh_token="", expires_at=expires_at
            ),
            source=self.name,
        )


async def resolve_credentials(
    strategies: Sequence[CredentialStrategy], user_id: str
) -> AuthOutcome:
    """Try each strategy in order; the first usable credential wins."""
    reasons = []
    for strategy in strategies:
        outcome = await strategy.resolve(user_id)
        if outcome.ok:
            logger.info(f"Authenticated user {user_id} via {strategy.name}")
            return outcome
        logger.info(f"Credential source '{strategy.name}' declined: {outcome.reason}")
        reasons.append(f"{strategy.name}: {outcome.reason}")
    return AuthOutcome(reason="; ".join(reasons))
