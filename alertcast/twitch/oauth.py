"""Browser OAuth authorization for the monitored account."""

from __future__ import annotations

import logging
import secrets

from cachetools import TTLCache  # type: ignore[import-untyped]

from alertcast.shared.models.credentials import Credentials
from alertcast.twitch.api import TwitchAPIClient
from alertcast.twitch.auth import CredentialError, CredentialManager

logger = logging.getLogger("TwitchOAuth")

STATE_TTL = 600


class TwitchOAuthFlow:
    """Issues authorize URLs and turns callback codes into stored credentials."""

    def __init__(self, api: TwitchAPIClient, credentials: CredentialManager) -> None:
        self.api = api
        self.credentials = credentials
        self._pending_states: TTLCache = TTLCache(maxsize=64, ttl=STATE_TTL)

    def authorize_url(self) -> str:
        state = secrets.token_urlsafe(16)
        self._pending_states[state] = True
        return self.api.generate_oauth_url(state)

    async def complete(self, code: str, state: str) -> Credentials:
        """Exchange *code* and persist the resulting credentials.

        Raises CredentialError on an unknown state, a failed exchange or
        a token Twitch refuses to validate.
        """
        if self._pending_states.pop(state, None) is None:
            raise CredentialError("unknown or expired OAuth state")

        result = await self.api.exchange_code_for_token(code)
        if not result.success or not result.access_token:
            raise CredentialError(f"code exchange failed: {result.error}")

        validation = await self.api.validate_token(result.access_token)
        if validation is None or not validation.get("user_id"):
            raise CredentialError("Twitch rejected the newly issued token")

        creds = await self.credentials.record_authorization(validation["user_id"], result)
        logger.info(f"Authorized Twitch user {validation.get('login')} ({creds.user_id})")
        return creds
