"""Twitch Helix / OAuth client.

Token types:
- App Access Token: EventSub webhook management and user lookups. Auto-fetched and cached.
- User Access Token: chat replies on behalf of the monitored account.
  Obtained through the OAuth flow, stored in the DB, refreshed by CredentialManager.

Every request passes through the shared API rate limiter first.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any
from urllib.parse import urlencode

import httpx

from alertcast.core.config import USER_SCOPES
from alertcast.core.rate_limiter import RateLimiter, api_limiter

logger = logging.getLogger("TwitchAPI")

HELIX_BASE = "https://api.twitch.tv/helix"
OAUTH_BASE = "https://id.twitch.tv/oauth2"

MAX_SUBSCRIPTION_PAGES = 10


class TwitchAPIError(Exception):
    """Non-success response (or transport failure, status 0) from Twitch."""

    def __init__(self, status: int, message: str) -> None:
        super().__init__(f"Twitch API error ({status}): {message}")
        self.status = status
        self.message = message


class SubscriptionConflictError(TwitchAPIError):
    """HTTP 409: an identical EventSub subscription already exists."""


@dataclass
class TokenRefreshResult:
    """Result of a token refresh or code exchange."""

    success: bool
    access_token: str | None = None
    refresh_token: str | None = None
    expires_in: int = 0
    error: str | None = None


class TwitchAPIClient:
    """Client for interacting with Twitch API.

    Manages a shared httpx client for connection reuse and caches
    the app access token to avoid redundant token requests.
    """

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        *,
        redirect_uri: str = "",
        limiter: RateLimiter | None = None,
        limiter_timeout: float = 30.0,
        http: httpx.AsyncClient | None = None,
    ):
        if not client_id or not client_secret:
            raise ValueError("Twitch client_id and client_secret are required")

        self.client_id = client_id
        self.client_secret = client_secret
        self.redirect_uri = redirect_uri
        self.limiter = limiter or api_limiter()
        self.limiter_timeout = limiter_timeout

        self._http = http or httpx.AsyncClient(timeout=10.0)

        # App token cache
        self._app_token: str | None = None
        self._app_token_expires_at: float = 0.0
        self._app_token_lock = asyncio.Lock()

    async def close(self) -> None:
        """Close the shared HTTP client. Call on shutdown."""
        await self._http.aclose()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _headers(self, token: str) -> dict[str, str]:
        return {"Authorization": f"Bearer {token}", "Client-Id": self.client_id}

    async def _send(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        try:
            await asyncio.wait_for(self.limiter.acquire(), self.limiter_timeout)
        except asyncio.TimeoutError:
            raise TwitchAPIError(429, "local rate limit wait timed out") from None
        try:
            return await self._http.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            raise TwitchAPIError(0, f"{type(e).__name__}: {e}") from e

    async def ensure_app_token(self) -> str:
        """Return a cached app access token, refreshing only when expired."""
        now = time.monotonic()
        if self._app_token and now < self._app_token_expires_at:
            return self._app_token

        async with self._app_token_lock:
            now = time.monotonic()
            if self._app_token and now < self._app_token_expires_at:
                return self._app_token

            response = await self._send(
                "POST",
                f"{OAUTH_BASE}/token",
                data={
                    "client_id": self.client_id,
                    "client_secret": self.client_secret,
                    "grant_type": "client_credentials",
                },
            )
            if response.status_code != 200:
                raise TwitchAPIError(response.status_code, "failed to get app access token")

            data = response.json()
            self._app_token = data["access_token"]
            # Refresh 5 min early
            expires_in = data.get("expires_in", 0)
            self._app_token_expires_at = now + max(expires_in - 300, 0)
            logger.info("App access token acquired")
            return self._app_token

    async def _helix(
        self,
        method: str,
        path: str,
        *,
        token: str | None = None,
        params: Any = None,
        json: dict | None = None,
    ) -> httpx.Response:
        """Helix request. Uses the app token when *token* is None."""
        if token is None:
            token = await self.ensure_app_token()
        return await self._send(
            method,
            f"{HELIX_BASE}/{path}",
            params=params,
            json=json,
            headers=self._headers(token),
        )

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        try:
            return response.json().get("message", response.text)
        except ValueError:
            return response.text

    # ------------------------------------------------------------------
    # OAuth flow
    # ------------------------------------------------------------------

    def generate_oauth_url(self, state: str | None = None) -> str:
        """Generate Twitch OAuth authorization URL."""
        params = {
            "client_id": self.client_id,
            "redirect_uri": self.redirect_uri,
            "response_type": "code",
            "scope": " ".join(USER_SCOPES),
            "force_verify": "true",
        }
        if state:
            params["state"] = state
        return f"{OAUTH_BASE}/authorize?{urlencode(params)}"

    async def exchange_code_for_token(self, code: str) -> TokenRefreshResult:
        response = await self._send(
            "POST",
            f"{OAUTH_BASE}/token",
            data={
                "client_id": self.client_id,
                "client_secret": self.client_secret,
                "code": code,
                "grant_type": "authorization_code",
                "redirect_uri": self.redirect_uri,
            },
        )
        if response.status_code != 200:
            logger.error(f"Failed to exchange code: {response.status_code}")
            return TokenRefreshResult(success=False, error=self._error_message(response))

        data = response.json()
        if not data.get("access_token"):
            return TokenRefreshResult(success=False, error="No access_token in response")
        return TokenRefreshResult(
            success=True,
            access_token=data["access_token"],
            refresh_token=data.get("refresh_token", ""),
            expires_in=int(data.get("expires_in", 0)),
        )

    async def refresh_access_token(self, refresh_token: str) -> TokenRefreshResult:
        """Refresh a user's access token using their refresh token.

        Twitch may rotate the refresh token as well; callers persist both.
        """
        try:
            response = await self._send(
                "POST",
                f"{OAUTH_BASE}/token",
                data={
                    "client_id": self.client_id,
                    "client_secret": self.client_secret,
                    "grant_type": "refresh_token",
                    "refresh_token": refresh_token,
                },
            )
        except TwitchAPIError as e:
            return TokenRefreshResult(success=False, error=e.message)

        if response.status_code != 200:
            error_msg = self._error_message(response) or f"HTTP {response.status_code}"
            logger.error(f"Token refresh failed: {error_msg}")
            return TokenRefreshResult(success=False, error=error_msg)

        data = response.json()
        new_access_token = data.get("access_token")
        if not new_access_token:
            return TokenRefreshResult(success=False, error="No access_token in refresh response")

        logger.debug("Successfully refreshed user access token")
        return TokenRefreshResult(
            success=True,
            access_token=new_access_token,
            refresh_token=data.get("refresh_token") or refresh_token,
            expires_in=int(data.get("expires_in", 0)),
        )

    async def validate_token(self, access_token: str) -> dict | None:
        """Validate a user token.

        Returns the validation payload (login, user_id, expires_in...) or
        None when Twitch rejects the token. Transport failures raise
        ``TwitchAPIError`` with status 0.
        """
        response = await self._send(
            "GET",
            f"{OAUTH_BASE}/validate",
            headers={"Authorization": f"OAuth {access_token}"},
        )
        if response.status_code == 401:
            return None
        if response.status_code != 200:
            raise TwitchAPIError(response.status_code, self._error_message(response))
        return response.json()

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    async def get_users_by_logins(self, logins: list[str]) -> list[dict]:
        if not logins:
            return []
        response = await self._helix("GET", "users", params={"login": logins})
        if response.status_code != 200:
            raise TwitchAPIError(response.status_code, self._error_message(response))
        return response.json().get("data", [])

    # ------------------------------------------------------------------
    # EventSub
    # ------------------------------------------------------------------

    async def create_eventsub_subscription(
        self,
        event_type: str,
        version: str,
        condition: dict[str, str],
        callback: str,
        secret: str,
    ) -> dict:
        """Create a webhook subscription and return the created record."""
        response = await self._helix(
            "POST",
            "eventsub/subscriptions",
            json={
                "type": event_type,
                "version": version,
                "condition": condition,
                "transport": {"method": "webhook", "callback": callback, "secret": secret},
            },
        )
        if response.status_code == 409:
            raise SubscriptionConflictError(409, self._error_message(response))
        if response.status_code >= 400:
            raise TwitchAPIError(response.status_code, self._error_message(response))

        data = response.json().get("data", [])
        if not data:
            raise TwitchAPIError(response.status_code, "subscription created but no data returned")
        return data[0]

    async def list_eventsub_subscriptions(
        self, event_type: str, *, max_pages: int = MAX_SUBSCRIPTION_PAGES
    ) -> list[dict]:
        """List subscriptions of one type, following the pagination cursor."""
        subscriptions: list[dict] = []
        params: dict[str, str] = {"type": event_type}
        for _ in range(max_pages):
            response = await self._helix("GET", "eventsub/subscriptions", params=params)
            if response.status_code != 200:
                raise TwitchAPIError(response.status_code, self._error_message(response))
            body = response.json()
            subscriptions.extend(body.get("data", []))
            cursor = (body.get("pagination") or {}).get("cursor")
            if not cursor:
                return subscriptions
            params = {"type": event_type, "after": cursor}

        logger.warning(
            f"Stopped listing {event_type} subscriptions after {max_pages} pages "
            f"({len(subscriptions)} collected)"
        )
        return subscriptions

    # ------------------------------------------------------------------
    # Chat
    # ------------------------------------------------------------------

    async def send_chat_message(
        self, broadcaster_id: str, sender_id: str, message: str, user_token: str
    ) -> None:
        response = await self._helix(
            "POST",
            "chat/messages",
            token=user_token,
            json={"broadcaster_id": broadcaster_id, "sender_id": sender_id, "message": message},
        )
        if response.status_code != 200:
            raise TwitchAPIError(response.status_code, self._error_message(response))
        drop = (response.json().get("data") or [{}])[0].get("drop_reason")
        if drop:
            logger.warning(f"Chat message dropped by Twitch: {drop.get('message', drop)}")
