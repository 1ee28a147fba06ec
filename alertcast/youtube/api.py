"""YouTube Data API v3 client (API-key auth, read only)."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import httpx

from alertcast.core.rate_limiter import RateLimiter, api_limiter

logger = logging.getLogger("YouTubeAPI")

YOUTUBE_BASE = "https://www.googleapis.com/youtube/v3"

# Error reasons meaning the live chat session is over
SESSION_GONE_REASONS = frozenset({"liveChatEnded", "liveChatNotFound", "liveChatDisabled"})

MAX_CHAT_RESULTS = 200


class YouTubeAPIError(Exception):
    """Non-success response (or transport failure, status 0) from YouTube."""

    def __init__(self, status: int, reason: str, message: str = "") -> None:
        super().__init__(f"YouTube API error ({status} {reason}): {message}")
        self.status = status
        self.reason = reason
        self.message = message


class LiveChatEndedError(YouTubeAPIError):
    """The live chat this cursor belongs to no longer exists."""


class YouTubeAPIClient:
    def __init__(
        self,
        api_key: str,
        *,
        limiter: RateLimiter | None = None,
        limiter_timeout: float = 30.0,
        http: httpx.AsyncClient | None = None,
    ) -> None:
        if not api_key:
            raise ValueError("YouTube api_key is required")
        self.api_key = api_key
        self.limiter = limiter or api_limiter()
        self.limiter_timeout = limiter_timeout
        self._http = http or httpx.AsyncClient(timeout=10.0)

    async def close(self) -> None:
        await self._http.aclose()

    async def _get(self, resource: str, params: dict[str, Any]) -> dict[str, Any]:
        try:
            await asyncio.wait_for(self.limiter.acquire(), self.limiter_timeout)
        except asyncio.TimeoutError:
            raise YouTubeAPIError(429, "localRateLimit", "rate limit wait timed out") from None

        try:
            response = await self._http.get(
                f"{YOUTUBE_BASE}/{resource}", params={**params, "key": self.api_key}
            )
        except httpx.HTTPError as e:
            raise YouTubeAPIError(0, "transport", f"{type(e).__name__}: {e}") from e

        if response.status_code == 200:
            return response.json()

        reason, message = self._error_details(response)
        if reason in SESSION_GONE_REASONS or (
            resource == "liveChat/messages" and response.status_code == 404
        ):
            raise LiveChatEndedError(response.status_code, reason, message)
        raise YouTubeAPIError(response.status_code, reason, message)

    @staticmethod
    def _error_details(response: httpx.Response) -> tuple[str, str]:
        try:
            error = response.json().get("error") or {}
        except ValueError:
            return "unknown", response.text[:200]
        errors = error.get("errors") or [{}]
        return errors[0].get("reason", "unknown"), error.get("message", "")

    async def find_live_video_id(self, channel_id: str) -> str | None:
        """ID of the channel's current live broadcast, if any."""
        data = await self._get(
            "search",
            {
                "part": "id",
                "channelId": channel_id,
                "eventType": "live",
                "type": "video",
                "maxResults": 1,
            },
        )
        items = data.get("items") or []
        if not items:
            return None
        return (items[0].get("id") or {}).get("videoId")

    async def get_active_live_chat_id(self, video_id: str) -> str | None:
        data = await self._get("videos", {"part": "liveStreamingDetails", "id": video_id})
        items = data.get("items") or []
        if not items:
            return None
        details = items[0].get("liveStreamingDetails") or {}
        return details.get("activeLiveChatId") or None

    async def list_chat_messages(
        self, live_chat_id: str, page_token: str | None = None
    ) -> dict[str, Any]:
        """One page of live chat messages (raw response body)."""
        params: dict[str, Any] = {
            "liveChatId": live_chat_id,
            "part": "snippet,authorDetails",
            "maxResults": MAX_CHAT_RESULTS,
        }
        if page_token:
            params["pageToken"] = page_token
        return await self._get("liveChat/messages", params)
