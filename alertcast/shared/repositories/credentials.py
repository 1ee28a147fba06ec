"""Repository for the twitch_credentials table."""

from __future__ import annotations

import logging

import asyncpg

from alertcast.shared.models.credentials import Credentials

logger = logging.getLogger(__name__)


class CredentialRepository:
    """Pure SQL operations for twitch_credentials."""

    def __init__(self, pool: asyncpg.Pool) -> None:
        self.pool = pool

    async def get_credentials(self, user_id: str) -> Credentials | None:
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                "SELECT user_id, access_token, refresh_token, expires_at, updated_at "
                "FROM twitch_credentials WHERE user_id = $1",
                user_id,
            )
            if not row:
                return None
            return Credentials(**dict(row))

    async def upsert_credentials(self, credentials: Credentials) -> None:
        """Insert or overwrite the credentials for one account."""
        async with self.pool.acquire() as conn:
            await conn.execute(
                """
                INSERT INTO twitch_credentials (user_id, access_token, refresh_token, expires_at)
                VALUES ($1, $2, $3, $4)
                ON CONFLICT (user_id) DO UPDATE SET
                    access_token  = EXCLUDED.access_token,
                    refresh_token = EXCLUDED.refresh_token,
                    expires_at    = EXCLUDED.expires_at,
                    updated_at    = NOW()
                """,
                credentials.user_id,
                credentials.access_token,
                credentials.refresh_token,
                credentials.expires_at,
            )
        logger.debug(f"Stored credentials for user {credentials.user_id}")
