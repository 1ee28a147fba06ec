"""Repository for the youtube_state table."""

from __future__ import annotations

import asyncpg

from alertcast.shared.models.polling import PollingCursor


class PollingStateRepository:
    def __init__(self, pool: asyncpg.Pool) -> None:
        self.pool = pool

    async def get_cursor(self, channel_id: str) -> PollingCursor | None:
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                "SELECT channel_id, live_chat_id, next_page_token, updated_at "
                "FROM youtube_state WHERE channel_id = $1",
                channel_id,
            )
            if not row:
                return None
            return PollingCursor(**dict(row))

    async def upsert_cursor(self, cursor: PollingCursor) -> None:
        async with self.pool.acquire() as conn:
            await conn.execute(
                """
                INSERT INTO youtube_state (channel_id, live_chat_id, next_page_token)
                VALUES ($1, $2, $3)
                ON CONFLICT (channel_id) DO UPDATE SET
                    live_chat_id    = EXCLUDED.live_chat_id,
                    next_page_token = EXCLUDED.next_page_token,
                    updated_at      = NOW()
                """,
                cursor.channel_id,
                cursor.live_chat_id,
                cursor.next_page_token,
            )
