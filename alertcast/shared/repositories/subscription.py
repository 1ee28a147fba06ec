"""Repository for the twitch_subscriptions table."""

from __future__ import annotations

import asyncpg

from alertcast.shared.models.subscription import SubscriptionRecord


class SubscriptionRepository:
    """One row per (user_id, event_type); writes are upserts on that pair."""

    def __init__(self, pool: asyncpg.Pool) -> None:
        self.pool = pool

    async def get_subscription(self, user_id: str, event_type: str) -> SubscriptionRecord | None:
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                "SELECT id, user_id, event_type, status, created_at "
                "FROM twitch_subscriptions WHERE user_id = $1 AND event_type = $2",
                user_id,
                event_type,
            )
            if not row:
                return None
            return SubscriptionRecord(**dict(row))

    async def upsert_subscription(self, record: SubscriptionRecord) -> None:
        async with self.pool.acquire() as conn:
            await conn.execute(
                """
                INSERT INTO twitch_subscriptions (id, user_id, event_type, status)
                VALUES ($1, $2, $3, $4)
                ON CONFLICT (user_id, event_type) DO UPDATE SET
                    id         = EXCLUDED.id,
                    status     = EXCLUDED.status,
                    created_at = NOW()
                """,
                record.id,
                record.user_id,
                record.event_type,
                record.status,
            )

    async def delete_subscription(self, subscription_id: str) -> bool:
        """Delete by remote subscription id. Returns whether a row was removed."""
        async with self.pool.acquire() as conn:
            result = await conn.execute(
                "DELETE FROM twitch_subscriptions WHERE id = $1",
                subscription_id,
            )
            return result.endswith(" 1")
