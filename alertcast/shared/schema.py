"""Idempotent DDL for the relay's three tables."""

import logging

import asyncpg

logger = logging.getLogger(__name__)

SCHEMA_STATEMENTS = [
    """
    CREATE TABLE IF NOT EXISTS twitch_credentials (
        user_id       TEXT PRIMARY KEY,
        access_token  TEXT NOT NULL,
        refresh_token TEXT NOT NULL DEFAULT '',
        expires_at    TIMESTAMPTZ NOT NULL,
        updated_at    TIMESTAMPTZ NOT NULL DEFAULT NOW()
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS twitch_subscriptions (
        id         TEXT PRIMARY KEY,
        user_id    TEXT NOT NULL,
        event_type TEXT NOT NULL,
        status     TEXT NOT NULL,
        created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
        UNIQUE (user_id, event_type)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS youtube_state (
        channel_id      TEXT PRIMARY KEY,
        live_chat_id    TEXT NOT NULL,
        next_page_token TEXT,
        updated_at      TIMESTAMPTZ NOT NULL DEFAULT NOW()
    )
    """,
]


async def setup_database_schema(conn: asyncpg.Connection) -> None:
    for statement in SCHEMA_STATEMENTS:
        await conn.execute(statement)
    logger.debug("Database schema ensured")
