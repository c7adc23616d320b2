"""
Database connection pool and RLS-scoped connection managers.

All database access goes through owner_conn().
Never use pool.acquire() directly outside this module, except for the
long-lived LISTEN connection held by the record store subscriptions.
"""

from __future__ import annotations

from contextlib import asynccontextmanager

import asyncpg

from backend.config import settings

pool: asyncpg.Pool | None = None


async def init_pool() -> asyncpg.Pool:
    """
    Initialize the connection pool.
    Called once at application startup.
    """
    global pool
    pool = await asyncpg.create_pool(
        dsn=settings.DATABASE_URL,
        min_size=2,
        max_size=20,
        command_timeout=60,
    )
    return pool


async def close_pool() -> None:
    """
    Close the connection pool.
    Called at application shutdown.
    """
    global pool
    if pool is not None:
        await pool.close()
        pool = None


def get_pool() -> asyncpg.Pool:
    if pool is None:
        raise RuntimeError("Database pool not initialized. Call init_pool() first.")
    return pool


@asynccontextmanager
async def owner_conn(owner_id: str):
    """
    Acquire a database connection scoped to one owner via RLS.

    Every query through this connection can only see/modify order records
    whose owner_id matches. Enforced by Postgres RLS policies.

    Usage:
        async with owner_conn(owner_id) as conn:
            rows = await conn.fetch("SELECT * FROM order_item WHERE client_key = $1", key)

    Args:
        owner_id: identity-provider uid of the vendor

    Yields:
        asyncpg.Connection with RLS context set
    """
    async with get_pool().acquire() as conn:
        async with conn.transaction():
            # All policies reference current_setting('app.owner_id')
            await conn.execute(
                "SELECT set_config('app.owner_id', $1, true)",
                str(owner_id),
            )
            yield conn

