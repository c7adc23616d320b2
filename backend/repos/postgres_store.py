"""
PostgresRecordStore: RecordStore backed by Postgres.

Tables order_item / order_payment (see alembic 001). RLS limits every
statement to rows whose owner_id matches app.owner_id, which owner_conn()
sets per transaction. A trigger on both tables issues
NOTIFY order_changes with {"collection", "owner_id"}; subscriptions LISTEN on
one shared connection and re-read their filtered list on each notification.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any

import asyncpg

from backend.config import settings
from backend.db import owner_conn
from backend.repos.record_store import (
    ITEM_COLLECTION,
    PAYMENT_COLLECTION,
    ErrorCallback,
    RecordStore,
    SnapshotCallback,
    StoreError,
    Subscription,
    check_collection,
)
from ledger.kernel.identity import KEY_SEPARATOR

logger = logging.getLogger(__name__)

NOTIFY_CHANNEL = "order_changes"

# Column whitelist per collection. Filters and upserts only touch these.
_COLUMNS: dict[str, tuple[str, ...]] = {
    ITEM_COLLECTION: ("id", "owner_id", "client_key", "client_name", "product", "quantity", "created_at"),
    PAYMENT_COLLECTION: ("id", "owner_id", "client_key", "client_name", "paid", "created_at"),
}

_UPSERT_SQL: dict[str, str] = {
    ITEM_COLLECTION: """
        INSERT INTO order_item (id, owner_id, client_key, client_name, product, quantity)
        VALUES ($1, $2, $3, $4, $5, $6)
        ON CONFLICT (id)
        DO UPDATE SET client_name = EXCLUDED.client_name,
                      quantity = EXCLUDED.quantity,
                      updated_at = now()
    """,
    PAYMENT_COLLECTION: """
        INSERT INTO order_payment (id, owner_id, client_key, client_name, paid)
        VALUES ($1, $2, $3, $4, $5)
        ON CONFLICT (id)
        DO UPDATE SET client_name = EXCLUDED.client_name,
                      paid = EXCLUDED.paid,
                      updated_at = now()
    """,
}


def _upsert_args(collection: str, record: dict[str, Any]) -> tuple[Any, ...]:
    common = (record["id"], record["owner_id"], record["client_key"], record.get("client_name") or "")
    if collection == ITEM_COLLECTION:
        return (*common, record["product"], int(record.get("quantity") or 0))
    return (*common, record.get("paid") or 0)


def _owner_from_id(record_id: str) -> str:
    """Record ids start with the owner id (see ledger.kernel.identity)."""
    return record_id.split(KEY_SEPARATOR, 1)[0]


def _where(collection: str, filters: dict[str, Any]) -> tuple[str, list[Any]]:
    allowed = _COLUMNS[collection]
    clauses = []
    values = []
    for i, (column, value) in enumerate(filters.items(), start=1):
        if column not in allowed:
            raise ValueError(f"Cannot filter {collection} by {column!r}")
        clauses.append(f"{column} = ${i}")
        values.append(value)
    return (" AND ".join(clauses) or "true"), values


class _PgSubscriber:
    def __init__(self, collection: str, filters: dict, on_snapshot: SnapshotCallback, on_error: ErrorCallback):
        self.collection = collection
        self.filters = dict(filters)
        self.on_snapshot = on_snapshot
        self.on_error = on_error
        self.active = True
        # one re-read in flight at a time; notifications during it set dirty
        self.refreshing = False
        self.dirty = False


class PostgresRecordStore(RecordStore):
    """
    Postgres-based record store.

    Every read and write runs inside owner_conn(owner_id), so filters must
    include owner_id and records must carry it.
    """

    def __init__(self, dsn: str | None = None):
        self.dsn = dsn or settings.DATABASE_URL
        self._listen_conn: asyncpg.Connection | None = None
        self._listen_lock = asyncio.Lock()
        self._subscribers: list[_PgSubscriber] = []
        self._tasks: set[asyncio.Task] = set()

    async def upsert(self, collection: str, record: dict[str, Any]) -> None:
        check_collection(collection)
        try:
            async with owner_conn(record["owner_id"]) as conn:
                await conn.execute(_UPSERT_SQL[collection], *_upsert_args(collection, record))
        except asyncpg.PostgresError as e:
            raise StoreError(f"upsert into {collection} failed: {e}") from e

    async def delete(self, collection: str, record_id: str) -> None:
        check_collection(collection)
        try:
            async with owner_conn(_owner_from_id(record_id)) as conn:
                # collection is one of COLLECTIONS
                await conn.execute(f"DELETE FROM {collection} WHERE id = $1", record_id)  # nosec B608
        except asyncpg.PostgresError as e:
            raise StoreError(f"delete from {collection} failed: {e}") from e

    async def filtered_list(self, collection: str, filters: dict[str, Any]) -> list[dict[str, Any]]:
        check_collection(collection)
        owner_id = filters.get("owner_id")
        if not owner_id:
            raise ValueError("filtered_list requires an owner_id filter")
        where, values = _where(collection, filters)
        columns = ", ".join(_COLUMNS[collection])
        try:
            async with owner_conn(owner_id) as conn:
                rows = await conn.fetch(
                    f"SELECT {columns} FROM {collection} WHERE {where} ORDER BY created_at",  # nosec B608
                    *values,
                )
        except asyncpg.PostgresError as e:
            raise StoreError(f"read from {collection} failed: {e}") from e
        return [dict(row) for row in rows]

    async def subscribe(
        self,
        collection: str,
        filters: dict[str, Any],
        on_snapshot: SnapshotCallback,
        on_error: ErrorCallback,
    ) -> Subscription:
        check_collection(collection)
        try:
            await self._ensure_listener()
        except (OSError, asyncpg.PostgresError) as e:
            raise StoreError(f"cannot listen for {collection} changes: {e}") from e
        subscriber = _PgSubscriber(collection, filters, on_snapshot, on_error)
        self._subscribers.append(subscriber)
        await self._refresh_until_clean(subscriber)
        return Subscription(on_close=lambda: self._remove(subscriber))

    async def close(self) -> None:
        """Drop all subscriptions and close the LISTEN connection."""
        for subscriber in self._subscribers:
            subscriber.active = False
        self._subscribers.clear()
        for task in list(self._tasks):
            task.cancel()
        if self._listen_conn is not None:
            conn, self._listen_conn = self._listen_conn, None
            await conn.close()

    # -- listener -----------------------------------------------------------

    async def _ensure_listener(self) -> None:
        async with self._listen_lock:
            if self._listen_conn is not None and not self._listen_conn.is_closed():
                return
            self._listen_conn = await asyncpg.connect(self.dsn)
            await self._listen_conn.add_listener(NOTIFY_CHANNEL, self._on_notify)
            self._listen_conn.add_termination_listener(self._on_terminated)
            logger.info("postgres_store: listening on %s", NOTIFY_CHANNEL)

    def _on_notify(self, conn, pid, channel, payload: str) -> None:
        try:
            change = json.loads(payload)
        except json.JSONDecodeError:
            logger.warning("postgres_store: malformed notification: %r", payload[:200])
            return
        for subscriber in list(self._subscribers):
            if subscriber.collection != change.get("collection"):
                continue
            if subscriber.filters.get("owner_id") != change.get("owner_id"):
                continue
            if subscriber.refreshing:
                subscriber.dirty = True
                continue
            task = asyncio.get_running_loop().create_task(self._refresh_until_clean(subscriber))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)

    def _on_terminated(self, conn) -> None:
        logger.warning("postgres_store: LISTEN connection lost, failing %d subscriptions", len(self._subscribers))
        self._listen_conn = None
        error = StoreError("record store connection lost")
        for subscriber in list(self._subscribers):
            subscriber.active = False
            subscriber.on_error(error)
        self._subscribers.clear()

    async def _refresh_until_clean(self, subscriber: _PgSubscriber) -> None:
        """Re-read until no notification arrived during the last read, so snapshots are delivered in order."""
        subscriber.refreshing = True
        try:
            while True:
                subscriber.dirty = False
                await self._refresh(subscriber)
                if not (subscriber.dirty and subscriber.active):
                    return
        finally:
            subscriber.refreshing = False

    async def _refresh(self, subscriber: _PgSubscriber) -> None:
        try:
            records = await self.filtered_list(subscriber.collection, subscriber.filters)
        except (StoreError, ValueError) as e:
            logger.warning("postgres_store: refresh of %s failed: %s", subscriber.collection, e)
            if subscriber.active:
                subscriber.on_error(e)
            return
        if subscriber.active:
            subscriber.on_snapshot(records)

    def _remove(self, subscriber: _PgSubscriber) -> None:
        subscriber.active = False
        if subscriber in self._subscribers:
            self._subscribers.remove(subscriber)
