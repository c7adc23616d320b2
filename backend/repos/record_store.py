"""
Record store: the persistence gateway for order records.

Two collections, partitioned per owner:
  order_item     one row per (owner, customer, product), `quantity` accumulates
  order_payment  one row per (owner, customer), `paid` is a running total

Operations: upsert, delete, filtered_list (point read), subscribe.
Subscriptions deliver the full filtered list (a snapshot) right away and
again after every change; a snapshot supersedes the previous one.

Implement with Postgres for production (postgres_store.PostgresRecordStore),
or in memory for tests and local development (MemoryRecordStore).
"""

from __future__ import annotations

import copy
import inspect
import logging
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any

logger = logging.getLogger(__name__)

ITEM_COLLECTION = "order_item"
PAYMENT_COLLECTION = "order_payment"
COLLECTIONS = (ITEM_COLLECTION, PAYMENT_COLLECTION)

SnapshotCallback = Callable[[list[dict[str, Any]]], None]
ErrorCallback = Callable[[Exception], None]


class UnknownCollection(ValueError):
    """Collection name is not one of COLLECTIONS."""


class StoreError(Exception):
    """A record store operation was rejected."""


def check_collection(collection: str) -> None:
    if collection not in COLLECTIONS:
        raise UnknownCollection(f"Unknown collection: {collection!r}")


def matches(record: dict[str, Any], filters: dict[str, Any]) -> bool:
    """Equality match on every filter key."""
    return all(record.get(k) == v for k, v in filters.items())


# ---------------------------------------------------------------------------
# Subscription handle
# ---------------------------------------------------------------------------


class Subscription:
    """
    Handle returned by RecordStore.subscribe().

    close() stops delivery. Closing twice is a no-op.
    """

    def __init__(self, on_close: Callable[[], Any] | None = None):
        self._on_close = on_close
        self.closed = False

    async def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        if self._on_close is not None:
            result = self._on_close()
            if inspect.isawaitable(result):
                await result


# ---------------------------------------------------------------------------
# Storage protocol
# ---------------------------------------------------------------------------


class RecordStore:
    """
    Abstract record store interface.
    The store enforces that a caller only reads/writes records it owns.
    """

    async def upsert(self, collection: str, record: dict[str, Any]) -> None:
        """Insert or replace by record["id"]. created_at is kept from the first insert."""
        raise NotImplementedError

    async def delete(self, collection: str, record_id: str) -> None:
        """Delete by id. Deleting a missing id is a no-op."""
        raise NotImplementedError

    async def filtered_list(self, collection: str, filters: dict[str, Any]) -> list[dict[str, Any]]:
        """Point read of all records matching every filter."""
        raise NotImplementedError

    async def subscribe(
        self,
        collection: str,
        filters: dict[str, Any],
        on_snapshot: SnapshotCallback,
        on_error: ErrorCallback,
    ) -> Subscription:
        """Deliver matching records now and after every change until closed."""
        raise NotImplementedError


# ---------------------------------------------------------------------------
# In-memory implementation
# ---------------------------------------------------------------------------


class _Subscriber:
    def __init__(self, collection: str, filters: dict, on_snapshot: SnapshotCallback, on_error: ErrorCallback):
        self.collection = collection
        self.filters = dict(filters)
        self.on_snapshot = on_snapshot
        self.on_error = on_error


class MemoryRecordStore(RecordStore):
    """
    In-memory store for testing and local development.

    Subscribers are notified synchronously after each write. fail_next()
    makes the next matching operation raise StoreError, to exercise error paths.
    """

    def __init__(self) -> None:
        self.collections: dict[str, dict[str, dict[str, Any]]] = {c: {} for c in COLLECTIONS}
        self._subscribers: list[_Subscriber] = []
        self._failures: dict[str, int] = {}

    def fail_next(self, operation: str, times: int = 1) -> None:
        """Make the next `times` calls of `operation` (upsert/delete/filtered_list) fail."""
        self._failures[operation] = self._failures.get(operation, 0) + times

    def _maybe_fail(self, operation: str) -> None:
        remaining = self._failures.get(operation, 0)
        if remaining:
            self._failures[operation] = remaining - 1
            raise StoreError(f"{operation} rejected")

    async def upsert(self, collection: str, record: dict[str, Any]) -> None:
        check_collection(collection)
        self._maybe_fail("upsert")
        rows = self.collections[collection]
        existing = rows.get(record["id"])
        row = copy.deepcopy(record)
        if existing is not None and existing.get("created_at") is not None:
            row["created_at"] = existing["created_at"]
        elif row.get("created_at") is None:
            row["created_at"] = datetime.now(UTC)
        rows[record["id"]] = row
        self._notify(collection)

    async def delete(self, collection: str, record_id: str) -> None:
        check_collection(collection)
        self._maybe_fail("delete")
        if self.collections[collection].pop(record_id, None) is not None:
            self._notify(collection)

    async def filtered_list(self, collection: str, filters: dict[str, Any]) -> list[dict[str, Any]]:
        check_collection(collection)
        self._maybe_fail("filtered_list")
        return self._select(collection, filters)

    async def subscribe(
        self,
        collection: str,
        filters: dict[str, Any],
        on_snapshot: SnapshotCallback,
        on_error: ErrorCallback,
    ) -> Subscription:
        check_collection(collection)
        subscriber = _Subscriber(collection, filters, on_snapshot, on_error)
        self._subscribers.append(subscriber)
        on_snapshot(self._select(collection, filters))
        return Subscription(on_close=lambda: self._remove(subscriber))

    def fail_subscriptions(self, collection: str, error: Exception) -> None:
        """Report a terminal error to every subscriber of a collection."""
        for subscriber in list(self._subscribers):
            if subscriber.collection == collection:
                subscriber.on_error(error)

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def _select(self, collection: str, filters: dict[str, Any]) -> list[dict[str, Any]]:
        return [copy.deepcopy(r) for r in self.collections[collection].values() if matches(r, filters)]

    def _remove(self, subscriber: _Subscriber) -> None:
        if subscriber in self._subscribers:
            self._subscribers.remove(subscriber)

    def _notify(self, collection: str) -> None:
        for subscriber in list(self._subscribers):
            if subscriber.collection != collection:
                continue
            try:
                subscriber.on_snapshot(self._select(collection, subscriber.filters))
            except Exception as e:
                logger.exception("record_store: snapshot callback failed for %s", collection)
                subscriber.on_error(e)
