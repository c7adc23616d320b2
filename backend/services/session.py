"""
Order session: one signed-in vendor's live view of their orders.

start(owner_id) subscribes to both record collections. Every snapshot
replaces the latest list for its collection and the aggregate is rebuilt
from scratch out of both latest lists, so the derived orders always reflect
exactly the last snapshot of each stream.

stop() closes both subscriptions and forgets all state. Callbacks that were
already in flight when the session stopped (or restarted for another owner)
carry an old generation number and are dropped.
"""

from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Callable, Mapping
from contextlib import asynccontextmanager
from decimal import Decimal
from functools import partial
from typing import Any

from backend.repos.record_store import (
    ITEM_COLLECTION,
    PAYMENT_COLLECTION,
    RecordStore,
    StoreError,
    Subscription,
)
from backend.services.errors import SubscriptionFailure
from ledger.kernel.aggregator import aggregate, empty_orders
from ledger.kernel.catalog import PRODUCTS
from ledger.kernel.query import summarize, view
from ledger.kernel.types import (
    DEFAULT_SORT,
    ItemRecord,
    OrderAggregate,
    PaymentRecord,
    SortCriteria,
    SortSpec,
    Summary,
)

logger = logging.getLogger(__name__)

ChangeListener = Callable[["OrderSession"], None]
ErrorListener = Callable[[SubscriptionFailure], None]


# ---------------------------------------------------------------------------
# Controls
# ---------------------------------------------------------------------------


class ControlState:
    """
    Tracks which input controls are disabled while a write is in flight.

        async with session.controls.disabled("add", "prompt"):
            await service.add_order(...)

    Controls are re-enabled on every exit path, including exceptions.
    Nested disables of the same control stack.
    """

    def __init__(self) -> None:
        self._held: Counter[str] = Counter()

    def is_disabled(self, name: str) -> bool:
        return self._held[name] > 0

    @property
    def disabled_names(self) -> frozenset[str]:
        return frozenset(name for name, count in self._held.items() if count > 0)

    @asynccontextmanager
    async def disabled(self, *names: str):
        self._held.update(names)
        try:
            yield self
        finally:
            self._held.subtract(names)
            for name in names:
                if self._held[name] <= 0:
                    del self._held[name]


# ---------------------------------------------------------------------------
# Session
# ---------------------------------------------------------------------------


class OrderSession:
    """Live, derived order state for one owner."""

    def __init__(self, store: RecordStore, catalog: Mapping[str, Decimal] = PRODUCTS):
        self.store = store
        self.catalog = catalog
        self.controls = ControlState()
        self._generation = 0
        self._subscriptions: list[Subscription] = []
        self._listeners: list[ChangeListener] = []
        self._error_listeners: list[ErrorListener] = []
        self._reset()

    def _reset(self) -> None:
        self.owner_id: str | None = None
        self.orders: dict[str, OrderAggregate] = empty_orders()
        self.load_error: SubscriptionFailure | None = None
        self.search_term = ""
        self.sort: SortSpec = DEFAULT_SORT
        self._items: list[ItemRecord] = []
        self._payments: list[PaymentRecord] = []

    @property
    def active(self) -> bool:
        return self.owner_id is not None

    @property
    def generation(self) -> int:
        return self._generation

    # -- lifecycle ----------------------------------------------------------

    async def start(self, owner_id: str) -> None:
        """Subscribe to this owner's item and payment records."""
        await self.stop()
        self.owner_id = owner_id
        generation = self._generation
        filters = {"owner_id": owner_id}
        logger.info("session: starting for owner=%s generation=%d", owner_id, generation)

        for collection, on_snapshot in (
            (ITEM_COLLECTION, self._on_items),
            (PAYMENT_COLLECTION, self._on_payments),
        ):
            try:
                subscription = await self.store.subscribe(
                    collection,
                    filters,
                    partial(on_snapshot, generation),
                    partial(self._on_error, generation, collection),
                )
            except StoreError as e:
                self._on_error(generation, collection, e)
                continue
            if generation != self._generation:
                # stopped while subscribing
                await subscription.close()
                return
            self._subscriptions.append(subscription)

    async def stop(self) -> None:
        """Unsubscribe and discard all derived state. Safe to call twice."""
        self._generation += 1
        subscriptions, self._subscriptions = self._subscriptions, []
        for subscription in subscriptions:
            await subscription.close()
        if self.owner_id is not None:
            logger.info("session: stopped for owner=%s", self.owner_id)
        self._reset()

    # -- listeners ----------------------------------------------------------

    def on_change(self, callback: ChangeListener) -> Callable[[], None]:
        """Call `callback(session)` after every recompute. Returns an unsubscribe function."""
        self._listeners.append(callback)
        return partial(_discard, self._listeners, callback)

    def on_error(self, callback: ErrorListener) -> Callable[[], None]:
        """Call `callback(failure)` when a record stream fails."""
        self._error_listeners.append(callback)
        return partial(_discard, self._error_listeners, callback)

    # -- store callbacks ----------------------------------------------------

    def _on_items(self, generation: int, records: list[dict[str, Any]]) -> None:
        if generation != self._generation:
            return
        self._items = [ItemRecord.from_dict(r) for r in records]
        self._recompute()

    def _on_payments(self, generation: int, records: list[dict[str, Any]]) -> None:
        if generation != self._generation:
            return
        self._payments = [PaymentRecord.from_dict(r) for r in records]
        self._recompute()

    def _on_error(self, generation: int, collection: str, error: Exception) -> None:
        if generation != self._generation:
            return
        logger.warning("session: %s stream failed for owner=%s: %s", collection, self.owner_id, error)
        self.load_error = SubscriptionFailure(collection)
        for listener in list(self._error_listeners):
            try:
                listener(self.load_error)
            except Exception:
                logger.exception("session: error listener failed")

    def _recompute(self) -> None:
        self.orders = aggregate(self._items, self._payments)
        self._emit()

    def _emit(self) -> None:
        for listener in list(self._listeners):
            try:
                listener(self)
            except Exception:
                logger.exception("session: change listener failed")

    # -- view state ---------------------------------------------------------

    def set_search(self, term: str | None) -> None:
        self.search_term = term or ""
        self._emit()

    def toggle_sort(self, criteria: SortCriteria | str) -> SortSpec:
        """Same criteria flips direction; a new one starts in its default direction."""
        self.sort = self.sort.toggled(criteria)
        self._emit()
        return self.sort

    def current_view(self) -> list[OrderAggregate]:
        return view(
            self.orders,
            self.search_term,
            self.sort.criteria,
            self.sort.direction,
            self.catalog,
        )

    def summary(self) -> Summary:
        """Totals over every order, ignoring the search term."""
        return summarize(self.orders, self.catalog)

    def get(self, key: str) -> OrderAggregate | None:
        return self.orders.get(key)


def _discard(listeners: list, callback: Callable) -> None:
    if callback in listeners:
        listeners.remove(callback)
