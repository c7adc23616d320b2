"""
Tests for OrderSession and ControlState.

Covers:
  - start/stop lifecycle against the memory store
  - last snapshot wins per stream, full recompute from both lists
  - callbacks from a stopped or restarted session are dropped
  - stream failure → load_error + error listeners, never raises
  - search / sort view state, summary ignores search
  - scoped disable re-enables controls on every exit path
"""

from __future__ import annotations

from decimal import Decimal

import pytest

from backend.repos.record_store import (
    ITEM_COLLECTION,
    PAYMENT_COLLECTION,
    MemoryRecordStore,
    RecordStore,
    StoreError,
    Subscription,
)
from backend.services.errors import SubscriptionFailure
from backend.services.session import ControlState, OrderSession
from ledger.kernel.records import make_item, make_payment
from ledger.kernel.types import SortCriteria, SortDirection, SortSpec


class ManualStore(RecordStore):
    """Records subscribe() callbacks so tests decide when snapshots arrive."""

    def __init__(self, fail_subscribe: str | None = None) -> None:
        self.callbacks: list[tuple[str, dict, object, object]] = []
        self.closed: list[str] = []
        self.fail_subscribe = fail_subscribe

    async def subscribe(self, collection, filters, on_snapshot, on_error):
        if collection == self.fail_subscribe:
            raise StoreError("listen failed")
        self.callbacks.append((collection, filters, on_snapshot, on_error))
        return Subscription(on_close=lambda: self.closed.append(collection))

    def latest(self, collection: str):
        return [c for c in self.callbacks if c[0] == collection][-1]


def _item(owner: str, name: str, product: str, qty: int) -> dict:
    record = make_item(owner, name, product, qty).to_dict()
    record["created_at"] = None
    return record


def _payment(owner: str, key: str, paid: str, name: str = "") -> dict:
    return make_payment(owner, key, paid, name=name).to_dict()


# ============================================================================
# Lifecycle
# ============================================================================


class TestLifecycle:
    async def test_start_folds_existing_records(self):
        store = MemoryRecordStore()
        await store.upsert(ITEM_COLLECTION, _item("o1", "Ana", "manjar", 2))
        await store.upsert(PAYMENT_COLLECTION, _payment("o1", "ana", "1.00"))
        session = OrderSession(store)

        await session.start("o1")

        assert session.active
        assert set(session.orders) == {"ana"}
        assert session.orders["ana"].items == {"manjar": 2}
        assert session.orders["ana"].paid == Decimal("1.00")

    async def test_only_owner_records_are_visible(self):
        store = MemoryRecordStore()
        await store.upsert(ITEM_COLLECTION, _item("o1", "Ana", "manjar", 2))
        await store.upsert(ITEM_COLLECTION, _item("o2", "Beto", "cubo", 1))
        session = OrderSession(store)

        await session.start("o1")

        assert set(session.orders) == {"ana"}

    async def test_live_changes_recompute(self):
        store = MemoryRecordStore()
        session = OrderSession(store)
        changes = []
        session.on_change(lambda s: changes.append(dict(s.orders)))
        await session.start("o1")

        await store.upsert(ITEM_COLLECTION, _item("o1", "Ana", "cubo", 1))

        assert session.orders["ana"].items == {"cubo": 1}
        assert changes[-1].keys() == {"ana"}

    async def test_stop_unsubscribes_and_clears(self):
        store = MemoryRecordStore()
        await store.upsert(ITEM_COLLECTION, _item("o1", "Ana", "manjar", 2))
        session = OrderSession(store)
        await session.start("o1")
        session.set_search("an")

        await session.stop()

        assert store.subscriber_count == 0
        assert not session.active
        assert session.orders == {}
        assert session.search_term == ""

    async def test_stop_twice_is_safe(self):
        session = OrderSession(MemoryRecordStore())
        await session.start("o1")
        await session.stop()
        await session.stop()
        assert not session.active

    async def test_restart_switches_owner(self):
        store = MemoryRecordStore()
        await store.upsert(ITEM_COLLECTION, _item("o1", "Ana", "manjar", 2))
        await store.upsert(ITEM_COLLECTION, _item("o2", "Beto", "cubo", 1))
        session = OrderSession(store)

        await session.start("o1")
        await session.start("o2")

        assert set(session.orders) == {"beto"}
        assert store.subscriber_count == 2


# ============================================================================
# Snapshot handling
# ============================================================================


class TestSnapshots:
    async def test_last_snapshot_wins_per_stream(self):
        store = ManualStore()
        session = OrderSession(store)
        await session.start("o1")
        _, _, on_items, _ = store.latest(ITEM_COLLECTION)

        on_items([_item("o1", "Ana", "manjar", 2), _item("o1", "Beto", "cubo", 1)])
        on_items([_item("o1", "Beto", "cubo", 3)])

        assert set(session.orders) == {"beto"}
        assert session.orders["beto"].items == {"cubo": 3}

    async def test_recompute_uses_latest_of_both_streams(self):
        store = ManualStore()
        session = OrderSession(store)
        await session.start("o1")
        _, _, on_items, _ = store.latest(ITEM_COLLECTION)
        _, _, on_payments, _ = store.latest(PAYMENT_COLLECTION)

        on_payments([_payment("o1", "ana", "2.00", name="Ana")])
        on_items([_item("o1", "Ana", "manjar", 2)])

        order = session.orders["ana"]
        assert order.paid == Decimal("2.00")
        assert order.items == {"manjar": 2}

    async def test_callbacks_after_stop_are_dropped(self):
        store = ManualStore()
        session = OrderSession(store)
        await session.start("o1")
        _, _, on_items, on_error = store.latest(ITEM_COLLECTION)

        await session.stop()
        on_items([_item("o1", "Ana", "manjar", 2)])
        on_error(StoreError("late"))

        assert session.orders == {}
        assert session.load_error is None

    async def test_callbacks_from_previous_start_are_dropped(self):
        store = ManualStore()
        session = OrderSession(store)
        await session.start("o1")
        _, _, old_on_items, _ = store.latest(ITEM_COLLECTION)
        await session.start("o2")
        _, _, new_on_items, _ = store.latest(ITEM_COLLECTION)

        new_on_items([_item("o2", "Beto", "cubo", 1)])
        old_on_items([_item("o1", "Ana", "manjar", 2)])

        assert set(session.orders) == {"beto"}
        assert sorted(store.closed) == [ITEM_COLLECTION, PAYMENT_COLLECTION]


# ============================================================================
# Failures
# ============================================================================


class TestFailures:
    async def test_stream_error_sets_load_error_and_notifies(self):
        store = ManualStore()
        session = OrderSession(store)
        failures = []
        session.on_error(failures.append)
        await session.start("o1")
        _, _, _, on_error = store.latest(PAYMENT_COLLECTION)

        on_error(StoreError("permission denied"))

        assert isinstance(session.load_error, SubscriptionFailure)
        assert session.load_error.collection == PAYMENT_COLLECTION
        assert session.load_error.user_message == "Error al cargar los pedidos."
        assert failures == [session.load_error]

    async def test_malformed_row_does_not_fail_the_stream(self):
        store = MemoryRecordStore()
        session = OrderSession(store)
        await session.start("o1")
        await store.upsert(ITEM_COLLECTION, _item("o1", "Ana", "cubo", 1))

        bad = _item("o1", "Beto", "oreo", 1)
        bad["quantity"] = "dos"
        await store.upsert(ITEM_COLLECTION, bad)
        await store.upsert(ITEM_COLLECTION, _item("o1", "Carla", "manjar", 2))

        assert session.load_error is None
        assert set(session.orders) == {"ana", "beto", "carla"}
        assert session.orders["beto"].items == {"oreo": 0}
        assert session.orders["carla"].items == {"manjar": 2}

    async def test_subscribe_failure_is_reported_not_raised(self):
        store = ManualStore(fail_subscribe=ITEM_COLLECTION)
        session = OrderSession(store)

        await session.start("o1")

        assert session.load_error is not None
        assert session.load_error.collection == ITEM_COLLECTION
        # payments stream still subscribed
        assert store.latest(PAYMENT_COLLECTION)

    async def test_raising_listener_does_not_break_others(self):
        store = MemoryRecordStore()
        session = OrderSession(store)
        seen = []

        def broken(_):
            raise RuntimeError("boom")

        session.on_change(broken)
        session.on_change(lambda s: seen.append(len(s.orders)))
        await session.start("o1")
        await store.upsert(ITEM_COLLECTION, _item("o1", "Ana", "manjar", 1))

        assert seen[-1] == 1

    async def test_unsubscribed_listener_not_called(self):
        session = OrderSession(MemoryRecordStore())
        seen = []
        unsubscribe = session.on_change(seen.append)
        unsubscribe()

        await session.start("o1")

        assert seen == []


# ============================================================================
# View state
# ============================================================================


class TestViewState:
    @pytest.fixture
    async def session(self):
        store = MemoryRecordStore()
        await store.upsert(ITEM_COLLECTION, _item("o1", "Ana", "cubo", 2))  # 6.00
        await store.upsert(ITEM_COLLECTION, _item("o1", "Beto", "manjar", 1))  # 1.50
        await store.upsert(PAYMENT_COLLECTION, _payment("o1", "beto", "1.50", name="Beto"))
        session = OrderSession(store)
        await session.start("o1")
        yield session
        await session.stop()

    async def test_default_sort_is_date_desc(self, session):
        assert session.sort.criteria == SortCriteria.DATE
        assert session.sort.direction == SortDirection.DESC

    async def test_toggle_same_criteria_flips(self, session):
        session.toggle_sort("date")
        assert session.sort.direction == SortDirection.ASC

    async def test_toggle_new_criteria_starts_in_default_direction(self, session):
        session.toggle_sort("name")
        assert session.sort == SortSpec(SortCriteria.NAME, SortDirection.ASC)
        assert [o.name for o in session.current_view()] == ["Ana", "Beto"]

    async def test_sort_by_debt(self, session):
        session.toggle_sort("debt")
        assert [o.id for o in session.current_view()] == ["ana", "beto"]

    async def test_search_narrows_view_not_summary(self, session):
        session.set_search("  BE ")

        assert [o.id for o in session.current_view()] == ["beto"]
        summary = session.summary()
        assert summary.total_debt == Decimal("6.00")
        assert summary.total_paid == Decimal("1.50")

    async def test_unknown_sort_criteria_raises(self, session):
        with pytest.raises(ValueError):
            session.toggle_sort("price")


# ============================================================================
# Controls
# ============================================================================


class TestControlState:
    async def test_disabled_inside_enabled_after(self):
        controls = ControlState()
        async with controls.disabled("add", "prompt"):
            assert controls.is_disabled("add")
            assert controls.is_disabled("prompt")
            assert controls.disabled_names == {"add", "prompt"}
        assert not controls.is_disabled("add")
        assert controls.disabled_names == frozenset()

    async def test_reenabled_after_exception(self):
        controls = ControlState()
        with pytest.raises(RuntimeError):
            async with controls.disabled("payment"):
                raise RuntimeError("write failed")
        assert not controls.is_disabled("payment")

    async def test_nested_disable_stacks(self):
        controls = ControlState()
        async with controls.disabled("add"):
            async with controls.disabled("add"):
                pass
            assert controls.is_disabled("add")
        assert not controls.is_disabled("add")
