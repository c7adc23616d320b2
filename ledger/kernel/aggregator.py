"""
Pedidos Kernel: Order Aggregator

Pure function: (item records, payment records) → {customer_key: OrderAggregate}
No side effects. No IO. Deterministic.

Rebuilt from scratch on every snapshot of either stream, never patched
incrementally. Items are folded first, then payments:

- items:    quantities are summed per product
- payments: `paid` is overwritten (records hold running totals)
- name:     last non-empty name seen in the items-then-payments pass wins
- created_at: earliest non-null timestamp across both streams

Records without a customer key are skipped.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime

from ledger.kernel.types import ItemRecord, OrderAggregate, PaymentRecord

# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def empty_orders() -> dict[str, OrderAggregate]:
    """The aggregate mapping when neither stream has delivered anything."""
    return {}


def aggregate(
    item_records: Iterable[ItemRecord],
    payment_records: Iterable[PaymentRecord],
) -> dict[str, OrderAggregate]:
    """
    Fold both record streams into one aggregate per customer.

    Input records are never modified. Calling this twice with the same
    inputs returns equal mappings.
    """
    orders = empty_orders()

    for item in item_records:
        if not item.customer_key:
            continue
        order = _ensure(orders, item.customer_key, item.customer_name)
        order.items[item.product_name] = order.items.get(item.product_name, 0) + (item.quantity or 0)
        _merge_common(order, item.customer_name, item.created_at)

    for payment in payment_records:
        if not payment.customer_key:
            continue
        order = _ensure(orders, payment.customer_key, payment.customer_name)
        order.paid = payment.paid
        _merge_common(order, payment.customer_name, payment.created_at)

    return orders


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _ensure(orders: dict[str, OrderAggregate], key: str, name: str) -> OrderAggregate:
    order = orders.get(key)
    if order is None:
        order = OrderAggregate(id=key, name=name or "")
        orders[key] = order
    return order


def _merge_common(order: OrderAggregate, name: str, created_at: datetime | None) -> None:
    if name:
        order.name = name
    if created_at is not None and (order.created_at is None or created_at < order.created_at):
        order.created_at = created_at
