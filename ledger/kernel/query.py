"""
Pedidos Kernel: Query Engine

Derives what the order list shows from the aggregate mapping:
filter by customer name, stable sort by name / date / debt, and the global
summary totals. Pure functions over OrderAggregate values.

The summary is always computed over every order. An active search narrows
the list, never the totals.
"""

from __future__ import annotations

import unicodedata
from collections.abc import Iterable, Mapping
from decimal import Decimal
from typing import Any

from ledger.kernel.catalog import PRODUCTS, format_money
from ledger.kernel.types import (
    OrderAggregate,
    SortCriteria,
    SortDirection,
    Summary,
)

Orders = Mapping[str, OrderAggregate] | Iterable[OrderAggregate]


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def balance(order: OrderAggregate, catalog: Mapping[str, Decimal] = PRODUCTS) -> Decimal:
    return order.balance(catalog)


def filter_orders(orders: Orders, search_term: str | None = "") -> list[OrderAggregate]:
    """Case-insensitive substring match on the customer name. Empty term keeps all."""
    term = str(search_term or "").strip().lower()
    return [order for order in _as_list(orders) if term in (order.name or "").lower()]


def sort_orders(
    orders: Orders,
    criteria: SortCriteria | str = SortCriteria.DATE,
    direction: SortDirection | str = SortDirection.DESC,
    catalog: Mapping[str, Decimal] = PRODUCTS,
) -> list[OrderAggregate]:
    """
    Stable sort. Orders that compare equal keep their input order in both
    directions, so near-identical re-renders do not shuffle rows.
    """
    criteria = SortCriteria(criteria)
    direction = SortDirection(direction)
    key = _sort_key(criteria, catalog)
    # sorted(reverse=True) keeps equal elements in input order
    return sorted(_as_list(orders), key=key, reverse=direction == SortDirection.DESC)


def view(
    orders: Orders,
    search_term: str | None = "",
    criteria: SortCriteria | str = SortCriteria.DATE,
    direction: SortDirection | str = SortDirection.DESC,
    catalog: Mapping[str, Decimal] = PRODUCTS,
) -> list[OrderAggregate]:
    """Filter, then sort. Raises ValueError for an unknown criteria or direction."""
    return sort_orders(filter_orders(orders, search_term), criteria, direction, catalog)


def summarize(orders: Orders, catalog: Mapping[str, Decimal] = PRODUCTS) -> Summary:
    """
    Outstanding debt (overpayments count as 0, not as credit) and total collected.
    """
    total_debt = Decimal("0")
    total_paid = Decimal("0")
    for order in _as_list(orders):
        total_debt += max(order.balance(catalog), Decimal("0"))
        total_paid += order.paid
    return Summary(total_debt=total_debt, total_paid=total_paid)


def describe_items(order: OrderAggregate) -> str:
    """
    Compact one-line description: "2 manjar, 1 cubo, (ya pagó S/ 3.00)".
    """
    parts = [f"{qty} {name}" for name, qty in order.items.items()]
    if order.paid > 0:
        parts.append(f"(ya pagó {format_money(order.paid)})")
    return ", ".join(parts)


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _as_list(orders: Orders) -> list[OrderAggregate]:
    if isinstance(orders, Mapping):
        return list(orders.values())
    return list(orders)


def _sort_key(criteria: SortCriteria, catalog: Mapping[str, Decimal]):
    if criteria == SortCriteria.NAME:
        return lambda order: _collation_key(order.name or "")
    if criteria == SortCriteria.DATE:
        return lambda order: order.created_at.timestamp() if order.created_at else 0.0
    return lambda order: order.balance(catalog)


def _collation_key(name: str) -> tuple[Any, ...]:
    """
    Approximates locale collation: accents and case are ignored first,
    then case-folded text, then the raw string breaks remaining ties.
    """
    folded = name.casefold()
    base = "".join(ch for ch in unicodedata.normalize("NFKD", folded) if not unicodedata.combining(ch))
    return (base, folded, name)
