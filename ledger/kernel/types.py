"""
Pedidos Kernel: Shared Types

Data classes used across identity, aggregator, prompt parser and query engine.
These are the contracts that bind the kernel together.

Wire naming follows the record store columns:
- item records:    id, owner_id, client_key, client_name, product, quantity, created_at
- payment records: id, owner_id, client_key, client_name, paid, created_at
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from decimal import Decimal, InvalidOperation
from enum import StrEnum
from typing import Any

from ledger.kernel.catalog import PRODUCTS, calculate_total

# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class SortCriteria(StrEnum):
    NAME = "name"
    DATE = "date"
    DEBT = "debt"


class SortDirection(StrEnum):
    ASC = "asc"
    DESC = "desc"


class ErrorReason(StrEnum):
    INVALID_FORMAT = "invalid_format"


# Direction a criteria starts in when it is first selected
DEFAULT_DIRECTIONS: dict[SortCriteria, SortDirection] = {
    SortCriteria.NAME: SortDirection.ASC,
    SortCriteria.DATE: SortDirection.DESC,
    SortCriteria.DEBT: SortDirection.DESC,
}


# ---------------------------------------------------------------------------
# Raw records
# ---------------------------------------------------------------------------


@dataclass
class ItemRecord:
    """
    One line item: quantity of a product ordered by one customer.

    `id` is owner:customer:product, so at most one record exists per triple.
    """

    id: str
    owner_id: str
    customer_key: str
    customer_name: str
    product_name: str
    quantity: int = 0
    created_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "owner_id": self.owner_id,
            "client_key": self.customer_key,
            "client_name": self.customer_name,
            "product": self.product_name,
            "quantity": self.quantity,
            "created_at": self.created_at,
        }

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> ItemRecord:
        return cls(
            id=d.get("id") or "",
            owner_id=d.get("owner_id") or "",
            customer_key=d.get("client_key") or "",
            customer_name=d.get("client_name") or "",
            product_name=d.get("product") or "",
            quantity=to_quantity(d.get("quantity")),
            created_at=parse_timestamp(d.get("created_at")),
        )


@dataclass
class PaymentRecord:
    """
    Cumulative amount paid by one customer. `paid` is a running total, not a delta.

    `id` is owner:customer, so at most one record exists per pair.
    """

    id: str
    owner_id: str
    customer_key: str
    customer_name: str
    paid: Decimal = Decimal("0")
    created_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "owner_id": self.owner_id,
            "client_key": self.customer_key,
            "client_name": self.customer_name,
            "paid": self.paid,
            "created_at": self.created_at,
        }

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> PaymentRecord:
        return cls(
            id=d.get("id") or "",
            owner_id=d.get("owner_id") or "",
            customer_key=d.get("client_key") or "",
            customer_name=d.get("client_name") or "",
            paid=to_decimal(d.get("paid")),
            created_at=parse_timestamp(d.get("created_at")),
        )


# ---------------------------------------------------------------------------
# Derived state
# ---------------------------------------------------------------------------


@dataclass
class OrderAggregate:
    """
    Per-customer view over all item and payment records. Never persisted.
    """

    id: str
    name: str
    items: dict[str, int] = field(default_factory=dict)
    paid: Decimal = Decimal("0")
    created_at: datetime | None = None

    def total(self, catalog: Mapping[str, Decimal] = PRODUCTS) -> Decimal:
        return calculate_total(self.items, catalog)

    def balance(self, catalog: Mapping[str, Decimal] = PRODUCTS) -> Decimal:
        """Total minus paid. Negative means overpaid."""
        return self.total(catalog) - self.paid

    def is_settled(self, catalog: Mapping[str, Decimal] = PRODUCTS) -> bool:
        return self.balance(catalog) <= 0

    def to_dict(self, catalog: Mapping[str, Decimal] = PRODUCTS) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "items": dict(self.items),
            "paid": self.paid,
            "total": self.total(catalog),
            "balance": self.balance(catalog),
            "created_at": self.created_at,
        }


@dataclass(frozen=True)
class SortSpec:
    """Current sort selection. Toggling mirrors the sort buttons."""

    criteria: SortCriteria = SortCriteria.DATE
    direction: SortDirection = SortDirection.DESC

    def toggled(self, criteria: SortCriteria | str) -> SortSpec:
        """
        Same criteria flips the direction; a new criteria starts
        in its default direction (name A→Z, date and debt highest first).
        """
        criteria = SortCriteria(criteria)
        if criteria == self.criteria:
            flipped = SortDirection.ASC if self.direction == SortDirection.DESC else SortDirection.DESC
            return SortSpec(criteria, flipped)
        return SortSpec(criteria, DEFAULT_DIRECTIONS[criteria])


DEFAULT_SORT = SortSpec()


@dataclass(frozen=True)
class Summary:
    """Global totals over every order, regardless of the active search."""

    total_debt: Decimal
    total_paid: Decimal


@dataclass
class PromptResult:
    """
    Outcome of parsing an order-entry prompt.
    The parser never throws; it always returns one of these.
    """

    name: str | None = None
    quantity: int | None = None
    error: ErrorReason | None = None
    message: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def parse_timestamp(value: Any) -> datetime | None:
    """
    Coerce a stored timestamp to an aware datetime.

    Accepts datetime, ISO 8601 strings (with or without trailing Z) and None.
    Naive datetimes are assumed to be UTC. Unparseable values become None.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=UTC)
    if isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)
    return None


def to_decimal(value: Any) -> Decimal:
    """Coerce a stored amount to Decimal. Missing or garbage becomes 0."""
    if value is None or isinstance(value, bool):
        return Decimal("0")
    if isinstance(value, Decimal):
        return value
    try:
        # str() first so floats keep their printed value (0.1 -> Decimal("0.1"))
        return Decimal(str(value))
    except (InvalidOperation, ValueError):
        return Decimal("0")


def to_quantity(value: Any) -> int:
    """Coerce a stored quantity to int. Missing, fractional or garbage becomes 0."""
    if value is None or isinstance(value, bool):
        return 0
    if isinstance(value, int):
        return value
    try:
        number = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return 0
    if not number.is_finite() or number != number.to_integral_value():
        return 0
    return int(number)
