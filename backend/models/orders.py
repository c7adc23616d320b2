"""Order models: what the order list, summary and write endpoints exchange."""

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, Field

from ledger.kernel.catalog import PRODUCTS
from ledger.kernel.query import describe_items
from ledger.kernel.types import OrderAggregate, SortCriteria, SortDirection, SortSpec, Summary


class AddOrderRequest(BaseModel):
    """What the client sends to POST /api/orders."""

    model_config = {"extra": "forbid"}

    prompt: str = Field(max_length=500)  # "Nombre Cantidad"
    product: str | None = None


class AddOrderResponse(BaseModel):
    customer_key: str
    name: str
    product: str
    quantity: int


class RecordPaymentRequest(BaseModel):
    """What the client sends to POST /api/orders/{customer_key}/payments."""

    model_config = {"extra": "forbid"}

    amount: Decimal = Field(max_digits=12, decimal_places=2)


class PaymentResponse(BaseModel):
    """Result of a payment. recorded=False means the amount was not positive and nothing was written."""

    recorded: bool
    paid: Decimal
    balance: Decimal
    settled: bool


class DeleteOrderResponse(BaseModel):
    deleted: int


class ProductResponse(BaseModel):
    name: str
    price: Decimal
    display_price: str  # "S/ 1.50"


class OrderResponse(BaseModel):
    """One customer's order as shown in the list."""

    id: str
    name: str
    items: dict[str, int]
    description: str
    paid: Decimal
    total: Decimal
    balance: Decimal
    settled: bool
    created_at: datetime | None = None

    @classmethod
    def from_aggregate(cls, order: OrderAggregate, catalog: Mapping[str, Decimal] = PRODUCTS) -> OrderResponse:
        balance = order.balance(catalog)
        return cls(
            id=order.id,
            name=order.name,
            items=dict(order.items),
            description=describe_items(order),
            paid=order.paid,
            total=order.total(catalog),
            balance=balance,
            settled=balance <= 0,
            created_at=order.created_at,
        )


class SummaryResponse(BaseModel):
    """Totals over every order, unaffected by the search term."""

    total_debt: Decimal
    total_paid: Decimal

    @classmethod
    def from_summary(cls, summary: Summary) -> SummaryResponse:
        return cls(total_debt=summary.total_debt, total_paid=summary.total_paid)


class SortResponse(BaseModel):
    criteria: SortCriteria
    direction: SortDirection

    @classmethod
    def from_spec(cls, spec: SortSpec) -> SortResponse:
        return cls(criteria=spec.criteria, direction=spec.direction)


class OrdersViewResponse(BaseModel):
    """Filtered, sorted order list plus the global summary."""

    orders: list[OrderResponse]
    summary: SummaryResponse
    search: str = ""
    sort: SortResponse


class OrdersSnapshotMessage(BaseModel):
    """Pushed over /ws/orders whenever the order list changes."""

    type: Literal["orders.snapshot"] = "orders.snapshot"
    data: OrdersViewResponse
