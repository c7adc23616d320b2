"""
Pedidos Kernel: Record Construction

Factory functions for well-formed item and payment records.
Used by the order service before writing to the record store,
and by tests to build records concisely.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from ledger.kernel.identity import customer_key, item_record_id, payment_record_id
from ledger.kernel.types import ItemRecord, PaymentRecord, to_decimal


def make_item(
    owner_id: str,
    name: str,
    product: str,
    quantity: int,
    *,
    created_at: datetime | None = None,
    key: str | None = None,
) -> ItemRecord:
    """
    Build an ItemRecord from a display name. The customer key and the
    record id are derived, unless `key` overrides the customer key.
    """
    ck = customer_key(name) if key is None else key
    return ItemRecord(
        id=item_record_id(owner_id, ck, product),
        owner_id=owner_id,
        customer_key=ck,
        customer_name=name,
        product_name=product,
        quantity=quantity,
        created_at=created_at,
    )


def make_payment(
    owner_id: str,
    key: str,
    paid: Decimal | int | float | str,
    *,
    name: str = "",
    created_at: datetime | None = None,
) -> PaymentRecord:
    """Build a PaymentRecord for an existing customer key. `paid` is the running total."""
    return PaymentRecord(
        id=payment_record_id(owner_id, key),
        owner_id=owner_id,
        customer_key=key,
        customer_name=name,
        paid=to_decimal(paid),
        created_at=created_at,
    )
