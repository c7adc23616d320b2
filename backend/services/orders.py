"""
Order service: the write path.

Validates input with the kernel (prompt parser, catalog) and turns it into
record upserts and deletes. Validation errors are raised before anything
reaches the record store. Store failures are logged with context and
re-raised as WriteFailure carrying the message shown to the vendor.

Writes are read-modify-write without a transaction, so two concurrent adds
for the same (customer, product) can lose an increment. Acceptable for a
single vendor working from one device at a time.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any

from backend.repos.record_store import ITEM_COLLECTION, PAYMENT_COLLECTION, RecordStore, StoreError
from backend.services.errors import InvalidFormat, MissingSelection, SubscriptionFailure, WriteFailure
from ledger.kernel.aggregator import aggregate
from ledger.kernel.catalog import PRODUCTS, is_known_product
from ledger.kernel.identity import customer_key, item_record_id
from ledger.kernel.prompt import parse_prompt
from ledger.kernel.records import make_item, make_payment
from ledger.kernel.types import ItemRecord, OrderAggregate, PaymentRecord

logger = logging.getLogger(__name__)

ADD_FAILED_MESSAGE = "No se pudo guardar el pedido."
PAYMENT_FAILED_MESSAGE = "No se pudo registrar el pago."
DELETE_FAILED_MESSAGE = "No se pudo eliminar el pedido."


@dataclass(frozen=True)
class AddOutcome:
    customer_key: str
    name: str
    product: str
    quantity: int  # accumulated, after the write


@dataclass(frozen=True)
class PaymentOutcome:
    paid: Decimal
    balance: Decimal
    settled: bool


class OrderService:
    """Order reads and writes against one record store."""

    def __init__(self, store: RecordStore, catalog: Mapping[str, Decimal] = PRODUCTS):
        self.store = store
        self.catalog = catalog

    async def load_orders(self, owner_id: str) -> dict[str, OrderAggregate]:
        """
        Point read of every record of an owner, folded into orders.

        Raises:
            SubscriptionFailure: either collection could not be read
        """
        lists = {}
        for collection in (ITEM_COLLECTION, PAYMENT_COLLECTION):
            try:
                lists[collection] = await self.store.filtered_list(collection, {"owner_id": owner_id})
            except StoreError as e:
                logger.error("orders: reading %s failed owner=%s: %s", collection, owner_id, e)
                raise SubscriptionFailure(collection) from e
        return aggregate(
            [ItemRecord.from_dict(r) for r in lists[ITEM_COLLECTION]],
            [PaymentRecord.from_dict(r) for r in lists[PAYMENT_COLLECTION]],
        )

    async def add_order(self, owner_id: str, prompt: str | None, product: str | None) -> AddOutcome:
        """
        Add `quantity` of `product` to a customer's order.

        Args:
            owner_id: signed-in vendor
            prompt: "Name Quantity", e.g. "Ana 2"
            product: catalog product name

        Returns:
            AddOutcome with the accumulated quantity

        Raises:
            MissingSelection: no product chosen, or not in the catalog
            InvalidFormat: prompt does not parse
            WriteFailure: the record store rejected the read or write
        """
        if not product or not is_known_product(product, self.catalog):
            raise MissingSelection()

        parsed = parse_prompt(prompt)
        if not parsed.ok:
            raise InvalidFormat(parsed.message)

        key = customer_key(parsed.name)
        record_id = item_record_id(owner_id, key, product)
        try:
            existing = await self.store.filtered_list(ITEM_COLLECTION, {"owner_id": owner_id, "id": record_id})
            previous = ItemRecord.from_dict(existing[0]).quantity if existing else 0
            item = make_item(owner_id, parsed.name, product, previous + parsed.quantity, key=key)
            await self.store.upsert(ITEM_COLLECTION, _without_timestamp(item.to_dict()))
        except StoreError as e:
            logger.error("orders: add failed owner=%s key=%s product=%s: %s", owner_id, key, product, e)
            raise WriteFailure(ADD_FAILED_MESSAGE) from e

        logger.info("orders: added owner=%s key=%s product=%s quantity=%d", owner_id, key, product, item.quantity)
        return AddOutcome(customer_key=key, name=parsed.name, product=product, quantity=item.quantity)

    async def record_payment(
        self,
        owner_id: str,
        order: OrderAggregate,
        amount: Any,
    ) -> PaymentOutcome | None:
        """
        Add `amount` to the customer's running paid total.

        Non-positive or non-numeric amounts are ignored (returns None, nothing
        written). The new total is order.paid + amount, so `order` must be
        the latest aggregate for that customer.
        """
        value = _positive_amount(amount)
        if value is None:
            return None

        new_paid = order.paid + value
        try:
            name = await self._customer_name(owner_id, order)
            payment = make_payment(owner_id, order.id, new_paid, name=name)
            await self.store.upsert(PAYMENT_COLLECTION, _without_timestamp(payment.to_dict()))
        except StoreError as e:
            logger.error("orders: payment failed owner=%s key=%s amount=%s: %s", owner_id, order.id, value, e)
            raise WriteFailure(PAYMENT_FAILED_MESSAGE) from e

        balance = order.total(self.catalog) - new_paid
        logger.info("orders: payment owner=%s key=%s paid=%s balance=%s", owner_id, order.id, new_paid, balance)
        return PaymentOutcome(paid=new_paid, balance=balance, settled=balance <= 0)

    async def delete_order(self, owner_id: str, key: str) -> int:
        """
        Delete every item record of a customer, then the payment record.

        Every delete is attempted even after a failure. Returns the number of
        records deleted.

        Raises:
            WriteFailure: after the pass, if any read or delete failed
        """
        filters = {"owner_id": owner_id, "client_key": key}
        failures = 0
        deleted = 0
        for collection in (ITEM_COLLECTION, PAYMENT_COLLECTION):
            try:
                records = await self.store.filtered_list(collection, filters)
            except StoreError as e:
                logger.error("orders: listing %s for delete failed owner=%s key=%s: %s", collection, owner_id, key, e)
                failures += 1
                continue
            for record in records:
                try:
                    await self.store.delete(collection, record["id"])
                    deleted += 1
                except StoreError as e:
                    logger.error("orders: delete %s id=%s failed: %s", collection, record["id"], e)
                    failures += 1

        if failures:
            raise WriteFailure(DELETE_FAILED_MESSAGE)
        logger.info("orders: deleted owner=%s key=%s records=%d", owner_id, key, deleted)
        return deleted

    async def _customer_name(self, owner_id: str, order: OrderAggregate) -> str:
        """Name as stored on one of the customer's item records, else the aggregate name."""
        items = await self.store.filtered_list(ITEM_COLLECTION, {"owner_id": owner_id, "client_key": order.id})
        for record in items:
            name = ItemRecord.from_dict(record).customer_name
            if name:
                return name
        return order.name


def _positive_amount(amount: Any) -> Decimal | None:
    if amount is None or isinstance(amount, bool):
        return None
    try:
        value = Decimal(str(amount).strip())
    except (InvalidOperation, ValueError):
        return None
    if not value.is_finite() or value <= 0:
        return None
    return value


def _without_timestamp(record: dict[str, Any]) -> dict[str, Any]:
    # created_at is assigned by the store on first insert
    record.pop("created_at", None)
    return record


