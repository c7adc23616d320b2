"""Order routes: product catalog, order list with summary, add, pay, delete."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, status

from backend.auth import get_current_user
from backend.deps import get_order_service
from backend.models.orders import (
    AddOrderRequest,
    AddOrderResponse,
    DeleteOrderResponse,
    OrderResponse,
    OrdersViewResponse,
    PaymentResponse,
    ProductResponse,
    RecordPaymentRequest,
    SortResponse,
    SummaryResponse,
)
from backend.models.user import User
from backend.services.errors import InvalidFormat, MissingSelection, OrderError
from backend.services.orders import OrderService
from ledger.kernel.catalog import PRODUCTS, format_money
from ledger.kernel.identity import customer_key as to_customer_key
from ledger.kernel.query import summarize, view
from ledger.kernel.types import SortCriteria, SortDirection, SortSpec

router = APIRouter(tags=["orders"])

ORDER_NOT_FOUND = "No se encontró el pedido."


def order_error_status(error: OrderError) -> int:
    """HTTP status for an order error: validation → 422, store failures → 502."""
    if isinstance(error, (InvalidFormat, MissingSelection)):
        return 422
    return status.HTTP_502_BAD_GATEWAY


def _http_error(error: OrderError) -> HTTPException:
    return HTTPException(status_code=order_error_status(error), detail=error.user_message)


@router.get("/api/products", status_code=200)
async def list_products() -> list[ProductResponse]:
    """Catalog, in display order."""
    return [
        ProductResponse(name=name, price=price, display_price=format_money(price)) for name, price in PRODUCTS.items()
    ]


@router.get("/api/orders", status_code=200)
async def list_orders(
    search: str = Query("", max_length=200),
    sort: SortCriteria = SortCriteria.DATE,
    direction: SortDirection = SortDirection.DESC,
    user: User = Depends(get_current_user),
    service: OrderService = Depends(get_order_service),
) -> OrdersViewResponse:
    """
    Filtered and sorted order list.

    The summary covers every order regardless of `search`.
    """
    try:
        orders = await service.load_orders(user.uid)
    except OrderError as e:
        raise _http_error(e) from e
    return OrdersViewResponse(
        orders=[OrderResponse.from_aggregate(o) for o in view(orders, search, sort, direction)],
        summary=SummaryResponse.from_summary(summarize(orders)),
        search=search,
        sort=SortResponse.from_spec(SortSpec(sort, direction)),
    )


@router.post("/api/orders", status_code=201)
async def add_order(
    req: AddOrderRequest,
    user: User = Depends(get_current_user),
    service: OrderService = Depends(get_order_service),
) -> AddOrderResponse:
    """Add "Nombre Cantidad" of a product. Repeated adds accumulate."""
    try:
        outcome = await service.add_order(user.uid, req.prompt, req.product)
    except OrderError as e:
        raise _http_error(e) from e
    return AddOrderResponse(
        customer_key=outcome.customer_key,
        name=outcome.name,
        product=outcome.product,
        quantity=outcome.quantity,
    )


@router.post("/api/orders/{customer_key}/payments", status_code=200)
async def record_payment(
    customer_key: str,
    req: RecordPaymentRequest,
    user: User = Depends(get_current_user),
    service: OrderService = Depends(get_order_service),
) -> PaymentResponse:
    """Add a payment to the customer's running total. Non-positive amounts are ignored."""
    try:
        orders = await service.load_orders(user.uid)
        order = orders.get(to_customer_key(customer_key))
        if order is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=ORDER_NOT_FOUND)
        outcome = await service.record_payment(user.uid, order, req.amount)
    except OrderError as e:
        raise _http_error(e) from e

    if outcome is None:
        return PaymentResponse(
            recorded=False,
            paid=order.paid,
            balance=order.balance(),
            settled=order.is_settled(),
        )
    return PaymentResponse(recorded=True, paid=outcome.paid, balance=outcome.balance, settled=outcome.settled)


@router.delete("/api/orders/{customer_key}", status_code=200)
async def delete_order(
    customer_key: str,
    user: User = Depends(get_current_user),
    service: OrderService = Depends(get_order_service),
) -> DeleteOrderResponse:
    """Delete every item and the payment record of a customer."""
    try:
        deleted = await service.delete_order(user.uid, to_customer_key(customer_key))
    except OrderError as e:
        raise _http_error(e) from e
    if not deleted:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=ORDER_NOT_FOUND)
    return DeleteOrderResponse(deleted=deleted)
