"""
WebSocket endpoint for the live order list.

Accepts connections at /ws/orders. Each connection owns one OrderSession
that follows the vendor's item and payment records; every change is pushed
as a full orders.snapshot (filtered, sorted list plus summary).
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, WebSocket, WebSocketDisconnect, status

from backend.auth import SESSION_COOKIE, user_from_session_cookie
from backend.deps import get_store
from backend.models.orders import (
    OrderResponse,
    OrdersSnapshotMessage,
    OrdersViewResponse,
    SortResponse,
    SummaryResponse,
)
from backend.repos.record_store import RecordStore
from backend.services.errors import MissingSelection, OrderError, SubscriptionFailure
from backend.services.orders import OrderService
from backend.services.session import OrderSession
from ledger.kernel.identity import customer_key

logger = logging.getLogger(__name__)

router = APIRouter(tags=["websocket"])

ORDER_NOT_SELECTED = "Error: Debes seleccionar un pedido."

# Controls each write disables while in flight
_WRITE_CONTROLS: dict[str, tuple[str, ...]] = {
    "add_order": ("prompt", "add"),
    "record_payment": ("payment",),
    "delete_order": ("delete",),
}


def snapshot_message(session: OrderSession) -> dict[str, Any]:
    """orders.snapshot payload for the session's current view."""
    message = OrdersSnapshotMessage(
        data=OrdersViewResponse(
            orders=[OrderResponse.from_aggregate(o, session.catalog) for o in session.current_view()],
            summary=SummaryResponse.from_summary(session.summary()),
            search=session.search_term,
            sort=SortResponse.from_spec(session.sort),
        )
    )
    return message.model_dump(mode="json")


def error_message(failure: SubscriptionFailure) -> dict[str, Any]:
    return {"type": "orders.error", "collection": failure.collection, "message": failure.user_message}


async def _run_write(
    session: OrderSession,
    service: OrderService,
    outbox: asyncio.Queue,
    action: str,
    msg: dict[str, Any],
) -> None:
    """
    Perform one write with its controls disabled, then report write.ok / write.error.

    The resulting data change arrives separately, as an orders.snapshot.
    A write whose controls are already disabled is answered with write.busy.
    """
    owner_id = session.owner_id
    if owner_id is None:
        return
    controls = _WRITE_CONTROLS[action]
    if any(session.controls.is_disabled(name) for name in controls):
        outbox.put_nowait({"type": "write.busy", "action": action})
        return
    result: dict[str, Any] = {}
    try:
        async with session.controls.disabled(*controls):
            if action == "add_order":
                outcome = await service.add_order(owner_id, msg.get("prompt"), msg.get("product"))
                result = {"customer_key": outcome.customer_key, "quantity": outcome.quantity}
            elif action == "record_payment":
                order = session.get(customer_key(msg.get("customer_key")))
                if order is None:
                    raise MissingSelection(ORDER_NOT_SELECTED)
                payment = await service.record_payment(owner_id, order, msg.get("amount"))
                result = {"recorded": payment is not None}
                if payment is not None:
                    result.update(
                        paid=str(payment.paid),
                        balance=str(payment.balance),
                        settled=payment.settled,
                    )
            else:
                key = customer_key(msg.get("customer_key"))
                if not key:
                    raise MissingSelection(ORDER_NOT_SELECTED)
                result = {"deleted": await service.delete_order(owner_id, key)}
    except OrderError as e:
        outbox.put_nowait(
            {
                "type": "write.error",
                "action": action,
                "reason": type(e).__name__,
                "message": e.user_message,
            }
        )
        return
    outbox.put_nowait({"type": "write.ok", "action": action, **result})


async def _sender(websocket: WebSocket, outbox: asyncio.Queue) -> None:
    """Single writer for the socket; everything outgoing goes through the outbox."""
    while True:
        message = await outbox.get()
        await websocket.send_text(json.dumps(message))


@router.websocket("/ws/orders")
async def orders_websocket(websocket: WebSocket, store: RecordStore = Depends(get_store)) -> None:
    """
    Stream the vendor's orders over WebSocket.

    Protocol:
      Client → Server:  {"type": "add_order", "prompt": "Ana 2", "product": "manjar"}
                        {"type": "record_payment", "customer_key": "ana", "amount": "3.00"}
                        {"type": "delete_order", "customer_key": "ana"}
                        {"type": "search", "term": "an"}
                        {"type": "sort", "criteria": "debt"}
      Server → Client:  orders.snapshot | orders.error | write.ok | write.error | write.busy | error

    Requires the session cookie. The session stops when the socket closes.
    """
    try:
        user = user_from_session_cookie(websocket.cookies.get(SESSION_COOKIE))
    except HTTPException:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await websocket.accept()
    logger.info("ws: orders stream accepted uid=%s", user.uid)

    outbox: asyncio.Queue = asyncio.Queue()
    session = OrderSession(store)
    service = OrderService(store, session.catalog)
    session.on_change(lambda s: outbox.put_nowait(snapshot_message(s)))
    session.on_error(lambda failure: outbox.put_nowait(error_message(failure)))

    sender = asyncio.create_task(_sender(websocket, outbox))
    writes: set[asyncio.Task] = set()
    try:
        await session.start(user.uid)
        while True:
            raw = await websocket.receive_text()
            try:
                msg = json.loads(raw)
            except json.JSONDecodeError:
                logger.warning("ws: malformed message from client: %r", raw[:200])
                continue
            if not isinstance(msg, dict):
                continue

            msg_type = msg.get("type")

            # ── writes ───────────────────────────────────────────────
            if msg_type in _WRITE_CONTROLS:
                task = asyncio.create_task(_run_write(session, service, outbox, msg_type, msg))
                writes.add(task)
                task.add_done_callback(writes.discard)
                continue

            # ── search ───────────────────────────────────────────────
            if msg_type == "search":
                session.set_search(str(msg.get("term") or ""))
                continue

            # ── sort ─────────────────────────────────────────────────
            if msg_type == "sort":
                try:
                    session.toggle_sort(msg.get("criteria"))
                except ValueError:
                    outbox.put_nowait({"type": "error", "error": f"Unknown sort criteria: {msg.get('criteria')!r}"})
                continue

            logger.debug("ws: ignoring message type=%r", msg_type)
    except WebSocketDisconnect:
        logger.info("ws: orders stream closed uid=%s", user.uid)
    finally:
        await session.stop()
        for task in writes:
            task.cancel()
        sender.cancel()
