"""FastAPI routes for the Procurement domain.

Authentication happens upstream; the gateway forwards the authenticated
actor in the ``X-Actor-Id`` and ``X-Actor-Role`` headers.

Handlers are ``async`` and call ``dispatch`` without awaiting anything, so
each per-order lock is taken and released within one step of the event loop.
The loop thread is the only dispatcher in the web process; the timer scanner
runs in its own process and meets the web process at the version check.
"""

import json

from fastapi import APIRouter, Header, Query
from protean.utils.globals import current_domain

from procurement.api.schemas import (
    CancelOrderRequest,
    ConfirmationQueueResponse,
    CreateOrderRequest,
    FireTimersRequest,
    FireTimersResponse,
    MarkHandoverRequest,
    OrderSummaryResponse,
    OrderTimelineResponse,
    ReportIssueRequest,
    WindowRequest,
)
from procurement.order.auto_completion import fire_due_timers
from procurement.order.cancellation import CancelOrder
from procurement.order.confirmation import ConfirmDelivery, ReportIssue
from procurement.order.creation import CreateOrder
from procurement.order.guard import dispatch
from procurement.order.handover import MarkHandoverComplete
from procurement.order.negotiation import AcceptWindow, CounterProposeWindow, ProposeWindow, RejectWindow
from procurement.order.queries import get_confirmation_queue, get_order_summary, get_order_timeline
from procurement.order.transit import BeginTransit

# ---------------------------------------------------------------------------
# Order Router
# ---------------------------------------------------------------------------
order_router = APIRouter(prefix="/orders", tags=["orders"])


@order_router.post("", status_code=201, response_model=OrderSummaryResponse)
async def create_order(
    body: CreateOrderRequest,
    x_actor_id: str = Header(...),
    x_actor_role: str = Header(...),
) -> OrderSummaryResponse:
    """Place an order between a buyer and a supplier."""
    destination = body.destination
    command = CreateOrder(
        actor_id=x_actor_id,
        actor_role=x_actor_role,
        buyer_id=body.buyer_id,
        supplier_id=body.supplier_id,
        order_type=body.order_type,
        delivery_mode=body.delivery_mode,
        items=json.dumps([item.model_dump() for item in body.items]),
        total_amount=body.total_amount,
        grand_total=body.grand_total,
        delivery_fee=body.delivery_fee,
        tax_amount=body.tax_amount,
        currency=body.currency,
        address=destination.address if destination else None,
        latitude=destination.latitude if destination else None,
        longitude=destination.longitude if destination else None,
        buyer_notes=body.buyer_notes,
    )
    summary = current_domain.process(command, asynchronous=False)
    return OrderSummaryResponse(**summary)


@order_router.get("/{order_id}", response_model=OrderSummaryResponse)
async def get_order(
    order_id: str,
    x_actor_id: str = Header(...),
    x_actor_role: str = Header(...),
) -> OrderSummaryResponse:
    """Current state of an order, visible to its buyer and supplier."""
    return OrderSummaryResponse(**get_order_summary(order_id, x_actor_role, x_actor_id))


@order_router.get("/{order_id}/timeline", response_model=OrderTimelineResponse)
async def get_timeline(
    order_id: str,
    x_actor_id: str = Header(...),
    x_actor_role: str = Header(...),
) -> OrderTimelineResponse:
    """Status history of an order, oldest first."""
    return OrderTimelineResponse(**get_order_timeline(order_id, x_actor_role, x_actor_id))


# ---------------------------------------------------------------------------
# Window negotiation
# ---------------------------------------------------------------------------
@order_router.post("/{order_id}/window/propose", response_model=OrderSummaryResponse)
async def propose_window(
    order_id: str,
    body: WindowRequest,
    x_actor_id: str = Header(...),
    x_actor_role: str = Header(...),
) -> OrderSummaryResponse:
    """Propose a delivery or pickup window."""
    command = ProposeWindow(
        order_id=order_id,
        actor_id=x_actor_id,
        actor_role=x_actor_role,
        window_start=body.start,
        window_end=body.end,
    )
    return OrderSummaryResponse(**dispatch(command))


@order_router.post("/{order_id}/window/counter", response_model=OrderSummaryResponse)
async def counter_propose_window(
    order_id: str,
    body: WindowRequest,
    x_actor_id: str = Header(...),
    x_actor_role: str = Header(...),
) -> OrderSummaryResponse:
    """Answer the pending proposal with a different window."""
    command = CounterProposeWindow(
        order_id=order_id,
        actor_id=x_actor_id,
        actor_role=x_actor_role,
        window_start=body.start,
        window_end=body.end,
    )
    return OrderSummaryResponse(**dispatch(command))


@order_router.post("/{order_id}/window/accept", response_model=OrderSummaryResponse)
async def accept_window(
    order_id: str,
    x_actor_id: str = Header(...),
    x_actor_role: str = Header(...),
) -> OrderSummaryResponse:
    """Accept the pending proposal as the promised window."""
    command = AcceptWindow(order_id=order_id, actor_id=x_actor_id, actor_role=x_actor_role)
    return OrderSummaryResponse(**dispatch(command))


@order_router.post("/{order_id}/window/reject", response_model=OrderSummaryResponse)
async def reject_window(
    order_id: str,
    x_actor_id: str = Header(...),
    x_actor_role: str = Header(...),
) -> OrderSummaryResponse:
    """Reject the pending proposal without countering."""
    command = RejectWindow(order_id=order_id, actor_id=x_actor_id, actor_role=x_actor_role)
    return OrderSummaryResponse(**dispatch(command))


# ---------------------------------------------------------------------------
# Dispatch and handover
# ---------------------------------------------------------------------------
@order_router.post("/{order_id}/transit", response_model=OrderSummaryResponse)
async def begin_transit(
    order_id: str,
    x_actor_id: str = Header(...),
    x_actor_role: str = Header(...),
) -> OrderSummaryResponse:
    """Supplier dispatches the order, or marks it ready for pickup."""
    command = BeginTransit(order_id=order_id, actor_id=x_actor_id, actor_role=x_actor_role)
    return OrderSummaryResponse(**dispatch(command))


@order_router.post("/{order_id}/handover", response_model=OrderSummaryResponse)
async def mark_handover_complete(
    order_id: str,
    body: MarkHandoverRequest,
    x_actor_id: str = Header(...),
    x_actor_role: str = Header(...),
) -> OrderSummaryResponse:
    """Record the physical handover with photo evidence."""
    command = MarkHandoverComplete(
        order_id=order_id,
        actor_id=x_actor_id,
        actor_role=x_actor_role,
        photos=json.dumps(body.photos),
        quantities=json.dumps(body.quantities) if body.quantities else None,
        condition=json.dumps(body.condition) if body.condition else None,
        notes=body.notes,
    )
    return OrderSummaryResponse(**dispatch(command))


@order_router.post("/{order_id}/confirm", response_model=OrderSummaryResponse)
async def confirm_delivery(
    order_id: str,
    x_actor_id: str = Header(...),
    x_actor_role: str = Header(...),
) -> OrderSummaryResponse:
    """Confirm the handover before the confirmation deadline."""
    command = ConfirmDelivery(order_id=order_id, actor_id=x_actor_id, actor_role=x_actor_role)
    return OrderSummaryResponse(**dispatch(command))


@order_router.post("/{order_id}/issue", response_model=OrderSummaryResponse)
async def report_issue(
    order_id: str,
    body: ReportIssueRequest,
    x_actor_id: str = Header(...),
    x_actor_role: str = Header(...),
) -> OrderSummaryResponse:
    """Dispute the handover before the confirmation deadline."""
    command = ReportIssue(
        order_id=order_id,
        actor_id=x_actor_id,
        actor_role=x_actor_role,
        category=body.category,
        details=body.details,
        photos=json.dumps(body.photos) if body.photos else None,
    )
    return OrderSummaryResponse(**dispatch(command))


@order_router.post("/{order_id}/cancel", response_model=OrderSummaryResponse)
async def cancel_order(
    order_id: str,
    body: CancelOrderRequest,
    x_actor_id: str = Header(...),
    x_actor_role: str = Header(...),
) -> OrderSummaryResponse:
    """Cancel an order that has not been handed over."""
    command = CancelOrder(
        order_id=order_id,
        actor_id=x_actor_id,
        actor_role=x_actor_role,
        reason=body.reason,
    )
    return OrderSummaryResponse(**dispatch(command))


# ---------------------------------------------------------------------------
# Confirmation queue and maintenance
# ---------------------------------------------------------------------------
confirmation_router = APIRouter(tags=["confirmations"])


@confirmation_router.get("/confirmations", response_model=ConfirmationQueueResponse)
async def confirmation_queue(within_hours: float = Query(default=6.0, ge=0)) -> ConfirmationQueueResponse:
    """Handovers awaiting confirmation whose deadline falls within the given hours."""
    items = get_confirmation_queue(within_hours)
    return ConfirmationQueueResponse(within_hours=within_hours, count=len(items), items=items)


@confirmation_router.post("/maintenance/confirmation-timers/fire", response_model=FireTimersResponse)
async def fire_confirmation_timers(body: FireTimersRequest | None = None) -> FireTimersResponse:
    """Fire due confirmation timers.

    Designed to be called periodically by an external scheduler when the
    ``scheduler.py`` loop is not running. Safe to call repeatedly.
    """
    return FireTimersResponse(**fire_due_timers(as_of=body.as_of if body else None))
