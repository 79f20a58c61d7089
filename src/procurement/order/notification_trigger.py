"""Notification trigger: every order transition notifies the other party.

Each event is mapped to a typed notification and handed to the configured
notifier for the counterparty of whoever acted. Auto-completion has no human
actor, so both parties are told. Dispatch is fire-and-forget: the transition
is already durable, so a notifier failure is logged and suppressed.
"""

import structlog
from protean import handle

from procurement.domain import procurement
from procurement.notifier import get_notifier
from procurement.order.events import (
    DeliveryConfirmed,
    HandoverAutoCompleted,
    HandoverRecorded,
    IssueReported,
    OrderCancelled,
    OrderCreated,
    TransitStarted,
    WindowAccepted,
    WindowCounterProposed,
    WindowProposed,
    WindowRejected,
)
from procurement.order.order import DeliveryMode, HandoverKind, Order, PartyRole, counterparty

logger = structlog.get_logger(__name__)


def _recipient(event, actor_role: str) -> str:
    other = counterparty(PartyRole(actor_role))
    return str(event.buyer_id) if other == PartyRole.BUYER else str(event.supplier_id)


def _iso(value):
    return value.isoformat() if value else None


def send_notification(event_type: str, order_id: str, recipient_id: str, payload: dict) -> None:
    """Hand one notification to the notifier; failures never propagate."""
    try:
        result = get_notifier().notify(event_type, order_id, recipient_id, payload)
    except Exception as exc:
        logger.error(
            "Notification dispatch raised",
            event_type=event_type,
            order_id=order_id,
            recipient_id=recipient_id,
            error=str(exc),
        )
        return

    if result.get("status") != "sent":
        logger.warning(
            "Notification dispatch failed",
            event_type=event_type,
            order_id=order_id,
            recipient_id=recipient_id,
            error=result.get("error"),
        )
    else:
        logger.info(
            "Notification dispatched",
            event_type=event_type,
            order_id=order_id,
            recipient_id=recipient_id,
        )


@procurement.event_handler(part_of=Order)
class OrderNotificationHandler:
    """Reacts to Order events by notifying the party that did not act."""

    @handle(OrderCreated)
    def on_order_created(self, event: OrderCreated) -> None:
        send_notification(
            "order_created",
            str(event.order_id),
            _recipient(event, event.created_by),
            {
                "order_number": event.order_number,
                "order_type": event.order_type,
                "grand_total": event.grand_total,
                "currency": event.currency,
            },
        )

    @handle(WindowProposed)
    def on_window_proposed(self, event: WindowProposed) -> None:
        send_notification(
            "window_proposed",
            str(event.order_id),
            _recipient(event, event.proposed_by),
            {
                "proposed_by": event.proposed_by,
                "window_start": _iso(event.window_start),
                "window_end": _iso(event.window_end),
                "round": event.round,
                "renegotiation": event.renegotiation,
            },
        )

    @handle(WindowCounterProposed)
    def on_window_counter_proposed(self, event: WindowCounterProposed) -> None:
        send_notification(
            "window_counter_proposed",
            str(event.order_id),
            _recipient(event, event.proposed_by),
            {
                "proposed_by": event.proposed_by,
                "window_start": _iso(event.window_start),
                "window_end": _iso(event.window_end),
                "round": event.round,
            },
        )

    @handle(WindowAccepted)
    def on_window_accepted(self, event: WindowAccepted) -> None:
        send_notification(
            "window_confirmed",
            str(event.order_id),
            _recipient(event, event.accepted_by),
            {
                "window_start": _iso(event.window_start),
                "window_end": _iso(event.window_end),
                "status": event.status,
            },
        )

    @handle(WindowRejected)
    def on_window_rejected(self, event: WindowRejected) -> None:
        send_notification(
            "window_rejected",
            str(event.order_id),
            _recipient(event, event.rejected_by),
            {
                "window_start": _iso(event.window_start),
                "window_end": _iso(event.window_end),
            },
        )

    @handle(TransitStarted)
    def on_transit_started(self, event: TransitStarted) -> None:
        event_type = "ready_for_pickup" if event.delivery_mode == DeliveryMode.PICKUP.value else "order_in_transit"
        send_notification(
            event_type,
            str(event.order_id),
            str(event.buyer_id),
            {"window_start": _iso(event.window_start), "window_end": _iso(event.window_end)},
        )

    @handle(HandoverRecorded)
    def on_handover_recorded(self, event: HandoverRecorded) -> None:
        event_type = "rental_handover_due" if event.kind == HandoverKind.RENTAL_HANDOVER.value else "delivery_completed"
        send_notification(
            event_type,
            str(event.order_id),
            _recipient(event, event.recorded_by),
            {
                "order_number": event.order_number,
                "handover_id": str(event.handover_id),
                "photo_count": event.photo_count,
                "confirmation_deadline": _iso(event.confirmation_deadline),
            },
        )

    @handle(DeliveryConfirmed)
    def on_delivery_confirmed(self, event: DeliveryConfirmed) -> None:
        event_type = "buyer_confirmed_delivery" if event.confirmed_by == PartyRole.BUYER.value else "handover_confirmed"
        send_notification(
            event_type,
            str(event.order_id),
            _recipient(event, event.confirmed_by),
            {"handover_id": str(event.handover_id)},
        )

    @handle(IssueReported)
    def on_issue_reported(self, event: IssueReported) -> None:
        send_notification(
            "dispute_raised",
            str(event.order_id),
            _recipient(event, event.reported_by),
            {
                "handover_id": str(event.handover_id),
                "category": event.category,
                "details": event.details,
            },
        )

    @handle(HandoverAutoCompleted)
    def on_handover_auto_completed(self, event: HandoverAutoCompleted) -> None:
        payload = {
            "handover_id": str(event.handover_id),
            "reason": event.reason,
            "confirmation_deadline": _iso(event.confirmation_deadline),
        }
        for recipient_id in (str(event.buyer_id), str(event.supplier_id)):
            send_notification("order_auto_completed", str(event.order_id), recipient_id, payload)

    @handle(OrderCancelled)
    def on_order_cancelled(self, event: OrderCancelled) -> None:
        send_notification(
            "order_cancelled",
            str(event.order_id),
            _recipient(event, event.cancelled_by),
            {"reason": event.reason, "previous_status": event.previous_status},
        )
