"""Order timeline: the status history of an order, shown to both parties."""

import json

from protean.core.projector import on
from protean.fields import DateTime, Identifier, Integer, String, Text
from protean.utils.globals import current_domain

from procurement.domain import procurement
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
from procurement.order.order import Order


@procurement.projection
class OrderTimeline:
    order_id = Identifier(identifier=True, required=True)
    order_number = String(required=True)
    buyer_id = Identifier(required=True)
    supplier_id = Identifier(required=True)
    current_status = String(required=True)
    entries_json = Text()  # JSON list of timeline entries, oldest first
    entry_count = Integer(default=0)
    created_at = DateTime()
    updated_at = DateTime()


def _iso(value):
    return value.isoformat() if value else None


def timeline_entries(view: OrderTimeline) -> list[dict]:
    return json.loads(view.entries_json) if view.entries_json else []


@procurement.projector(projector_for=OrderTimeline, aggregates=[Order])
class OrderTimelineProjector:
    def _append(self, order_id, entry: dict, occurred_at, status: str | None = None):
        repo = current_domain.repository_for(OrderTimeline)
        view = repo.get(order_id)

        entries = timeline_entries(view)
        entry["occurred_at"] = _iso(occurred_at)
        entry["status"] = status or view.current_status
        entries.append(entry)

        view.entries_json = json.dumps(entries)
        view.entry_count = len(entries)
        if status:
            view.current_status = status
        view.updated_at = occurred_at
        repo.add(view)

    @on(OrderCreated)
    def on_order_created(self, event):
        entry = {
            "event": "order_created",
            "actor": event.created_by,
            "status": "pending",
            "occurred_at": _iso(event.created_at),
            "details": {"order_type": event.order_type, "delivery_mode": event.delivery_mode},
        }
        current_domain.repository_for(OrderTimeline).add(
            OrderTimeline(
                order_id=event.order_id,
                order_number=event.order_number,
                buyer_id=event.buyer_id,
                supplier_id=event.supplier_id,
                current_status="pending",
                entries_json=json.dumps([entry]),
                entry_count=1,
                created_at=event.created_at,
                updated_at=event.created_at,
            )
        )

    @on(WindowProposed)
    def on_window_proposed(self, event):
        self._append(
            event.order_id,
            {
                "event": "window_proposed",
                "actor": event.proposed_by,
                "details": {
                    "window_start": _iso(event.window_start),
                    "window_end": _iso(event.window_end),
                    "round": event.round,
                },
            },
            event.proposed_at,
        )

    @on(WindowCounterProposed)
    def on_window_counter_proposed(self, event):
        self._append(
            event.order_id,
            {
                "event": "window_counter_proposed",
                "actor": event.proposed_by,
                "details": {
                    "window_start": _iso(event.window_start),
                    "window_end": _iso(event.window_end),
                    "round": event.round,
                },
            },
            event.proposed_at,
        )

    @on(WindowAccepted)
    def on_window_accepted(self, event):
        self._append(
            event.order_id,
            {
                "event": "window_accepted",
                "actor": event.accepted_by,
                "details": {"window_start": _iso(event.window_start), "window_end": _iso(event.window_end)},
            },
            event.accepted_at,
            status=event.status,
        )

    @on(WindowRejected)
    def on_window_rejected(self, event):
        self._append(
            event.order_id,
            {"event": "window_rejected", "actor": event.rejected_by, "details": {}},
            event.rejected_at,
        )

    @on(TransitStarted)
    def on_transit_started(self, event):
        self._append(
            event.order_id,
            {"event": "transit_started", "actor": "supplier", "details": {"delivery_mode": event.delivery_mode}},
            event.started_at,
            status="in_transit",
        )

    @on(HandoverRecorded)
    def on_handover_recorded(self, event):
        self._append(
            event.order_id,
            {
                "event": "handover_recorded",
                "actor": event.recorded_by,
                "details": {
                    "handover_id": str(event.handover_id),
                    "kind": event.kind,
                    "confirmation_deadline": _iso(event.confirmation_deadline),
                },
            },
            event.occurred_at,
            status="delivered",
        )

    @on(DeliveryConfirmed)
    def on_delivery_confirmed(self, event):
        self._append(
            event.order_id,
            {"event": "delivery_confirmed", "actor": event.confirmed_by, "details": {}},
            event.confirmed_at,
            status="completed",
        )

    @on(IssueReported)
    def on_issue_reported(self, event):
        self._append(
            event.order_id,
            {
                "event": "issue_reported",
                "actor": event.reported_by,
                "details": {"category": event.category},
            },
            event.reported_at,
            status="disputed",
        )

    @on(HandoverAutoCompleted)
    def on_handover_auto_completed(self, event):
        self._append(
            event.order_id,
            {"event": "auto_completed", "actor": "system", "details": {"reason": event.reason}},
            event.completed_at,
            status="completed",
        )

    @on(OrderCancelled)
    def on_order_cancelled(self, event):
        self._append(
            event.order_id,
            {"event": "order_cancelled", "actor": event.cancelled_by, "details": {"reason": event.reason}},
            event.cancelled_at,
            status="cancelled",
        )
