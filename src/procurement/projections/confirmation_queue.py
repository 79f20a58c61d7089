"""Confirmation queue: handovers awaiting the counterparty's response.

Operations staff watch this queue to chase buyers before a handover
auto-completes.
"""

from datetime import datetime, timedelta

from protean.core.projector import on
from protean.fields import DateTime, Identifier, String
from protean.utils.globals import current_domain

from procurement.domain import procurement
from procurement.order.events import (
    DeliveryConfirmed,
    HandoverAutoCompleted,
    HandoverRecorded,
    IssueReported,
)
from procurement.order.order import Order
from procurement.utils import clock

AWAITING = "awaiting"


@procurement.projection
class ConfirmationQueueEntry:
    handover_id = Identifier(identifier=True, required=True)
    order_id = Identifier(required=True)
    order_number = String()
    buyer_id = Identifier(required=True)
    supplier_id = Identifier(required=True)
    kind = String(required=True)
    recorded_by = String(required=True)
    occurred_at = DateTime(required=True)
    confirmation_deadline = DateTime(required=True)
    status = String(required=True, default=AWAITING)
    resolved_at = DateTime()


def expiring_within(hours: float, as_of: datetime | None = None) -> list[ConfirmationQueueEntry]:
    """Awaiting handovers whose deadline falls within ``hours`` of ``as_of``, soonest first.

    Overdue handovers the scanner has not fired yet are included.
    """
    as_of = clock.as_utc(as_of) or clock.utcnow()
    horizon = as_of + timedelta(hours=hours)
    entries = current_domain.repository_for(ConfirmationQueueEntry)._dao.query.filter(status=AWAITING).all().items
    due = [e for e in entries if clock.as_utc(e.confirmation_deadline) <= horizon]
    return sorted(due, key=lambda e: clock.as_utc(e.confirmation_deadline))


@procurement.projector(projector_for=ConfirmationQueueEntry, aggregates=[Order])
class ConfirmationQueueProjector:
    @on(HandoverRecorded)
    def on_handover_recorded(self, event):
        current_domain.repository_for(ConfirmationQueueEntry).add(
            ConfirmationQueueEntry(
                handover_id=event.handover_id,
                order_id=event.order_id,
                order_number=event.order_number,
                buyer_id=event.buyer_id,
                supplier_id=event.supplier_id,
                kind=event.kind,
                recorded_by=event.recorded_by,
                occurred_at=event.occurred_at,
                confirmation_deadline=event.confirmation_deadline,
                status=AWAITING,
            )
        )

    def _resolve(self, handover_id, status: str, resolved_at):
        repo = current_domain.repository_for(ConfirmationQueueEntry)
        entry = repo.get(handover_id)
        entry.status = status
        entry.resolved_at = resolved_at
        repo.add(entry)

    @on(DeliveryConfirmed)
    def on_delivery_confirmed(self, event):
        self._resolve(event.handover_id, "confirmed", event.confirmed_at)

    @on(IssueReported)
    def on_issue_reported(self, event):
        self._resolve(event.handover_id, "disputed", event.reported_at)

    @on(HandoverAutoCompleted)
    def on_handover_auto_completed(self, event):
        self._resolve(event.handover_id, "auto_completed", event.completed_at)
