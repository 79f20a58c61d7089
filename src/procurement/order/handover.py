"""Handover recording: command and handler.

Recording a handover moves the order to ``delivered`` and schedules the
confirmation timer in the same unit of work, keyed by the handover id.
"""

import json

import structlog
from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Identifier, String, Text
from protean.utils.globals import current_domain

from procurement.domain import procurement
from procurement.evidence import get_evidence_store
from procurement.order.order import Order
from procurement.timer.timer import ConfirmationTimer

logger = structlog.get_logger(__name__)


@procurement.command(part_of="Order")
class MarkHandoverComplete:
    """Record the physical handover of goods or rented equipment."""

    order_id = Identifier(required=True)
    actor_id = Identifier(required=True)
    actor_role = String(required=True, max_length=50)
    photos = Text(required=True)  # JSON list of evidence references
    quantities = Text()  # JSON object, required for deliveries
    condition = Text()  # JSON object, required for rental handovers
    notes = Text()


def _load_json(value, field: str):
    if value is None or not isinstance(value, str):
        return value
    try:
        return json.loads(value)
    except json.JSONDecodeError:
        raise ValidationError({field: ["Must be valid JSON"]}) from None


def verify_evidence(references: list[str], field: str = "photos") -> list[str]:
    """Reject references the evidence store does not recognise."""
    store = get_evidence_store()
    unknown = [ref for ref in references if not store.accepts(ref)]
    if unknown:
        raise ValidationError({field: [f"Unknown evidence reference(s): {', '.join(unknown)}"]})
    return references


@procurement.command_handler(part_of=Order)
class HandoverHandler:
    @handle(MarkHandoverComplete)
    def mark_handover_complete(self, command):
        photos = _load_json(command.photos, "photos") or []
        if not isinstance(photos, list):
            raise ValidationError({"photos": ["Photos must be a list of references"]})

        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        handover = order.mark_handover_complete(
            actor_role=command.actor_role,
            actor_id=command.actor_id,
            photos=photos,
            quantities=_load_json(command.quantities, "quantities"),
            condition=_load_json(command.condition, "condition"),
            notes=command.notes,
        )
        # Evidence is checked once the order has accepted the handover, so
        # authorization and state conflicts are reported first
        verify_evidence(handover.photo_references)
        repo.add(order)

        timer = ConfirmationTimer.schedule(
            order_id=str(order.id),
            handover_id=str(handover.id),
            due_at=handover.confirmation_deadline,
        )
        current_domain.repository_for(ConfirmationTimer).add(timer)
        logger.info(
            "Confirmation timer scheduled",
            order_id=str(order.id),
            handover_id=str(handover.id),
            due_at=str(handover.confirmation_deadline),
        )
        return order.summary()
