"""Handover confirmation and dispute: commands and handler.

Both responses are only accepted while the handover is open and its
confirmation deadline has not passed. Either one cancels the handover's
confirmation timer.
"""

import structlog
from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Identifier, String, Text
from protean.utils.globals import current_domain

from procurement.domain import procurement
from procurement.order.handover import _load_json, verify_evidence
from procurement.order.order import Order
from procurement.timer.timer import ConfirmationTimer

logger = structlog.get_logger(__name__)


@procurement.command(part_of="Order")
class ConfirmDelivery:
    """The receiving party confirms the handover."""

    order_id = Identifier(required=True)
    actor_id = Identifier(required=True)
    actor_role = String(required=True, max_length=50)


@procurement.command(part_of="Order")
class ReportIssue:
    """The receiving party disputes the handover."""

    order_id = Identifier(required=True)
    actor_id = Identifier(required=True)
    actor_role = String(required=True, max_length=50)
    category = String(required=True, max_length=50)
    details = Text(required=True)
    photos = Text()  # JSON list of evidence references


def cancel_confirmation_timer(handover_id: str) -> None:
    """Cancel the scheduled timer for a handover that has been answered."""
    repo = current_domain.repository_for(ConfirmationTimer)
    timers = repo._dao.query.filter(handover_id=str(handover_id)).all().items
    if not timers:
        logger.warning("No confirmation timer found for handover", handover_id=str(handover_id))
        return

    timer = timers[0]
    if timer.is_scheduled:
        timer.cancel()
        repo.add(timer)
        logger.info("Confirmation timer cancelled", handover_id=str(handover_id), order_id=str(timer.order_id))


@procurement.command_handler(part_of=Order)
class ConfirmationHandler:
    @handle(ConfirmDelivery)
    def confirm_delivery(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        handover = order.confirm_delivery(actor_role=command.actor_role, actor_id=command.actor_id)
        repo.add(order)
        cancel_confirmation_timer(handover.id)
        return order.summary()

    @handle(ReportIssue)
    def report_issue(self, command):
        photos = _load_json(command.photos, "photos") or []
        if not isinstance(photos, list):
            raise ValidationError({"photos": ["Photos must be a list of references"]})

        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        handover = order.report_issue(
            actor_role=command.actor_role,
            actor_id=command.actor_id,
            category=command.category,
            details=command.details,
            photos=photos,
        )
        if photos:
            verify_evidence(photos, field="photos")
        repo.add(order)
        cancel_confirmation_timer(handover.id)
        return order.summary()
