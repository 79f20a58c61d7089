"""Handover auto-completion: the deadline scanner and its commands.

``fire_due_timers`` is triggered periodically by ``src/scheduler.py`` or the
maintenance API endpoint. Every pass re-derives due work from the persisted
ConfirmationTimer records, so a restarted process picks up exactly where the
previous one stopped. Each due timer is fired through AutoCompleteHandover,
which only acts if the handover is still open: a buyer confirming at the last
instant and the timer firing resolve the handover exactly once.

The scan is a plain function rather than a command handler. Every firing and
every failure record is its own top-level command with its own unit of work,
so one failing timer never rolls back the rest of the pass.
"""

import structlog
from protean import handle
from protean.exceptions import InvalidOperationError, ObjectNotFoundError, ValidationError
from protean.fields import DateTime, Identifier, Text
from protean.utils.globals import current_domain

from procurement.domain import procurement
from procurement.order.guard import dispatch
from procurement.order.order import Order, OrderStatus
from procurement.timer.timer import ConfirmationTimer, TimerOutcome, TimerStatus
from procurement.utils import clock

logger = structlog.get_logger(__name__)


@procurement.command(part_of="Order")
class AutoCompleteHandover:
    """Resolve a handover as auto-completed if it is still open."""

    order_id = Identifier(required=True)
    handover_id = Identifier(required=True)
    as_of = DateTime()  # Optional: defaults to now


@procurement.command(part_of="ConfirmationTimer")
class RecordTimerFailure:
    """Note a failed firing on a timer; it stays scheduled for the next scan."""

    timer_id = Identifier(required=True)
    error = Text(required=True)
    as_of = DateTime()


@procurement.command(part_of="ConfirmationTimer")
class ResyncConfirmationTimers:
    """Recreate missing timers for open handovers from their persisted deadlines."""


@procurement.command_handler(part_of=Order)
class AutoCompleteHandoverHandler:
    @handle(AutoCompleteHandover)
    def auto_complete_handover(self, command):
        as_of = clock.as_utc(command.as_of) or clock.utcnow()

        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        completed = order.auto_complete_handover(command.handover_id, now=as_of)
        if completed:
            repo.add(order)

        timer_repo = current_domain.repository_for(ConfirmationTimer)
        try:
            timer = timer_repo.get(command.handover_id)
        except ObjectNotFoundError:
            timer = None
        if timer is not None and timer.is_scheduled:
            timer.mark_fired(
                TimerOutcome.AUTO_COMPLETED if completed else TimerOutcome.ALREADY_RESOLVED,
                now=as_of,
            )
            timer_repo.add(timer)

        logger.info(
            "Handover auto-completed" if completed else "Handover already resolved, nothing to do",
            order_id=str(command.order_id),
            handover_id=str(command.handover_id),
        )
        return completed


@procurement.command_handler(part_of=ConfirmationTimer)
class ConfirmationTimerHandler:
    @handle(RecordTimerFailure)
    def record_failure(self, command):
        repo = current_domain.repository_for(ConfirmationTimer)
        timer = repo.get(command.timer_id)
        if timer.is_scheduled:
            timer.record_failure(command.error, now=clock.as_utc(command.as_of) or clock.utcnow())
            repo.add(timer)

    @handle(ResyncConfirmationTimers)
    def resync_timers(self, command):
        order_repo = current_domain.repository_for(Order)
        timer_repo = current_domain.repository_for(ConfirmationTimer)

        awaiting = order_repo._dao.query.filter(status=OrderStatus.DELIVERED.value).all().items
        recreated = 0
        for order in awaiting:
            handover = order.open_handover
            if handover is None:
                continue
            existing = timer_repo._dao.query.filter(handover_id=str(handover.id)).all().items
            if existing:
                continue

            timer_repo.add(
                ConfirmationTimer.schedule(
                    order_id=str(order.id),
                    handover_id=str(handover.id),
                    due_at=handover.confirmation_deadline,
                )
            )
            recreated += 1
            logger.warning(
                "Recreated missing confirmation timer",
                order_id=str(order.id),
                handover_id=str(handover.id),
                due_at=str(handover.confirmation_deadline),
            )

        logger.info("Confirmation timer resync complete", recreated=recreated, awaiting=len(awaiting))
        return recreated


def due_timers(as_of) -> list[ConfirmationTimer]:
    repo = current_domain.repository_for(ConfirmationTimer)
    scheduled = repo._dao.query.filter(status=TimerStatus.SCHEDULED.value).all().items
    return sorted((t for t in scheduled if t.is_due(as_of)), key=lambda t: clock.as_utc(t.due_at))


def _record_failure(timer: ConfirmationTimer, error: str, as_of) -> None:
    try:
        current_domain.process(
            RecordTimerFailure(timer_id=str(timer.timer_id), error=error, as_of=as_of),
            asynchronous=False,
        )
    except Exception as exc:
        logger.error("Could not record timer failure", handover_id=str(timer.handover_id), error=str(exc))


def fire_due_timers(as_of=None) -> dict:
    """Fire every scheduled timer whose due time has passed.

    Returns counts of timers fired, handovers auto-completed and firings that
    failed. A failed timer keeps its schedule and is retried by the next pass.
    """
    as_of = clock.as_utc(as_of) or clock.utcnow()

    due = due_timers(as_of)
    if not due:
        logger.info("No confirmation timers due", as_of=as_of.isoformat())
        return {"fired": 0, "auto_completed": 0, "failed": 0}

    fired = auto_completed = failed = 0
    for timer in due:
        try:
            completed = dispatch(
                AutoCompleteHandover(
                    order_id=str(timer.order_id),
                    handover_id=str(timer.handover_id),
                    as_of=as_of,
                )
            )
            fired += 1
            auto_completed += 1 if completed else 0
        except (ValidationError, InvalidOperationError) as exc:
            failed += 1
            logger.warning(
                "Failed to fire confirmation timer",
                handover_id=str(timer.handover_id),
                order_id=str(timer.order_id),
                error=str(exc),
            )
            _record_failure(timer, str(exc), as_of)
        except Exception as exc:
            # Transient or persistence failure; the timer stays scheduled.
            failed += 1
            logger.error(
                "Confirmation timer firing errored",
                handover_id=str(timer.handover_id),
                order_id=str(timer.order_id),
                error=str(exc),
            )
            _record_failure(timer, str(exc), as_of)

    logger.info(
        "Confirmation timer scan complete",
        as_of=as_of.isoformat(),
        fired=fired,
        auto_completed=auto_completed,
        failed=failed,
    )
    return {"fired": fired, "auto_completed": auto_completed, "failed": failed}
