"""ConfirmationTimer aggregate: a durable deferred auto-completion task.

A timer is scheduled for every handover and shares the handover's id. It is
plain persisted data: the scanner re-derives due work from storage on every
pass, so a process restart never loses a deadline.

State Machine:
    SCHEDULED → FIRED
    SCHEDULED → CANCELLED
"""

from datetime import datetime
from enum import Enum

from protean.exceptions import ValidationError
from protean.fields import DateTime, Identifier, Integer, String, Text

from procurement.domain import procurement
from procurement.utils import clock


class TimerStatus(Enum):
    SCHEDULED = "scheduled"
    FIRED = "fired"
    CANCELLED = "cancelled"


class TimerOutcome(Enum):
    AUTO_COMPLETED = "auto_completed"
    ALREADY_RESOLVED = "already_resolved"


@procurement.aggregate
class ConfirmationTimer:
    timer_id = Identifier(identifier=True)
    order_id = Identifier(required=True)
    handover_id = Identifier(required=True)
    due_at = DateTime(required=True)
    status = String(choices=TimerStatus, default=TimerStatus.SCHEDULED.value)
    outcome = String(max_length=50, choices=TimerOutcome)
    attempts = Integer(default=0, min_value=0)
    last_error = Text()
    fired_at = DateTime()
    cancelled_at = DateTime()
    created_at = DateTime()
    updated_at = DateTime()

    @classmethod
    def schedule(cls, order_id: str, handover_id: str, due_at: datetime):
        now = clock.utcnow()
        return cls(
            timer_id=str(handover_id),
            order_id=str(order_id),
            handover_id=str(handover_id),
            due_at=due_at,
            status=TimerStatus.SCHEDULED.value,
            created_at=now,
            updated_at=now,
        )

    @property
    def is_scheduled(self) -> bool:
        return self.status == TimerStatus.SCHEDULED.value

    def is_due(self, as_of: datetime) -> bool:
        return self.is_scheduled and clock.as_utc(self.due_at) <= clock.as_utc(as_of)

    def _assert_scheduled(self) -> None:
        if not self.is_scheduled:
            raise ValidationError({"status": [f"Timer is already {self.status}"]})

    def mark_fired(self, outcome: TimerOutcome, now: datetime | None = None) -> None:
        self._assert_scheduled()
        now = now or clock.utcnow()
        self.status = TimerStatus.FIRED.value
        self.outcome = outcome.value
        self.attempts = (self.attempts or 0) + 1
        self.last_error = None
        self.fired_at = now
        self.updated_at = now

    def cancel(self, now: datetime | None = None) -> None:
        """Cancelled as a side effect of the counterparty responding in time."""
        self._assert_scheduled()
        now = now or clock.utcnow()
        self.status = TimerStatus.CANCELLED.value
        self.cancelled_at = now
        self.updated_at = now

    def record_failure(self, error: str, now: datetime | None = None) -> None:
        """Keep the timer scheduled so the next scan retries it."""
        now = now or clock.utcnow()
        self.attempts = (self.attempts or 0) + 1
        self.last_error = error[:2000]
        self.updated_at = now
