"""Typed errors raised by the procurement order state machine.

Validation failures use Protean's ``ValidationError`` directly. The two
types below cover the remaining rejections callers must be able to tell
apart: the actor is not allowed to act, or the order is no longer in a state
where the operation applies.
"""

from protean.exceptions import InvalidOperationError, ProteanException


class OrderAuthorizationError(ProteanException):
    """The actor's role or identity does not permit the operation."""

    def __init__(self, reason: str, order_id: str | None = None):
        self.reason = reason
        self.order_id = order_id
        super().__init__({"authorization": [reason]})


class OrderConflictError(InvalidOperationError):
    """The operation is not applicable to the order's current state.

    Carries the order id so the API layer can return the authoritative order
    summary alongside the reason, letting the caller resync.
    """

    def __init__(self, reason: str, order_id: str | None = None):
        self.reason = reason
        self.order_id = order_id
        super().__init__({"conflict": [reason]})
