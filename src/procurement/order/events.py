"""Order domain events: immutable facts about order fulfillment.

Every event carries both party ids so that the notification trigger and the
projections can act without reloading the aggregate.
"""

from protean.fields import Boolean, DateTime, Float, Identifier, Integer, String, Text

from procurement.domain import procurement


@procurement.event(part_of="Order")
class OrderCreated:
    """An order was placed by a buyer with a supplier."""

    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    buyer_id = Identifier(required=True)
    supplier_id = Identifier(required=True)
    created_by = String(required=True)
    order_type = String(required=True)
    delivery_mode = String(required=True)
    item_count = Integer(required=True)
    total_amount = Float(required=True)
    grand_total = Float(required=True)
    currency = String(default="GEL")
    created_at = DateTime(required=True)


@procurement.event(part_of="Order")
class WindowProposed:
    """A party proposed a delivery or pickup window."""

    __version__ = 1

    order_id = Identifier(required=True)
    buyer_id = Identifier(required=True)
    supplier_id = Identifier(required=True)
    proposed_by = String(required=True)
    window_start = DateTime(required=True)
    window_end = DateTime(required=True)
    round = Integer(required=True)
    renegotiation = Boolean(default=False)
    proposed_at = DateTime(required=True)


@procurement.event(part_of="Order")
class WindowCounterProposed:
    """The counterparty replaced a pending proposal with its own window."""

    __version__ = 1

    order_id = Identifier(required=True)
    buyer_id = Identifier(required=True)
    supplier_id = Identifier(required=True)
    proposed_by = String(required=True)
    previous_start = DateTime()
    previous_end = DateTime()
    window_start = DateTime(required=True)
    window_end = DateTime(required=True)
    round = Integer(required=True)
    proposed_at = DateTime(required=True)


@procurement.event(part_of="Order")
class WindowAccepted:
    """The counterparty accepted the pending proposal; it is now the promised window."""

    __version__ = 1

    order_id = Identifier(required=True)
    buyer_id = Identifier(required=True)
    supplier_id = Identifier(required=True)
    accepted_by = String(required=True)
    window_start = DateTime(required=True)
    window_end = DateTime(required=True)
    previous_status = String(required=True)
    status = String(required=True)
    accepted_at = DateTime(required=True)


@procurement.event(part_of="Order")
class WindowRejected:
    """The counterparty rejected the pending proposal without countering."""

    __version__ = 1

    order_id = Identifier(required=True)
    buyer_id = Identifier(required=True)
    supplier_id = Identifier(required=True)
    rejected_by = String(required=True)
    window_start = DateTime()
    window_end = DateTime()
    rejected_at = DateTime(required=True)


@procurement.event(part_of="Order")
class TransitStarted:
    """The supplier dispatched the order (or made it ready for pickup)."""

    __version__ = 1

    order_id = Identifier(required=True)
    buyer_id = Identifier(required=True)
    supplier_id = Identifier(required=True)
    delivery_mode = String(required=True)
    window_start = DateTime()
    window_end = DateTime()
    started_at = DateTime(required=True)


@procurement.event(part_of="Order")
class HandoverRecorded:
    """Goods or rented equipment physically changed hands."""

    __version__ = 1

    order_id = Identifier(required=True)
    handover_id = Identifier(required=True)
    order_number = String()
    buyer_id = Identifier(required=True)
    supplier_id = Identifier(required=True)
    kind = String(required=True)
    recorded_by = String(required=True)
    photo_count = Integer(required=True)
    occurred_at = DateTime(required=True)
    confirmation_deadline = DateTime(required=True)


@procurement.event(part_of="Order")
class DeliveryConfirmed:
    """The receiving party confirmed the handover before the deadline."""

    __version__ = 1

    order_id = Identifier(required=True)
    handover_id = Identifier(required=True)
    buyer_id = Identifier(required=True)
    supplier_id = Identifier(required=True)
    confirmed_by = String(required=True)
    confirmed_at = DateTime(required=True)


@procurement.event(part_of="Order")
class IssueReported:
    """The receiving party disputed the handover; the order awaits mediation."""

    __version__ = 1

    order_id = Identifier(required=True)
    handover_id = Identifier(required=True)
    buyer_id = Identifier(required=True)
    supplier_id = Identifier(required=True)
    reported_by = String(required=True)
    category = String(required=True)
    details = Text(required=True)
    photo_count = Integer(default=0)
    reported_at = DateTime(required=True)


@procurement.event(part_of="Order")
class HandoverAutoCompleted:
    """The confirmation deadline passed without a response; the order completed itself."""

    __version__ = 1

    order_id = Identifier(required=True)
    handover_id = Identifier(required=True)
    buyer_id = Identifier(required=True)
    supplier_id = Identifier(required=True)
    reason = String(required=True)
    confirmation_deadline = DateTime(required=True)
    completed_at = DateTime(required=True)


@procurement.event(part_of="Order")
class OrderCancelled:
    """The order was cancelled before any handover took place."""

    __version__ = 1

    order_id = Identifier(required=True)
    buyer_id = Identifier(required=True)
    supplier_id = Identifier(required=True)
    cancelled_by = String(required=True)
    reason = String(required=True)
    previous_status = String(required=True)
    cancelled_at = DateTime(required=True)
