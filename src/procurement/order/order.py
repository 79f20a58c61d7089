"""Order aggregate (CQRS): the core of the procurement domain.

The Order aggregate owns the fulfillment lifecycle of a single order placed by
a buyer with a supplier: delivery-window negotiation, dispatch, the physical
handover and its time-boxed confirmation. Handovers are child entities so that
a buyer's confirmation and the deadline scanner's auto-completion contend for
the same aggregate version and resolve a handover exactly once.

State Machine:
    PENDING → CONFIRMED → IN_TRANSIT → DELIVERED → {COMPLETED, DISPUTED}
    CONFIRMED → DELIVERED                      (rental handover)
    {PENDING, CONFIRMED} → CANCELLED            (only before any handover)

Window Negotiation:
    {NONE, REJECTED, ACCEPTED} --propose--> PENDING
    PENDING --counter--> PENDING (author flips)
    PENDING --accept--> ACCEPTED (proposed window becomes the promised window)
    PENDING --reject--> REJECTED
"""

import json
from datetime import datetime, timedelta
from enum import Enum
from uuid import uuid4

from protean import atomic_change, invariant
from protean.exceptions import ValidationError
from protean.fields import (
    DateTime,
    Float,
    HasMany,
    Identifier,
    Integer,
    String,
    Text,
    ValueObject,
)

from procurement.domain import procurement
from procurement.errors import OrderAuthorizationError, OrderConflictError
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
from procurement.utils import clock


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class OrderStatus(Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    IN_TRANSIT = "in_transit"
    DELIVERED = "delivered"
    COMPLETED = "completed"
    DISPUTED = "disputed"
    CANCELLED = "cancelled"


class OrderType(Enum):
    MATERIAL = "material"
    RENTAL = "rental"


class DeliveryMode(Enum):
    PICKUP = "pickup"
    DELIVERY = "delivery"


class PartyRole(Enum):
    BUYER = "buyer"
    SUPPLIER = "supplier"


class ProposalStatus(Enum):
    NONE = "none"
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


class HandoverKind(Enum):
    DELIVERY = "delivery"
    RENTAL_HANDOVER = "rental_handover"


class HandoverResolution(Enum):
    OPEN = "open"
    CONFIRMED = "confirmed"
    DISPUTED = "disputed"
    AUTO_COMPLETED = "auto_completed"


class IssueCategory(Enum):
    QUANTITY_MISMATCH = "quantity_mismatch"
    QUALITY_ISSUE = "quality_issue"
    SPECIFICATION_MISMATCH = "specification_mismatch"
    DAMAGE = "damage"
    LATE_DELIVERY = "late_delivery"
    WRONG_ITEM = "wrong_item"
    OTHER = "other"


class Operation(Enum):
    CREATE = "create"
    PROPOSE_WINDOW = "propose_window"
    ACCEPT_WINDOW = "accept_window"
    COUNTER_PROPOSE_WINDOW = "counter_propose_window"
    REJECT_WINDOW = "reject_window"
    BEGIN_TRANSIT = "begin_transit"
    RECORD_DELIVERY = "record_delivery"
    RECORD_RENTAL_HANDOVER = "record_rental_handover"
    CONFIRM_DELIVERY = "confirm_delivery"
    REPORT_ISSUE = "report_issue"
    CANCEL = "cancel"


AUTO_COMPLETED_REASON = "auto-completed"

CONFIRMATION_WINDOWS = {
    HandoverKind.DELIVERY: timedelta(hours=24),
    HandoverKind.RENTAL_HANDOVER: timedelta(hours=2),
}

_BOTH_PARTIES = frozenset({PartyRole.BUYER, PartyRole.SUPPLIER})

_VALID_TRANSITIONS = {
    OrderStatus.PENDING: {OrderStatus.CONFIRMED, OrderStatus.CANCELLED},
    OrderStatus.CONFIRMED: {OrderStatus.IN_TRANSIT, OrderStatus.DELIVERED, OrderStatus.CANCELLED},
    OrderStatus.IN_TRANSIT: {OrderStatus.DELIVERED},
    OrderStatus.DELIVERED: {OrderStatus.COMPLETED, OrderStatus.DISPUTED},
    OrderStatus.COMPLETED: set(),  # terminal
    OrderStatus.DISPUTED: set(),  # terminal, mediated outside this context
    OrderStatus.CANCELLED: set(),  # terminal
}

# Who may attempt each operation. Confirmation and issue reporting are further
# narrowed to the counterparty of whoever recorded the handover.
_ALLOWED_ROLES = {
    Operation.CREATE: _BOTH_PARTIES,
    Operation.PROPOSE_WINDOW: _BOTH_PARTIES,
    Operation.ACCEPT_WINDOW: _BOTH_PARTIES,
    Operation.COUNTER_PROPOSE_WINDOW: _BOTH_PARTIES,
    Operation.REJECT_WINDOW: _BOTH_PARTIES,
    Operation.BEGIN_TRANSIT: frozenset({PartyRole.SUPPLIER}),
    Operation.RECORD_DELIVERY: frozenset({PartyRole.SUPPLIER}),
    Operation.RECORD_RENTAL_HANDOVER: _BOTH_PARTIES,
    Operation.CONFIRM_DELIVERY: _BOTH_PARTIES,
    Operation.REPORT_ISSUE: _BOTH_PARTIES,
    Operation.CANCEL: _BOTH_PARTIES,
}

# Order statuses from which each operation may be attempted.
_SOURCE_STATUSES = {
    Operation.PROPOSE_WINDOW: {OrderStatus.PENDING, OrderStatus.CONFIRMED},
    Operation.ACCEPT_WINDOW: {OrderStatus.PENDING, OrderStatus.CONFIRMED},
    Operation.COUNTER_PROPOSE_WINDOW: {OrderStatus.PENDING, OrderStatus.CONFIRMED},
    Operation.REJECT_WINDOW: {OrderStatus.PENDING, OrderStatus.CONFIRMED},
    Operation.BEGIN_TRANSIT: {OrderStatus.CONFIRMED},
    Operation.RECORD_DELIVERY: {OrderStatus.IN_TRANSIT},
    Operation.RECORD_RENTAL_HANDOVER: {OrderStatus.CONFIRMED},
    Operation.CONFIRM_DELIVERY: {OrderStatus.DELIVERED},
    Operation.REPORT_ISSUE: {OrderStatus.DELIVERED},
    Operation.CANCEL: {OrderStatus.PENDING, OrderStatus.CONFIRMED},
}

_OPERATION_LABELS = {
    Operation.CREATE: "create",
    Operation.PROPOSE_WINDOW: "propose a window for",
    Operation.ACCEPT_WINDOW: "accept a window for",
    Operation.COUNTER_PROPOSE_WINDOW: "counter-propose a window for",
    Operation.REJECT_WINDOW: "reject a window for",
    Operation.BEGIN_TRANSIT: "begin transit of",
    Operation.RECORD_DELIVERY: "record delivery of",
    Operation.RECORD_RENTAL_HANDOVER: "record a rental handover for",
    Operation.CONFIRM_DELIVERY: "confirm delivery of",
    Operation.REPORT_ISSUE: "report an issue on",
    Operation.CANCEL: "cancel",
}


def generate_order_number(now: datetime | None = None) -> str:
    """Human-readable order number in the ``ORD-YYYYMM-XXXXX`` format."""
    now = now or clock.utcnow()
    return f"ORD-{now:%Y%m}-{uuid4().hex[:5].upper()}"


def counterparty(role: PartyRole) -> PartyRole:
    return PartyRole.SUPPLIER if role == PartyRole.BUYER else PartyRole.BUYER


# ---------------------------------------------------------------------------
# Value Objects
# ---------------------------------------------------------------------------
@procurement.value_object(part_of="Order")
class Window:
    """A start/end time range for delivery or pickup."""

    start = DateTime(required=True)
    end = DateTime(required=True)

    @invariant.post
    def start_must_precede_end(self):
        if self.start and self.end and clock.as_utc(self.start) >= clock.as_utc(self.end):
            raise ValidationError({"window": ["Window start must be before window end"]})


@procurement.value_object(part_of="Order")
class Destination:
    """Where a delivery order is taken to.

    Coordinates are optional, but when given both must be present and in range.
    """

    address = String(required=True, max_length=500)
    latitude = Float(min_value=-90.0, max_value=90.0)
    longitude = Float(min_value=-180.0, max_value=180.0)

    @invariant.post
    def both_coordinates_or_none(self):
        if (self.latitude is None) != (self.longitude is None):
            raise ValidationError({"destination": ["Both latitude and longitude are required"]})


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
@procurement.entity(part_of="Order")
class LineItem:
    """A commercial line of the order. Opaque to the fulfillment lifecycle."""

    description = String(required=True, max_length=500)
    quantity = Float(required=True, min_value=0.0)
    unit = String(required=True, max_length=50)
    unit_price = Float(required=True, min_value=0.0)
    sku_id = Identifier()


@procurement.entity(part_of="Order")
class HandoverEvent:
    """A physical transfer of goods or rented equipment awaiting confirmation.

    Created once per handover attempt and resolved exactly once: by the
    counterparty confirming, by the counterparty reporting an issue, or by the
    confirmation deadline passing.
    """

    kind = String(required=True, choices=HandoverKind)
    recorded_by = String(required=True, choices=PartyRole)
    recorded_by_id = Identifier(required=True)
    occurred_at = DateTime(required=True)
    photos = Text(required=True)  # JSON list of evidence references
    quantities = Text()  # JSON object: line item -> delivered quantity
    condition = Text()  # JSON object: condition flags and readings
    notes = Text()
    confirmation_deadline = DateTime(required=True)
    resolution = String(choices=HandoverResolution, default=HandoverResolution.OPEN.value)
    resolved_at = DateTime()
    resolved_by = String(max_length=50)
    resolved_by_id = Identifier()
    resolution_reason = String(max_length=100)
    issue_category = String(max_length=50, choices=IssueCategory)
    issue_details = Text()
    issue_photos = Text()  # JSON list of evidence references

    @property
    def is_open(self) -> bool:
        return self.resolution == HandoverResolution.OPEN.value

    @property
    def photo_references(self) -> list[str]:
        return json.loads(self.photos) if self.photos else []

    def is_past_deadline(self, now: datetime) -> bool:
        return clock.as_utc(now) >= clock.as_utc(self.confirmation_deadline)


# ---------------------------------------------------------------------------
# Aggregate Root (CQRS)
# ---------------------------------------------------------------------------
@procurement.aggregate
class Order:
    order_number = String(required=True, max_length=30)
    buyer_id = Identifier(required=True)
    supplier_id = Identifier(required=True)
    order_type = String(choices=OrderType, default=OrderType.MATERIAL.value)
    status = String(choices=OrderStatus, default=OrderStatus.PENDING.value)

    # Commercial
    items = HasMany(LineItem)
    total_amount = Float(required=True, min_value=0.0)
    delivery_fee = Float(default=0.0, min_value=0.0)
    tax_amount = Float(default=0.0, min_value=0.0)
    grand_total = Float(required=True, min_value=0.0)
    currency = String(max_length=3, default="GEL")

    # Fulfillment
    delivery_mode = String(choices=DeliveryMode, default=DeliveryMode.DELIVERY.value)
    destination = ValueObject(Destination)

    # Scheduling
    promised_window = ValueObject(Window)
    proposed_window = ValueObject(Window)
    proposed_by = String(max_length=50, choices=PartyRole)
    proposal_status = String(choices=ProposalStatus, default=ProposalStatus.NONE.value)
    negotiation_rounds = Integer(default=0, min_value=0)

    handovers = HasMany(HandoverEvent)

    # Resolution bookkeeping
    confirmed_at = DateTime()
    in_transit_at = DateTime()
    delivered_at = DateTime()
    completed_at = DateTime()
    cancelled_at = DateTime()
    cancelled_by = String(max_length=50)
    cancellation_reason = String(max_length=500)

    buyer_notes = Text()
    supplier_notes = Text()

    created_at = DateTime()
    updated_at = DateTime()

    # -------------------------------------------------------------------
    # Invariants
    # -------------------------------------------------------------------
    @invariant.post
    def delivery_orders_need_a_destination(self):
        if self.delivery_mode == DeliveryMode.DELIVERY.value and not self.destination:
            raise ValidationError({"destination": ["A destination is required for delivery orders"]})

    @invariant.post
    def pending_proposal_has_author_and_window(self):
        if self.proposal_status == ProposalStatus.PENDING.value and not (self.proposed_window and self.proposed_by):
            raise ValidationError({"proposed_window": ["A pending proposal needs a window and an author"]})

    @invariant.post
    def at_most_one_open_handover(self):
        open_handovers = [h for h in (self.handovers or []) if h.is_open]
        if len(open_handovers) > 1:
            raise ValidationError({"handovers": ["An order can have at most one open handover"]})

    # -------------------------------------------------------------------
    # Factory method
    # -------------------------------------------------------------------
    @classmethod
    def create(
        cls,
        actor_role: str,
        actor_id: str,
        buyer_id: str,
        supplier_id: str,
        items_data: list[dict],
        total_amount: float,
        grand_total: float,
        order_type: str = OrderType.MATERIAL.value,
        delivery_mode: str = DeliveryMode.DELIVERY.value,
        destination: Destination | None = None,
        delivery_fee: float = 0.0,
        tax_amount: float = 0.0,
        currency: str = "GEL",
        buyer_notes: str | None = None,
        now: datetime | None = None,
    ):
        """Place a new order in the ``pending`` state on behalf of one of its parties."""
        if not items_data:
            raise ValidationError({"items": ["An order needs at least one line item"]})
        if str(buyer_id) == str(supplier_id):
            raise ValidationError({"supplier_id": ["Buyer and supplier must be different parties"]})

        now = now or clock.utcnow()
        order = cls(
            order_number=generate_order_number(now),
            buyer_id=buyer_id,
            supplier_id=supplier_id,
            order_type=order_type,
            delivery_mode=delivery_mode,
            destination=destination,
            total_amount=total_amount,
            grand_total=grand_total,
            delivery_fee=delivery_fee,
            tax_amount=tax_amount,
            currency=currency,
            buyer_notes=buyer_notes,
            status=OrderStatus.PENDING.value,
            proposal_status=ProposalStatus.NONE.value,
            created_at=now,
            updated_at=now,
        )
        role = order._authorize(Operation.CREATE, actor_role, actor_id)
        for item_data in items_data:
            order.add_items(LineItem(**item_data))

        order.raise_(
            OrderCreated(
                order_id=str(order.id),
                order_number=order.order_number,
                buyer_id=str(buyer_id),
                supplier_id=str(supplier_id),
                created_by=role.value,
                order_type=order_type,
                delivery_mode=delivery_mode,
                item_count=len(items_data),
                total_amount=total_amount,
                grand_total=grand_total,
                currency=currency,
                created_at=now,
            )
        )
        return order

    # -------------------------------------------------------------------
    # Authorization and state helpers
    # -------------------------------------------------------------------
    def party_id(self, role: PartyRole | str) -> str:
        return str(self.buyer_id) if PartyRole(role) == PartyRole.BUYER else str(self.supplier_id)

    def _authorize(self, operation: Operation, actor_role: str, actor_id: str) -> PartyRole:
        """Check the actor may attempt ``operation`` on this order.

        The role must be one of the operation's allowed roles, and the actor must
        be the party holding that role on this order.
        """
        try:
            role = PartyRole(actor_role)
        except ValueError:
            raise OrderAuthorizationError(f"Unknown actor role '{actor_role}'", order_id=str(self.id)) from None

        if role not in _ALLOWED_ROLES[operation]:
            raise OrderAuthorizationError(
                f"A {role.value} cannot {_OPERATION_LABELS[operation]} an order",
                order_id=str(self.id),
            )
        if str(actor_id) != self.party_id(role):
            raise OrderAuthorizationError(
                f"Actor is not the {role.value} on this order",
                order_id=str(self.id),
            )
        return role

    def _assert_operation_allowed(self, operation: Operation) -> None:
        current = OrderStatus(self.status)
        if current not in _SOURCE_STATUSES[operation]:
            raise OrderConflictError(
                f"Cannot {_OPERATION_LABELS[operation]} an order that is {current.value}",
                order_id=str(self.id),
            )

    def _assert_can_transition(self, target_status: OrderStatus) -> None:
        current = OrderStatus(self.status)
        if target_status not in _VALID_TRANSITIONS.get(current, set()):
            raise OrderConflictError(
                f"Cannot transition from {current.value} to {target_status.value}",
                order_id=str(self.id),
            )

    def _assert_counterparty_of_proposal(self, role: PartyRole, verb: str) -> None:
        if self.proposal_status != ProposalStatus.PENDING.value:
            raise OrderConflictError(
                f"There is no pending proposal to {verb} (proposal is {self.proposal_status})",
                order_id=str(self.id),
            )
        if self.proposed_by == role.value:
            raise OrderConflictError(
                f"A party cannot {verb} its own proposal",
                order_id=str(self.id),
            )

    def _validated_window(self, start: datetime, end: datetime, now: datetime) -> Window:
        if start is None or end is None:
            raise ValidationError({"window": ["Window start and end are required"]})
        if clock.as_utc(start) < clock.as_utc(now):
            raise ValidationError({"window": ["Window start cannot be in the past"]})
        return Window(start=start, end=end)

    @property
    def open_handover(self) -> HandoverEvent | None:
        return next((h for h in (self.handovers or []) if h.is_open), None)

    def handover(self, handover_id: str) -> HandoverEvent | None:
        return next((h for h in (self.handovers or []) if str(h.id) == str(handover_id)), None)

    # -------------------------------------------------------------------
    # Window negotiation
    # -------------------------------------------------------------------
    def propose_window(self, actor_role: str, actor_id: str, start: datetime, end: datetime, now=None) -> None:
        """Open a new negotiation round with a proposed window.

        Only legal when no proposal is pending. Proposing after an accepted
        window re-negotiates the promised window, which stays in force until a
        new proposal is accepted.
        """
        role = self._authorize(Operation.PROPOSE_WINDOW, actor_role, actor_id)
        self._assert_operation_allowed(Operation.PROPOSE_WINDOW)
        if self.proposal_status == ProposalStatus.PENDING.value:
            raise OrderConflictError(
                f"A proposal by the {self.proposed_by} is already pending; counter-propose or accept it instead",
                order_id=str(self.id),
            )

        now = now or clock.utcnow()
        window = self._validated_window(start, end, now)
        renegotiation = self.proposal_status == ProposalStatus.ACCEPTED.value

        with atomic_change(self):
            self.proposed_window = window
            self.proposed_by = role.value
            self.proposal_status = ProposalStatus.PENDING.value
            self.negotiation_rounds = (self.negotiation_rounds or 0) + 1
            self.updated_at = now

        self.raise_(
            WindowProposed(
                order_id=str(self.id),
                buyer_id=str(self.buyer_id),
                supplier_id=str(self.supplier_id),
                proposed_by=role.value,
                window_start=window.start,
                window_end=window.end,
                round=self.negotiation_rounds,
                renegotiation=renegotiation,
                proposed_at=now,
            )
        )

    def counter_propose_window(
        self, actor_role: str, actor_id: str, start: datetime, end: datetime, now=None
    ) -> None:
        """Replace the pending proposal with the counterparty's own window."""
        role = self._authorize(Operation.COUNTER_PROPOSE_WINDOW, actor_role, actor_id)
        self._assert_operation_allowed(Operation.COUNTER_PROPOSE_WINDOW)
        self._assert_counterparty_of_proposal(role, "counter")

        now = now or clock.utcnow()
        window = self._validated_window(start, end, now)
        previous = self.proposed_window

        with atomic_change(self):
            self.proposed_window = window
            self.proposed_by = role.value
            self.negotiation_rounds = (self.negotiation_rounds or 0) + 1
            self.updated_at = now

        self.raise_(
            WindowCounterProposed(
                order_id=str(self.id),
                buyer_id=str(self.buyer_id),
                supplier_id=str(self.supplier_id),
                proposed_by=role.value,
                previous_start=previous.start if previous else None,
                previous_end=previous.end if previous else None,
                window_start=window.start,
                window_end=window.end,
                round=self.negotiation_rounds,
                proposed_at=now,
            )
        )

    def accept_window(self, actor_role: str, actor_id: str, now=None) -> None:
        """Accept the pending proposal; a pending order becomes confirmed."""
        role = self._authorize(Operation.ACCEPT_WINDOW, actor_role, actor_id)
        self._assert_operation_allowed(Operation.ACCEPT_WINDOW)
        self._assert_counterparty_of_proposal(role, "accept")

        now = now or clock.utcnow()
        previous_status = self.status
        accepted = self.proposed_window
        confirms_order = OrderStatus(self.status) == OrderStatus.PENDING
        if confirms_order:
            self._assert_can_transition(OrderStatus.CONFIRMED)

        with atomic_change(self):
            self.promised_window = Window(start=accepted.start, end=accepted.end)
            self.proposal_status = ProposalStatus.ACCEPTED.value
            self.proposed_window = None
            self.proposed_by = None
            if confirms_order:
                self.status = OrderStatus.CONFIRMED.value
                self.confirmed_at = now
            self.updated_at = now

        self.raise_(
            WindowAccepted(
                order_id=str(self.id),
                buyer_id=str(self.buyer_id),
                supplier_id=str(self.supplier_id),
                accepted_by=role.value,
                window_start=accepted.start,
                window_end=accepted.end,
                previous_status=previous_status,
                status=self.status,
                accepted_at=now,
            )
        )

    def reject_window(self, actor_role: str, actor_id: str, now=None) -> None:
        """Reject the pending proposal; either party may then propose afresh."""
        role = self._authorize(Operation.REJECT_WINDOW, actor_role, actor_id)
        self._assert_operation_allowed(Operation.REJECT_WINDOW)
        self._assert_counterparty_of_proposal(role, "reject")

        now = now or clock.utcnow()
        rejected = self.proposed_window

        # The rejected window stays on the order for reference
        self.proposal_status = ProposalStatus.REJECTED.value
        self.updated_at = now

        self.raise_(
            WindowRejected(
                order_id=str(self.id),
                buyer_id=str(self.buyer_id),
                supplier_id=str(self.supplier_id),
                rejected_by=role.value,
                window_start=rejected.start if rejected else None,
                window_end=rejected.end if rejected else None,
                rejected_at=now,
            )
        )

    # -------------------------------------------------------------------
    # Dispatch
    # -------------------------------------------------------------------
    def begin_transit(self, actor_role: str, actor_id: str, now=None) -> None:
        """Supplier dispatches the order, or marks a pickup order ready for collection."""
        self._authorize(Operation.BEGIN_TRANSIT, actor_role, actor_id)
        self._assert_operation_allowed(Operation.BEGIN_TRANSIT)
        if self.order_type == OrderType.RENTAL.value:
            raise OrderConflictError(
                "Rental orders are handed over directly from confirmed",
                order_id=str(self.id),
            )
        if not self.promised_window:
            raise OrderConflictError("No window has been agreed for this order", order_id=str(self.id))
        if self.proposal_status == ProposalStatus.PENDING.value:
            raise OrderConflictError(
                f"A window re-negotiation by the {self.proposed_by} is pending; accept or reject it first",
                order_id=str(self.id),
            )
        self._assert_can_transition(OrderStatus.IN_TRANSIT)

        now = now or clock.utcnow()
        self.status = OrderStatus.IN_TRANSIT.value
        self.in_transit_at = now
        self.updated_at = now

        self.raise_(
            TransitStarted(
                order_id=str(self.id),
                buyer_id=str(self.buyer_id),
                supplier_id=str(self.supplier_id),
                delivery_mode=self.delivery_mode,
                window_start=self.promised_window.start,
                window_end=self.promised_window.end,
                started_at=now,
            )
        )

    # -------------------------------------------------------------------
    # Handover
    # -------------------------------------------------------------------
    def mark_handover_complete(
        self,
        actor_role: str,
        actor_id: str,
        photos: list[str],
        quantities: dict | None = None,
        condition: dict | None = None,
        notes: str | None = None,
        now=None,
    ) -> HandoverEvent:
        """Record the physical handover and start the confirmation deadline.

        Material orders are delivered (or picked up) by the supplier from
        ``in_transit`` with a delivered-quantities record. Rental orders are
        handed over by either party from ``confirmed`` with a condition record.
        """
        if self.order_type == OrderType.RENTAL.value:
            operation, kind = Operation.RECORD_RENTAL_HANDOVER, HandoverKind.RENTAL_HANDOVER
        else:
            operation, kind = Operation.RECORD_DELIVERY, HandoverKind.DELIVERY

        role = self._authorize(operation, actor_role, actor_id)
        if self.open_handover is not None:
            raise OrderConflictError("A handover is already awaiting confirmation", order_id=str(self.id))
        self._assert_operation_allowed(operation)
        if self.proposal_status == ProposalStatus.PENDING.value:
            raise OrderConflictError(
                f"A window re-negotiation by the {self.proposed_by} is pending; accept or reject it first",
                order_id=str(self.id),
            )
        self._assert_can_transition(OrderStatus.DELIVERED)

        photos = [p for p in (photos or []) if p]
        if not photos:
            raise ValidationError({"photos": ["At least one evidence photo is required"]})
        if kind == HandoverKind.DELIVERY and not quantities:
            raise ValidationError({"quantities": ["A delivered quantities record is required"]})
        if kind == HandoverKind.RENTAL_HANDOVER and not condition:
            raise ValidationError({"condition": ["A condition record is required for a rental handover"]})

        now = now or clock.utcnow()
        deadline = now + CONFIRMATION_WINDOWS[kind]
        handover = HandoverEvent(
            kind=kind.value,
            recorded_by=role.value,
            recorded_by_id=str(actor_id),
            occurred_at=now,
            photos=json.dumps(photos),
            quantities=json.dumps(quantities) if quantities else None,
            condition=json.dumps(condition) if condition else None,
            notes=notes,
            confirmation_deadline=deadline,
            resolution=HandoverResolution.OPEN.value,
        )

        with atomic_change(self):
            self.add_handovers(handover)
            self.status = OrderStatus.DELIVERED.value
            self.delivered_at = now
            self.updated_at = now

        self.raise_(
            HandoverRecorded(
                order_id=str(self.id),
                handover_id=str(handover.id),
                order_number=self.order_number,
                buyer_id=str(self.buyer_id),
                supplier_id=str(self.supplier_id),
                kind=kind.value,
                recorded_by=role.value,
                photo_count=len(photos),
                occurred_at=now,
                confirmation_deadline=deadline,
            )
        )
        return handover

    def _open_handover_for_response(self, operation: Operation, actor_role: str, actor_id: str, now):
        """Common legality checks for confirming or disputing a handover."""
        role = self._authorize(operation, actor_role, actor_id)
        self._assert_operation_allowed(operation)

        handover = self.open_handover
        if handover is None:
            raise OrderConflictError("There is no open handover on this order", order_id=str(self.id))
        if role.value == handover.recorded_by:
            raise OrderAuthorizationError(
                f"Only the {counterparty(role).value} can respond to a handover recorded by the {role.value}",
                order_id=str(self.id),
            )
        if handover.is_past_deadline(now):
            raise OrderConflictError(
                "Confirmation window has closed; the order is being auto-completed",
                order_id=str(self.id),
            )
        return role, handover

    def confirm_delivery(self, actor_role: str, actor_id: str, now=None) -> HandoverEvent:
        """The receiving party confirms the handover before its deadline."""
        now = now or clock.utcnow()
        role, handover = self._open_handover_for_response(Operation.CONFIRM_DELIVERY, actor_role, actor_id, now)
        self._assert_can_transition(OrderStatus.COMPLETED)

        with atomic_change(self):
            handover.resolution = HandoverResolution.CONFIRMED.value
            handover.resolved_at = now
            handover.resolved_by = role.value
            handover.resolved_by_id = str(actor_id)
            handover.resolution_reason = "confirmed"
            self.status = OrderStatus.COMPLETED.value
            self.completed_at = now
            self.updated_at = now

        self.raise_(
            DeliveryConfirmed(
                order_id=str(self.id),
                handover_id=str(handover.id),
                buyer_id=str(self.buyer_id),
                supplier_id=str(self.supplier_id),
                confirmed_by=role.value,
                confirmed_at=now,
            )
        )
        return handover

    def report_issue(
        self,
        actor_role: str,
        actor_id: str,
        category: str,
        details: str,
        photos: list[str] | None = None,
        now=None,
    ) -> HandoverEvent:
        """The receiving party disputes the handover; the order leaves for mediation."""
        now = now or clock.utcnow()
        role, handover = self._open_handover_for_response(Operation.REPORT_ISSUE, actor_role, actor_id, now)

        try:
            category = IssueCategory(category).value
        except ValueError:
            raise ValidationError({"category": [f"Unknown issue category '{category}'"]}) from None
        if not details or not details.strip():
            raise ValidationError({"details": ["Issue details are required"]})
        self._assert_can_transition(OrderStatus.DISPUTED)

        photos = [p for p in (photos or []) if p]
        with atomic_change(self):
            handover.resolution = HandoverResolution.DISPUTED.value
            handover.resolved_at = now
            handover.resolved_by = role.value
            handover.resolved_by_id = str(actor_id)
            handover.resolution_reason = "disputed"
            handover.issue_category = category
            handover.issue_details = details.strip()
            handover.issue_photos = json.dumps(photos) if photos else None
            self.status = OrderStatus.DISPUTED.value
            self.updated_at = now

        self.raise_(
            IssueReported(
                order_id=str(self.id),
                handover_id=str(handover.id),
                buyer_id=str(self.buyer_id),
                supplier_id=str(self.supplier_id),
                reported_by=role.value,
                category=category,
                details=details.strip(),
                photo_count=len(photos),
                reported_at=now,
            )
        )
        return handover

    def auto_complete_handover(self, handover_id: str, now=None) -> bool:
        """Resolve the handover as auto-completed if it is still open.

        Returns ``False`` when the handover was already resolved, leaving the
        order untouched. Raises a conflict if the deadline has not passed yet.
        """
        now = now or clock.utcnow()
        handover = self.handover(handover_id)
        if handover is None:
            raise ValidationError({"handover_id": ["Handover not found on this order"]})
        if not handover.is_open:
            return False
        if not handover.is_past_deadline(now):
            raise OrderConflictError("Confirmation deadline has not passed yet", order_id=str(self.id))
        self._assert_can_transition(OrderStatus.COMPLETED)

        with atomic_change(self):
            handover.resolution = HandoverResolution.AUTO_COMPLETED.value
            handover.resolved_at = now
            handover.resolved_by = "system"
            handover.resolution_reason = AUTO_COMPLETED_REASON
            self.status = OrderStatus.COMPLETED.value
            self.completed_at = now
            self.updated_at = now

        self.raise_(
            HandoverAutoCompleted(
                order_id=str(self.id),
                handover_id=str(handover.id),
                buyer_id=str(self.buyer_id),
                supplier_id=str(self.supplier_id),
                reason=AUTO_COMPLETED_REASON,
                confirmation_deadline=handover.confirmation_deadline,
                completed_at=now,
            )
        )
        return True

    # -------------------------------------------------------------------
    # Cancellation
    # -------------------------------------------------------------------
    def cancel(self, actor_role: str, actor_id: str, reason: str, now=None) -> None:
        """Cancel the order. Never possible once a handover has been recorded."""
        role = self._authorize(Operation.CANCEL, actor_role, actor_id)
        if self.handovers:
            raise OrderConflictError(
                "Cannot cancel an order after a handover; report an issue instead",
                order_id=str(self.id),
            )
        self._assert_operation_allowed(Operation.CANCEL)
        if not reason or not reason.strip():
            raise ValidationError({"reason": ["A cancellation reason is required"]})
        self._assert_can_transition(OrderStatus.CANCELLED)

        now = now or clock.utcnow()
        previous_status = self.status
        with atomic_change(self):
            self.status = OrderStatus.CANCELLED.value
            self.cancelled_at = now
            self.cancelled_by = role.value
            self.cancellation_reason = reason.strip()
            self.updated_at = now

        self.raise_(
            OrderCancelled(
                order_id=str(self.id),
                buyer_id=str(self.buyer_id),
                supplier_id=str(self.supplier_id),
                cancelled_by=role.value,
                reason=reason.strip(),
                previous_status=previous_status,
                cancelled_at=now,
            )
        )

    # -------------------------------------------------------------------
    # Summary
    # -------------------------------------------------------------------
    def summary(self) -> dict:
        """Plain-data view of the order returned by every operation."""

        def _window(window):
            if not window:
                return None
            return {"start": window.start, "end": window.end}

        handover = self.open_handover or (self.handovers[-1] if self.handovers else None)
        return {
            "order_id": str(self.id),
            "order_number": self.order_number,
            "buyer_id": str(self.buyer_id),
            "supplier_id": str(self.supplier_id),
            "order_type": self.order_type,
            "delivery_mode": self.delivery_mode,
            "status": self.status,
            "promised_window": _window(self.promised_window),
            "proposed_window": _window(self.proposed_window),
            "proposed_by": self.proposed_by,
            "proposal_status": self.proposal_status,
            "negotiation_rounds": self.negotiation_rounds or 0,
            "total_amount": self.total_amount,
            "grand_total": self.grand_total,
            "currency": self.currency,
            "handover": (
                {
                    "handover_id": str(handover.id),
                    "kind": handover.kind,
                    "recorded_by": handover.recorded_by,
                    "occurred_at": handover.occurred_at,
                    "confirmation_deadline": handover.confirmation_deadline,
                    "resolution": handover.resolution,
                    "resolution_reason": handover.resolution_reason,
                }
                if handover
                else None
            ),
            "updated_at": self.updated_at,
        }
