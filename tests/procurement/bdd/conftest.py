"""Shared BDD fixtures and step definitions for the procurement order lifecycle."""

from datetime import UTC, datetime, timedelta

import pytest
from protean.exceptions import ValidationError
from pytest_bdd import given, parsers, then

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
from procurement.order.order import Destination, Order
from procurement.utils.clock import as_utc

_ORDER_EVENT_CLASSES = {
    "OrderCreated": OrderCreated,
    "WindowProposed": WindowProposed,
    "WindowCounterProposed": WindowCounterProposed,
    "WindowAccepted": WindowAccepted,
    "WindowRejected": WindowRejected,
    "TransitStarted": TransitStarted,
    "HandoverRecorded": HandoverRecorded,
    "DeliveryConfirmed": DeliveryConfirmed,
    "IssueReported": IssueReported,
    "HandoverAutoCompleted": HandoverAutoCompleted,
    "OrderCancelled": OrderCancelled,
}

_ERROR_TYPES = {
    "a conflict": OrderConflictError,
    "unauthorized": OrderAuthorizationError,
    "invalid": ValidationError,
}

NOW = datetime(2026, 4, 6, 8, 0, tzinfo=UTC)
HANDOVER_AT = NOW + timedelta(days=1, hours=1)
PARTY_IDS = {"buyer": "buyer-bdd", "supplier": "supplier-bdd"}


def _new_order(order_type="material"):
    return Order.create(
        actor_role="buyer",
        actor_id=PARTY_IDS["buyer"],
        buyer_id=PARTY_IDS["buyer"],
        supplier_id=PARTY_IDS["supplier"],
        items_data=[
            {"description": "Aerated concrete block 600x300x200", "quantity": 900, "unit": "piece", "unit_price": 4.2}
        ],
        total_amount=3780.0,
        grand_total=3900.0,
        delivery_fee=120.0,
        order_type=order_type,
        destination=Destination(address="Gldani, building site 4, Tbilisi"),
        now=NOW,
    )


def _agree_window(order):
    start = NOW + timedelta(days=1)
    order.propose_window("supplier", PARTY_IDS["supplier"], start, start + timedelta(hours=4), now=NOW)
    order.accept_window("buyer", PARTY_IDS["buyer"], now=NOW)


@pytest.fixture()
def error():
    """Container for the rejection raised by an attempted action."""
    return {"exc": None}


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given("a pending order", target_fixture="order")
def pending_order():
    order = _new_order()
    order._events.clear()
    return order


@given("a confirmed material order", target_fixture="order")
def confirmed_material_order():
    order = _new_order()
    _agree_window(order)
    order._events.clear()
    return order


@given("a confirmed rental order", target_fixture="order")
def confirmed_rental_order():
    order = _new_order(order_type="rental")
    _agree_window(order)
    order._events.clear()
    return order


@given("a delivered material order", target_fixture="order")
def delivered_material_order():
    order = _new_order()
    _agree_window(order)
    order.begin_transit("supplier", PARTY_IDS["supplier"], now=HANDOVER_AT - timedelta(hours=1))
    order.mark_handover_complete(
        "supplier",
        PARTY_IDS["supplier"],
        ["evidence/blocks-pallets.jpg"],
        quantities={"Aerated concrete block 600x300x200": 900},
        now=HANDOVER_AT,
    )
    order._events.clear()
    return order


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then(parsers.cfparse('the order status is "{status}"'))
def order_status_is(order, status):
    assert order.status == status


@then(parsers.cfparse('the proposal status is "{status}"'))
def proposal_status_is(order, status):
    assert order.proposal_status == status


@then(parsers.cfparse('the handover resolution is "{resolution}"'))
def handover_resolution_is(order, resolution):
    assert order.handovers, "No handover recorded"
    assert order.handovers[-1].resolution == resolution


@then(parsers.cfparse("the action is rejected as {kind}"))
def action_rejected(error, kind):
    assert error["exc"] is not None, "Expected the action to be rejected but it succeeded"
    assert isinstance(error["exc"], _ERROR_TYPES[kind]), f"Unexpected rejection: {error['exc']!r}"


@then(parsers.cfparse("a {event_type} event is raised"))
def order_event_raised(order, event_type):
    event_cls = _ORDER_EVENT_CLASSES[event_type]
    assert any(
        isinstance(e, event_cls) for e in order._events
    ), f"No {event_type} event found. Events: {[type(e).__name__ for e in order._events]}"


@then(parsers.cfparse("no {event_type} event is raised"))
def order_event_not_raised(order, event_type):
    event_cls = _ORDER_EVENT_CLASSES[event_type]
    assert not any(isinstance(e, event_cls) for e in order._events)


@then(parsers.cfparse("the confirmation deadline is {hours:d} hours after the handover"))
def confirmation_deadline_is(order, hours):
    handover = order.handovers[-1]
    assert as_utc(handover.confirmation_deadline) - as_utc(handover.occurred_at) == timedelta(hours=hours)


@pytest.fixture()
def now():
    return NOW


@pytest.fixture()
def handover_at():
    return HANDOVER_AT


@pytest.fixture()
def parties():
    return PARTY_IDS
