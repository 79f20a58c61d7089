"""Order fixtures driven through the command handlers."""

import json
from datetime import timedelta

import pytest
from protean import current_domain

from procurement.order.creation import CreateOrder
from procurement.order.guard import dispatch
from procurement.order.handover import MarkHandoverComplete
from procurement.order.negotiation import AcceptWindow, ProposeWindow
from procurement.order.transit import BeginTransit
from procurement.utils import clock

BUYER = "buyer-001"
SUPPLIER = "supplier-001"


@pytest.fixture()
def place_order():
    def _place(**overrides):
        payload = {
            "actor_id": BUYER,
            "actor_role": "buyer",
            "buyer_id": BUYER,
            "supplier_id": SUPPLIER,
            "items": json.dumps(
                [{"description": "Ready-mix concrete B25", "quantity": 6, "unit": "m3", "unit_price": 210.0}]
            ),
            "total_amount": 1260.0,
            "grand_total": 1380.0,
            "delivery_fee": 120.0,
            "address": "Block C, Lisi Lake residential site, Tbilisi",
        }
        payload.update(overrides)
        return current_domain.process(CreateOrder(**payload), asynchronous=False)

    return _place


@pytest.fixture()
def window():
    start = clock.utcnow() + timedelta(days=1)
    return start, start + timedelta(hours=4)


@pytest.fixture()
def confirm_window(window):
    def _confirm(order_id, proposer="supplier"):
        accepter = "buyer" if proposer == "supplier" else "supplier"
        dispatch(
            ProposeWindow(
                order_id=order_id,
                actor_id=SUPPLIER if proposer == "supplier" else BUYER,
                actor_role=proposer,
                window_start=window[0],
                window_end=window[1],
            )
        )
        return dispatch(
            AcceptWindow(order_id=order_id, actor_id=BUYER if accepter == "buyer" else SUPPLIER, actor_role=accepter)
        )

    return _confirm


@pytest.fixture()
def confirmed_order(place_order, confirm_window):
    order = place_order()
    return confirm_window(order["order_id"])


@pytest.fixture()
def in_transit_order(confirmed_order):
    return dispatch(BeginTransit(order_id=confirmed_order["order_id"], actor_id=SUPPLIER, actor_role="supplier"))


@pytest.fixture()
def delivered_order(in_transit_order):
    return dispatch(
        MarkHandoverComplete(
            order_id=in_transit_order["order_id"],
            actor_id=SUPPLIER,
            actor_role="supplier",
            photos=json.dumps(["evidence/pour-1.jpg", "evidence/pour-2.jpg"]),
            quantities=json.dumps({"Ready-mix concrete B25": 6}),
        )
    )


@pytest.fixture()
def rental_order(place_order, confirm_window):
    order = place_order(
        order_type="rental",
        delivery_mode="pickup",
        address=None,
        items=json.dumps([{"description": "Mini excavator 1.8t", "quantity": 3, "unit": "day", "unit_price": 250.0}]),
        total_amount=750.0,
        grand_total=750.0,
        delivery_fee=0.0,
    )
    return confirm_window(order["order_id"])
