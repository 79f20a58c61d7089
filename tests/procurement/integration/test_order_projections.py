"""Integration tests for the order timeline and confirmation queue projections."""

import json
from datetime import timedelta

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from protean import current_domain

from procurement.api import confirmation_router, order_router, register_order_exception_handlers
from procurement.order.auto_completion import fire_due_timers
from procurement.order.confirmation import ConfirmDelivery, ReportIssue
from procurement.order.creation import CreateOrder
from procurement.order.guard import dispatch
from procurement.order.handover import MarkHandoverComplete
from procurement.order.negotiation import AcceptWindow, ProposeWindow
from procurement.order.queries import get_confirmation_queue
from procurement.order.transit import BeginTransit
from procurement.projections.confirmation_queue import ConfirmationQueueEntry, expiring_within
from procurement.projections.order_timeline import OrderTimeline, timeline_entries
from procurement.timer.timer import ConfirmationTimer
from procurement.utils import clock

BUYER = "buyer-001"
SUPPLIER = "supplier-001"


@pytest.fixture()
def client():
    app = FastAPI()
    app.include_router(order_router)
    app.include_router(confirmation_router)
    register_order_exception_handlers(app)
    return TestClient(app)


def _create_order(order_type="material"):
    rental = order_type == "rental"
    return current_domain.process(
        CreateOrder(
            actor_id=BUYER,
            actor_role="buyer",
            buyer_id=BUYER,
            supplier_id=SUPPLIER,
            order_type=order_type,
            delivery_mode="pickup" if rental else "delivery",
            items=json.dumps([{"description": "Roof tiles", "quantity": 800, "unit": "piece", "unit_price": 2.1}]),
            total_amount=1680.0,
            grand_total=1680.0,
            address=None if rental else "Saburtalo, Kazbegi Ave 15",
        ),
        asynchronous=False,
    )["order_id"]


def _confirm(order_id):
    start = clock.utcnow() + timedelta(days=1)
    dispatch(
        ProposeWindow(
            order_id=order_id,
            actor_id=SUPPLIER,
            actor_role="supplier",
            window_start=start,
            window_end=start + timedelta(hours=2),
        )
    )
    dispatch(AcceptWindow(order_id=order_id, actor_id=BUYER, actor_role="buyer"))


def _deliver(order_id):
    _confirm(order_id)
    dispatch(BeginTransit(order_id=order_id, actor_id=SUPPLIER, actor_role="supplier"))
    return dispatch(
        MarkHandoverComplete(
            order_id=order_id,
            actor_id=SUPPLIER,
            actor_role="supplier",
            photos=json.dumps(["evidence/tiles.jpg"]),
            quantities=json.dumps({"Roof tiles": 800}),
        )
    )


def _rental_handover(order_id):
    _confirm(order_id)
    return dispatch(
        MarkHandoverComplete(
            order_id=order_id,
            actor_id=SUPPLIER,
            actor_role="supplier",
            photos=json.dumps(["evidence/crane.jpg"]),
            condition=json.dumps({"hours_meter": 12}),
        )
    )


class TestOrderTimelineProjection:
    def test_timeline_created_with_order(self):
        order_id = _create_order()
        view = current_domain.repository_for(OrderTimeline).get(order_id)
        assert view.current_status == "pending"
        assert view.entry_count == 1
        assert timeline_entries(view)[0]["event"] == "order_created"

    def test_timeline_tracks_full_lifecycle(self):
        order_id = _create_order()
        _deliver(order_id)
        dispatch(ConfirmDelivery(order_id=order_id, actor_id=BUYER, actor_role="buyer"))

        view = current_domain.repository_for(OrderTimeline).get(order_id)
        events = [entry["event"] for entry in timeline_entries(view)]
        assert events == [
            "order_created",
            "window_proposed",
            "window_accepted",
            "transit_started",
            "handover_recorded",
            "delivery_confirmed",
        ]
        assert view.current_status == "completed"

    def test_entries_record_actor_and_status(self):
        order_id = _create_order()
        _confirm(order_id)
        entries = timeline_entries(current_domain.repository_for(OrderTimeline).get(order_id))
        proposed, accepted = entries[1], entries[2]
        assert proposed["actor"] == "supplier"
        assert proposed["status"] == "pending"
        assert accepted["actor"] == "buyer"
        assert accepted["status"] == "confirmed"

    def test_auto_completion_is_recorded(self):
        order_id = _create_order()
        summary = _deliver(order_id)
        deadline = clock.as_utc(summary["handover"]["confirmation_deadline"])
        fire_due_timers(as_of=deadline)

        view = current_domain.repository_for(OrderTimeline).get(order_id)
        last = timeline_entries(view)[-1]
        assert last["event"] == "auto_completed"
        assert last["actor"] == "system"
        assert last["details"]["reason"] == "auto-completed"


class TestConfirmationQueueProjection:
    def test_handover_enters_queue(self):
        order_id = _create_order()
        summary = _deliver(order_id)
        entry = current_domain.repository_for(ConfirmationQueueEntry).get(summary["handover"]["handover_id"])
        assert entry.status == "awaiting"
        assert str(entry.order_id) == order_id
        assert entry.kind == "delivery"

    def test_confirmation_leaves_queue(self):
        order_id = _create_order()
        summary = _deliver(order_id)
        dispatch(ConfirmDelivery(order_id=order_id, actor_id=BUYER, actor_role="buyer"))
        entry = current_domain.repository_for(ConfirmationQueueEntry).get(summary["handover"]["handover_id"])
        assert entry.status == "confirmed"
        assert expiring_within(48) == []

    def test_dispute_leaves_queue(self):
        order_id = _create_order()
        summary = _deliver(order_id)
        dispatch(
            ReportIssue(
                order_id=order_id,
                actor_id=BUYER,
                actor_role="buyer",
                category="quantity_mismatch",
                details="40 tiles missing",
            )
        )
        entry = current_domain.repository_for(ConfirmationQueueEntry).get(summary["handover"]["handover_id"])
        assert entry.status == "disputed"

    def test_expiring_within_filters_by_horizon(self):
        delivery_order = _create_order()
        _deliver(delivery_order)
        rental_order = _create_order(order_type="rental")
        _rental_handover(rental_order)

        soon = expiring_within(3)
        assert [str(e.order_id) for e in soon] == [rental_order]

        both = expiring_within(25)
        assert [str(e.order_id) for e in both] == [rental_order, delivery_order]

    def test_queue_query_reports_hours_remaining(self):
        order_id = _create_order(order_type="rental")
        _rental_handover(order_id)
        items = get_confirmation_queue(within_hours=6)
        assert len(items) == 1
        assert 1.9 <= items[0]["hours_remaining"] <= 2.0


class TestReadAPI:
    def test_timeline_endpoint(self, client):
        order_id = _create_order()
        _confirm(order_id)
        response = client.get(
            f"/orders/{order_id}/timeline",
            headers={"X-Actor-Id": SUPPLIER, "X-Actor-Role": "supplier"},
        )
        assert response.status_code == 200
        body = response.json()
        assert body["current_status"] == "confirmed"
        assert [e["event"] for e in body["entries"]] == ["order_created", "window_proposed", "window_accepted"]

    def test_timeline_is_private_to_parties(self, client):
        order_id = _create_order()
        response = client.get(
            f"/orders/{order_id}/timeline",
            headers={"X-Actor-Id": "supplier-999", "X-Actor-Role": "supplier"},
        )
        assert response.status_code == 403

    def test_confirmation_queue_endpoint(self, client):
        order_id = _create_order(order_type="rental")
        _rental_handover(order_id)
        response = client.get("/confirmations", params={"within_hours": 4})
        assert response.status_code == 200
        body = response.json()
        assert body["count"] == 1
        assert body["items"][0]["order_id"] == order_id
        assert body["items"][0]["kind"] == "rental_handover"

    def test_fire_timers_endpoint(self, client):
        order_id = _create_order(order_type="rental")
        summary = _rental_handover(order_id)
        deadline = clock.as_utc(summary["handover"]["confirmation_deadline"])

        response = client.post("/maintenance/confirmation-timers/fire", json={"as_of": deadline.isoformat()})

        assert response.status_code == 200
        assert response.json() == {"status": "ok", "fired": 1, "auto_completed": 1, "failed": 0}
        order = client.get(f"/orders/{order_id}", headers={"X-Actor-Id": BUYER, "X-Actor-Role": "buyer"}).json()
        assert order["status"] == "completed"
        assert order["handover"]["resolution_reason"] == "auto-completed"

    def test_fire_timers_endpoint_without_body(self, client):
        response = client.post("/maintenance/confirmation-timers/fire")
        assert response.status_code == 200
        assert response.json()["fired"] == 0

    def test_fire_timers_endpoint_survives_an_orphan_timer(self, client):
        order_id = _create_order(order_type="rental")
        summary = _rental_handover(order_id)
        deadline = clock.as_utc(summary["handover"]["confirmation_deadline"])
        current_domain.repository_for(ConfirmationTimer).add(
            ConfirmationTimer.schedule(order_id="deleted-order", handover_id="deleted-handover", due_at=deadline)
        )

        response = client.post("/maintenance/confirmation-timers/fire", json={"as_of": deadline.isoformat()})

        assert response.status_code == 200
        assert response.json() == {"status": "ok", "fired": 1, "auto_completed": 1, "failed": 1}
        order = client.get(f"/orders/{order_id}", headers={"X-Actor-Id": BUYER, "X-Actor-Role": "buyer"}).json()
        assert order["status"] == "completed"
