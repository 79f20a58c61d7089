"""Application tests for recording, confirming and disputing handovers."""

import json
from datetime import timedelta

import pytest
from protean import current_domain
from protean.exceptions import ValidationError

from procurement.errors import OrderAuthorizationError, OrderConflictError
from procurement.evidence import get_evidence_store
from procurement.order.confirmation import ConfirmDelivery, ReportIssue
from procurement.order.guard import dispatch
from procurement.order.handover import MarkHandoverComplete
from procurement.order.order import Order, OrderStatus
from procurement.timer.timer import ConfirmationTimer, TimerStatus
from procurement.utils.clock import as_utc

BUYER = "buyer-001"
SUPPLIER = "supplier-001"


def _record_delivery(order_id, photos=("evidence/pour-1.jpg",), quantities=None, actor=("supplier", SUPPLIER)):
    return dispatch(
        MarkHandoverComplete(
            order_id=order_id,
            actor_id=actor[1],
            actor_role=actor[0],
            photos=json.dumps(list(photos)),
            quantities=json.dumps(quantities or {"Ready-mix concrete B25": 6}),
        )
    )


def _timer_for(handover_id):
    return current_domain.repository_for(ConfirmationTimer).get(handover_id)


class TestMarkHandoverComplete:
    def test_handover_moves_order_to_delivered(self, in_transit_order):
        summary = _record_delivery(in_transit_order["order_id"])
        assert summary["status"] == "delivered"
        assert summary["handover"]["resolution"] == "open"
        assert summary["handover"]["kind"] == "delivery"

    def test_handover_schedules_timer_at_deadline(self, in_transit_order):
        summary = _record_delivery(in_transit_order["order_id"])
        handover = summary["handover"]

        timer = _timer_for(handover["handover_id"])
        assert timer.status == TimerStatus.SCHEDULED.value
        assert str(timer.order_id) == in_transit_order["order_id"]
        assert as_utc(timer.due_at) == as_utc(handover["confirmation_deadline"])

    def test_deadline_is_24_hours_after_handover(self, in_transit_order):
        handover = _record_delivery(in_transit_order["order_id"])["handover"]
        elapsed = as_utc(handover["confirmation_deadline"]) - as_utc(handover["occurred_at"])
        assert elapsed == timedelta(hours=24)

    def test_rental_handover_deadline_is_2_hours(self, rental_order):
        summary = dispatch(
            MarkHandoverComplete(
                order_id=rental_order["order_id"],
                actor_id=SUPPLIER,
                actor_role="supplier",
                photos=json.dumps(["evidence/excavator-front.jpg"]),
                condition=json.dumps({"hours_meter": 1450, "fuel": "3/4"}),
            )
        )
        handover = summary["handover"]
        assert handover["kind"] == "rental_handover"
        elapsed = as_utc(handover["confirmation_deadline"]) - as_utc(handover["occurred_at"])
        assert elapsed == timedelta(hours=2)

    def test_unknown_evidence_reference_rejected(self, in_transit_order):
        get_evidence_store().reject("evidence/missing.jpg")
        with pytest.raises(ValidationError) as exc:
            _record_delivery(in_transit_order["order_id"], photos=["evidence/missing.jpg"])
        assert "photos" in exc.value.messages

        order = current_domain.repository_for(Order).get(in_transit_order["order_id"])
        assert order.status == OrderStatus.IN_TRANSIT.value
        assert not order.handovers

    def test_evidence_references_are_checked(self, in_transit_order):
        _record_delivery(in_transit_order["order_id"], photos=["evidence/a.jpg", "evidence/b.jpg"])
        assert get_evidence_store().checked == ["evidence/a.jpg", "evidence/b.jpg"]

    def test_authorization_reported_before_evidence(self, in_transit_order):
        get_evidence_store().reject("evidence/missing.jpg")
        with pytest.raises(OrderAuthorizationError):
            _record_delivery(in_transit_order["order_id"], photos=["evidence/missing.jpg"], actor=("buyer", BUYER))

    def test_malformed_photos_rejected(self, in_transit_order):
        with pytest.raises(ValidationError):
            dispatch(
                MarkHandoverComplete(
                    order_id=in_transit_order["order_id"],
                    actor_id=SUPPLIER,
                    actor_role="supplier",
                    photos="not json",
                    quantities=json.dumps({"x": 1}),
                )
            )

    def test_second_handover_conflicts(self, delivered_order):
        with pytest.raises(OrderConflictError):
            _record_delivery(delivered_order["order_id"])

    def test_no_timer_when_handover_rejected(self, confirmed_order):
        with pytest.raises(OrderConflictError):
            _record_delivery(confirmed_order["order_id"])
        timers = current_domain.repository_for(ConfirmationTimer)._dao.query.all().items
        assert timers == []


class TestConfirmDelivery:
    def test_buyer_confirms(self, delivered_order):
        summary = dispatch(ConfirmDelivery(order_id=delivered_order["order_id"], actor_id=BUYER, actor_role="buyer"))
        assert summary["status"] == "completed"
        assert summary["handover"]["resolution"] == "confirmed"

    def test_confirm_cancels_timer(self, delivered_order):
        handover_id = delivered_order["handover"]["handover_id"]
        dispatch(ConfirmDelivery(order_id=delivered_order["order_id"], actor_id=BUYER, actor_role="buyer"))
        assert _timer_for(handover_id).status == TimerStatus.CANCELLED.value

    def test_supplier_cannot_confirm_own_delivery(self, delivered_order):
        with pytest.raises(OrderAuthorizationError):
            dispatch(
                ConfirmDelivery(order_id=delivered_order["order_id"], actor_id=SUPPLIER, actor_role="supplier")
            )

    def test_confirm_after_deadline_conflicts(self, delivered_order, travel_to):
        deadline = as_utc(delivered_order["handover"]["confirmation_deadline"])
        travel_to(deadline + timedelta(minutes=1))

        with pytest.raises(OrderConflictError) as exc:
            dispatch(ConfirmDelivery(order_id=delivered_order["order_id"], actor_id=BUYER, actor_role="buyer"))
        assert "auto-completed" in exc.value.reason

        order = current_domain.repository_for(Order).get(delivered_order["order_id"])
        assert order.status == OrderStatus.DELIVERED.value
        assert _timer_for(delivered_order["handover"]["handover_id"]).is_scheduled

    def test_rental_counterparty_confirms(self, rental_order):
        dispatch(
            MarkHandoverComplete(
                order_id=rental_order["order_id"],
                actor_id=BUYER,
                actor_role="buyer",
                photos=json.dumps(["evidence/return.jpg"]),
                condition=json.dumps({"hours_meter": 1474}),
            )
        )
        summary = dispatch(ConfirmDelivery(order_id=rental_order["order_id"], actor_id=SUPPLIER, actor_role="supplier"))
        assert summary["status"] == "completed"


class TestReportIssue:
    def test_buyer_reports_issue(self, delivered_order):
        summary = dispatch(
            ReportIssue(
                order_id=delivered_order["order_id"],
                actor_id=BUYER,
                actor_role="buyer",
                category="quantity_mismatch",
                details="Only 5 m3 poured",
                photos=json.dumps(["evidence/short.jpg"]),
            )
        )
        assert summary["status"] == "disputed"
        assert summary["handover"]["resolution"] == "disputed"

    def test_report_cancels_timer(self, delivered_order):
        handover_id = delivered_order["handover"]["handover_id"]
        dispatch(
            ReportIssue(
                order_id=delivered_order["order_id"],
                actor_id=BUYER,
                actor_role="buyer",
                category="quality_issue",
                details="Slump too high",
            )
        )
        assert _timer_for(handover_id).status == TimerStatus.CANCELLED.value

    def test_report_with_unknown_evidence_rejected(self, delivered_order):
        get_evidence_store().reject("evidence/ghost.jpg")
        with pytest.raises(ValidationError):
            dispatch(
                ReportIssue(
                    order_id=delivered_order["order_id"],
                    actor_id=BUYER,
                    actor_role="buyer",
                    category="damage",
                    details="Cracked",
                    photos=json.dumps(["evidence/ghost.jpg"]),
                )
            )
        order = current_domain.repository_for(Order).get(delivered_order["order_id"])
        assert order.status == OrderStatus.DELIVERED.value

    def test_unknown_category_rejected(self, delivered_order):
        with pytest.raises(ValidationError):
            dispatch(
                ReportIssue(
                    order_id=delivered_order["order_id"],
                    actor_id=BUYER,
                    actor_role="buyer",
                    category="vibes",
                    details="Not great",
                )
            )

    @pytest.mark.parametrize("photos", [json.dumps({"front": "evidence/x.jpg"}), json.dumps("evidence/x.jpg")])
    def test_photos_must_be_a_list(self, delivered_order, photos):
        with pytest.raises(ValidationError) as exc:
            dispatch(
                ReportIssue(
                    order_id=delivered_order["order_id"],
                    actor_id=BUYER,
                    actor_role="buyer",
                    category="damage",
                    details="Cracked",
                    photos=photos,
                )
            )
        assert "photos" in exc.value.messages
        order = current_domain.repository_for(Order).get(delivered_order["order_id"])
        assert order.status == OrderStatus.DELIVERED.value
