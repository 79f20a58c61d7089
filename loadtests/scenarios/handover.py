"""Handover and confirmation load test scenarios.

Journeys drive orders all the way to a handover and then resolve it: a
buyer confirming a delivery, a buyer disputing one, and an equipment
rental handed over at the supplier's yard.
"""

import random

from locust import HttpUser, between, task

from loadtests.data_generators import (
    delivery_handover_data,
    issue_data,
    order_data,
    rental_handover_data,
    rental_order_data,
    window_data,
)
from loadtests.scenarios.negotiation import OrderJourney


class DeliveryJourney(OrderJourney):
    """Create -> Agree window -> Transit -> Handover -> Confirm or dispute."""

    @task
    def create(self):
        self.create_order(order_data(self.state.buyer_id, self.state.supplier_id))

    @task
    def agree_window(self):
        self.post_order("/window/propose", "Propose window", "supplier", json=window_data(hours_ahead=2))
        self.post_order("/window/accept", "Accept window", "buyer", expect_status="confirmed")

    @task
    def begin_transit(self):
        self.post_order("/transit", "Begin transit", "supplier", expect_status="in_transit")

    @task
    def hand_over(self):
        body = self.post_order(
            "/handover",
            "Record delivery",
            "supplier",
            json=delivery_handover_data(self.state.items),
            expect_status="delivered",
        )
        if body:
            self.state.handover_id = body["handover"]["handover_id"]

    @task
    def resolve(self):
        if random.random() < 0.85:
            self.post_order("/confirm", "Confirm delivery", "buyer", expect_status="completed")
        else:
            self.post_order("/issue", "Report issue", "buyer", json=issue_data(), expect_status="disputed")

    @task
    def done(self):
        self.interrupt()


class RentalJourney(OrderJourney):
    """Create rental -> Agree pickup window -> Handover at the yard -> Buyer confirms."""

    @task
    def create(self):
        self.create_order(rental_order_data(self.state.buyer_id, self.state.supplier_id), role="supplier")

    @task
    def agree_window(self):
        self.post_order("/window/propose", "Propose pickup window", "buyer", json=window_data(hours_ahead=1))
        self.post_order("/window/accept", "Accept pickup window", "supplier", expect_status="confirmed")

    @task
    def hand_over(self):
        self.post_order("/handover", "Record rental handover", "supplier", json=rental_handover_data())

    @task
    def confirm(self):
        self.post_order("/confirm", "Confirm rental handover", "buyer", expect_status="completed")

    @task
    def done(self):
        self.interrupt()


class AwaitingConfirmationJourney(OrderJourney):
    """Deliver and walk away, leaving the handover for the confirmation timer."""

    @task
    def deliver(self):
        self.create_order(order_data(self.state.buyer_id, self.state.supplier_id, num_items=1))
        self.post_order("/window/propose", "Propose window", "buyer", json=window_data(hours_ahead=3))
        self.post_order("/window/accept", "Accept window", "supplier")
        self.post_order("/transit", "Begin transit", "supplier")
        self.post_order("/handover", "Record delivery", "supplier", json=delivery_handover_data(self.state.items))

    @task
    def done(self):
        self.interrupt()


class HandoverUser(HttpUser):
    """Suppliers delivering and buyers confirming."""

    tasks = {DeliveryJourney: 5, RentalJourney: 2, AwaitingConfirmationJourney: 1}
    wait_time = between(1.0, 3.0)


class ConfirmationDeskUser(HttpUser):
    """Operations staff watching the confirmation queue."""

    wait_time = between(2.0, 5.0)

    @task(3)
    def expiring_soon(self):
        self.client.get("/confirmations", params={"within_hours": 2}, name="GET /confirmations")

    @task(1)
    def expiring_today(self):
        self.client.get("/confirmations", params={"within_hours": 24}, name="GET /confirmations")
