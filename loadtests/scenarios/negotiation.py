"""Window negotiation load test scenarios.

Stateful SequentialTaskSet journeys: an order whose window is agreed after
a few counter-proposals, and an order cancelled during negotiation.
"""

import random

from locust import HttpUser, SequentialTaskSet, between, task

from loadtests.data_generators import actor_headers, order_data, party_ids, window_data
from loadtests.helpers.response import extract_error_detail
from loadtests.helpers.state import OrderState


class OrderJourney(SequentialTaskSet):
    """Shared plumbing: per-journey state and header helpers."""

    def on_start(self):
        buyer_id, supplier_id = party_ids()
        self.state = OrderState(buyer_id=buyer_id, supplier_id=supplier_id)

    def headers(self, role: str) -> dict:
        actor_id = self.state.buyer_id if role == "buyer" else self.state.supplier_id
        return actor_headers(role, actor_id)

    def post_order(self, path: str, label: str, role: str, json=None, expect_status: str | None = None):
        """POST to an order endpoint and track the returned status.

        Interrupts the journey on any failure so the next iteration starts clean.
        """
        with self.client.post(
            f"/orders/{self.state.order_id}{path}",
            json=json,
            headers=self.headers(role),
            catch_response=True,
            name=f"POST /orders/{{id}}{path}",
        ) as resp:
            if resp.status_code != 200:
                resp.failure(f"{label} failed: {resp.status_code}: {extract_error_detail(resp)}")
                self.interrupt()
                return None
            body = resp.json()
            self.state.current_status = body["status"]
            self.state.negotiation_rounds = body.get("negotiation_rounds", self.state.negotiation_rounds)
            if expect_status and body["status"] != expect_status:
                resp.failure(f"{label}: expected {expect_status}, got {body['status']}")
                self.interrupt()
            return body

    def create_order(self, payload: dict, role: str = "buyer"):
        with self.client.post(
            "/orders",
            json=payload,
            headers=self.headers(role),
            catch_response=True,
            name="POST /orders",
        ) as resp:
            if resp.status_code == 201:
                body = resp.json()
                self.state.order_id = body["order_id"]
                self.state.order_type = payload["order_type"]
                self.state.items = payload["items"]
                self.state.current_status = body["status"]
            else:
                resp.failure(f"Create order failed: {resp.status_code}: {extract_error_detail(resp)}")
                self.interrupt()


class NegotiatedOrderJourney(OrderJourney):
    """Create -> Supplier proposes -> Counter-proposals -> Accept -> Read back.

    Each counter flips the party holding the pending proposal; whoever did
    not make the last proposal accepts it.
    """

    def on_start(self):
        super().on_start()
        self._last_proposer = "supplier"

    @task
    def create(self):
        self.create_order(order_data(self.state.buyer_id, self.state.supplier_id, num_items=random.randint(1, 4)))

    @task
    def supplier_proposes(self):
        self.post_order("/window/propose", "Propose window", "supplier", json=window_data())

    @task
    def counter_proposals(self):
        proposer = "supplier"
        for _ in range(random.randint(0, 3)):
            proposer = "buyer" if proposer == "supplier" else "supplier"
            self.post_order("/window/counter", "Counter-propose window", proposer, json=window_data())
        self._last_proposer = proposer

    @task
    def accept(self):
        acceptor = "buyer" if self._last_proposer == "supplier" else "supplier"
        self.post_order("/window/accept", "Accept window", acceptor, expect_status="confirmed")

    @task
    def read_back(self):
        with self.client.get(
            f"/orders/{self.state.order_id}/timeline",
            headers=self.headers("buyer"),
            catch_response=True,
            name="GET /orders/{id}/timeline",
        ) as resp:
            if resp.status_code != 200:
                resp.failure(f"Timeline failed: {resp.status_code}: {extract_error_detail(resp)}")

    @task
    def done(self):
        self.interrupt()


class RejectedThenCancelledJourney(OrderJourney):
    """Create -> Buyer proposes -> Supplier rejects -> Buyer cancels."""

    @task
    def create(self):
        self.create_order(order_data(self.state.buyer_id, self.state.supplier_id))

    @task
    def buyer_proposes(self):
        self.post_order("/window/propose", "Propose window", "buyer", json=window_data(hours_ahead=6))

    @task
    def supplier_rejects(self):
        self.post_order("/window/reject", "Reject window", "supplier")

    @task
    def buyer_cancels(self):
        self.post_order(
            "/cancel",
            "Cancel order",
            "buyer",
            json={"reason": "Supplier cannot deliver in time"},
            expect_status="cancelled",
        )

    @task
    def done(self):
        self.interrupt()


class NegotiationUser(HttpUser):
    """Buyers and suppliers haggling over delivery windows."""

    tasks = {NegotiatedOrderJourney: 4, RejectedThenCancelledJourney: 1}
    wait_time = between(0.5, 2.0)
