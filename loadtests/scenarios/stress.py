"""Stress test scenarios for order write contention.

OrderFloodUser creates orders as fast as it can. ConfirmationRaceUser
delivers an order and then fires the buyer's confirmation and a timer
sweep back to back, hammering the per-order serialisation path.
"""

from locust import HttpUser, constant_pacing, task

from loadtests.data_generators import actor_headers, delivery_handover_data, order_data, party_ids, window_data
from loadtests.helpers.response import current_order_status, extract_error_detail


class OrderFloodUser(HttpUser):
    """Stress test: order creation and negotiation throughput.

    No sequential dependencies beyond a single order per task, so users
    never contend for the same aggregate.
    """

    wait_time = constant_pacing(0.1)

    @task(3)
    def create_order(self):
        """1 event: OrderCreated."""
        buyer_id, supplier_id = party_ids()
        self.client.post(
            "/orders",
            json=order_data(buyer_id, supplier_id),
            headers=actor_headers("buyer", buyer_id),
            name="[STRESS] POST /orders",
        )

    @task(2)
    def create_and_propose(self):
        """2 events: OrderCreated + WindowProposed."""
        buyer_id, supplier_id = party_ids()
        resp = self.client.post(
            "/orders",
            json=order_data(buyer_id, supplier_id, num_items=1),
            headers=actor_headers("buyer", buyer_id),
            name="[STRESS] POST /orders+propose",
        )
        if resp.status_code == 201:
            self.client.post(
                f"/orders/{resp.json()['order_id']}/window/propose",
                json=window_data(),
                headers=actor_headers("supplier", supplier_id),
                name="[STRESS] POST /orders/{id}/window/propose",
            )


class ConfirmationRaceUser(HttpUser):
    """Stress test: a buyer's confirmation racing the confirmation timer.

    Either request may lose the race; a 409 carrying a terminal order status
    is the expected outcome for the loser. Anything else is a failure.
    """

    wait_time = constant_pacing(0.5)

    def _post(self, path, role, actor_id, name, json=None):
        return self.client.post(path, json=json, headers=actor_headers(role, actor_id), name=name)

    @task
    def confirm_against_timer(self):
        buyer_id, supplier_id = party_ids()
        payload = order_data(buyer_id, supplier_id, num_items=1)
        resp = self._post("/orders", "buyer", buyer_id, "[RACE] POST /orders", json=payload)
        if resp.status_code != 201:
            return
        order_id = resp.json()["order_id"]

        self._post(
            f"/orders/{order_id}/window/propose",
            "supplier",
            supplier_id,
            "[RACE] POST /orders/{id}/window/propose",
            json=window_data(hours_ahead=1),
        )
        self._post(f"/orders/{order_id}/window/accept", "buyer", buyer_id, "[RACE] POST /orders/{id}/window/accept")
        self._post(f"/orders/{order_id}/transit", "supplier", supplier_id, "[RACE] POST /orders/{id}/transit")
        self._post(
            f"/orders/{order_id}/handover",
            "supplier",
            supplier_id,
            "[RACE] POST /orders/{id}/handover",
            json=delivery_handover_data(payload["items"]),
        )

        self.client.post("/maintenance/confirmation-timers/fire", name="[RACE] POST /maintenance/confirmation-timers/fire")
        with self.client.post(
            f"/orders/{order_id}/confirm",
            headers=actor_headers("buyer", buyer_id),
            catch_response=True,
            name="[RACE] POST /orders/{id}/confirm",
        ) as confirm:
            if confirm.status_code == 409 and current_order_status(confirm) == "completed":
                confirm.success()
            elif confirm.status_code != 200:
                confirm.failure(f"Confirm failed: {confirm.status_code}: {extract_error_detail(confirm)}")
