"""Per-user state tracking for Locust load test scenarios.

Each Locust user instance maintains its own state, with no cross-user
sharing. State tracks the order and party IDs so follow-up operations can
reference them.
"""

from dataclasses import dataclass, field


@dataclass
class OrderState:
    """Tracks state for a single simulated order lifecycle."""

    order_id: str | None = None
    buyer_id: str | None = None
    supplier_id: str | None = None
    order_type: str = "material"
    items: list[dict] = field(default_factory=list)
    current_status: str = "pending"
    negotiation_rounds: int = 0
    handover_id: str | None = None
