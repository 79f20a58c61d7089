"""Faker-based data generators for Locust load test scenarios.

Each generator produces payloads that pass the Order aggregate's validation
rules and match the field names expected by the API's Pydantic request
schemas.
"""

import random
import uuid
from datetime import UTC, datetime, timedelta

from faker import Faker

fake = Faker()

MATERIALS = [
    ("Ready-mix concrete M300", "m3", 210.0),
    ("Rebar A500C 12mm", "t", 2350.0),
    ("Aerated concrete block 600x300x200", "piece", 4.2),
    ("Gypsum board 12.5mm", "sheet", 14.0),
    ("Portland cement M500, 50kg", "bag", 17.5),
    ("River sand", "m3", 45.0),
    ("Ceramic roof tile", "piece", 2.1),
]

EQUIPMENT = [
    ("Concrete mixer 180L", 35.0),
    ("Mini excavator 1.8t", 320.0),
    ("Scaffolding set 50m2", 60.0),
    ("Plate compactor", 45.0),
    ("Diesel generator 10kW", 90.0),
]

ISSUE_CATEGORIES = ["quantity_mismatch", "quality_issue", "damage", "wrong_item", "other"]


def party_ids() -> tuple[str, str]:
    """Generate a fresh (buyer_id, supplier_id) pair so users never share orders."""
    suffix = uuid.uuid4().hex[:8]
    return f"buyer-lt-{suffix}", f"supplier-lt-{suffix}"


def actor_headers(role: str, actor_id: str) -> dict:
    return {"X-Actor-Id": actor_id, "X-Actor-Role": role}


def destination_data() -> dict:
    """Generate a DestinationRequest payload around Tbilisi."""
    return {
        "address": f"{fake.street_address()}, Tbilisi"[:500],
        "latitude": round(random.uniform(41.65, 41.80), 5),
        "longitude": round(random.uniform(44.70, 44.90), 5),
    }


def material_items(num_items: int = 2) -> list[dict]:
    picks = random.sample(MATERIALS, k=min(num_items, len(MATERIALS)))
    return [
        {
            "description": description,
            "quantity": float(random.randint(1, 40)),
            "unit": unit,
            "unit_price": price,
        }
        for description, unit, price in picks
    ]


def rental_items() -> list[dict]:
    description, day_rate = random.choice(EQUIPMENT)
    return [{"description": description, "quantity": float(random.randint(1, 7)), "unit": "day", "unit_price": day_rate}]


def _totals(items: list[dict], delivery_fee: float) -> dict:
    total = round(sum(i["quantity"] * i["unit_price"] for i in items), 2)
    return {"total_amount": total, "delivery_fee": delivery_fee, "grand_total": round(total + delivery_fee, 2)}


def order_data(buyer_id: str, supplier_id: str, num_items: int = 2) -> dict:
    """Generate a CreateOrderRequest payload for a delivered material order."""
    items = material_items(num_items)
    return {
        "buyer_id": buyer_id,
        "supplier_id": supplier_id,
        "order_type": "material",
        "delivery_mode": "delivery",
        "items": items,
        "destination": destination_data(),
        "buyer_notes": fake.sentence(nb_words=8) if random.random() < 0.3 else None,
        **_totals(items, delivery_fee=float(random.choice([0, 50, 80, 120]))),
    }


def rental_order_data(buyer_id: str, supplier_id: str) -> dict:
    """Generate a CreateOrderRequest payload for an equipment rental picked up at the yard."""
    items = rental_items()
    return {
        "buyer_id": buyer_id,
        "supplier_id": supplier_id,
        "order_type": "rental",
        "delivery_mode": "pickup",
        "items": items,
        **_totals(items, delivery_fee=0.0),
    }


def window_data(hours_ahead: int | None = None, length_hours: int = 3) -> dict:
    """Generate a WindowRequest payload starting some hours from now."""
    hours_ahead = hours_ahead if hours_ahead is not None else random.randint(12, 96)
    start = datetime.now(UTC).replace(minute=0, second=0, microsecond=0) + timedelta(hours=hours_ahead)
    return {"start": start.isoformat(), "end": (start + timedelta(hours=length_hours)).isoformat()}


def photo_refs(count: int = 2) -> list[str]:
    return [f"evidence/lt-{uuid.uuid4().hex[:12]}.jpg" for _ in range(count)]


def delivery_handover_data(items: list[dict]) -> dict:
    """Generate a MarkHandoverRequest payload for a material delivery."""
    return {
        "photos": photo_refs(random.randint(1, 4)),
        "quantities": {i["description"]: i["quantity"] for i in items},
        "notes": fake.sentence(nb_words=6) if random.random() < 0.2 else None,
    }


def rental_handover_data() -> dict:
    """Generate a MarkHandoverRequest payload for an equipment handover."""
    return {
        "photos": photo_refs(random.randint(2, 5)),
        "condition": {
            "hours_meter": random.randint(10, 5000),
            "fuel_level": random.choice(["full", "3/4", "1/2"]),
            "visible_damage": random.choice(["none", "minor scratches"]),
        },
    }


def issue_data() -> dict:
    """Generate a ReportIssueRequest payload."""
    return {
        "category": random.choice(ISSUE_CATEGORIES),
        "details": fake.sentence(nb_words=12),
        "photos": photo_refs(1),
    }
