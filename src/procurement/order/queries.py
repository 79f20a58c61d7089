"""Read-side queries over orders, their timelines and the confirmation queue."""

from datetime import datetime

from protean.utils.globals import current_domain

from procurement.errors import OrderAuthorizationError
from procurement.order.order import Order, PartyRole
from procurement.projections.confirmation_queue import expiring_within
from procurement.projections.order_timeline import OrderTimeline, timeline_entries
from procurement.utils import clock


def _assert_party(buyer_id, supplier_id, order_id, actor_role: str, actor_id: str) -> None:
    try:
        role = PartyRole(actor_role)
    except ValueError:
        raise OrderAuthorizationError(f"Unknown actor role '{actor_role}'", order_id=str(order_id)) from None
    party_id = buyer_id if role == PartyRole.BUYER else supplier_id
    if str(party_id) != str(actor_id):
        raise OrderAuthorizationError(f"Actor is not the {role.value} on this order", order_id=str(order_id))


def get_order_summary(order_id: str, actor_role: str, actor_id: str) -> dict:
    order = current_domain.repository_for(Order).get(order_id)
    _assert_party(order.buyer_id, order.supplier_id, order.id, actor_role, actor_id)
    return order.summary()


def get_order_timeline(order_id: str, actor_role: str, actor_id: str) -> dict:
    view = current_domain.repository_for(OrderTimeline).get(order_id)
    _assert_party(view.buyer_id, view.supplier_id, view.order_id, actor_role, actor_id)
    return {
        "order_id": str(view.order_id),
        "order_number": view.order_number,
        "current_status": view.current_status,
        "entries": timeline_entries(view),
    }


def get_confirmation_queue(within_hours: float, as_of: datetime | None = None) -> list[dict]:
    """Open handovers whose confirmation deadline falls within ``within_hours``."""
    as_of = clock.as_utc(as_of) or clock.utcnow()
    items = []
    for entry in expiring_within(within_hours, as_of=as_of):
        deadline = clock.as_utc(entry.confirmation_deadline)
        items.append(
            {
                "handover_id": str(entry.handover_id),
                "order_id": str(entry.order_id),
                "order_number": entry.order_number,
                "buyer_id": str(entry.buyer_id),
                "supplier_id": str(entry.supplier_id),
                "kind": entry.kind,
                "recorded_by": entry.recorded_by,
                "occurred_at": entry.occurred_at,
                "confirmation_deadline": deadline,
                "hours_remaining": round((deadline - as_of).total_seconds() / 3600, 2),
            }
        )
    return items
