"""Response error extraction for load test observability.

Turns procurement API error bodies into one-line messages for Locust
failure reports. Shapes handled:

- Pydantic validation (422): {"detail": [{"loc": [...], "msg": "..."}]}
- Domain errors (400/403/404): {"error": {"field": ["msg", ...]}}
- Conflicts (409): the domain error shape plus "order", the current summary
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from requests import Response


def _flatten(messages) -> str:
    if isinstance(messages, list):
        return "; ".join(str(m) for m in messages)
    return str(messages)


def extract_error_detail(response: Response) -> str:
    """Extract a compact, human-readable message from an API error response."""
    try:
        body = response.json()
    except ValueError:
        text = getattr(response, "text", "") or ""
        return text[:300] or "(empty response body)"

    if isinstance(body.get("detail"), list):
        parts = []
        for err in body["detail"]:
            loc = ".".join(str(p) for p in err.get("loc", []))
            msg = err.get("msg", str(err))
            parts.append(f"{loc}: {msg}" if loc else msg)
        return " | ".join(parts)

    if "error" in body:
        error = body["error"]
        detail = (
            " | ".join(f"{k}: {_flatten(v)}" for k, v in error.items()) if isinstance(error, dict) else str(error)
        )
        order = body.get("order")
        if order:
            detail += f" (order {order.get('status')}, proposal {order.get('proposal_status')})"
        return detail

    return str(body)[:300]


def current_order_status(response: Response) -> str | None:
    """Status of the order as reported in a 409 body, if present."""
    try:
        order = response.json().get("order") or {}
    except ValueError:
        return None
    return order.get("status")
