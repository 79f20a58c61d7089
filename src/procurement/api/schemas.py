"""Pydantic API schemas for the Procurement domain.

These are the external API contracts, separate from domain commands.
The API layer translates between these schemas and domain commands.
"""

from datetime import datetime

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------
class LineItemRequest(BaseModel):
    description: str
    quantity: float
    unit: str
    unit_price: float
    sku_id: str | None = None


class DestinationRequest(BaseModel):
    address: str
    latitude: float | None = None
    longitude: float | None = None


class CreateOrderRequest(BaseModel):
    buyer_id: str
    supplier_id: str
    order_type: str = "material"
    delivery_mode: str = "delivery"
    items: list[LineItemRequest]
    total_amount: float
    grand_total: float
    delivery_fee: float = 0.0
    tax_amount: float = 0.0
    currency: str = "GEL"
    destination: DestinationRequest | None = None
    buyer_notes: str | None = None


class WindowRequest(BaseModel):
    start: datetime
    end: datetime


class MarkHandoverRequest(BaseModel):
    photos: list[str] = Field(default_factory=list)
    quantities: dict | None = None
    condition: dict | None = None
    notes: str | None = None


class ReportIssueRequest(BaseModel):
    category: str
    details: str
    photos: list[str] = Field(default_factory=list)


class CancelOrderRequest(BaseModel):
    reason: str


class FireTimersRequest(BaseModel):
    as_of: datetime | None = None


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------
class WindowResponse(BaseModel):
    start: datetime
    end: datetime


class HandoverResponse(BaseModel):
    handover_id: str
    kind: str
    recorded_by: str
    occurred_at: datetime
    confirmation_deadline: datetime
    resolution: str
    resolution_reason: str | None = None


class OrderSummaryResponse(BaseModel):
    order_id: str
    order_number: str
    buyer_id: str
    supplier_id: str
    order_type: str
    delivery_mode: str
    status: str
    promised_window: WindowResponse | None = None
    proposed_window: WindowResponse | None = None
    proposed_by: str | None = None
    proposal_status: str
    negotiation_rounds: int = 0
    total_amount: float
    grand_total: float
    currency: str
    handover: HandoverResponse | None = None
    updated_at: datetime | None = None


class TimelineEntryResponse(BaseModel):
    event: str
    actor: str | None = None
    status: str
    occurred_at: datetime | None = None
    details: dict = Field(default_factory=dict)


class OrderTimelineResponse(BaseModel):
    order_id: str
    order_number: str
    current_status: str
    entries: list[TimelineEntryResponse]


class ConfirmationQueueItemResponse(BaseModel):
    handover_id: str
    order_id: str
    order_number: str | None = None
    buyer_id: str
    supplier_id: str
    kind: str
    recorded_by: str
    occurred_at: datetime
    confirmation_deadline: datetime
    hours_remaining: float


class ConfirmationQueueResponse(BaseModel):
    within_hours: float
    count: int
    items: list[ConfirmationQueueItemResponse]


class FireTimersResponse(BaseModel):
    status: str = "ok"
    fired: int = 0
    auto_completed: int = 0
    failed: int = 0
