"""
Pydantic Schemas for Request/Response Validation

Orders travel as camelCase JSON (``orderId``, ``createdAt``) to match the
menu and dashboard front-ends; Python code uses snake_case attributes.

Author: Khalil Bannouri
Version: 4.0.0
"""

from datetime import datetime
from typing import Optional, List, Dict

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from app.models import OrderStatus


class CamelModel(BaseModel):
    """Base schema serialized with camelCase keys."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


# =============================================================================
# ORDER RECORDS
# =============================================================================

class OrderItem(CamelModel):
    """Single menu item in an order."""
    id: str = Field(..., min_length=1, examples=["a"])
    name: str = Field(..., min_length=1, max_length=100, examples=["Tea"])
    quantity: int = Field(..., ge=1, examples=[2])
    price: float = Field(..., ge=0, examples=[10])

    @property
    def line_total(self) -> float:
        return round(self.quantity * self.price, 2)


class OrderRecord(CamelModel):
    """A stored order as handed out by the order store."""
    order_id: int
    items: List[OrderItem]
    total: float
    status: OrderStatus = OrderStatus.PENDING
    created_at: datetime
    updated_at: datetime

    def to_wire(self) -> dict:
        """JSON-safe dict with camelCase keys for the real-time channel."""
        return self.model_dump(mode="json", by_alias=True)


# =============================================================================
# REQUEST SCHEMAS
# =============================================================================

class OrderCreate(CamelModel):
    """
    Request schema for submitting an order.

    Emptiness of ``items`` and positivity of ``total`` are checked by the
    lifecycle engine so they surface as EmptyOrder / InvalidTotal errors.
    """
    items: List[OrderItem] = Field(default_factory=list)
    total: Optional[float] = Field(None, examples=[20])


class StatusUpdate(CamelModel):
    """Raw status assignment (administrative correction)."""
    status: Optional[str] = Field(None, examples=["preparing"])


# =============================================================================
# RESPONSE SCHEMAS
# =============================================================================

class OrderEnvelope(CamelModel):
    """Response wrapping a single order."""
    success: bool = True
    order: OrderRecord


class OrderListResponse(CamelModel):
    """Response for listing multiple orders."""
    success: bool = True
    orders: List[OrderRecord]


class MessageResponse(CamelModel):
    """Plain success/failure message."""
    success: bool
    message: str


class DashboardDataResponse(CamelModel):
    """Aggregated dashboard statistics."""
    success: bool = True
    total_orders: int
    counts: Dict[str, int]
    active_orders: int
    completed_orders: int
    store_mode: str


class HealthResponse(CamelModel):
    """Health check response."""
    status: str
    database: str
    store_mode: str
    subscribers: int
    timestamp: datetime
