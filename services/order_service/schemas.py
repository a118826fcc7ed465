from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field

from .models import OrderStatus


class CheckoutRequest(BaseModel):
    session_id: str


class OrderResponse(BaseModel):
    id: int
    user_id: int
    status: OrderStatus
    currency: str
    subtotal_cents: int
    payment_intent_id: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    paid_at: Optional[datetime] = None
    shipped_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class AdminOrderResponse(OrderResponse):
    allowed_next_statuses: list[OrderStatus] = []


class OrderItemResponse(BaseModel):
    product_id: int
    sku: str
    name: str
    unit_price_cents: int
    currency: str
    quantity: int
    line_total_cents: int

    class Config:
        from_attributes = True


class OrderDetailsResponse(BaseModel):
    order: OrderResponse
    items: list[OrderItemResponse]


class AdminOrderDetailsResponse(BaseModel):
    order: AdminOrderResponse
    items: list[OrderItemResponse]


class OrderListResponse(BaseModel):
    orders: list[OrderResponse]


class StatusUpdate(BaseModel):
    status: str
    reason: Optional[str] = None


class OrderStatusEventResponse(BaseModel):
    id: int
    order_id: int
    from_status: Optional[OrderStatus] = None
    to_status: OrderStatus
    reason: Optional[str] = None
    source: str
    # the ORM attribute is "meta"; "metadata" is taken by SQLAlchemy
    metadata: dict[str, Any] = Field(default_factory=dict, validation_alias="meta")
    created_at: datetime

    class Config:
        from_attributes = True


class TimelineResponse(BaseModel):
    order_id: int
    events: list[OrderStatusEventResponse]


class AdminOrderListResponse(BaseModel):
    orders: list[AdminOrderResponse]
