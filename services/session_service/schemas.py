from typing import List, Optional

from pydantic import BaseModel, Field

MAX_ITEM_QUANTITY = 999


class SessionCreate(BaseModel):
    user_id: Optional[int] = None


class SessionItemCreate(BaseModel):
    product_id: int = Field(gt=0)
    quantity: int = Field(gt=0, le=MAX_ITEM_QUANTITY)


class SessionItemUpdate(BaseModel):
    quantity: int = Field(gt=0, le=MAX_ITEM_QUANTITY)


class SessionItemResponse(BaseModel):
    product_id: int
    quantity: int

    class Config:
        from_attributes = True


class SessionResponse(BaseModel):
    session_id: str
    user_id: Optional[int]
    is_active: bool
    items: List[SessionItemResponse] = []
    checkout_order_id: Optional[int] = None

    class Config:
        from_attributes = True


class CartLine(BaseModel):
    product_id: int
    sku: str
    name: str
    currency: str
    unit_price_cents: int
    quantity: int
    line_total_cents: int


class CartView(BaseModel):
    """Cart priced at current catalog prices; nothing here is frozen."""

    session_id: str
    items: List[CartLine]
    subtotal_cents: int
    currency: str
