from typing import Optional
from pydantic import BaseModel


class ProductResponse(BaseModel):
    id: int
    sku: str
    name: str
    description: Optional[str] = None
    price_cents: int
    currency: str
    is_active: bool

    class Config:
        from_attributes = True
