from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from shared.config.database import get_db
from shared.errors import ProductNotFound

from .schemas import ProductResponse
from .service import ProductService

# Read-only catalog; prices are frozen into orders at checkout, never read back from here
router = APIRouter()
public_router = APIRouter()


@public_router.get("/health", include_in_schema=False)
async def health_check():
    return {"service": "product", "status": "running"}


@router.get("/", response_model=list[ProductResponse])
async def list_products(
    query: Optional[str] = Query(default=None, max_length=200),
    db: AsyncSession = Depends(get_db),
):
    return await ProductService.list_products(db, query)


@router.get("/{product_id}", response_model=ProductResponse)
async def get_product(product_id: int, db: AsyncSession = Depends(get_db)):
    try:
        return await ProductService.get_active_product(db, product_id)
    except ProductNotFound as exc:
        # a missing catalog page is a 404; the same error inside a cart stays a 400
        exc.status_code = 404
        raise
