"""
Cart sessions. Every endpoint requires the X-Internal-API-Key header; the
storefront backend calls these on behalf of the shopper.
"""
from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from shared.config.database import get_db
from shared.security.dependencies import verify_internal_api_key

from .schemas import CartView, SessionCreate, SessionItemCreate, SessionItemUpdate, SessionResponse
from .service import SessionService

router = APIRouter(dependencies=[Depends(verify_internal_api_key)])
public_router = APIRouter()


@public_router.get("/health", include_in_schema=False)
async def health_check():
    return {"service": "session", "status": "running"}


@router.post("/", response_model=SessionResponse)
async def create_session(data: SessionCreate, db: AsyncSession = Depends(get_db)):
    return await SessionService.create_session(db, data)


@router.get("/{session_id}", response_model=SessionResponse)
async def get_session(session_id: str, db: AsyncSession = Depends(get_db)):
    return await SessionService.get_session(db, session_id)


@router.get("/{session_id}/cart", response_model=CartView)
async def get_cart(session_id: str, db: AsyncSession = Depends(get_db)):
    return await SessionService.priced_cart(db, session_id)


@router.post("/{session_id}/items", response_model=SessionResponse)
async def add_item(session_id: str, item: SessionItemCreate, db: AsyncSession = Depends(get_db)):
    return await SessionService.add_item(db, session_id, item.product_id, item.quantity)


@router.put("/{session_id}/items/{product_id}", response_model=SessionResponse)
async def set_item_quantity(
    session_id: str, product_id: int, body: SessionItemUpdate, db: AsyncSession = Depends(get_db)
):
    return await SessionService.set_item_quantity(db, session_id, product_id, body.quantity)


@router.delete("/{session_id}/items/{product_id}", response_model=SessionResponse)
async def remove_item(session_id: str, product_id: int, db: AsyncSession = Depends(get_db)):
    return await SessionService.remove_item(db, session_id, product_id)


@router.delete("/{session_id}/items", status_code=status.HTTP_204_NO_CONTENT)
async def clear_cart(session_id: str, db: AsyncSession = Depends(get_db)):
    await SessionService.clear_cart(db, session_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
