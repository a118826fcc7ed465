"""
Order endpoints.

Customers (JWT) see only their own orders. Fulfilment staff use the admin
routes, which are guarded by the internal API key and are the only HTTP path
that changes an order's status; payments move orders through the webhook.
"""
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from shared.config.database import get_db
from shared.security.dependencies import get_current_user, verify_internal_api_key

from .schemas import (
    AdminOrderDetailsResponse,
    AdminOrderListResponse,
    AdminOrderResponse,
    CheckoutRequest,
    OrderDetailsResponse,
    OrderListResponse,
    StatusUpdate,
    TimelineResponse,
)
from .service import OrderService

router = APIRouter()
admin_router = APIRouter(prefix="/admin", dependencies=[Depends(verify_internal_api_key)])
public_router = APIRouter()


@public_router.get("/health", include_in_schema=False)
async def health_check():
    return {"service": "order", "status": "running"}


# --- ADMIN ---

@admin_router.get("", response_model=AdminOrderListResponse)
async def list_orders(db: AsyncSession = Depends(get_db)):
    return AdminOrderListResponse(orders=await OrderService.list_all_orders(db))


@admin_router.get("/{order_id}", response_model=AdminOrderDetailsResponse)
async def get_order_admin(order_id: int, db: AsyncSession = Depends(get_db)):
    return await OrderService.get_admin_order_details(db, order_id)


@admin_router.patch("/{order_id}/status", response_model=AdminOrderResponse)
async def update_order_status(
    order_id: int, body: StatusUpdate, db: AsyncSession = Depends(get_db)
):
    return await OrderService.update_status(db, order_id, body.status, reason=body.reason)


@admin_router.get("/{order_id}/timeline", response_model=TimelineResponse)
async def get_timeline_admin(order_id: int, db: AsyncSession = Depends(get_db)):
    return await OrderService.get_timeline(db, order_id)


# --- CUSTOMER ---

@router.post("/", response_model=OrderDetailsResponse, status_code=201)
async def checkout(
    body: CheckoutRequest,
    user_id: int = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Checkout without payment: the session cart becomes a pending order."""
    return await OrderService.checkout(db, user_id, body.session_id)


@router.get("/me", response_model=OrderListResponse)
async def list_my_orders(
    user_id: int = Depends(get_current_user), db: AsyncSession = Depends(get_db)
):
    return OrderListResponse(orders=await OrderService.list_my_orders(db, user_id))


@router.get("/{order_id}", response_model=OrderDetailsResponse)
async def get_order(
    order_id: int,
    user_id: int = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await OrderService.get_order_details(db, order_id, user_id=user_id)


@router.get("/{order_id}/timeline", response_model=TimelineResponse)
async def get_timeline(
    order_id: int,
    user_id: int = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await OrderService.get_timeline(db, order_id, user_id=user_id)
