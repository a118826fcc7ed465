from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from services.session_service.models import Session
from services.session_service.repository import SessionRepository
from services.session_service.service import SessionService
from shared.errors import CartSessionNotFound, OrderNotFound

from .repository import OrderRepository
from .schemas import (
    AdminOrderDetailsResponse,
    AdminOrderResponse,
    OrderDetailsResponse,
    OrderItemResponse,
    OrderResponse,
    OrderStatusEventResponse,
    TimelineResponse,
)
from .status import allowed_next_statuses


def _not_found(order_id: int) -> OrderNotFound:
    return OrderNotFound(f"Order {order_id} not found", details={"order_id": order_id})


def _admin_order(order) -> AdminOrderResponse:
    return AdminOrderResponse(
        **OrderResponse.model_validate(order).model_dump(),
        allowed_next_statuses=allowed_next_statuses(order.status),
    )


class OrderService:
    @staticmethod
    async def get_owned_session(db: AsyncSession, user_id: int, session_id: str) -> Session:
        """A cart session owned by someone else is reported exactly like a missing one."""
        session = await SessionService.get_session(db, session_id)
        if session.user_id != user_id:
            raise CartSessionNotFound(
                f"Session {session_id} not found", details={"session_id": session_id}
            )
        return session

    @staticmethod
    async def checkout(db: AsyncSession, user_id: int, session_id: str) -> OrderDetailsResponse:
        """Turns the session cart into a pending order and empties the cart."""
        session = await OrderService.get_owned_session(db, user_id, session_id)
        created = await OrderRepository.create_order_from_cart(
            db, user_id, SessionService.cart_items(session)
        )
        await SessionRepository.clear_cart(db, session_id)
        return OrderDetailsResponse(
            order=OrderResponse.model_validate(created.order),
            items=[OrderItemResponse.model_validate(item) for item in created.items],
        )

    @staticmethod
    async def get_order_details(
        db: AsyncSession, order_id: int, user_id: Optional[int] = None
    ) -> OrderDetailsResponse:
        details = await OrderRepository.get_order_details(db, order_id, user_id=user_id)
        if details is None:
            raise _not_found(order_id)
        return OrderDetailsResponse(
            order=OrderResponse.model_validate(details.order),
            items=[OrderItemResponse.model_validate(item) for item in details.items],
        )

    @staticmethod
    async def list_my_orders(db: AsyncSession, user_id: int) -> list[OrderResponse]:
        orders = await OrderRepository.list_orders_by_user(db, user_id)
        return [OrderResponse.model_validate(order) for order in orders]

    @staticmethod
    async def get_timeline(
        db: AsyncSession, order_id: int, user_id: Optional[int] = None
    ) -> TimelineResponse:
        events = await OrderRepository.get_timeline(db, order_id, user_id=user_id)
        if events is None:
            raise _not_found(order_id)
        return TimelineResponse(
            order_id=order_id,
            events=[OrderStatusEventResponse.model_validate(event) for event in events],
        )

    # --- ADMIN ---

    @staticmethod
    async def list_all_orders(db: AsyncSession) -> list[AdminOrderResponse]:
        return [_admin_order(order) for order in await OrderRepository.list_all_orders(db)]

    @staticmethod
    async def get_admin_order_details(db: AsyncSession, order_id: int) -> AdminOrderDetailsResponse:
        details = await OrderRepository.get_order_details(db, order_id)
        if details is None:
            raise _not_found(order_id)
        return AdminOrderDetailsResponse(
            order=_admin_order(details.order),
            items=[OrderItemResponse.model_validate(item) for item in details.items],
        )

    @staticmethod
    async def update_status(
        db: AsyncSession, order_id: int, status: str, reason: Optional[str] = None
    ) -> AdminOrderResponse:
        order = await OrderRepository.set_status(db, order_id, status, reason=reason)
        return _admin_order(order)
