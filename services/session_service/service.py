import uuid

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from services.product_service.repository import ProductRepository
from shared.config.settings import DEFAULT_CURRENCY
from shared.errors import CartSessionNotFound

from .models import Session
from .repository import SessionRepository
from .schemas import CartLine, CartView, SessionCreate

logger = structlog.get_logger(__name__)


class SessionService:
    @staticmethod
    async def create_session(db: AsyncSession, data: SessionCreate) -> Session:
        session = Session(session_id=str(uuid.uuid4()), user_id=data.user_id, is_active=True)
        session = await SessionRepository.create_session(db, session)
        logger.info("cart_session_created", session_id=session.session_id, user_id=data.user_id)
        return session

    @staticmethod
    async def get_session(db: AsyncSession, session_id: str) -> Session:
        session = await SessionRepository.get_session(db, session_id)
        if session is None:
            raise CartSessionNotFound(
                f"Session {session_id} not found", details={"session_id": session_id}
            )
        return session

    @staticmethod
    async def add_item(db: AsyncSession, session_id: str, product_id: int, quantity: int) -> Session:
        await SessionService.get_session(db, session_id)
        await SessionRepository.add_item(db, session_id, product_id, quantity)
        return await SessionRepository.get_session(db, session_id)

    @staticmethod
    async def set_item_quantity(db: AsyncSession, session_id: str, product_id: int, quantity: int) -> Session:
        await SessionService.get_session(db, session_id)
        await SessionRepository.set_item_quantity(db, session_id, product_id, quantity)
        return await SessionRepository.get_session(db, session_id)

    @staticmethod
    async def remove_item(db: AsyncSession, session_id: str, product_id: int) -> Session:
        await SessionService.get_session(db, session_id)
        await SessionRepository.remove_item(db, session_id, product_id)
        return await SessionRepository.get_session(db, session_id)

    @staticmethod
    async def clear_cart(db: AsyncSession, session_id: str) -> None:
        await SessionService.get_session(db, session_id)
        await SessionRepository.clear_cart(db, session_id)

    @staticmethod
    async def priced_cart(db: AsyncSession, session_id: str) -> CartView:
        """
        Prices the cart for display. Products that vanished or were deactivated
        are left out here; checkout rejects them instead of skipping them.
        """
        session = await SessionService.get_session(db, session_id)
        products = await ProductRepository.get_products_by_ids(db, [i.product_id for i in session.items])

        lines = []
        currency = None
        for item in session.items:
            product = products.get(item.product_id)
            if product is None or not product.is_active:
                continue
            currency = currency or product.currency
            lines.append(CartLine(
                product_id=product.id,
                sku=product.sku,
                name=product.name,
                currency=product.currency,
                unit_price_cents=product.price_cents,
                quantity=item.quantity,
                line_total_cents=product.price_cents * item.quantity,
            ))

        return CartView(
            session_id=session_id,
            items=lines,
            subtotal_cents=sum(line.line_total_cents for line in lines),
            currency=currency or DEFAULT_CURRENCY,
        )

    @staticmethod
    def cart_items(session: Session) -> list[dict]:
        """Opaque cart snapshot handed to checkout, in insertion order."""
        return [{"product_id": item.product_id, "quantity": item.quantity} for item in session.items]
