from typing import Optional

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from .models import Session, SessionItem


class SessionRepository:
    """Cart persistence. Every write commits on its own."""

    @staticmethod
    async def create_session(db: AsyncSession, session: Session) -> Session:
        db.add(session)
        await db.commit()
        return await SessionRepository.get_session(db, session.session_id)

    @staticmethod
    async def get_session(db: AsyncSession, session_id: str) -> Optional[Session]:
        # populate_existing: the cart is re-read from the store, never from the identity map
        result = await db.execute(
            select(Session)
            .where(Session.session_id == session_id)
            .execution_options(populate_existing=True)
        )
        return result.scalars().first()

    @staticmethod
    async def _get_item(db: AsyncSession, session_id: str, product_id: int) -> Optional[SessionItem]:
        result = await db.execute(
            select(SessionItem).where(
                SessionItem.session_id == session_id,
                SessionItem.product_id == product_id,
            )
        )
        return result.scalars().first()

    @staticmethod
    async def add_item(db: AsyncSession, session_id: str, product_id: int, quantity: int) -> None:
        """Adds to the quantity already in the cart."""
        item = await SessionRepository._get_item(db, session_id, product_id)
        if item:
            item.quantity += quantity
        else:
            db.add(SessionItem(session_id=session_id, product_id=product_id, quantity=quantity))
        await db.commit()

    @staticmethod
    async def set_item_quantity(db: AsyncSession, session_id: str, product_id: int, quantity: int) -> None:
        """Replaces the quantity, inserting the line when the product is new to the cart."""
        item = await SessionRepository._get_item(db, session_id, product_id)
        if item:
            item.quantity = quantity
        else:
            db.add(SessionItem(session_id=session_id, product_id=product_id, quantity=quantity))
        await db.commit()

    @staticmethod
    async def remove_item(db: AsyncSession, session_id: str, product_id: int) -> None:
        await db.execute(
            delete(SessionItem).where(
                SessionItem.session_id == session_id,
                SessionItem.product_id == product_id,
            )
        )
        await db.commit()

    @staticmethod
    async def clear_cart(db: AsyncSession, session_id: str) -> None:
        await db.execute(delete(SessionItem).where(SessionItem.session_id == session_id))
        await db.commit()

    @staticmethod
    async def set_checkout_marker(
        db: AsyncSession, session_id: str, cart_key: Optional[str], order_id: Optional[int]
    ) -> None:
        """Remembers (or with None values forgets) the last checkout of this session."""
        await db.execute(
            update(Session)
            .where(Session.session_id == session_id)
            .values(checkout_cart_key=cart_key, checkout_order_id=order_id)
        )
        await db.commit()
