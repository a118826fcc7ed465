from typing import Iterable, Optional

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from .models import Product


class ProductRepository:

    @staticmethod
    async def get_active_products(db: AsyncSession, query: Optional[str] = None) -> list[Product]:
        """Active catalog, newest first. ``query`` matches any of its words in the name."""
        stmt = select(Product).where(Product.is_active.is_(True))
        words = (query or "").split()
        if words:
            stmt = stmt.where(or_(*(Product.name.ilike(f"%{word}%") for word in words)))
        result = await db.execute(stmt.order_by(Product.id.desc()))
        return list(result.scalars().all())

    @staticmethod
    async def get_product_by_id(db: AsyncSession, product_id: int) -> Optional[Product]:
        result = await db.execute(select(Product).where(Product.id == product_id))
        return result.scalars().first()

    @staticmethod
    async def get_products_by_ids(db: AsyncSession, product_ids: Iterable[int]) -> dict[int, Product]:
        """Batch lookup used by checkout; returns {id: product} for the ids that exist."""
        ids = set(product_ids)
        if not ids:
            return {}
        result = await db.execute(select(Product).where(Product.id.in_(ids)))
        return {product.id: product for product in result.scalars().all()}
