from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from shared.errors import ProductNotFound

from .models import Product
from .repository import ProductRepository


class ProductService:

    @staticmethod
    async def list_products(db: AsyncSession, query: Optional[str] = None) -> list[Product]:
        return await ProductRepository.get_active_products(db, query)

    @staticmethod
    async def get_active_product(db: AsyncSession, product_id: int) -> Product:
        """Inactive products are hidden from shoppers exactly like missing ones."""
        product = await ProductRepository.get_product_by_id(db, product_id)
        if product is None or not product.is_active:
            raise ProductNotFound(
                f"Product {product_id} does not exist", details={"product_id": product_id}
            )
        return product
