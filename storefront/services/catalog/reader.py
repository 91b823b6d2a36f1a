from typing import Optional

from sqlalchemy import update
from sqlalchemy.orm import Session

from storefront import models
from storefront.services.pricing.money import to_decimal
from storefront.services.pricing.types import CatalogEntry


class CatalogReader:
    """base interface for product price/stock lookups."""

    def get_price_and_stock(self, product_id: int) -> Optional[CatalogEntry]:  # pragma: no cover
        raise NotImplementedError


class SqlCatalogReader(CatalogReader):
    def __init__(self, db: Session):
        self.db = db

    def get_price_and_stock(self, product_id: int) -> Optional[CatalogEntry]:
        product = self.db.get(models.Product, product_id)
        if not product:
            return None
        return CatalogEntry(
            product_id=product.id,
            title=product.title,
            price=to_decimal(product.price),
            discount=to_decimal(product.discount),
            stock=product.stock or 0,
            is_active=bool(product.is_active),
            category_id=product.category_id,
            brand_id=product.brand_id,
            weight=to_decimal(product.weight),
        )

    def decrement_stock(self, product_id: int, quantity: int) -> bool:
        """take `quantity` units if that many are still on hand; False otherwise."""
        res = self.db.execute(
            update(models.Product)
            .where(models.Product.id == product_id, models.Product.stock >= quantity)
            .values(stock=models.Product.stock - quantity)
            .execution_options(synchronize_session=False)
        )
        return res.rowcount == 1
