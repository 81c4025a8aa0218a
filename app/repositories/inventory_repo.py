# app/repositories/inventory_repo.py
import uuid
from typing import Iterable

from sqlmodel import Session, col, select

from app.models.product import Product, ProductVariant

# Reported for variants that do not track inventory
UNLIMITED_STOCK = 999999


class InventoryRepository:

    def get_variant(self, session: Session, variant_id: uuid.UUID) -> ProductVariant | None:
        return session.get(ProductVariant, variant_id)

    @staticmethod
    def _available(variant: ProductVariant | None, product: Product | None) -> int | None:
        if variant is not None:
            if not variant.track_inventory:
                return UNLIMITED_STOCK
            return max(0, variant.stock_quantity)
        if product is not None and product.is_active:
            return max(0, product.stock_on_hand)
        return None

    def get_available_stock(self, session: Session, item_id: str) -> int | None:
        """
        Available quantity for a cart line key.

        The key is a variant id, or a product id for products sold
        without variants. Returns None when neither exists.
        """
        return self.get_available_stock_many(session, [item_id])[item_id]

    def get_available_stock_many(
        self,
        session: Session,
        item_ids: Iterable[str],
    ) -> dict[str, int | None]:
        """
        Available quantity for several cart line keys using two IN queries
        (variants, then variant-less products) on one session.
        """
        stock: dict[str, int | None] = {}
        keys: dict[str, uuid.UUID] = {}
        for item_id in item_ids:
            stock[item_id] = None
            try:
                keys[item_id] = uuid.UUID(str(item_id))
            except ValueError:
                continue

        if not keys:
            return stock

        wanted = list(set(keys.values()))
        variants = {
            v.id: v
            for v in session.exec(
                select(ProductVariant).where(col(ProductVariant.id).in_(wanted))
            ).all()
        }

        missing = [key for key in wanted if key not in variants]
        products: dict[uuid.UUID, Product] = {}
        if missing:
            products = {
                p.id: p
                for p in session.exec(
                    select(Product).where(col(Product.id).in_(missing))
                ).all()
            }

        for item_id, key in keys.items():
            stock[item_id] = self._available(variants.get(key), products.get(key))
        return stock
