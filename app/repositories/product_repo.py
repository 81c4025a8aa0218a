# app/repositories/product_repo.py
import uuid
from typing import Mapping

from sqlalchemy import func, or_
from sqlmodel import Session, col, select

from app.models.product import Product, ProductVariant

# sortBy -> ORDER BY clauses; anything else falls back to "newest"
SORT_ORDERING = {
    "price-low": (col(Product.base_price).asc(),),
    "price-high": (col(Product.base_price).desc(),),
    "name": (col(Product.name).asc(),),
    "popularity": (col(Product.display_order).asc(),),
}
DEFAULT_ORDERING = (
    col(Product.display_order).asc(),
    col(Product.created_at).desc(),
)


def _split(value: str | None) -> list[str]:
    if not value:
        return []
    return [part.strip() for part in value.split(",") if part.strip()]


def _to_float(value: str | None) -> float | None:
    if not value:
        return None
    try:
        return float(value)
    except ValueError:
        return None


class ProductRepository:
    """
    Data access layer for Product catalog queries.

    - Pure DB queries.
    - No FastAPI, no business logic.
    """

    def get_by_id(self, session: Session, product_id: uuid.UUID) -> Product | None:
        return session.get(Product, product_id)

    def search(
        self,
        session: Session,
        params: Mapping[str, str],
        skip: int = 0,
        limit: int = 50,
    ) -> list[Product]:
        """
        Run a flattened catalog query against active products.

        Recognized params: search, minPrice, maxPrice, collections,
        categories, types, color, subcategories, sortBy, featured.
        List params are comma-joined. A minPrice above maxPrice simply
        matches nothing.
        """
        stmt = select(Product).where(Product.is_active == True)  # noqa: E712

        search = (params.get("search") or "").strip()
        if search:
            stmt = stmt.where(
                or_(
                    col(Product.name).icontains(search, autoescape=True),
                    col(Product.description).icontains(search, autoescape=True),
                    col(Product.sku).icontains(search, autoescape=True),
                )
            )

        min_price = _to_float(params.get("minPrice"))
        if min_price is not None:
            stmt = stmt.where(Product.base_price >= min_price)

        max_price = _to_float(params.get("maxPrice"))
        if max_price is not None:
            stmt = stmt.where(Product.base_price <= max_price)

        for key, column in (
            ("collections", Product.collection_slug),
            ("categories", Product.category_slug),
            ("types", Product.type_slug),
        ):
            slugs = _split(params.get(key))
            if slugs:
                stmt = stmt.where(col(column).in_(slugs))

        if params.get("featured") == "true":
            stmt = stmt.where(Product.is_featured == True)  # noqa: E712

        colors = [c.lower() for c in _split(params.get("color"))]
        if colors:
            # A product matches if any variant's colour (or name) contains a filter colour
            variant_color = func.lower(
                func.coalesce(ProductVariant.color, ProductVariant.name)
            )
            matching = select(ProductVariant.product_id).where(
                or_(*(variant_color.contains(c, autoescape=True) for c in colors))
            )
            stmt = stmt.where(col(Product.id).in_(matching))

        subcategories = [s.lower() for s in _split(params.get("subcategories"))]
        if subcategories:
            # Matches a tag or the category slug
            tags = func.lower(func.coalesce(Product.tags, ""))
            category = func.lower(func.coalesce(Product.category_slug, ""))
            stmt = stmt.where(
                or_(
                    *(tags.contains(s, autoescape=True) for s in subcategories),
                    *(category.contains(s, autoescape=True) for s in subcategories),
                )
            )

        ordering = SORT_ORDERING.get(params.get("sortBy") or "", DEFAULT_ORDERING)
        stmt = stmt.order_by(*ordering).offset(skip).limit(limit)
        return list(session.exec(stmt).all())
