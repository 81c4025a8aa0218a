# app/schemas/product.py
import uuid
from datetime import datetime

from sqlmodel import SQLModel


class ProductRead(SQLModel):
    """
    Product summary returned by catalog queries.
    """

    id: uuid.UUID
    name: str
    slug: str
    sku: str | None = None
    description: str | None = None
    base_price: float
    is_featured: bool
    collection_slug: str | None = None
    category_slug: str | None = None
    type_slug: str | None = None
    hero_image_url: str | None = None
    created_at: datetime


class StockRead(SQLModel):
    """
    Live availability for one variant (or variant-less product).
    """

    variant_id: str
    available_stock: int
