# app/models/product.py
import uuid
from datetime import datetime, timezone

from sqlmodel import SQLModel, Field


class Product(SQLModel, table=True):
    """
    Product catalog entry for the storefront.

    Taxonomy is denormalized to slugs so the catalog query can filter
    collections/categories/types with a plain IN clause:
      - collection_slug, category_slug, type_slug
      - tags: comma-separated lowercase subcategory tags
    """

    __tablename__ = "products"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    name: str = Field(
        max_length=255,
        index=True,
        description="Display name of the saree/product",
    )

    slug: str = Field(
        max_length=255,
        unique=True,
        index=True,
        description="URL-friendly identifier (unique)",
    )

    sku: str | None = Field(default=None, max_length=100, index=True)

    description: str | None = Field(
        default=None,
        description="Optional long description / HTML",
    )

    base_price: float = Field(
        ge=0,
        description="Unit price (INR)",
    )

    stock_on_hand: int = Field(
        default=0,
        ge=0,
        description="Stock for products sold without variants",
    )

    is_active: bool = Field(
        default=True,
        index=True,
        description="Whether this product is visible on the storefront",
    )

    is_featured: bool = Field(default=False, index=True)

    display_order: int = Field(default=0)

    collection_slug: str | None = Field(default=None, index=True)
    category_slug: str | None = Field(default=None, index=True)
    type_slug: str | None = Field(default=None, index=True)
    tags: str = Field(default="", description="Comma-separated subcategory tags")

    hero_image_url: str | None = Field(
        default=None,
        description="Main hero image URL",
    )

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Creation timestamp (UTC)",
    )


class ProductVariant(SQLModel, table=True):
    """
    Purchasable variant of a product (colour / blouse option).

    Cart lines reference variants by id.
    """

    __tablename__ = "variants"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    product_id: uuid.UUID = Field(
        foreign_key="products.id",
        index=True,
        description="FK to products.id",
    )

    name: str = Field(max_length=255)
    color: str | None = Field(default=None, max_length=50)

    stock_quantity: int = Field(default=0, ge=0)
    track_inventory: bool = Field(
        default=True,
        description="When False the variant is never out of stock",
    )
