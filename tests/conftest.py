"""Pytest configuration: settings env and an in-memory sqlite database."""

import os

# Settings are read at import time by app.database / app.routers
os.environ.setdefault("DATABASE_URL", "sqlite://")

import pytest
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

from app.models.product import Product, ProductVariant


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture
def catalog(session):
    """
    Small saree catalog:

      silk-kanjivaram  2500  silk / sarees / kanjivaram, featured, red + gold variants
      cotton-handloom   900  cotton / sarees / handloom, blue variant
      linen-office     1500  linen / sarees / office-wear, untracked green variant
      silk-blouse       600  silk / blouses, no variants, stock 4
      retired-chiffon   700  inactive
    """
    products = {
        "silk-kanjivaram": Product(
            name="Kanjivaram Silk Saree",
            slug="silk-kanjivaram",
            sku="KSS-001",
            description="Pure zari wedding saree",
            base_price=2500,
            is_featured=True,
            display_order=1,
            collection_slug="silk",
            category_slug="sarees",
            type_slug="kanjivaram",
            tags="wedding,bridal",
        ),
        "cotton-handloom": Product(
            name="Handloom Cotton Saree",
            slug="cotton-handloom",
            sku="HCS-002",
            description="Breathable daily wear",
            base_price=900,
            display_order=2,
            collection_slug="cotton",
            category_slug="sarees",
            type_slug="handloom",
            tags="daily",
        ),
        "linen-office": Product(
            name="Linen Office Saree",
            slug="linen-office",
            sku="LOS-003",
            base_price=1500,
            display_order=3,
            collection_slug="linen",
            category_slug="sarees",
            type_slug="office-wear",
            tags="office,daily",
        ),
        "silk-blouse": Product(
            name="Silk Blouse",
            slug="silk-blouse",
            base_price=600,
            stock_on_hand=4,
            display_order=4,
            collection_slug="silk",
            category_slug="blouses",
        ),
        "retired-chiffon": Product(
            name="Chiffon Saree",
            slug="retired-chiffon",
            base_price=700,
            is_active=False,
            collection_slug="chiffon",
            category_slug="sarees",
        ),
    }
    for product in products.values():
        session.add(product)
    session.commit()

    variants = {
        "kanjivaram-red": ProductVariant(
            product_id=products["silk-kanjivaram"].id,
            name="Maroon with gold border",
            color="Red",
            stock_quantity=3,
        ),
        "kanjivaram-gold": ProductVariant(
            product_id=products["silk-kanjivaram"].id,
            name="Gold",
            color="Gold",
            stock_quantity=0,
        ),
        "handloom-blue": ProductVariant(
            product_id=products["cotton-handloom"].id,
            name="Indigo Blue",
            stock_quantity=10,
        ),
        "linen-green": ProductVariant(
            product_id=products["linen-office"].id,
            name="Sage",
            color="Green",
            stock_quantity=0,
            track_inventory=False,
        ),
    }
    for variant in variants.values():
        session.add(variant)
    session.commit()

    for obj in [*products.values(), *variants.values()]:
        session.refresh(obj)
    return {**products, **variants}
