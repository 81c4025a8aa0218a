# app/services/product_service.py
import uuid

from fastapi import HTTPException, status
from sqlmodel import Session

from app.models.product import Product
from app.repositories.product_repo import ProductRepository
from app.schemas.filters import FilterState, FilterStateRead
from app.services.filter_service import (
    active_filter_count,
    parse_filters,
    serialize_filters,
    to_catalog_params,
)


class ProductService:
    """
    Catalog browsing on top of the filter state.

    Responsibilities:
      - turn a storefront query string into a canonical FilterState
      - hand the flattened catalog params to the repository
    """

    def __init__(self, repo: ProductRepository):
        self.repo = repo

    def describe_filters(self, query: str) -> FilterStateRead:
        """
        Normalize a storefront query string and report how it would
        be sent to the catalog.
        """
        filters = parse_filters(query)
        return FilterStateRead(
            filters=filters,
            query=serialize_filters(filters),
            catalog_params=to_catalog_params(filters),
            active_count=active_filter_count(filters),
        )

    def list_products(
        self,
        session: Session,
        filters: FilterState,
        skip: int = 0,
        limit: int = 50,
    ) -> list[Product]:
        return self.repo.search(
            session, to_catalog_params(filters), skip=skip, limit=limit
        )

    def get_product(self, session: Session, product_id: uuid.UUID) -> Product:
        product = self.repo.get_by_id(session, product_id)
        if not product or not product.is_active:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Product not found",
            )
        return product
