# app/routers/products.py
import uuid

from fastapi import APIRouter, Depends, Query, Request
from sqlmodel import Session

from app.database import get_session
from app.repositories.product_repo import ProductRepository
from app.schemas.filters import FilterStateRead
from app.schemas.product import ProductRead
from app.services.filter_service import parse_filters
from app.services.product_service import ProductService

router = APIRouter(prefix="/products", tags=["Products"])

repo = ProductRepository()
service = ProductService(repo)


@router.get("", response_model=list[ProductRead])
def list_products(
    request: Request,
    session: Session = Depends(get_session),
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=100),
):
    """
    List active products matching the storefront filters.

    - Public endpoint.
    - Reads the same query keys as the shop page URL
      (search, minPrice, maxPrice, collections, categories, types,
      colors, subcategories, sortBy, featured).
    - Malformed filter values are ignored rather than rejected.
    """
    filters = parse_filters(request.url.query)
    return service.list_products(session, filters, skip=skip, limit=limit)


@router.get("/filters", response_model=FilterStateRead)
def describe_filters(request: Request):
    """
    Normalize the filter query string.

    Returns the canonical filters, their canonical query string,
    the catalog params and the active filter count.
    """
    return service.describe_filters(request.url.query)


@router.get("/{product_id}", response_model=ProductRead)
def get_product(
    product_id: uuid.UUID,
    session: Session = Depends(get_session),
):
    """
    Get a single active product by id.
    """
    return service.get_product(session, product_id)
