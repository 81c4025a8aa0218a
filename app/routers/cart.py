# app/routers/cart.py
from fastapi import APIRouter, Depends

from app.core.config import get_settings
from app.database import new_session
from app.repositories.inventory_repo import InventoryRepository
from app.schemas.cart import CartValidateRequest, CartValidationRead
from app.services.cart_service import StockLookup, validate_cart_lines
from app.services.inventory_service import RepositoryStockLookup

router = APIRouter(prefix="/cart", tags=["Cart"])

settings = get_settings()
inventory_repo = InventoryRepository()


def get_stock_lookup() -> StockLookup:
    """
    Dependency providing the live stock lookup used during validation.
    """
    return RepositoryStockLookup(inventory_repo, new_session)


@router.post("/validate", response_model=CartValidationRead)
async def validate_cart(
    payload: CartValidateRequest,
    stock_lookup: StockLookup = Depends(get_stock_lookup),
):
    """
    Validate a client-held cart before checkout.

    - Duplicate variants are merged.
    - Each line is checked against live stock; lines whose lookup fails
      or times out are reported unavailable.
    - Returns the priced summary and whether checkout may proceed.
    """
    return await validate_cart_lines(
        payload.items,
        stock_lookup,
        tax_rate=settings.TAX_RATE,
        shipping=settings.SHIPPING_FEE,
        lookup_timeout=settings.STOCK_LOOKUP_TIMEOUT,
    )
