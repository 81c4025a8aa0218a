# app/routers/inventory.py
from fastapi import APIRouter, Depends
from sqlmodel import Session

from app.database import get_session
from app.repositories.inventory_repo import InventoryRepository
from app.schemas.product import StockRead
from app.services.inventory_service import InventoryService

router = APIRouter(prefix="/inventory", tags=["Inventory"])

repo = InventoryRepository()
service = InventoryService(repo)


@router.get("/available/{variant_id}", response_model=StockRead)
def get_available_stock(
    variant_id: str,
    session: Session = Depends(get_session),
):
    """
    Available stock for a variant (or a product sold without variants).

    - 404 if the id matches neither.
    """
    return service.get_available(session, variant_id)
