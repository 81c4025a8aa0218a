# app/services/inventory_service.py
import asyncio
from typing import Callable

from fastapi import HTTPException, status
from sqlmodel import Session

from app.repositories.inventory_repo import InventoryRepository
from app.schemas.product import StockRead


class InventoryService:
    """
    Live availability lookups for storefront and cart validation.
    """

    def __init__(self, repo: InventoryRepository):
        self.repo = repo

    def get_available(self, session: Session, variant_id: str) -> StockRead:
        available = self.repo.get_available_stock(session, variant_id)
        if available is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Variant not found",
            )
        return StockRead(variant_id=variant_id, available_stock=available)


class RepositoryStockLookup:
    """
    Async per-variant stock lookup backed by the inventory tables.

    Calls made in the same event-loop pass (one cart's validate() batch)
    are coalesced into a single query on one Session in a worker thread,
    so a batch holds one pooled connection regardless of cart size.
    """

    def __init__(
        self,
        repo: InventoryRepository,
        session_factory: Callable[[], Session],
    ):
        self.repo = repo
        self.session_factory = session_factory
        self._pending: dict[str, list[asyncio.Future]] = {}
        self._tasks: set[asyncio.Task] = set()

    def _lookup_many(self, variant_ids: list[str]) -> dict[str, int | None]:
        with self.session_factory() as session:
            return self.repo.get_available_stock_many(session, variant_ids)

    def _flush(self) -> None:
        pending, self._pending = self._pending, {}
        task = asyncio.ensure_future(self._resolve(pending))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _resolve(self, pending: dict[str, list[asyncio.Future]]) -> None:
        try:
            stock = await asyncio.to_thread(self._lookup_many, list(pending))
        except Exception as e:
            for futures in pending.values():
                for future in futures:
                    if not future.done():
                        future.set_exception(e)
            return

        for variant_id, futures in pending.items():
            for future in futures:
                # Callers that timed out have already cancelled their future
                if not future.done():
                    future.set_result(stock.get(variant_id))

    async def __call__(self, variant_id: str) -> int | None:
        loop = asyncio.get_running_loop()
        if not self._pending:
            loop.call_soon(self._flush)
        future = loop.create_future()
        self._pending.setdefault(variant_id, []).append(future)
        return await future
