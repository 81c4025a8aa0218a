# app/services/cart_service.py
import asyncio
import logging
from collections import Counter
from typing import Awaitable, Callable, Iterable

from pydantic import ValidationError

from app.core.stores import InMemoryKeyValueStore, KeyValueStore, load_json_list, save_json_list
from app.schemas.cart import (
    CartLine,
    CartState,
    CartValidationRead,
    LineValidity,
    OrderSummary,
)

logger = logging.getLogger(__name__)

# Fixed GST rate (18%)
TAX_RATE = 0.18

# Free shipping
SHIPPING_FEE = 0.0

# Seconds before a single stock lookup counts as unavailable
LOOKUP_TIMEOUT = 5.0

CART_STORAGE_KEY = "cart"

# Resolves a variant id to its available quantity, None when not found
StockLookup = Callable[[str], Awaitable[int | None]]


def cart_subtotal(lines: Iterable[CartLine]) -> float:
    return float(sum((line.unit_price * line.quantity for line in lines), 0.0))


def derive_summary(
    lines: Iterable[CartLine],
    tax_rate: float = TAX_RATE,
    shipping: float = SHIPPING_FEE,
) -> OrderSummary:
    """
    Price a set of cart lines.

      subtotal = sum(unit_price * quantity)
      tax      = subtotal * tax_rate (rounded to 2 decimals, shipping untaxed)
      total    = subtotal + shipping + tax
    """
    subtotal = cart_subtotal(lines)
    tax = round(subtotal * tax_rate, 2)
    return OrderSummary(
        subtotal=subtotal,
        shipping=shipping,
        tax=tax,
        total=subtotal + shipping + tax,
    )


def is_checkout_eligible(lines: Iterable[CartLine], validity: LineValidity | None) -> bool:
    """
    True iff the cart is non-empty and every line is known to be valid.
    """
    lines = list(lines)
    if not lines or validity is None:
        return False
    return all(validity.get(line.variant_id) is True for line in lines)


class CartEngine:
    """
    Client-held cart with stock revalidation and pricing.

    Responsibilities:
      - keep at most one line per variant_id (adding again sums quantity)
      - persist lines as a JSON array in a KeyValueStore
      - validate every line against live stock, concurrently
      - drop validation results that finish after the cart changed

    Each mutation bumps `generation` and forgets the last validity map,
    so checkout needs a fresh validate() after any change.
    """

    def __init__(
        self,
        store: KeyValueStore,
        stock_lookup: StockLookup,
        *,
        storage_key: str = CART_STORAGE_KEY,
        lookup_timeout: float = LOOKUP_TIMEOUT,
        tax_rate: float = TAX_RATE,
        shipping: float = SHIPPING_FEE,
    ):
        self.store = store
        self.stock_lookup = stock_lookup
        self.storage_key = storage_key
        self.lookup_timeout = lookup_timeout
        self.tax_rate = tax_rate
        self.shipping = shipping

        self.generation = 0
        self._validity: LineValidity | None = None
        # generation -> number of validate() batches still running
        self._in_flight: Counter[int] = Counter()
        self._lines: list[CartLine] = self._load()

    # ---- internal helpers ----

    def _load(self) -> list[CartLine]:
        lines: list[CartLine] = []
        for entry in load_json_list(self.store, self.storage_key):
            try:
                line = CartLine.model_validate(entry)
            except ValidationError:
                logger.warning("Dropping invalid stored cart entry: %r", entry)
                continue
            self._merge_into(lines, line)
        return lines

    def _save(self) -> None:
        save_json_list(
            self.store,
            self.storage_key,
            [line.model_dump() for line in self._lines],
        )

    @staticmethod
    def _merge_into(lines: list[CartLine], line: CartLine) -> None:
        for idx, existing in enumerate(lines):
            if existing.variant_id == line.variant_id:
                # Last write wins for price/metadata, quantities add up
                lines[idx] = line.model_copy(
                    update={"quantity": existing.quantity + line.quantity}
                )
                return
        lines.append(line.model_copy())

    def _index_of(self, variant_id: str) -> int | None:
        for idx, line in enumerate(self._lines):
            if line.variant_id == variant_id:
                return idx
        return None

    def _mutated(self) -> None:
        self.generation += 1
        self._validity = None
        self._save()

    async def _check_line(self, line: CartLine) -> bool:
        try:
            available = await asyncio.wait_for(
                self.stock_lookup(line.variant_id),
                timeout=self.lookup_timeout,
            )
            return int(available or 0) >= line.quantity
        except asyncio.TimeoutError:
            logger.warning("Stock lookup timed out for variant %s", line.variant_id)
            return False
        except Exception as e:
            logger.warning("Stock lookup failed for variant %s: %s", line.variant_id, e)
            return False

    # ---- reads ----

    @property
    def lines(self) -> list[CartLine]:
        return list(self._lines)

    @property
    def validity(self) -> LineValidity | None:
        """
        Last validity map for the current cart contents, if any.
        """
        return dict(self._validity) if self._validity is not None else None

    @property
    def state(self) -> CartState:
        if not self._lines:
            return CartState.EMPTY
        if self._in_flight[self.generation]:
            return CartState.VALIDATING
        if self._validity is None:
            return CartState.POPULATED
        if is_checkout_eligible(self._lines, self._validity):
            return CartState.VALID
        return CartState.INVALID

    def get(self, variant_id: str) -> CartLine | None:
        idx = self._index_of(variant_id)
        return self._lines[idx] if idx is not None else None

    def total(self) -> float:
        """
        Subtotal of all lines (before shipping and tax).
        """
        return cart_subtotal(self._lines)

    def item_count(self) -> int:
        return sum(line.quantity for line in self._lines)

    def summary(self) -> OrderSummary:
        return derive_summary(self._lines, self.tax_rate, self.shipping)

    def is_checkout_eligible(self, validity: LineValidity | None = None) -> bool:
        if validity is None:
            validity = self._validity
        return is_checkout_eligible(self._lines, validity)

    # ---- mutations ----

    def add_item(self, line: CartLine) -> None:
        self._merge_into(self._lines, line)
        self._mutated()

    def update_quantity(self, variant_id: str, new_quantity: int) -> None:
        """
        Set a line's quantity exactly; zero or below removes the line.
        Unknown variant ids are ignored.
        """
        idx = self._index_of(variant_id)
        if idx is None:
            return
        if new_quantity <= 0:
            del self._lines[idx]
        else:
            self._lines[idx] = self._lines[idx].model_copy(update={"quantity": new_quantity})
        self._mutated()

    def remove_item(self, variant_id: str) -> None:
        idx = self._index_of(variant_id)
        if idx is None:
            return
        del self._lines[idx]
        self._mutated()

    def clear(self) -> None:
        self._lines = []
        self._mutated()

    # ---- validation ----

    async def validate(self) -> LineValidity | None:
        """
        Check every line against live stock.

        Lookups run concurrently. A failed or timed-out lookup marks only
        its own line invalid. If the cart changes before the batch
        finishes, the results are discarded and None is returned.
        """
        generation = self.generation
        snapshot = list(self._lines)
        self._in_flight[generation] += 1

        try:
            results = await asyncio.gather(*(self._check_line(line) for line in snapshot))
        finally:
            self._in_flight[generation] -= 1
            if not self._in_flight[generation]:
                del self._in_flight[generation]

        if generation != self.generation:
            logger.info(
                "Discarding stale cart validation (generation %s, current %s)",
                generation,
                self.generation,
            )
            return None

        self._validity = {line.variant_id: ok for line, ok in zip(snapshot, results)}
        return dict(self._validity)


async def validate_cart_lines(
    items: Iterable[CartLine],
    stock_lookup: StockLookup,
    *,
    tax_rate: float = TAX_RATE,
    shipping: float = SHIPPING_FEE,
    lookup_timeout: float = LOOKUP_TIMEOUT,
) -> CartValidationRead:
    """
    One-shot validation of a cart posted by a client.

    Duplicate variants are merged before stock is checked.
    """
    engine = CartEngine(
        InMemoryKeyValueStore(),
        stock_lookup,
        lookup_timeout=lookup_timeout,
        tax_rate=tax_rate,
        shipping=shipping,
    )
    for item in items:
        engine.add_item(item)

    validity = await engine.validate() or {}

    return CartValidationRead(
        items=engine.lines,
        validity=validity,
        summary=engine.summary(),
        item_count=engine.item_count(),
        checkout_eligible=engine.is_checkout_eligible(validity),
    )
