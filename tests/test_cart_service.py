"""
Tests for the cart engine: line merging, quantity rules, persistence,
concurrent stock validation with stale-result suppression, and pricing.
"""

import asyncio
import json

import pytest

from app.core.stores import InMemoryKeyValueStore
from app.schemas.cart import CartLine, CartState
from app.services.cart_service import (
    CartEngine,
    derive_summary,
    is_checkout_eligible,
    validate_cart_lines,
)


def make_line(variant_id="v1", quantity=1, unit_price=500.0, **extra):
    data = {
        "variant_id": variant_id,
        "product_id": extra.pop("product_id", "p1"),
        "quantity": quantity,
        "unit_price": unit_price,
        "title": extra.pop("title", "Kanjivaram Silk Saree"),
    }
    data.update(extra)
    return CartLine(**data)


class FakeStock:
    """Stock lookup returning fixed quantities; unknown ids are not found."""

    def __init__(self, levels=None, fail=(), delay=0.0):
        self.levels = dict(levels or {})
        self.fail = set(fail)
        self.delay = delay
        self.calls = []

    async def __call__(self, variant_id):
        self.calls.append(variant_id)
        if self.delay:
            await asyncio.sleep(self.delay)
        if variant_id in self.fail:
            raise ConnectionError("inventory service unreachable")
        return self.levels.get(variant_id)


@pytest.fixture
def store():
    return InMemoryKeyValueStore()


@pytest.fixture
def stock():
    return FakeStock({"v1": 10, "v2": 10})


@pytest.fixture
def cart(store, stock):
    return CartEngine(store, stock)


#  Line mutations

class TestAddItem:
    def test_merge_same_variant(self, cart):
        cart.add_item(make_line("v1", quantity=2, unit_price=500))
        cart.add_item(make_line("v1", quantity=1, unit_price=500))
        assert len(cart.lines) == 1
        assert cart.lines[0].quantity == 3
        assert cart.total() == 1500

    def test_metadata_last_write_wins(self, cart):
        cart.add_item(make_line("v1", quantity=2, unit_price=500, title="Old"))
        cart.add_item(make_line("v1", quantity=4, unit_price=450, title="New", variant_label="Red"))
        line = cart.get("v1")
        assert line.quantity == 6
        assert line.unit_price == 450
        assert line.title == "New"
        assert line.variant_label == "Red"

    def test_distinct_variants_appended(self, cart):
        cart.add_item(make_line("v1"))
        cart.add_item(make_line("v2"))
        assert [line.variant_id for line in cart.lines] == ["v1", "v2"]
        assert cart.item_count() == 2

    def test_product_id_stands_in_for_missing_variant(self):
        line = CartLine(product_id="p9", quantity=1, unit_price=600, title="Silk Blouse")
        assert line.variant_id == "p9"

    def test_invalid_line_rejected(self):
        with pytest.raises(ValueError):
            make_line(quantity=0)
        with pytest.raises(ValueError):
            make_line(unit_price=-1)


class TestUpdateQuantity:
    def test_set_exactly(self, cart):
        cart.add_item(make_line("v1", quantity=2))
        cart.update_quantity("v1", 5)
        assert cart.get("v1").quantity == 5

    def test_zero_removes_line(self, cart):
        cart.add_item(make_line("v1", quantity=2))
        cart.update_quantity("v1", 0)
        assert cart.get("v1") is None
        assert cart.state == CartState.EMPTY

    def test_negative_removes_line(self, cart):
        cart.add_item(make_line("v1"))
        cart.add_item(make_line("v2"))
        cart.update_quantity("v1", -3)
        assert [line.variant_id for line in cart.lines] == ["v2"]

    def test_no_line_ever_non_positive(self, cart):
        cart.add_item(make_line("v1", quantity=3))
        for qty in (2, 1, 0, -1, 4, -2, 1):
            cart.update_quantity("v1", qty)
            assert all(line.quantity > 0 for line in cart.lines)

    def test_unknown_variant_ignored(self, cart):
        cart.add_item(make_line("v1"))
        generation = cart.generation
        cart.update_quantity("nope", 3)
        assert cart.generation == generation
        assert len(cart.lines) == 1


class TestRemoveAndClear:
    def test_remove(self, cart):
        cart.add_item(make_line("v1"))
        cart.remove_item("v1")
        assert cart.lines == []

    def test_remove_missing_is_noop(self, cart):
        cart.add_item(make_line("v1"))
        cart.remove_item("v2")
        assert len(cart.lines) == 1

    def test_clear(self, cart, store):
        cart.add_item(make_line("v1"))
        cart.clear()
        assert cart.lines == []
        assert json.loads(store.get("cart")) == []


#  Persistence

class TestPersistence:
    def test_lines_survive_reload(self, store, stock):
        cart = CartEngine(store, stock)
        cart.add_item(make_line("v1", quantity=2, image_url="https://cdn/x.jpg"))
        reloaded = CartEngine(store, stock)
        assert reloaded.lines == cart.lines

    def test_corrupt_json_is_empty(self, stock):
        store = InMemoryKeyValueStore({"cart": "{not json"})
        assert CartEngine(store, stock).lines == []

    def test_non_array_is_empty(self, stock):
        store = InMemoryKeyValueStore({"cart": json.dumps({"v1": 1})})
        assert CartEngine(store, stock).lines == []

    def test_bad_entries_dropped_and_duplicates_merged(self, stock):
        entries = [
            make_line("v1", quantity=1).model_dump(),
            {"variant_id": "v2", "quantity": "lots"},
            42,
            make_line("v1", quantity=2).model_dump(),
        ]
        store = InMemoryKeyValueStore({"cart": json.dumps(entries)})
        cart = CartEngine(store, stock)
        assert len(cart.lines) == 1
        assert cart.get("v1").quantity == 3

    def test_custom_storage_key(self, store, stock):
        cart = CartEngine(store, stock, storage_key="cart:guest")
        cart.add_item(make_line("v1"))
        assert store.get("cart") is None
        assert store.get("cart:guest") is not None


#  Validation

class TestValidate:
    @pytest.mark.asyncio
    async def test_insufficient_stock_invalid(self, store):
        cart = CartEngine(store, FakeStock({"v1": 1}))
        cart.add_item(make_line("v1", quantity=3))
        validity = await cart.validate()
        assert validity == {"v1": False}
        assert cart.is_checkout_eligible() is False
        assert cart.state == CartState.INVALID

    @pytest.mark.asyncio
    async def test_all_valid(self, cart):
        cart.add_item(make_line("v1", quantity=10))
        cart.add_item(make_line("v2", quantity=1))
        assert await cart.validate() == {"v1": True, "v2": True}
        assert cart.is_checkout_eligible() is True
        assert cart.state == CartState.VALID

    @pytest.mark.asyncio
    async def test_one_lookup_per_line(self, cart, stock):
        cart.add_item(make_line("v1"))
        cart.add_item(make_line("v2"))
        await cart.validate()
        assert sorted(stock.calls) == ["v1", "v2"]

    @pytest.mark.asyncio
    async def test_failure_is_local_to_line(self, store):
        cart = CartEngine(store, FakeStock({"v1": 5, "v2": 5}, fail={"v2"}))
        cart.add_item(make_line("v1"))
        cart.add_item(make_line("v2"))
        assert await cart.validate() == {"v1": True, "v2": False}

    @pytest.mark.asyncio
    async def test_not_found_counts_as_zero(self, store):
        cart = CartEngine(store, FakeStock({}))
        cart.add_item(make_line("ghost"))
        assert await cart.validate() == {"ghost": False}

    @pytest.mark.asyncio
    async def test_timeout_is_invalid(self, store):
        cart = CartEngine(store, FakeStock({"v1": 5}, delay=0.5), lookup_timeout=0.01)
        cart.add_item(make_line("v1"))
        assert await cart.validate() == {"v1": False}

    @pytest.mark.asyncio
    async def test_non_numeric_stock_is_local_to_line(self, store):
        async def lookup(variant_id):
            if variant_id == "v1":
                return {"available_stock": 5}
            return 10

        cart = CartEngine(store, lookup)
        cart.add_item(make_line("v1"))
        cart.add_item(make_line("v2"))
        assert await cart.validate() == {"v1": False, "v2": True}

    @pytest.mark.asyncio
    async def test_overlapping_batches_stay_validating(self, store):
        gate = asyncio.Event()
        calls = []

        async def lookup(variant_id):
            calls.append(variant_id)
            if len(calls) > 1:
                await gate.wait()
            return 10

        cart = CartEngine(store, lookup)
        cart.add_item(make_line("v1"))

        first = asyncio.create_task(cart.validate())
        second = asyncio.create_task(cart.validate())
        assert await first == {"v1": True}

        # The second batch on the same contents is still running
        assert cart.state == CartState.VALIDATING

        gate.set()
        assert await second == {"v1": True}
        assert cart.state == CartState.VALID

    @pytest.mark.asyncio
    async def test_empty_cart_not_eligible(self, cart):
        assert await cart.validate() == {}
        assert cart.is_checkout_eligible() is False

    @pytest.mark.asyncio
    async def test_mutation_invalidates_result(self, cart):
        cart.add_item(make_line("v1"))
        await cart.validate()
        assert cart.state == CartState.VALID
        cart.add_item(make_line("v2"))
        assert cart.validity is None
        assert cart.state == CartState.POPULATED
        assert cart.is_checkout_eligible() is False

    @pytest.mark.asyncio
    async def test_stale_batch_discarded(self, store):
        stock = FakeStock({"v1": 1}, delay=0.05)
        cart = CartEngine(store, stock)
        cart.add_item(make_line("v1", quantity=1))

        in_flight = asyncio.create_task(cart.validate())
        await asyncio.sleep(0)
        assert cart.state == CartState.VALIDATING

        # Cart grows beyond stock while the first batch is still running
        cart.update_quantity("v1", 5)
        assert cart.state == CartState.POPULATED

        assert await in_flight is None
        assert cart.validity is None
        assert cart.is_checkout_eligible() is False

        assert await cart.validate() == {"v1": False}
        assert cart.is_checkout_eligible() is False

    @pytest.mark.asyncio
    async def test_revalidation_is_idempotent(self, cart):
        cart.add_item(make_line("v1", quantity=2))
        first = await cart.validate()
        second = await cart.validate()
        assert first == second == {"v1": True}


#  Pricing

class TestDeriveSummary:
    def test_gst_scenario(self):
        summary = derive_summary([make_line(quantity=2, unit_price=500)], tax_rate=0.18, shipping=0)
        assert summary.subtotal == 1000
        assert summary.tax == 180
        assert summary.shipping == 0
        assert summary.total == 1180

    def test_shipping_not_taxed(self):
        summary = derive_summary([make_line(quantity=1, unit_price=1000)], tax_rate=0.18, shipping=99)
        assert summary.tax == 180
        assert summary.total == 1000 + 99 + 180

    def test_empty(self):
        summary = derive_summary([])
        assert (summary.subtotal, summary.tax, summary.total) == (0, 0, 0)

    def test_deterministic(self):
        lines = [make_line("v1", 3, 333.33), make_line("v2", 1, 1299.99)]
        first = derive_summary(lines)
        assert derive_summary(lines) == first
        assert first.total == first.subtotal + first.shipping + first.tax

    def test_engine_uses_its_policy(self, store, stock):
        cart = CartEngine(store, stock, tax_rate=0.05, shipping=50)
        cart.add_item(make_line(quantity=2, unit_price=100))
        summary = cart.summary()
        assert summary.tax == 10
        assert summary.total == 260


class TestCheckoutEligibility:
    def test_requires_every_line_valid(self):
        lines = [make_line("v1"), make_line("v2")]
        assert is_checkout_eligible(lines, {"v1": True, "v2": True}) is True
        assert is_checkout_eligible(lines, {"v1": True, "v2": False}) is False
        assert is_checkout_eligible(lines, {"v1": True}) is False

    def test_empty_or_unvalidated(self):
        assert is_checkout_eligible([], {}) is False
        assert is_checkout_eligible([make_line()], None) is False


class TestValidateCartLines:
    @pytest.mark.asyncio
    async def test_merges_and_prices(self):
        result = await validate_cart_lines(
            [make_line("v1", 1, 500), make_line("v1", 1, 500), make_line("v2", 1, 1000)],
            FakeStock({"v1": 2, "v2": 0}),
            tax_rate=0.18,
        )
        assert [line.quantity for line in result.items] == [2, 1]
        assert result.validity == {"v1": True, "v2": False}
        assert result.item_count == 3
        assert result.summary.subtotal == 2000
        assert result.summary.tax == 360
        assert result.checkout_eligible is False
