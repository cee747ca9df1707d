"""
Tests for the cart stores — in-memory and SQL-backed.
"""

import os, sys
sys.path.insert(0, os.path.dirname(os.path.dirname(__file__)))

from decimal import Decimal

import pytest

from models import CartLine
from services.cart_store import InMemoryCartStore, SqlCartStore


def _line(product_id=1, price="50", quantity=1):
    return CartLine(product_id=product_id, product_name=f"Item {product_id}", unit_price=Decimal(price), quantity=quantity)


class TestInMemoryCartStore:

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_empty_cart(self, memory_cart):
        assert await memory_cart.get(1) == []

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_add_merges_quantity(self, memory_cart):
        await memory_cart.add_item(1, _line(quantity=2))
        lines = await memory_cart.add_item(1, _line(quantity=3))
        assert len(lines) == 1
        assert lines[0].quantity == 5

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_carts_are_per_user(self, memory_cart):
        await memory_cart.add_item(1, _line())
        assert await memory_cart.get(2) == []

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_separate_instances_do_not_share(self):
        a, b = InMemoryCartStore(), InMemoryCartStore()
        await a.add_item(1, _line())
        assert await b.get(1) == []

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_clear(self, memory_cart):
        await memory_cart.add_item(1, _line())
        await memory_cart.clear(1)
        assert await memory_cart.get(1) == []

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_remove_items_takes_only_ordered_quantities(self, memory_cart):
        await memory_cart.set(1, [_line(1, quantity=3), _line(2), _line(3, quantity=2)])
        remaining = await memory_cart.remove_items(1, [_line(1, quantity=2), _line(2), _line(4)])
        assert {line.product_id: line.quantity for line in remaining} == {1: 1, 3: 2}
        assert await memory_cart.get(1) == remaining


class TestSqlCartStore:

    @pytest.mark.asyncio
    async def test_round_trip_through_table(self, db_session):
        store = SqlCartStore(db_session)
        await store.add_item(5, _line(1, "120.50", 2))
        await store.add_item(5, _line(2, "30"))
        await store.commit()

        lines = await SqlCartStore(db_session).get(5)
        assert [line.product_id for line in lines] == [1, 2]
        assert lines[0].unit_price == Decimal("120.50")
        assert lines[0].line_total == Decimal("241.00")

    @pytest.mark.asyncio
    async def test_clear(self, db_session):
        store = SqlCartStore(db_session)
        await store.add_item(5, _line())
        await store.clear(5)
        assert await store.get(5) == []
