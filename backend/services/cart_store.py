"""
Cart storage behind one interface.

Order placement reads the cart and takes the ordered lines out; cancellation
puts items back. Both go through a CartStore handed in by the caller (see
deps.get_cart_store), so the order flow never reaches for a global cart:

    - SqlCartStore:      cart_items table, the normal backend
    - InMemoryCartStore: offline/demo fallback, one instance per app
"""
from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Dict, List

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from models import CartLine

logger = logging.getLogger(__name__)


class CartStore(ABC):
    @abstractmethod
    async def get(self, user_id: int) -> List[CartLine]:
        """Current cart lines for a user (empty list when none)."""
        raise NotImplementedError()

    @abstractmethod
    async def set(self, user_id: int, items: List[CartLine]) -> None:
        """Replace the user's cart."""
        raise NotImplementedError()

    @abstractmethod
    async def clear(self, user_id: int) -> None:
        raise NotImplementedError()

    async def commit(self) -> None:
        """Make pending changes durable. No-op for stores without transactions."""

    async def add_item(self, user_id: int, item: CartLine) -> List[CartLine]:
        """Add a line, merging quantity into an existing line for the same product."""
        items = await self.get(user_id)
        for i, existing in enumerate(items):
            if existing.product_id == item.product_id:
                items[i] = existing.model_copy(
                    update={
                        "quantity": existing.quantity + item.quantity,
                        "unit_price": item.unit_price,
                        "product_name": item.product_name or existing.product_name,
                    }
                )
                break
        else:
            items.append(item)
        await self.set(user_id, items)
        return items

    async def remove_items(self, user_id: int, lines: List[CartLine]) -> List[CartLine]:
        """Take the given quantities out of the cart; lines that reach zero are dropped."""
        taken: Dict[int, int] = {}
        for line in lines:
            taken[line.product_id] = taken.get(line.product_id, 0) + line.quantity

        remaining = []
        for existing in await self.get(user_id):
            left = existing.quantity - taken.pop(existing.product_id, 0)
            if left > 0:
                remaining.append(existing.model_copy(update={"quantity": left}))
        await self.set(user_id, remaining)
        return remaining


class InMemoryCartStore(CartStore):
    """Carts held in process memory. Lost on restart."""

    def __init__(self):
        self._carts: Dict[int, List[CartLine]] = {}

    async def get(self, user_id: int) -> List[CartLine]:
        return [line.model_copy() for line in self._carts.get(user_id, [])]

    async def set(self, user_id: int, items: List[CartLine]) -> None:
        self._carts[user_id] = [line.model_copy() for line in items]

    async def clear(self, user_id: int) -> None:
        self._carts.pop(user_id, None)


class SqlCartStore(CartStore):
    """Carts in the cart_items table, scoped to the request's session."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get(self, user_id: int) -> List[CartLine]:
        from db_models import CartItem

        res = await self.db.execute(
            select(CartItem).where(CartItem.user_id == user_id).order_by(CartItem.id)
        )
        return [
            CartLine(
                product_id=row.product_id,
                product_name=row.product_name,
                unit_price=row.unit_price,
                quantity=row.quantity,
            )
            for row in res.scalars().all()
        ]

    async def set(self, user_id: int, items: List[CartLine]) -> None:
        from db_models import CartItem

        await self.db.execute(delete(CartItem).where(CartItem.user_id == user_id))
        for line in items:
            self.db.add(
                CartItem(
                    user_id=user_id,
                    product_id=line.product_id,
                    product_name=line.product_name,
                    unit_price=line.unit_price,
                    quantity=line.quantity,
                )
            )
        await self.db.flush()

    async def clear(self, user_id: int) -> None:
        from db_models import CartItem

        await self.db.execute(delete(CartItem).where(CartItem.user_id == user_id))
        await self.db.flush()
        logger.debug(f"Cart cleared for user {user_id}")

    async def commit(self) -> None:
        await self.db.commit()
