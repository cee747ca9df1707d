"""
Shared FastAPI dependencies.

Routers import the DB session, cart store, payment gateway, delivery policy
and pagination from here instead of constructing them themselves.
"""

from __future__ import annotations

from typing import TypedDict

from fastapi import Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from config import settings
from database import get_db
from domain.policy import DeliveryPolicy
from services.cart_store import CartStore, SqlCartStore
from services.payment_service import PaymentGateway


class Pagination(TypedDict):
    limit: int
    offset: int


def pagination_params(
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0, le=100_000),
) -> Pagination:
    return {"limit": limit, "offset": offset}


def get_policy_dep() -> DeliveryPolicy:
    """The delivery policy built from current settings."""
    return DeliveryPolicy.from_settings(settings)


async def get_cart_store(
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> CartStore:
    """
    Cart store for this request.

    CART_BACKEND=memory uses the app's InMemoryCartStore (app.state.memory_cart_store);
    anything else stores carts in the request's DB session.
    """
    if settings.cart_backend == "memory":
        return request.app.state.memory_cart_store
    return SqlCartStore(db)


def get_payment_gateway(request: Request) -> PaymentGateway:
    """The app-wide gateway; pending Razorpay checkouts live on it."""
    return request.app.state.payment_gateway
