"""
Cart endpoints — the customer's cart with its live delivery fee.
"""

import logging
from decimal import Decimal
from typing import List

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from deps import get_cart_store, get_policy_dep
from domain.policy import DeliveryPolicy
from domain.responses import success_response
from models import CartLine
from services import delivery_fee_service
from services.cart_store import CartStore
from utils.validators import round_money, validated_user_id

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/cart", tags=["cart"])


class CartItemRequest(BaseModel):
    product_id: int = Field(..., gt=0, alias="productId")
    product_name: str = Field("", alias="productName", max_length=200)
    unit_price: Decimal = Field(..., ge=0, alias="unitPrice")
    quantity: int = Field(1, ge=1, le=50)


def _cart_view(user_id: int, lines: List[CartLine], policy: DeliveryPolicy) -> dict:
    subtotal = round_money(sum((line.line_total for line in lines), Decimal("0")))
    fee = delivery_fee_service.calculate_delivery_fee(subtotal, policy)
    return {
        "userId": user_id,
        "items": [line.to_api() for line in lines],
        "itemCount": sum(line.quantity for line in lines),
        "deliveryFee": {**fee.to_api(), **delivery_fee_service.fee_display_texts(fee)},
    }


@router.get("/{user_id}")
async def get_cart(
    user_id: int = Depends(validated_user_id),
    cart_store: CartStore = Depends(get_cart_store),
    policy: DeliveryPolicy = Depends(get_policy_dep),
):
    lines = await cart_store.get(user_id)
    return success_response(_cart_view(user_id, lines, policy))


@router.post("/{user_id}/items")
async def add_cart_item(
    request: CartItemRequest,
    user_id: int = Depends(validated_user_id),
    cart_store: CartStore = Depends(get_cart_store),
    policy: DeliveryPolicy = Depends(get_policy_dep),
):
    """Add a product; quantities merge for a product already in the cart."""
    lines = await cart_store.add_item(
        user_id,
        CartLine(
            product_id=request.product_id,
            product_name=request.product_name,
            unit_price=request.unit_price,
            quantity=request.quantity,
        ),
    )
    await cart_store.commit()
    logger.debug(f"User {user_id} added product {request.product_id} x{request.quantity}")
    return success_response(_cart_view(user_id, lines, policy))


@router.delete("/{user_id}")
async def clear_cart(
    user_id: int = Depends(validated_user_id),
    cart_store: CartStore = Depends(get_cart_store),
    policy: DeliveryPolicy = Depends(get_policy_dep),
):
    await cart_store.clear(user_id)
    await cart_store.commit()
    return success_response(_cart_view(user_id, [], policy))
