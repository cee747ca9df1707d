"""
Order endpoints — placement, history, cancellation window and status updates.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Path
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from config import settings
from database import get_db
from deps import Pagination, get_cart_store, get_payment_gateway, get_policy_dep, pagination_params
from domain.constants import CHECKOUT_REF_PATTERN
from domain.enums import OrderStatus, PaymentMethod
from domain.policy import DeliveryPolicy
from domain.responses import paginated_response, success_response
from services import order_service
from services.cancellation_service import get_cancellation_window
from services.cart_store import CartStore
from services.payment_service import PaymentGateway
from utils.validators import validated_user_id

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/orders", tags=["orders"])


class PlaceOrderRequest(BaseModel):
    user_id: int = Field(..., gt=0, alias="userId")
    delivery_address: str = Field(..., min_length=1, max_length=500, alias="deliveryAddress")
    pincode: str = Field(..., pattern=r"^\d{6}$")
    payment_method: PaymentMethod = Field(PaymentMethod.COD, alias="paymentMethod")
    # Lets the frontend look up the Razorpay checkout while placement waits
    checkout_ref: Optional[str] = Field(None, alias="checkoutRef", pattern=CHECKOUT_REF_PATTERN)
    customer_name: Optional[str] = Field(None, alias="customerName", max_length=100)
    customer_email: Optional[str] = Field(None, alias="customerEmail", max_length=200)
    customer_phone: Optional[str] = Field(None, alias="customerPhone", max_length=20)


class StatusUpdateRequest(BaseModel):
    status: OrderStatus
    partner_id: Optional[int] = Field(None, gt=0, alias="partnerId")


@router.post("/place", status_code=201)
async def place_order(
    request: PlaceOrderRequest,
    db: AsyncSession = Depends(get_db),
    cart_store: CartStore = Depends(get_cart_store),
    gateway: PaymentGateway = Depends(get_payment_gateway),
    policy: DeliveryPolicy = Depends(get_policy_dep),
):
    """
    Place an order from the user's cart.

    ONLINE payments block until the checkout completes, fails or times out.
    """
    order = await order_service.place_order(
        db,
        cart_store,
        gateway,
        user_id=request.user_id,
        delivery_address=request.delivery_address,
        pincode=request.pincode,
        payment_method=request.payment_method,
        checkout_ref=request.checkout_ref,
        customer={
            "name": request.customer_name,
            "email": request.customer_email,
            "phone": request.customer_phone,
        },
        payment_timeout=settings.payment_timeout_seconds,
        policy=policy,
    )
    return success_response(order_service.order_to_response(order, policy=policy).to_api())


@router.get("/user/{user_id}")
async def list_user_orders(
    user_id: int = Depends(validated_user_id),
    page: Pagination = Depends(pagination_params),
    db: AsyncSession = Depends(get_db),
    policy: DeliveryPolicy = Depends(get_policy_dep),
):
    orders = await order_service.list_user_orders(db, user_id, page["limit"], page["offset"])
    total = await order_service.count_user_orders(db, user_id)
    items = [order_service.order_to_response(o, policy=policy).to_api() for o in orders]
    return paginated_response(items, limit=page["limit"], offset=page["offset"], total=total)


@router.get("/{order_id}")
async def get_order(
    order_id: int = Path(..., gt=0),
    db: AsyncSession = Depends(get_db),
    policy: DeliveryPolicy = Depends(get_policy_dep),
):
    order = await order_service.get_order(db, order_id)
    return success_response(order_service.order_to_response(order, policy=policy).to_api())


@router.get("/{order_id}/cancellation")
async def get_cancellation(
    order_id: int = Path(..., gt=0),
    db: AsyncSession = Depends(get_db),
    policy: DeliveryPolicy = Depends(get_policy_dep),
):
    """canCancel and timeRemainingSeconds, fresh on every call."""
    order = await order_service.get_order(db, order_id)
    window = get_cancellation_window(order, policy=policy)
    return success_response({"orderId": order.id, "status": order.status, **window.to_api()})


@router.put("/{order_id}/cancel")
async def cancel_order(
    order_id: int = Path(..., gt=0),
    db: AsyncSession = Depends(get_db),
    cart_store: CartStore = Depends(get_cart_store),
    policy: DeliveryPolicy = Depends(get_policy_dep),
):
    order = await order_service.cancel_order(db, cart_store, order_id, policy=policy)
    return success_response(order_service.order_to_response(order, policy=policy).to_api())


@router.put("/{order_id}/status")
async def update_status(
    request: StatusUpdateRequest,
    order_id: int = Path(..., gt=0),
    db: AsyncSession = Depends(get_db),
    policy: DeliveryPolicy = Depends(get_policy_dep),
):
    order = await order_service.update_order_status(
        db, order_id, request.status, partner_id=request.partner_id,
    )
    return success_response(order_service.order_to_response(order, policy=policy).to_api())
