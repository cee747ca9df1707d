"""
Razorpay checkout endpoints.

While POST /api/orders/place waits on an ONLINE payment, the frontend:
    1. GET  /api/payments/razorpay/checkout/{userId}/{checkoutRef} — widget options
    2. opens the Razorpay widget
    3. POST /api/payments/razorpay/callback — from the widget's handler
       or POST /api/payments/razorpay/dismiss — from modal.ondismiss
"""

import logging

from fastapi import APIRouter, Depends, Path
from pydantic import BaseModel, Field

from deps import get_payment_gateway
from domain.constants import CHECKOUT_REF_PATTERN
from domain.errors import ConflictError, NotFoundError
from domain.responses import success_response
from services.payment_service import PaymentGateway, RazorpayGateway, checkout_receipt

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/payments/razorpay", tags=["payments"])


class CallbackRequest(BaseModel):
    razorpay_order_id: str = Field(..., min_length=1, max_length=64)
    razorpay_payment_id: str = Field(..., min_length=1, max_length=64)
    razorpay_signature: str = Field(..., min_length=1, max_length=128)


class DismissRequest(BaseModel):
    razorpay_order_id: str = Field(..., min_length=1, max_length=64)


def _razorpay(gateway: PaymentGateway) -> RazorpayGateway:
    if not isinstance(gateway, RazorpayGateway):
        raise ConflictError("Razorpay checkout is not active (SIMULATION_MODE is on)")
    return gateway


@router.get("/checkout/{user_id}/{checkout_ref}")
async def get_checkout(
    user_id: int = Path(..., gt=0),
    checkout_ref: str = Path(..., pattern=CHECKOUT_REF_PATTERN),
    gateway: PaymentGateway = Depends(get_payment_gateway),
):
    receipt = checkout_receipt(user_id, checkout_ref)
    checkout = _razorpay(gateway).find_checkout(receipt)
    if checkout is None:
        raise NotFoundError("Checkout", receipt)
    return success_response(checkout)


@router.post("/callback")
async def payment_callback(
    request: CallbackRequest,
    gateway: PaymentGateway = Depends(get_payment_gateway),
):
    """
    Settle a pending checkout.

    A bad signature still settles the checkout (as a failure); the waiting
    order placement then answers 402.
    """
    settled = _razorpay(gateway).handle_callback(
        request.razorpay_order_id,
        request.razorpay_payment_id,
        request.razorpay_signature,
    )
    if not settled:
        raise NotFoundError("Checkout", request.razorpay_order_id)
    return success_response({"razorpayOrderId": request.razorpay_order_id, "settled": True})


@router.post("/dismiss")
async def payment_dismissed(
    request: DismissRequest,
    gateway: PaymentGateway = Depends(get_payment_gateway),
):
    if not _razorpay(gateway).dismiss(request.razorpay_order_id):
        raise NotFoundError("Checkout", request.razorpay_order_id)
    logger.info(f"Checkout {request.razorpay_order_id} dismissed by customer")
    return success_response({"razorpayOrderId": request.razorpay_order_id, "settled": True})
