"""
Delivery Fee Service — the free-delivery threshold policy.

Policy (defaults, see domain/constants.py):
    - Subtotal >= ₹199: FREE delivery, the customer saves ₹40
    - Subtotal <  ₹199: ₹40 delivery fee, and the customer is told how much
      more to add for free delivery

Every function here is pure: no I/O, no clock, no shared state.
"""
import logging
from decimal import Decimal
from typing import Any, Optional

from domain.constants import CURRENCY_SYMBOL
from domain.policy import DeliveryPolicy, get_policy
from models import DeliveryFeeResult
from utils.validators import parse_amount, round_money

logger = logging.getLogger(__name__)

_ZERO = Decimal("0")


def is_free_delivery(order_amount: Any, policy: Optional[DeliveryPolicy] = None) -> bool:
    """True when the subtotal reaches the free-delivery threshold."""
    policy = get_policy(policy)
    return parse_amount(order_amount) >= policy.free_delivery_threshold


def calculate_delivery_fee(
    order_amount: Any,
    policy: Optional[DeliveryPolicy] = None,
) -> DeliveryFeeResult:
    """
    Calculate the delivery fee for an order subtotal.

    Args:
        order_amount: Cart subtotal in rupees (int, float, Decimal or numeric string)
        policy: Override the configured policy (for testing)

    Returns:
        DeliveryFeeResult with every amount rounded half-up to 2 places

    Raises:
        InvalidAmountError if the amount is negative or not a finite number
    """
    policy = get_policy(policy)
    amount = parse_amount(order_amount)

    free = amount >= policy.free_delivery_threshold
    fee = _ZERO if free else policy.delivery_fee
    savings = policy.delivery_fee if free else _ZERO
    needed = _ZERO if free else max(_ZERO, policy.free_delivery_threshold - amount)

    result = DeliveryFeeResult(
        order_amount=round_money(amount),
        delivery_fee=round_money(fee),
        is_free_delivery=free,
        total_amount=round_money(amount + fee),
        savings=round_money(savings),
        amount_needed_for_free_delivery=round_money(needed),
    )
    logger.debug(
        f"Delivery fee for ₹{result.order_amount}: ₹{result.delivery_fee} "
        f"({'free' if free else 'paid'})"
    )
    return result


def fee_display_texts(result: DeliveryFeeResult) -> dict:
    """
    Customer-facing strings for the cart and checkout.

    Returns:
        dict with displayText, savingsText (None unless free) and
        promotionText (None once free delivery is reached)
    """
    if result.is_free_delivery:
        display = "FREE"
        savings_text = f"You saved {CURRENCY_SYMBOL}{result.savings} on delivery!"
    else:
        display = f"{CURRENCY_SYMBOL}{result.delivery_fee}"
        savings_text = None

    promotion_text = None
    if result.amount_needed_for_free_delivery > 0:
        promotion_text = (
            f"Add {CURRENCY_SYMBOL}{result.amount_needed_for_free_delivery} "
            f"more for FREE delivery!"
        )

    return {
        "displayText": display,
        "savingsText": savings_text,
        "promotionText": promotion_text,
    }


def get_policy_info(policy: Optional[DeliveryPolicy] = None) -> dict:
    """
    Describe the active policy for the frontends.

    Useful for rendering "free delivery above ₹199" banners without
    hardcoding the numbers client-side.
    """
    policy = get_policy(policy)
    return {
        "freeDeliveryThreshold": float(policy.free_delivery_threshold),
        "deliveryFee": float(policy.delivery_fee),
        "partnerEarnings": {
            "paidDelivery": float(policy.partner_earnings_paid),
            "freeDelivery": float(policy.partner_earnings_free),
        },
        "partnerSharePercentage": int(policy.partner_share_percentage),
        "bonuses": {
            "peakHour": float(policy.peak_hour_bonus),
            "weekend": float(policy.weekend_bonus),
            "dailyTarget": float(policy.daily_target_bonus),
            "dailyTargetThreshold": policy.daily_target_threshold,
            "peakHours": [list(w) for w in policy.peak_hours],
        },
        "cancellationWindowSeconds": policy.cancellation_window_ms // 1000,
    }
