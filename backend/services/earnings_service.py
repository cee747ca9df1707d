"""
Partner Earnings Service — payout for a single delivery.

Policy (defaults):
    - Free-delivery order (subtotal >= ₹199): partner gets ₹25, paid by Grocito
    - Paid-delivery order: customer pays ₹40, partner gets ₹30, Grocito keeps ₹10

Bonuses (peak hour, weekend, ...) are passed in already computed; deciding
which bonuses apply is services/bonus_service.py's job.
"""
import logging
from decimal import Decimal
from typing import Any, Dict, Mapping, Optional

from domain.enums import DeliveryType
from domain.policy import DeliveryPolicy, get_policy
from models import PartnerEarnings
from services.delivery_fee_service import is_free_delivery
from utils.validators import parse_amount, round_money

logger = logging.getLogger(__name__)

_ZERO = Decimal("0")


def normalize_bonuses(bonuses: Any) -> Dict[str, Decimal]:
    """
    Turn caller-supplied bonuses into {name: Decimal}.

    Missing/None values count as 0. A bare number is accepted as a single
    "bonus" entry, which is how the original REST contract sent a total.

    Raises:
        InvalidAmountError for negative or non-numeric bonus values
    """
    if bonuses is None:
        return {}
    if isinstance(bonuses, Mapping):
        normalized = {}
        for name, value in bonuses.items():
            if value is None:
                normalized[str(name)] = _ZERO
            else:
                normalized[str(name)] = parse_amount(value, field=f"bonuses.{name}")
        return normalized
    return {"bonus": parse_amount(bonuses, field="bonuses")}


def calculate_partner_earnings(
    order_amount: Any,
    bonuses: Any = None,
    policy: Optional[DeliveryPolicy] = None,
) -> PartnerEarnings:
    """
    Calculate a delivery partner's payout for one delivery.

    Args:
        order_amount: Order subtotal in rupees
        bonuses: Mapping of bonus name -> amount (None values count as 0)
        policy: Override the configured policy (for testing)

    Returns:
        PartnerEarnings. grocitoRevenue is negative when the platform
        subsidizes the delivery and positive when it keeps a margin.
    """
    policy = get_policy(policy)
    amount = parse_amount(order_amount)
    bonus_map = normalize_bonuses(bonuses)

    free = is_free_delivery(amount, policy)
    base = policy.partner_earnings_free if free else policy.partner_earnings_paid
    total_bonuses = sum(bonus_map.values(), _ZERO)

    if free:
        customer_paid = _ZERO
        grocito_paid = policy.partner_earnings_free
        grocito_revenue = -policy.partner_earnings_free
    else:
        customer_paid = policy.delivery_fee
        grocito_paid = _ZERO
        grocito_revenue = policy.delivery_fee - policy.partner_earnings_paid

    return PartnerEarnings(
        order_amount=round_money(amount),
        delivery_type=DeliveryType.FREE_DELIVERY if free else DeliveryType.PAID_DELIVERY,
        base_earnings=round_money(base),
        bonuses={name: round_money(value) for name, value in bonus_map.items()},
        total_bonuses=round_money(total_bonuses),
        total_earnings=round_money(base + total_bonuses),
        customer_paid=round_money(customer_paid),
        grocito_paid=round_money(grocito_paid),
        grocito_revenue=round_money(grocito_revenue),
    )
