"""
Delivery fee endpoints — fee calculation, partner earnings and the policy
the customer app and partner portal render.
"""

import logging
from typing import Any, List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field

from deps import get_policy_dep
from domain.policy import DeliveryPolicy
from domain.responses import success_response
from services import bonus_service, delivery_fee_service, earnings_aggregator, earnings_service

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/delivery-fee", tags=["delivery-fee"])


class FeeRequest(BaseModel):
    # Any: amounts are validated by the policy layer so bad values surface as 400
    order_amount: Any = Field(..., alias="orderAmount")


class PartnerEarningsRequest(BaseModel):
    order_amount: Any = Field(..., alias="orderAmount")
    bonuses: Any = None


class BulkDelivery(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    order_id: Optional[Any] = Field(None, alias="orderId")
    order_amount: Any = Field(..., alias="orderAmount")
    bonuses: Any = None
    delivered_at: Optional[Any] = Field(None, alias="deliveredAt")


class BulkEarningsRequest(BaseModel):
    deliveries: List[BulkDelivery] = Field(..., max_length=1000)


@router.post("/calculate")
async def calculate_fee(
    request: FeeRequest,
    policy: DeliveryPolicy = Depends(get_policy_dep),
):
    """Fee breakdown plus the cart's display strings."""
    result = delivery_fee_service.calculate_delivery_fee(request.order_amount, policy)
    return success_response({
        **result.to_api(),
        **delivery_fee_service.fee_display_texts(result),
    })


@router.post("/partner-earnings")
async def partner_earnings(
    request: PartnerEarningsRequest,
    policy: DeliveryPolicy = Depends(get_policy_dep),
):
    result = earnings_service.calculate_partner_earnings(
        request.order_amount, request.bonuses, policy,
    )
    return success_response(result.to_api())


@router.get("/policy")
async def policy_info(policy: DeliveryPolicy = Depends(get_policy_dep)):
    return success_response(delivery_fee_service.get_policy_info(policy))


@router.post("/bulk-earnings")
async def bulk_earnings(
    request: BulkEarningsRequest,
    policy: DeliveryPolicy = Depends(get_policy_dep),
):
    """Earnings for a batch of completed deliveries."""
    deliveries = [d.model_dump(by_alias=True) for d in request.deliveries]
    summary = earnings_aggregator.calculate_bulk_earnings(deliveries, policy)
    return success_response(summary.to_api())


@router.get("/bonus-status")
async def bonus_status(policy: DeliveryPolicy = Depends(get_policy_dep)):
    """Whether peak-hour and weekend bonuses apply right now."""
    return success_response(bonus_service.get_current_bonus_status(policy=policy).to_api())
