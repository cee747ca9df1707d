"""
Delivery partner endpoints — earnings dashboard.
"""

import logging

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from deps import get_policy_dep
from domain.enums import EarningsPeriod
from domain.policy import DeliveryPolicy
from domain.responses import success_response
from services import earnings_aggregator, order_service
from utils.validators import validated_partner_id

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/delivery-partner", tags=["delivery-partner"])

_VIEWS = {
    EarningsPeriod.TODAY: earnings_aggregator.calculate_daily_earnings,
    EarningsPeriod.WEEK: earnings_aggregator.calculate_weekly_earnings,
    EarningsPeriod.ALL: earnings_aggregator.calculate_total_earnings,
}


@router.get("/{partner_id}/earnings")
async def get_partner_earnings(
    partner_id: int = Depends(validated_partner_id),
    period: EarningsPeriod = Query(EarningsPeriod.TODAY),
    db: AsyncSession = Depends(get_db),
    policy: DeliveryPolicy = Depends(get_policy_dep),
):
    """Earnings over the partner's delivered orders for today, the last week or all time."""
    deliveries = await order_service.list_partner_deliveries(db, partner_id)
    summary = _VIEWS[period](deliveries, policy=policy)
    return success_response(summary.to_api(), meta={"partnerId": partner_id, "period": period.value})
