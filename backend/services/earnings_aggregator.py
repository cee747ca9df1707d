"""
Earnings Aggregator — folds completed deliveries into partner summaries.

Four views:
    - calculate_earnings_summary: plain fold, bonuses exactly as supplied
    - calculate_daily_earnings:   today's deliveries + daily-target bonus
    - calculate_weekly_earnings:  last 7 days, target bonus per calendar day
    - calculate_total_earnings:   all deliveries, target bonus per calendar day

plus calculate_bulk_earnings for the partner dashboard's batch endpoint.

A delivery is any mapping or object exposing orderAmount/order_amount and
optionally bonuses, deliveredAt/delivered_at (or orderTime/order_time as a
fallback) and orderId/order_id/id.
"""
import logging
from collections import defaultdict
from datetime import date, datetime, timedelta
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from domain.constants import BONUS_PEAK_HOUR, BONUS_WEEKEND
from domain.enums import DeliveryType
from domain.errors import InvalidTimestampError
from domain.policy import DeliveryPolicy, get_policy
from models import (
    BonusBreakdown,
    BulkEarningsSummary,
    DailyEarningsSummary,
    DeliveryEarnings,
    EarningsSummary,
    PeriodEarningsSummary,
)
from services.bonus_service import BonusStrategy, format_bonus_breakdown, get_bonus_strategy
from services.earnings_service import calculate_partner_earnings, normalize_bonuses
from utils.validators import parse_timestamp, round_money, utc_now

logger = logging.getLogger(__name__)

_ZERO = Decimal("0")


# ════════════════════════════════════════════════════════════════════
# Delivery field access
# ════════════════════════════════════════════════════════════════════


def _field(delivery: Any, *names: str) -> Any:
    for name in names:
        if isinstance(delivery, Mapping):
            if delivery.get(name) is not None:
                return delivery[name]
        else:
            value = getattr(delivery, name, None)
            if value is not None:
                return value
    return None


def delivery_timestamp(delivery: Any) -> datetime:
    """When the delivery happened: deliveredAt, else orderTime. Aware UTC."""
    raw = _field(delivery, "deliveredAt", "delivered_at", "orderTime", "order_time")
    if raw is None:
        raise InvalidTimestampError(None, field="deliveredAt")
    return parse_timestamp(raw, field="deliveredAt")


def _order_amount(delivery: Any) -> Any:
    return _field(delivery, "orderAmount", "order_amount")


def _order_id(delivery: Any) -> Any:
    return _field(delivery, "orderId", "order_id", "id")


# ════════════════════════════════════════════════════════════════════
# Per-delivery earnings
# ════════════════════════════════════════════════════════════════════


def _delivery_earnings(
    delivery: Any,
    bonuses: Dict[str, Decimal],
    policy: DeliveryPolicy,
    delivered_at: Optional[datetime] = None,
) -> DeliveryEarnings:
    earnings = calculate_partner_earnings(_order_amount(delivery), bonuses, policy)
    return DeliveryEarnings(
        **earnings.model_dump(),
        order_id=_order_id(delivery),
        delivered_at=delivered_at,
        bonus_breakdown=format_bonus_breakdown(earnings.bonuses),
    )


def _timed_earnings(
    delivery: Any,
    now: datetime,
    policy: DeliveryPolicy,
    strategy: BonusStrategy,
) -> DeliveryEarnings:
    """Earnings with time bonuses from the strategy on top of any supplied bonuses."""
    delivered_at = delivery_timestamp(delivery)
    bonuses = normalize_bonuses(_field(delivery, "bonuses"))
    bonuses.update(strategy(delivered_at, now, policy))
    return _delivery_earnings(delivery, bonuses, policy, delivered_at)


# ════════════════════════════════════════════════════════════════════
# Folding
# ════════════════════════════════════════════════════════════════════


def _average(total: Decimal, count: int) -> Decimal:
    if count <= 0:
        return round_money(_ZERO)
    return (total / count).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def _fold(earnings: Sequence[DeliveryEarnings], extra_bonus: Decimal = _ZERO) -> dict:
    """Sum a batch of per-delivery earnings; `extra_bonus` is added to totals."""
    total_base = sum((e.base_earnings for e in earnings), _ZERO)
    total_bonuses = sum((e.total_bonuses for e in earnings), _ZERO) + extra_bonus
    total = sum((e.total_earnings for e in earnings), _ZERO) + extra_bonus
    free = sum(1 for e in earnings if e.delivery_type == DeliveryType.FREE_DELIVERY)
    return {
        "total_deliveries": len(earnings),
        "free_deliveries": free,
        "paid_deliveries": len(earnings) - free,
        "total_earnings": round_money(total),
        "total_base_earnings": round_money(total_base),
        "total_bonuses": round_money(total_bonuses),
        "average_earnings_per_delivery": _average(total, len(earnings)),
    }


def calculate_earnings_summary(
    deliveries: Iterable[Any],
    policy: Optional[DeliveryPolicy] = None,
) -> EarningsSummary:
    """
    Fold deliveries through calculate_partner_earnings.

    Bonuses are taken exactly as supplied on each delivery; no time-based
    or daily-target bonus is added here.
    """
    policy = get_policy(policy)
    earnings = [
        _delivery_earnings(d, normalize_bonuses(_field(d, "bonuses")), policy)
        for d in deliveries
    ]
    return EarningsSummary(**_fold(earnings))


def _resolve(now: Any, policy: Optional[DeliveryPolicy], strategy: Optional[BonusStrategy]):
    return (
        utc_now() if now is None else parse_timestamp(now, field="now"),
        get_policy(policy),
        strategy or get_bonus_strategy(),
    )


def calculate_daily_earnings(
    deliveries: Iterable[Any],
    now: Any = None,
    policy: Optional[DeliveryPolicy] = None,
    strategy: Optional[BonusStrategy] = None,
) -> DailyEarningsSummary:
    """
    Today's earnings (local calendar day of `now`) with the daily-target bonus.

    Hitting DAILY_TARGET_THRESHOLD deliveries adds DAILY_TARGET_BONUS once;
    below it, deliveriesNeededForTarget says how many more are needed.
    """
    now, policy, strategy = _resolve(now, policy, strategy)
    today = now.astimezone(policy.tz).date()

    todays = [d for d in deliveries if delivery_timestamp(d).astimezone(policy.tz).date() == today]
    earnings = [_timed_earnings(d, now, policy, strategy) for d in todays]

    count = len(earnings)
    achieved = count >= policy.daily_target_threshold
    target_bonus = policy.daily_target_bonus if achieved else _ZERO

    peak_count = sum(1 for e in earnings if e.bonuses.get(BONUS_PEAK_HOUR))
    weekend_count = sum(1 for e in earnings if e.bonuses.get(BONUS_WEEKEND))

    logger.info(
        f"Daily earnings for {today}: {count} deliveries, "
        f"target {'achieved' if achieved else 'not achieved'}"
    )

    return DailyEarningsSummary(
        **_fold(earnings, extra_bonus=target_bonus),
        summary_date=today,
        peak_hour_deliveries=peak_count,
        weekend_deliveries=weekend_count,
        daily_target_bonus=round_money(target_bonus),
        daily_target_achieved=achieved,
        deliveries_needed_for_target=max(0, policy.daily_target_threshold - count),
        bonus_breakdown=BonusBreakdown(
            peak_hour=round_money(policy.peak_hour_bonus * peak_count),
            weekend=round_money(policy.weekend_bonus * weekend_count),
            daily_target=round_money(target_bonus),
        ),
        deliveries=earnings,
    )


def _period_summary(
    deliveries: List[Any],
    now: datetime,
    policy: DeliveryPolicy,
    strategy: BonusStrategy,
    period_start: Optional[datetime],
) -> PeriodEarningsSummary:
    by_day: Dict[date, List[DeliveryEarnings]] = defaultdict(list)
    for d in deliveries:
        e = _timed_earnings(d, now, policy, strategy)
        by_day[e.delivered_at.astimezone(policy.tz).date()].append(e)

    target_days = sum(1 for day in by_day.values() if len(day) >= policy.daily_target_threshold)
    target_bonuses = policy.daily_target_bonus * target_days
    earnings = [e for day in by_day.values() for e in day]

    return PeriodEarningsSummary(
        **_fold(earnings, extra_bonus=target_bonuses),
        daily_target_bonuses=round_money(target_bonuses),
        days_with_target_achieved=target_days,
        period_start=period_start,
    )


def calculate_weekly_earnings(
    deliveries: Iterable[Any],
    now: Any = None,
    policy: Optional[DeliveryPolicy] = None,
    strategy: Optional[BonusStrategy] = None,
) -> PeriodEarningsSummary:
    """Deliveries from the last 7 days; daily-target bonus per qualifying day."""
    now, policy, strategy = _resolve(now, policy, strategy)
    week_start = now - timedelta(days=7)
    recent = [d for d in deliveries if delivery_timestamp(d) >= week_start]
    return _period_summary(recent, now, policy, strategy, week_start)


def calculate_total_earnings(
    deliveries: Iterable[Any],
    now: Any = None,
    policy: Optional[DeliveryPolicy] = None,
    strategy: Optional[BonusStrategy] = None,
) -> PeriodEarningsSummary:
    """All deliveries; daily-target bonus per qualifying day."""
    now, policy, strategy = _resolve(now, policy, strategy)
    return _period_summary(list(deliveries), now, policy, strategy, None)


def calculate_bulk_earnings(
    deliveries: Iterable[Any],
    policy: Optional[DeliveryPolicy] = None,
) -> BulkEarningsSummary:
    """
    Batch earnings for the partner dashboard.

    Bonuses as supplied per delivery; one daily-target bonus when the batch
    holds at least DAILY_TARGET_THRESHOLD deliveries.
    """
    policy = get_policy(policy)
    earnings = []
    for d in deliveries:
        raw_ts = _field(d, "deliveredAt", "delivered_at")
        delivered_at = parse_timestamp(raw_ts, field="deliveredAt") if raw_ts is not None else None
        earnings.append(
            _delivery_earnings(d, normalize_bonuses(_field(d, "bonuses")), policy, delivered_at)
        )

    target_bonus = policy.daily_target_bonus if len(earnings) >= policy.daily_target_threshold else _ZERO

    return BulkEarningsSummary(
        **_fold(earnings, extra_bonus=target_bonus),
        daily_target_bonus=round_money(target_bonus),
        earnings_breakdown=earnings,
    )
