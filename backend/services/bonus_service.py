"""
Bonus Service — peak-hour and weekend bonus eligibility.

Peak hours and weekends are judged on the local clock (LOCAL_TIMEZONE):
    - Peak hours: [7, 10) and [18, 21) by default (PEAK_HOURS)
    - Weekend: Saturday or Sunday

Which moment gets judged is a strategy choice (BONUS_TIME_BASIS):
    - "delivery":    the delivery's own timestamp (now if it has none)
    - "observation": the moment the earnings are computed

The partner portal historically did both, depending on the screen, so both
are kept and selectable.
"""
import logging
from datetime import datetime
from decimal import Decimal
from typing import Any, Callable, Dict, Mapping, Optional

from domain.constants import BONUS_PEAK_HOUR, BONUS_WEEKEND, CURRENCY_SYMBOL
from domain.policy import DeliveryPolicy, get_policy
from models import BonusStatus
from utils.validators import parse_timestamp, round_money, utc_now

logger = logging.getLogger(__name__)

BonusStrategy = Callable[[Optional[datetime], datetime, DeliveryPolicy], Dict[str, Decimal]]


def _local(moment: Any, policy: DeliveryPolicy) -> datetime:
    return parse_timestamp(moment, field="deliveredAt").astimezone(policy.tz)


def is_peak_hour(moment: Any, policy: Optional[DeliveryPolicy] = None) -> bool:
    """True if the local hour falls in one of the peak windows."""
    policy = get_policy(policy)
    hour = _local(moment, policy).hour
    return any(start <= hour < end for start, end in policy.peak_hours)


def is_weekend(moment: Any, policy: Optional[DeliveryPolicy] = None) -> bool:
    """True on local Saturday or Sunday."""
    policy = get_policy(policy)
    return _local(moment, policy).weekday() >= 5


def calculate_time_bonuses(moment: Any, policy: Optional[DeliveryPolicy] = None) -> Dict[str, Decimal]:
    """
    Bonuses earned by a delivery judged at `moment`.

    Returns:
        {"peakHour": 5, "weekend": 3}, either key only when it applies
    """
    policy = get_policy(policy)
    bonuses: Dict[str, Decimal] = {}
    if is_peak_hour(moment, policy):
        bonuses[BONUS_PEAK_HOUR] = policy.peak_hour_bonus
    if is_weekend(moment, policy):
        bonuses[BONUS_WEEKEND] = policy.weekend_bonus
    return bonuses


def delivery_time_strategy(
    delivered_at: Optional[datetime],
    now: datetime,
    policy: DeliveryPolicy,
) -> Dict[str, Decimal]:
    """Judge bonuses at the delivery's own timestamp, falling back to now."""
    return calculate_time_bonuses(delivered_at if delivered_at is not None else now, policy)


def observation_time_strategy(
    delivered_at: Optional[datetime],
    now: datetime,
    policy: DeliveryPolicy,
) -> Dict[str, Decimal]:
    """Judge bonuses at the time of computation, ignoring when the delivery happened."""
    return calculate_time_bonuses(now, policy)


_STRATEGIES: Dict[str, BonusStrategy] = {
    "delivery": delivery_time_strategy,
    "observation": observation_time_strategy,
}


def get_bonus_strategy(name: Optional[str] = None) -> BonusStrategy:
    """
    Resolve a strategy by name; defaults to settings.bonus_time_basis.

    Raises:
        ValueError for unknown names
    """
    if name is None:
        from config import settings
        name = settings.bonus_time_basis
    try:
        return _STRATEGIES[name]
    except KeyError:
        raise ValueError(f"Unknown bonus time basis: {name!r}")


def get_current_bonus_status(
    now: Any = None,
    policy: Optional[DeliveryPolicy] = None,
) -> BonusStatus:
    """Whether a delivery completed right now would earn peak/weekend bonuses."""
    policy = get_policy(policy)
    moment = utc_now() if now is None else now
    peak = is_peak_hour(moment, policy)
    weekend = is_weekend(moment, policy)
    return BonusStatus(
        is_peak_hour=peak,
        is_weekend=weekend,
        peak_hour_bonus=round_money(policy.peak_hour_bonus if peak else Decimal("0")),
        weekend_bonus=round_money(policy.weekend_bonus if weekend else Decimal("0")),
    )


def format_bonus_breakdown(bonuses: Mapping[str, Any]) -> str:
    """Render bonuses as "Peak Hour: +₹5, Weekend: +₹3", or "No bonuses"."""
    texts = []
    if bonuses.get(BONUS_PEAK_HOUR):
        texts.append(f"Peak Hour: +{CURRENCY_SYMBOL}{_plain(bonuses[BONUS_PEAK_HOUR])}")
    if bonuses.get(BONUS_WEEKEND):
        texts.append(f"Weekend: +{CURRENCY_SYMBOL}{_plain(bonuses[BONUS_WEEKEND])}")
    return ", ".join(texts) or "No bonuses"


def _plain(value: Any) -> str:
    # ₹5 rather than ₹5.00 for whole rupees
    d = Decimal(str(value))
    return str(d.quantize(Decimal("1"))) if d == d.to_integral_value() else str(d.normalize())
