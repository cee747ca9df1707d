"""
The delivery policy as one immutable value.

Fee, earnings, bonus and cancellation rules all read their numbers from a
DeliveryPolicy instead of literals, so the cart view, the order record and
the partner dashboard cannot drift apart.
"""
from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import tzinfo
from decimal import Decimal
from typing import Optional, Tuple
from zoneinfo import ZoneInfo

from domain import constants


@dataclass(frozen=True)
class DeliveryPolicy:
    free_delivery_threshold: Decimal = constants.FREE_DELIVERY_THRESHOLD
    delivery_fee: Decimal = constants.DELIVERY_FEE
    partner_earnings_free: Decimal = constants.PARTNER_EARNINGS_FREE
    partner_earnings_paid: Decimal = constants.PARTNER_EARNINGS_PAID
    peak_hour_bonus: Decimal = constants.PEAK_HOUR_BONUS
    weekend_bonus: Decimal = constants.WEEKEND_BONUS
    daily_target_bonus: Decimal = constants.DAILY_TARGET_BONUS
    daily_target_threshold: int = constants.DAILY_TARGET_THRESHOLD
    peak_hours: Tuple[Tuple[int, int], ...] = ((7, 10), (18, 21))
    timezone: str = constants.LOCAL_TIMEZONE
    cancellation_window_ms: int = constants.CANCELLATION_WINDOW_MS

    @property
    def tz(self) -> tzinfo:
        return ZoneInfo(self.timezone)

    @property
    def partner_share_percentage(self) -> Decimal:
        """Share of the customer's delivery fee passed on to the partner."""
        if not self.delivery_fee:
            return Decimal("0")
        return (self.partner_earnings_paid / self.delivery_fee * 100).quantize(Decimal("1"))

    def with_overrides(self, **changes) -> "DeliveryPolicy":
        return replace(self, **changes)

    @classmethod
    def from_settings(cls, settings) -> "DeliveryPolicy":
        return cls(
            free_delivery_threshold=settings.free_delivery_threshold,
            delivery_fee=settings.delivery_fee,
            partner_earnings_free=settings.partner_earnings_free,
            partner_earnings_paid=settings.partner_earnings_paid,
            peak_hour_bonus=settings.peak_hour_bonus,
            weekend_bonus=settings.weekend_bonus,
            daily_target_bonus=settings.daily_target_bonus,
            daily_target_threshold=settings.daily_target_threshold,
            peak_hours=settings.peak_hour_windows,
            timezone=settings.local_timezone,
            cancellation_window_ms=settings.cancellation_window_ms,
        )


def get_policy(policy: Optional[DeliveryPolicy] = None) -> DeliveryPolicy:
    """Return `policy` if given, otherwise the policy configured in settings."""
    if policy is not None:
        return policy
    from config import settings
    return DeliveryPolicy.from_settings(settings)
