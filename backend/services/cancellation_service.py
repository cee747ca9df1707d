"""
Cancellation Service — the 2-minute customer cancellation window.

A customer may cancel only while the order is still PLACED and at most
CANCELLATION_WINDOW_MS (120 000 ms) have passed since it was placed.
Every other status is terminal for this capability; statuses we do not
recognise are treated as non-cancellable.

`order` may be a mapping ({"status", "placedAt" | "orderTime"}) or an
object with `status` and `order_time` attributes (the ORM row).
"""
import logging
from datetime import datetime
from typing import Any, Mapping, Optional

from domain.enums import OrderStatus
from domain.policy import DeliveryPolicy, get_policy
from models import CancellationWindow
from utils.validators import parse_timestamp, utc_now

logger = logging.getLogger(__name__)


def _status(order: Any) -> Optional[str]:
    raw = order.get("status") if isinstance(order, Mapping) else getattr(order, "status", None)
    if isinstance(raw, OrderStatus):
        return raw.value
    return raw


def _placed_at(order: Any) -> datetime:
    if isinstance(order, Mapping):
        raw = order.get("placedAt")
        if raw is None:
            raw = order.get("orderTime")
    else:
        raw = getattr(order, "placed_at", None)
        if raw is None:
            raw = getattr(order, "order_time", None)
    return parse_timestamp(raw, field="placedAt")


def _elapsed_ms(order: Any, now: Any) -> int:
    moment = utc_now() if now is None else parse_timestamp(now, field="now")
    delta = moment - _placed_at(order)
    return (delta.days * 86_400_000) + (delta.seconds * 1000) + (delta.microseconds // 1000)


def can_cancel_order(
    order: Any,
    now: Any = None,
    policy: Optional[DeliveryPolicy] = None,
) -> bool:
    """
    True if the customer may still cancel.

    Raises:
        InvalidTimestampError if the order has no usable placement time
    """
    if order is None:
        return False
    policy = get_policy(policy)
    elapsed = _elapsed_ms(order, now)
    if _status(order) != OrderStatus.PLACED.value:
        return False
    return elapsed <= policy.cancellation_window_ms


def get_cancellation_time_remaining(
    order: Any,
    now: Any = None,
    policy: Optional[DeliveryPolicy] = None,
) -> int:
    """
    Whole seconds left in the cancellation window, never negative.

    Counts down from placement regardless of status; use
    get_cancellation_window() when the status matters too.
    """
    if order is None:
        return 0
    policy = get_policy(policy)
    remaining_ms = policy.cancellation_window_ms - _elapsed_ms(order, now)
    return max(0, remaining_ms // 1000)


def get_cancellation_window(
    order: Any,
    now: Any = None,
    policy: Optional[DeliveryPolicy] = None,
) -> CancellationWindow:
    """canCancel plus the seconds remaining (0 whenever canCancel is false)."""
    policy = get_policy(policy)
    moment = utc_now() if now is None else now
    allowed = can_cancel_order(order, moment, policy)
    remaining = get_cancellation_time_remaining(order, moment, policy) if allowed else 0
    return CancellationWindow(can_cancel=allowed, time_remaining_seconds=remaining)
