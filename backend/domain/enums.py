"""
Domain enums (minimal set used for clarity in services).
"""

from enum import Enum


class OrderStatus(str, Enum):
    PLACED = "PLACED"
    CONFIRMED = "CONFIRMED"
    PACKED = "PACKED"
    OUT_FOR_DELIVERY = "OUT_FOR_DELIVERY"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"


class DeliveryType(str, Enum):
    FREE_DELIVERY = "FREE_DELIVERY"
    PAID_DELIVERY = "PAID_DELIVERY"


class PaymentMethod(str, Enum):
    COD = "COD"
    ONLINE = "ONLINE"


class EarningsPeriod(str, Enum):
    TODAY = "today"
    WEEK = "week"
    ALL = "all"


# Server-side order transitions. DELIVERED and CANCELLED are terminal.
ORDER_TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.PLACED: frozenset({
        OrderStatus.CONFIRMED,
        OrderStatus.PACKED,
        OrderStatus.OUT_FOR_DELIVERY,
        OrderStatus.DELIVERED,
        OrderStatus.CANCELLED,
    }),
    OrderStatus.CONFIRMED: frozenset({
        OrderStatus.PACKED,
        OrderStatus.OUT_FOR_DELIVERY,
        OrderStatus.DELIVERED,
        OrderStatus.CANCELLED,
    }),
    OrderStatus.PACKED: frozenset({
        OrderStatus.OUT_FOR_DELIVERY,
        OrderStatus.DELIVERED,
        OrderStatus.CANCELLED,
    }),
    OrderStatus.OUT_FOR_DELIVERY: frozenset({OrderStatus.DELIVERED}),
    OrderStatus.DELIVERED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
}
