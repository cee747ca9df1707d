"""
Pydantic models for request/response validation.

Policy results are pydantic models so the services return typed values and
the routes serialize them straight into the camelCase JSON the Grocito
frontends read. Money stays Decimal in Python and becomes a JSON number.
"""
from datetime import date, datetime
from decimal import Decimal
from typing import Annotated, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, PlainSerializer

from domain.constants import MAX_AMOUNT
from domain.enums import DeliveryType

Money = Annotated[Decimal, PlainSerializer(float, return_type=float, when_used="json")]


class ApiModel(BaseModel):
    """Shared base — allows construction by Python name or alias."""
    model_config = ConfigDict(populate_by_name=True, from_attributes=True)

    def to_api(self) -> dict:
        """JSON-ready dict with camelCase keys."""
        return self.model_dump(mode="json", by_alias=True)


# ── Delivery Fee ────────────────────────────────────────────────────

class DeliveryFeeResult(ApiModel):
    """Fee breakdown for one order subtotal."""
    order_amount: Money = Field(..., alias="orderAmount")
    delivery_fee: Money = Field(..., alias="deliveryFee")
    is_free_delivery: bool = Field(..., alias="isFreeDelivery")
    total_amount: Money = Field(..., alias="totalAmount")
    savings: Money
    amount_needed_for_free_delivery: Money = Field(..., alias="amountNeededForFreeDelivery")


# ── Partner Earnings ────────────────────────────────────────────────

class PartnerEarnings(ApiModel):
    """Payout for a single delivery plus the platform's side of it."""
    order_amount: Money = Field(..., alias="orderAmount")
    delivery_type: DeliveryType = Field(..., alias="deliveryType")
    base_earnings: Money = Field(..., alias="baseEarnings")
    bonuses: Dict[str, Money] = Field(default_factory=dict)
    total_bonuses: Money = Field(..., alias="totalBonuses")
    total_earnings: Money = Field(..., alias="totalEarnings")
    customer_paid: Money = Field(..., alias="customerPaid")
    grocito_paid: Money = Field(..., alias="grocitoPaid")
    grocito_revenue: Money = Field(..., alias="grocitoRevenue")  # negative = platform cost


class DeliveryEarnings(PartnerEarnings):
    """PartnerEarnings for one completed delivery in a breakdown."""
    order_id: Optional[Union[int, str]] = Field(None, alias="orderId")
    delivered_at: Optional[datetime] = Field(None, alias="deliveredAt")
    bonus_breakdown: str = Field("No bonuses", alias="bonusBreakdown")


class Delivery(ApiModel):
    """A completed delivery as sent by the partner portal."""
    order_id: Optional[Union[int, str]] = Field(None, alias="orderId")
    order_amount: Decimal = Field(..., alias="orderAmount", ge=0)
    bonuses: Union[Dict[str, Optional[Decimal]], Decimal, None] = None
    delivered_at: Optional[datetime] = Field(None, alias="deliveredAt")


# ── Earnings Summaries ──────────────────────────────────────────────

class EarningsSummary(ApiModel):
    total_deliveries: int = Field(..., alias="totalDeliveries")
    free_deliveries: int = Field(..., alias="freeDeliveries")
    paid_deliveries: int = Field(..., alias="paidDeliveries")
    total_earnings: Money = Field(..., alias="totalEarnings")
    total_base_earnings: Money = Field(..., alias="totalBaseEarnings")
    total_bonuses: Money = Field(..., alias="totalBonuses")
    average_earnings_per_delivery: Money = Field(..., alias="averageEarningsPerDelivery")


class BonusBreakdown(ApiModel):
    peak_hour: Money = Field(..., alias="peakHour")
    weekend: Money
    daily_target: Money = Field(..., alias="dailyTarget")


class DailyEarningsSummary(EarningsSummary):
    """Today's earnings, with the daily-target bonus applied."""
    summary_date: date = Field(..., alias="date")
    peak_hour_deliveries: int = Field(..., alias="peakHourDeliveries")
    weekend_deliveries: int = Field(..., alias="weekendDeliveries")
    daily_target_bonus: Money = Field(..., alias="dailyTargetBonus")
    daily_target_achieved: bool = Field(..., alias="dailyTargetAchieved")
    deliveries_needed_for_target: int = Field(..., alias="deliveriesNeededForTarget")
    bonus_breakdown: BonusBreakdown = Field(..., alias="bonusBreakdown")
    deliveries: List[DeliveryEarnings] = Field(default_factory=list)


class PeriodEarningsSummary(EarningsSummary):
    """Weekly or all-time earnings, target bonus counted per calendar day."""
    daily_target_bonuses: Money = Field(..., alias="dailyTargetBonuses")
    days_with_target_achieved: int = Field(..., alias="daysWithTargetAchieved")
    period_start: Optional[datetime] = Field(None, alias="periodStart")


class BulkEarningsSummary(EarningsSummary):
    """Batch earnings as computed by the bulk-earnings endpoint."""
    daily_target_bonus: Money = Field(..., alias="dailyTargetBonus")
    earnings_breakdown: List[DeliveryEarnings] = Field(default_factory=list, alias="earningsBreakdown")


# ── Bonuses ─────────────────────────────────────────────────────────

class BonusStatus(ApiModel):
    """Whether peak-hour / weekend bonuses apply right now."""
    is_peak_hour: bool = Field(..., alias="isPeakHour")
    is_weekend: bool = Field(..., alias="isWeekend")
    peak_hour_bonus: Money = Field(..., alias="peakHourBonus")
    weekend_bonus: Money = Field(..., alias="weekendBonus")


# ── Cancellation ────────────────────────────────────────────────────

class CancellationWindow(ApiModel):
    can_cancel: bool = Field(..., alias="canCancel")
    time_remaining_seconds: int = Field(..., alias="timeRemainingSeconds", ge=0)


# ── Cart ────────────────────────────────────────────────────────────

class CartLine(ApiModel):
    """One product line in a customer's cart."""
    product_id: int = Field(..., alias="productId", gt=0)
    product_name: str = Field("", alias="productName", max_length=200)
    unit_price: Money = Field(..., alias="unitPrice", ge=0, le=MAX_AMOUNT)
    quantity: int = Field(1, ge=1, le=50)

    @property
    def line_total(self) -> Decimal:
        return self.unit_price * self.quantity


# ── Payments ────────────────────────────────────────────────────────

class PaymentOptions(ApiModel):
    """What the checkout needs to collect a payment."""
    amount: Money = Field(..., gt=0)
    currency: str = "INR"
    receipt: str = Field(..., description="Our reference for the payment (order receipt)")
    customer_name: Optional[str] = Field(None, alias="customerName")
    customer_email: Optional[str] = Field(None, alias="customerEmail")
    customer_phone: Optional[str] = Field(None, alias="customerPhone")
    description: str = "Payment for grocery order"

    @property
    def amount_paise(self) -> int:
        return int((self.amount * 100).to_integral_value())


class PaymentResult(ApiModel):
    payment_id: str = Field(..., alias="paymentId")
    order_id: Optional[str] = Field(None, alias="orderId")
    signature: Optional[str] = None
    amount: Money
    currency: str = "INR"


# ── Orders ──────────────────────────────────────────────────────────

class OrderItemResponse(ApiModel):
    product_id: int = Field(..., alias="productId")
    product_name: str = Field(..., alias="productName")
    unit_price: Money = Field(..., alias="unitPrice")
    quantity: int


class OrderResponse(ApiModel):
    """An order as the customer app renders it, with its cancellation window."""
    id: int
    user_id: int = Field(..., alias="userId")
    status: str
    order_time: datetime = Field(..., alias="orderTime")
    delivery_address: str = Field(..., alias="deliveryAddress")
    pincode: str
    subtotal: Money
    delivery_fee: Money = Field(..., alias="deliveryFee")
    total_amount: Money = Field(..., alias="totalAmount")
    partner_earning: Money = Field(..., alias="partnerEarning")
    payment_method: str = Field(..., alias="paymentMethod")
    payment_id: Optional[str] = Field(None, alias="paymentId")
    partner_id: Optional[int] = Field(None, alias="partnerId")
    delivered_at: Optional[datetime] = Field(None, alias="deliveredAt")
    cancelled_at: Optional[datetime] = Field(None, alias="cancelledAt")
    items: List[OrderItemResponse] = Field(default_factory=list)
    can_cancel: bool = Field(False, alias="canCancel")
    time_remaining_seconds: int = Field(0, alias="timeRemainingSeconds")
