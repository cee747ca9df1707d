"""
Domain constants used across services/routers.

Defaults for the delivery policy. The live values come from config.Settings,
which reads these as defaults and lets .env override them.
"""
from decimal import Decimal

# Delivery fee policy (₹)
FREE_DELIVERY_THRESHOLD = Decimal("199.00")
DELIVERY_FEE = Decimal("40.00")

# Partner base earnings per delivery (₹)
PARTNER_EARNINGS_FREE = Decimal("25.00")   # paid by Grocito
PARTNER_EARNINGS_PAID = Decimal("30.00")   # 75% of the delivery fee

# Partner bonuses (₹)
PEAK_HOUR_BONUS = Decimal("5.00")
WEEKEND_BONUS = Decimal("3.00")
DAILY_TARGET_BONUS = Decimal("80.00")
DAILY_TARGET_THRESHOLD = 12

# Local clock used for peak hours, weekends and calendar days
PEAK_HOURS = "7-10,18-21"
LOCAL_TIMEZONE = "Asia/Kolkata"

# Client-initiated cancellation window after placement
CANCELLATION_WINDOW_MS = 120_000

CURRENCY_SYMBOL = "₹"
MONEY_QUANTUM = Decimal("0.01")
# Largest accepted order amount or bonus; matches the Numeric(10, 2) money columns
MAX_AMOUNT = Decimal("99999999.99")

# Bonus names as they appear in earnings breakdowns
BONUS_PEAK_HOUR = "peakHour"
BONUS_WEEKEND = "weekend"
BONUS_DAILY_TARGET = "dailyTarget"

# Client-chosen half of a checkout receipt; receipts stay within Razorpay's 40 characters
CHECKOUT_REF_PATTERN = r"^[A-Za-z0-9_-]{16,24}$"
