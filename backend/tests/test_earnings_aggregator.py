"""
Tests for the earnings aggregator — daily, weekly, all-time and bulk views.
"""

import os, sys
sys.path.insert(0, os.path.dirname(os.path.dirname(__file__)))

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from domain.errors import InvalidTimestampError
from models import Delivery
from services.bonus_service import observation_time_strategy
from services.earnings_aggregator import (
    calculate_bulk_earnings,
    calculate_daily_earnings,
    calculate_earnings_summary,
    calculate_total_earnings,
    calculate_weekly_earnings,
)
from conftest import WEEKDAY_EVENING_PEAK, WEEKDAY_NOON

# 15:30 IST on Wednesday 2024-01-10, off-peak
AFTERNOON = datetime(2024, 1, 10, 10, 0, tzinfo=timezone.utc)


def _offpeak_deliveries(count, amount=250, day=WEEKDAY_NOON):
    """`count` deliveries ten minutes apart from 12:00 IST."""
    return [
        {"orderId": i + 1, "orderAmount": amount, "deliveredAt": (day + timedelta(minutes=10 * i)).isoformat()}
        for i in range(count)
    ]


class TestEarningsSummary:

    @pytest.mark.unit
    def test_empty_list(self, policy):
        summary = calculate_earnings_summary([], policy)
        assert summary.total_deliveries == 0
        assert summary.total_earnings == Decimal("0.00")
        assert summary.average_earnings_per_delivery == Decimal("0.00")

    @pytest.mark.unit
    def test_mixed_deliveries(self, policy):
        summary = calculate_earnings_summary(
            [
                {"orderAmount": 150},
                {"orderAmount": 250, "bonuses": {"peakHour": 5}},
            ],
            policy,
        )
        assert summary.free_deliveries == 1
        assert summary.paid_deliveries == 1
        assert summary.total_base_earnings == Decimal("55.00")
        assert summary.total_bonuses == Decimal("5.00")
        assert summary.total_earnings == Decimal("60.00")
        assert summary.average_earnings_per_delivery == Decimal("30.00")

    @pytest.mark.unit
    def test_accepts_delivery_models(self, policy):
        summary = calculate_earnings_summary([Delivery(order_amount=Decimal("150"))], policy)
        assert summary.total_earnings == Decimal("30.00")


class TestDailyEarnings:
    """Tests for calculate_daily_earnings()."""

    @pytest.mark.unit
    def test_twelve_offpeak_free_deliveries_hit_target(self, policy):
        """12 × ₹25 + ₹80 target bonus = ₹380."""
        summary = calculate_daily_earnings(_offpeak_deliveries(12), AFTERNOON, policy)
        assert summary.total_deliveries == 12
        assert summary.daily_target_achieved is True
        assert summary.daily_target_bonus == Decimal("80.00")
        assert summary.total_earnings == Decimal("380.00")
        assert summary.deliveries_needed_for_target == 0
        assert summary.bonus_breakdown.daily_target == Decimal("80.00")

    @pytest.mark.unit
    def test_eleven_deliveries_miss_target(self, policy):
        summary = calculate_daily_earnings(_offpeak_deliveries(11), AFTERNOON, policy)
        assert summary.daily_target_achieved is False
        assert summary.daily_target_bonus == Decimal("0.00")
        assert summary.total_earnings == Decimal("275.00")
        assert summary.deliveries_needed_for_target == 1

    @pytest.mark.unit
    def test_only_todays_deliveries_count(self, policy):
        deliveries = _offpeak_deliveries(2) + _offpeak_deliveries(3, day=WEEKDAY_NOON - timedelta(days=1))
        summary = calculate_daily_earnings(deliveries, AFTERNOON, policy)
        assert summary.total_deliveries == 2
        assert summary.summary_date.isoformat() == "2024-01-10"

    @pytest.mark.unit
    def test_peak_deliveries_earn_bonus_at_delivery_time(self, policy):
        deliveries = [{"orderAmount": 150, "deliveredAt": WEEKDAY_EVENING_PEAK}]
        now = WEEKDAY_EVENING_PEAK + timedelta(hours=3)  # 22:00 IST, off-peak
        summary = calculate_daily_earnings(deliveries, now, policy)
        assert summary.peak_hour_deliveries == 1
        assert summary.total_earnings == Decimal("35.00")
        assert summary.deliveries[0].bonus_breakdown == "Peak Hour: +₹5"

    @pytest.mark.unit
    def test_observation_strategy_judges_now(self, policy):
        deliveries = _offpeak_deliveries(2)
        summary = calculate_daily_earnings(
            deliveries, WEEKDAY_EVENING_PEAK, policy, strategy=observation_time_strategy,
        )
        assert summary.peak_hour_deliveries == 2
        assert summary.bonus_breakdown.peak_hour == Decimal("10.00")

    @pytest.mark.unit
    def test_falls_back_to_order_time(self, policy):
        summary = calculate_daily_earnings([{"orderAmount": 150, "orderTime": WEEKDAY_NOON}], AFTERNOON, policy)
        assert summary.total_deliveries == 1

    @pytest.mark.unit
    def test_missing_timestamp_raises(self, policy):
        with pytest.raises(InvalidTimestampError):
            calculate_daily_earnings([{"orderAmount": 150}], AFTERNOON, policy)

    @pytest.mark.unit
    def test_api_uses_date_key(self, policy):
        data = calculate_daily_earnings([], AFTERNOON, policy).to_api()
        assert data["date"] == "2024-01-10"
        assert data["deliveriesNeededForTarget"] == 12


class TestPeriodEarnings:

    @pytest.mark.unit
    def test_weekly_window(self, policy):
        deliveries = [
            {"orderAmount": 150, "deliveredAt": AFTERNOON - timedelta(days=7)},
            {"orderAmount": 150, "deliveredAt": AFTERNOON - timedelta(days=7, seconds=1)},
        ]
        summary = calculate_weekly_earnings(deliveries, AFTERNOON, policy)
        assert summary.total_deliveries == 1
        assert summary.period_start == AFTERNOON - timedelta(days=7)

    @pytest.mark.unit
    def test_weekly_target_bonus_per_day(self, policy):
        deliveries = _offpeak_deliveries(12) + _offpeak_deliveries(12, day=WEEKDAY_NOON - timedelta(days=1))
        summary = calculate_weekly_earnings(deliveries, AFTERNOON, policy)
        assert summary.days_with_target_achieved == 2
        assert summary.daily_target_bonuses == Decimal("160.00")
        assert summary.total_earnings == Decimal("760.00")

    @pytest.mark.unit
    def test_total_includes_old_deliveries(self, policy):
        deliveries = _offpeak_deliveries(12, day=WEEKDAY_NOON - timedelta(days=30)) + _offpeak_deliveries(3)
        summary = calculate_total_earnings(deliveries, AFTERNOON, policy)
        assert summary.total_deliveries == 15
        assert summary.days_with_target_achieved == 1
        assert summary.total_earnings == Decimal("455.00")


class TestBulkEarnings:

    @pytest.mark.unit
    def test_batch_of_twelve_gets_target_bonus(self, policy):
        deliveries = [{"orderAmount": 150} for _ in range(12)]
        summary = calculate_bulk_earnings(deliveries, policy)
        assert summary.daily_target_bonus == Decimal("80.00")
        assert summary.total_earnings == Decimal("440.00")
        assert len(summary.earnings_breakdown) == 12

    @pytest.mark.unit
    def test_explicit_bonuses_only(self, policy):
        deliveries = [{"orderAmount": 250, "bonuses": {"weekend": 3}, "deliveredAt": WEEKDAY_EVENING_PEAK}]
        summary = calculate_bulk_earnings(deliveries, policy)
        assert summary.total_earnings == Decimal("28.00")
        assert summary.earnings_breakdown[0].bonus_breakdown == "Weekend: +₹3"
