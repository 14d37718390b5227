"""
Tests for limit window calculation.

These tests verify:
  - Windows are deterministic for the same rule and instant
  - CALENDAR windows align to UTC day / ISO week / calendar month
  - ANCHOR windows clamp the anchor day to short months and fall back to
    the previous month's anchor before this month's anchor day
  - ROLLING windows end at the purchase instant
  - Misconfigured rules raise InvalidLimitRuleError
"""

from datetime import datetime, timedelta, timezone

import pytest

from fuelauth.exceptions import InvalidLimitRuleError
from fuelauth.models.limit_rule import CardLimitRule, PeriodType, WindowMode
from fuelauth.windows import Window, compute_window


UTC = timezone.utc


def utc(*args):
    return datetime(*args, tzinfo=UTC)


def rule(period_type, window_mode=WindowMode.CALENDAR, **params):
    return CardLimitRule(
        period_type=period_type,
        window_mode=window_mode,
        limit_cents=100_000,
        **params,
    )


class TestCalendarWindows:

    def test_daily(self):
        window = compute_window(rule(PeriodType.DAILY), utc(2024, 3, 15, 10, 30))
        assert window == Window(utc(2024, 3, 15), utc(2024, 3, 16))

    def test_daily_is_computed_in_utc(self):
        """01:00 at UTC+5 is still the previous UTC day."""
        occurred_at = datetime(2024, 3, 15, 1, 0, tzinfo=timezone(timedelta(hours=5)))
        window = compute_window(rule(PeriodType.DAILY), occurred_at)
        assert window == Window(utc(2024, 3, 14), utc(2024, 3, 15))

    def test_naive_instants_are_treated_as_utc(self):
        window = compute_window(rule(PeriodType.DAILY), datetime(2024, 3, 15, 23, 59))
        assert window == Window(utc(2024, 3, 15), utc(2024, 3, 16))

    def test_weekly_starts_on_monday(self):
        """Thursday 14 March 2024 belongs to the ISO week starting Monday 11 March."""
        window = compute_window(rule(PeriodType.WEEKLY), utc(2024, 3, 14, 8))
        assert window == Window(utc(2024, 3, 11), utc(2024, 3, 18))

    def test_weekly_on_monday_midnight(self):
        window = compute_window(rule(PeriodType.WEEKLY), utc(2024, 3, 18))
        assert window == Window(utc(2024, 3, 18), utc(2024, 3, 25))

    def test_monthly(self):
        window = compute_window(rule(PeriodType.MONTHLY), utc(2024, 2, 29, 23, 59))
        assert window == Window(utc(2024, 2, 1), utc(2024, 3, 1))

    def test_monthly_december_rolls_into_next_year(self):
        window = compute_window(rule(PeriodType.MONTHLY), utc(2023, 12, 31, 12))
        assert window == Window(utc(2023, 12, 1), utc(2024, 1, 1))

    def test_custom_period_is_a_configuration_error(self):
        with pytest.raises(InvalidLimitRuleError):
            compute_window(rule(PeriodType.CUSTOM), utc(2024, 3, 15))

    def test_deterministic(self):
        """The same rule and instant always produce the same window."""
        monthly = rule(PeriodType.MONTHLY)
        instant = utc(2024, 7, 4, 16, 20)
        assert compute_window(monthly, instant) == compute_window(monthly, instant)


class TestAnchorWindows:

    def test_starts_on_anchor_day(self):
        anchored = rule(PeriodType.CUSTOM, WindowMode.ANCHOR, anchor_day_of_month=10, anchor_length_days=30)
        window = compute_window(anchored, utc(2024, 3, 15))
        assert window == Window(utc(2024, 3, 10), utc(2024, 4, 9))

    def test_before_anchor_day_uses_previous_month(self):
        anchored = rule(PeriodType.CUSTOM, WindowMode.ANCHOR, anchor_day_of_month=15, anchor_length_days=30)
        window = compute_window(anchored, utc(2024, 1, 10))
        assert window == Window(utc(2023, 12, 15), utc(2024, 1, 14))

    def test_anchor_day_is_clamped_to_short_month(self):
        """Anchor 31 starts on 28 February in a non-leap year."""
        anchored = rule(PeriodType.MONTHLY, WindowMode.ANCHOR, anchor_day_of_month=31, anchor_length_days=30)
        window = compute_window(anchored, utc(2023, 2, 28, 12))
        assert window == Window(utc(2023, 2, 28), utc(2023, 3, 30))

    def test_clamped_previous_month(self):
        """Early March with anchor 31 belongs to the cycle from 29 February 2024."""
        anchored = rule(PeriodType.MONTHLY, WindowMode.ANCHOR, anchor_day_of_month=31, anchor_length_days=30)
        window = compute_window(anchored, utc(2024, 3, 5))
        assert window == Window(utc(2024, 2, 29), utc(2024, 3, 30))

    def test_defaults(self):
        """Unset anchor parameters mean day 1 and 30 days."""
        anchored = rule(PeriodType.MONTHLY, WindowMode.ANCHOR)
        window = compute_window(anchored, utc(2024, 3, 15))
        assert window == Window(utc(2024, 3, 1), utc(2024, 3, 31))

    def test_short_cycle_is_charged_until_the_next_anchor(self):
        """A 7-day cycle anchored on the 1st still owns the 20th."""
        anchored = rule(PeriodType.WEEKLY, WindowMode.ANCHOR, anchor_day_of_month=1, anchor_length_days=7)
        window = compute_window(anchored, utc(2024, 3, 20))
        assert window == Window(utc(2024, 3, 1), utc(2024, 3, 8))

    def test_thirty_first_under_defaults(self):
        """31 January falls after the default 30-day cycle but still belongs to it."""
        anchored = rule(PeriodType.MONTHLY, WindowMode.ANCHOR)
        window = compute_window(anchored, utc(2024, 1, 31, 12))
        assert window == Window(utc(2024, 1, 1), utc(2024, 1, 31))

    def test_anchor_31_after_a_30_day_month(self):
        """30 May belongs to the cycle anchored on 30 April, not to a new one."""
        anchored = rule(PeriodType.MONTHLY, WindowMode.ANCHOR, anchor_day_of_month=31, anchor_length_days=30)
        window = compute_window(anchored, utc(2024, 5, 30, 12))
        assert window == Window(utc(2024, 4, 30), utc(2024, 5, 30))

    @pytest.mark.parametrize("params", [
        {"anchor_day_of_month": 0},
        {"anchor_day_of_month": 32},
        {"anchor_length_days": 0},
    ])
    def test_invalid_parameters(self, params):
        anchored = rule(PeriodType.MONTHLY, WindowMode.ANCHOR, **params)
        with pytest.raises(InvalidLimitRuleError):
            compute_window(anchored, utc(2024, 3, 15))


class TestRollingWindows:

    def test_ends_at_the_purchase(self):
        rolling = rule(PeriodType.DAILY, WindowMode.ROLLING, rolling_hours=6)
        instant = utc(2024, 3, 15, 10, 30)
        window = compute_window(rolling, instant)
        assert window == Window(instant - timedelta(hours=6), instant)

    def test_defaults_to_24_hours(self):
        rolling = rule(PeriodType.DAILY, WindowMode.ROLLING)
        instant = utc(2024, 3, 15, 10, 30)
        assert compute_window(rolling, instant).start == instant - timedelta(hours=24)

    def test_rejects_non_positive_hours(self):
        rolling = rule(PeriodType.DAILY, WindowMode.ROLLING, rolling_hours=0)
        with pytest.raises(InvalidLimitRuleError):
            compute_window(rolling, utc(2024, 3, 15))
