"""
Window calculation for card limit rules.

Given a rule and the instant a purchase occurred, compute the interval
the rule's limit applies to. The usage bucket for a purchase is keyed by
this interval, so the calculation must be pure and deterministic: the
same rule and instant always produce the same window.

All windows are computed in UTC. Naive datetimes are treated as UTC.

Window modes:
  CALENDAR
    DAILY   — [midnight, next midnight)
    WEEKLY  — [Monday midnight, following Monday midnight)
    MONTHLY — [1st of month, 1st of next month)
    CUSTOM  — not meaningful; rejected as a misconfigured rule
  ANCHOR
    Starts on the most recent anchor day at or before the purchase and lasts
    anchor_length_days. Anchor days past the end of a short month are
    clamped to its last day (anchor 31 starts on Feb 28/29, Apr 30, ...).
    A purchase before this month's anchor day belongs to the cycle that
    started on last month's anchor day. A purchase after the cycle ends but
    before the next anchor day is still charged to that cycle, so an anchored
    limit never lapses (31 January counts against the cycle of 1 January).
  ROLLING
    [purchase - rolling_hours, purchase]. Recomputed on every purchase; the
    end is inclusive so a purchase recorded at the same instant is counted.
"""

import calendar
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from fuelauth.exceptions import InvalidLimitRuleError
from fuelauth.models.limit_rule import CardLimitRule, PeriodType, WindowMode


DEFAULT_ANCHOR_DAY = 1
DEFAULT_ANCHOR_LENGTH_DAYS = 30
DEFAULT_ROLLING_HOURS = 24


@dataclass(frozen=True)
class Window:
    """A time interval: the bounds of a usage bucket or a rolling sum."""
    start: datetime
    end: datetime


def as_utc(instant: datetime) -> datetime:
    """Return an aware UTC datetime (naive input is assumed to be UTC)."""
    if instant.tzinfo is None:
        return instant.replace(tzinfo=timezone.utc)
    return instant.astimezone(timezone.utc)


def _midnight(instant: datetime) -> datetime:
    return instant.replace(hour=0, minute=0, second=0, microsecond=0)


def _first_of_next_month(start: datetime) -> datetime:
    if start.month == 12:
        return start.replace(year=start.year + 1, month=1)
    return start.replace(month=start.month + 1)


def _anchor_in_month(year: int, month: int, anchor_day: int) -> datetime:
    last_day = calendar.monthrange(year, month)[1]
    return datetime(year, month, min(anchor_day, last_day), tzinfo=timezone.utc)


def _calendar_window(period_type: PeriodType, at: datetime) -> Window:
    day_start = _midnight(at)

    if period_type == PeriodType.DAILY:
        return Window(day_start, day_start + timedelta(days=1))

    if period_type == PeriodType.WEEKLY:
        # weekday(): Monday == 0
        week_start = day_start - timedelta(days=day_start.weekday())
        return Window(week_start, week_start + timedelta(days=7))

    if period_type == PeriodType.MONTHLY:
        month_start = day_start.replace(day=1)
        return Window(month_start, _first_of_next_month(month_start))

    raise InvalidLimitRuleError(
        f"CALENDAR window mode does not support period type {period_type.value}"
    )


def _anchor_window(anchor_day: int | None, length_days: int | None, at: datetime) -> Window:
    day = DEFAULT_ANCHOR_DAY if anchor_day is None else anchor_day
    length = DEFAULT_ANCHOR_LENGTH_DAYS if length_days is None else length_days

    if not 1 <= day <= 31:
        raise InvalidLimitRuleError(f"Anchor day of month must be 1-31, got {day}")
    if length < 1:
        raise InvalidLimitRuleError(f"Anchor length must be at least 1 day, got {length}")

    start = _anchor_in_month(at.year, at.month, day)
    if start > at:
        if at.month == 1:
            start = _anchor_in_month(at.year - 1, 12, day)
        else:
            start = _anchor_in_month(at.year, at.month - 1, day)

    return Window(start, start + timedelta(days=length))


def _rolling_window(hours: int | None, at: datetime) -> Window:
    hours = DEFAULT_ROLLING_HOURS if hours is None else hours
    if hours < 1:
        raise InvalidLimitRuleError(f"Rolling window must be at least 1 hour, got {hours}")
    return Window(at - timedelta(hours=hours), at)


def compute_window(rule: CardLimitRule, occurred_at: datetime) -> Window:
    """
    Compute the window a rule applies to for a purchase at `occurred_at`.

    Raises:
        InvalidLimitRuleError: If the rule's mode and parameters cannot
            produce a window (e.g., CALENDAR + CUSTOM, anchor day 0).
    """
    at = as_utc(occurred_at)
    mode = WindowMode(rule.window_mode)

    if mode == WindowMode.CALENDAR:
        return _calendar_window(PeriodType(rule.period_type), at)
    if mode == WindowMode.ANCHOR:
        return _anchor_window(rule.anchor_day_of_month, rule.anchor_length_days, at)
    return _rolling_window(rule.rolling_hours, at)
