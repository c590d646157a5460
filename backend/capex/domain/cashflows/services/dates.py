from __future__ import annotations

from datetime import date, timedelta

from dateutil.relativedelta import relativedelta

from capex.domain.cashflows.enums import RateInterval


INTERVAL_MONTHS: dict[RateInterval, int] = {
    RateInterval.MONTHLY: 1,
    RateInterval.QUARTERLY: 3,
    RateInterval.YEARLY: 12,
}


def add_months(value: date, months: int) -> date:
    # relativedelta clamps to the last day of a shorter month (31 Jan + 1 -> 28/29 Feb)
    return value + relativedelta(months=months)


def add_days(value: date, days: int) -> date:
    return value + timedelta(days=days)


def month_year(value: date) -> tuple[int, int]:
    return value.month, value.year


def step_interval(start: date, periods: int, interval: RateInterval) -> date:
    """Due date of the `periods`-th step after `start`, always anchored on `start`."""
    return add_months(start, periods * INTERVAL_MONTHS[RateInterval(interval)])


def first_day_of_month(value: date) -> date:
    return value.replace(day=1)


def last_day_of_month(value: date) -> date:
    return value + relativedelta(day=31)


def is_same_month(a: date, b: date) -> bool:
    return (a.year, a.month) == (b.year, b.month)


def days_between(later: date, earlier: date) -> int:
    return (later - earlier).days


def previous_month(value: date) -> date:
    return first_day_of_month(value) - relativedelta(months=1)
