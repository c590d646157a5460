from __future__ import annotations

from datetime import date

import pytest

from capex.domain.cashflows.enums import RateInterval
from capex.domain.cashflows.services.dates import (
    add_days,
    add_months,
    days_between,
    first_day_of_month,
    is_same_month,
    last_day_of_month,
    month_year,
    previous_month,
    step_interval,
)


@pytest.mark.parametrize(
    ("start", "months", "expected"),
    [
        (date(2026, 1, 15), 1, date(2026, 2, 15)),
        (date(2026, 1, 31), 1, date(2026, 2, 28)),
        (date(2028, 1, 31), 1, date(2028, 2, 29)),
        (date(2026, 11, 1), 2, date(2027, 1, 1)),
        (date(2026, 3, 31), -1, date(2026, 2, 28)),
    ],
)
def test_add_months_clamps_to_month_end(start: date, months: int, expected: date):
    assert add_months(start, months) == expected


def test_step_interval_is_anchored_on_start():
    # stepping from the anchor avoids drift after a short month
    start = date(2026, 1, 31)
    assert step_interval(start, 1, RateInterval.MONTHLY) == date(2026, 2, 28)
    assert step_interval(start, 2, RateInterval.MONTHLY) == date(2026, 3, 31)
    assert step_interval(start, 1, RateInterval.QUARTERLY) == date(2026, 4, 30)
    assert step_interval(start, 1, RateInterval.YEARLY) == date(2027, 1, 31)


def test_month_helpers():
    d = date(2026, 2, 14)
    assert month_year(d) == (2, 2026)
    assert first_day_of_month(d) == date(2026, 2, 1)
    assert last_day_of_month(d) == date(2026, 2, 28)
    assert previous_month(date(2026, 1, 5)) == date(2025, 12, 1)
    assert is_same_month(date(2026, 2, 1), date(2026, 2, 28))
    assert not is_same_month(date(2026, 2, 1), date(2025, 2, 1))


def test_day_arithmetic():
    assert add_days(date(2026, 2, 27), 2) == date(2026, 3, 1)
    assert days_between(date(2026, 3, 8), date(2026, 3, 1)) == 7
    assert days_between(date(2026, 3, 1), date(2026, 3, 8)) == -7
