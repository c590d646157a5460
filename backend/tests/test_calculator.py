from __future__ import annotations

from datetime import date
from decimal import Decimal

import pytest

from capex.domain.cashflows.enums import CashflowStatus, CashflowType, RateInterval
from capex.domain.cashflows.services.calculator import (
    expand_installment_plan,
    expand_lease_schedule,
    expand_single_payment,
    validate_sum,
)
from capex.domain.investments.schemas.investments import InstallmentPlan, LeaseSchedule, SinglePayment
from capex.shared.exceptions import StructureMismatch


def test_single_payment_yields_one_cashflow():
    drafts = expand_single_payment(SinglePayment(date=date(2026, 3, 1), amount=Decimal("10000")))

    assert len(drafts) == 1
    cf = drafts[0]
    assert cf.type == CashflowType.SINGLE
    assert cf.amount == Decimal("10000")
    assert cf.due_date == date(2026, 3, 1)
    assert (cf.month, cf.year) == (3, 2026)
    assert cf.status == CashflowStatus.PLANNED


def test_custom_due_date_moves_reporting_bucket():
    drafts = expand_single_payment(
        SinglePayment(date=date(2026, 3, 1), amount=Decimal("100"), custom_due_date=date(2026, 4, 15))
    )
    assert drafts[0].due_date == date(2026, 3, 1)
    assert drafts[0].effective_due_date == date(2026, 4, 15)
    assert (drafts[0].month, drafts[0].year) == (4, 2026)


def test_installment_plan_with_down_payment():
    plan = InstallmentPlan(
        down_payment=Decimal("2000"),
        down_payment_date=date(2026, 1, 1),
        number_of_rates=12,
        rate_amount=Decimal("667"),
        first_rate_date=date(2026, 2, 1),
    )
    drafts = expand_installment_plan(plan)

    assert len(drafts) == 13
    assert drafts[0].type == CashflowType.DOWN_PAYMENT
    rates = [d for d in drafts if d.type == CashflowType.INSTALLMENT]
    assert rates[0].due_date == date(2026, 2, 1)
    assert rates[-1].due_date == date(2027, 1, 1)
    assert [r.period_number for r in rates] == list(range(1, 13))
    assert all(r.total_periods == 12 for r in rates)

    total = sum(d.amount for d in drafts)
    assert total == Decimal("10004")
    assert validate_sum(drafts, Decimal("10000")).valid


def test_installment_plan_custom_dates_and_balloon():
    plan = InstallmentPlan(
        number_of_rates=3,
        rate_amount=Decimal("100"),
        rate_interval=RateInterval.QUARTERLY,
        first_rate_date=date(2026, 1, 10),
        rates_custom_due_dates=[None, date(2026, 5, 2)],
        balloon_amount=Decimal("700"),
        balloon_date=date(2026, 12, 31),
    )
    drafts = expand_installment_plan(plan)

    assert [d.type for d in drafts] == [CashflowType.INSTALLMENT] * 3 + [CashflowType.BALLOON]
    assert [d.due_date for d in drafts[:3]] == [date(2026, 1, 10), date(2026, 4, 10), date(2026, 7, 10)]
    assert drafts[0].custom_due_date is None
    assert drafts[1].custom_due_date == date(2026, 5, 2)
    assert drafts[1].month == 5
    assert drafts[2].custom_due_date is None
    assert drafts[3].amount == Decimal("700")


def test_zero_down_payment_is_skipped():
    plan = InstallmentPlan(
        down_payment=Decimal("0"),
        down_payment_date=date(2026, 1, 1),
        number_of_rates=2,
        rate_amount=Decimal("50"),
        first_rate_date=date(2026, 2, 1),
    )
    assert all(d.type == CashflowType.INSTALLMENT for d in expand_installment_plan(plan))


def test_lease_schedule_auto_confirm():
    lease = LeaseSchedule(monthly_rate=Decimal("500"), duration_months=24, start_month=date(2026, 1, 1), auto_confirm=True)
    drafts = expand_lease_schedule(lease)

    assert len(drafts) == 24
    assert all(d.auto_confirmed for d in drafts)
    assert drafts[0].due_date == date(2026, 1, 1)
    assert drafts[-1].due_date == date(2027, 12, 1)


def test_lease_schedule_down_payment_and_balloon():
    lease = LeaseSchedule(
        down_payment=Decimal("1000"),
        down_payment_date=date(2025, 12, 15),
        monthly_rate=Decimal("200"),
        duration_months=6,
        start_month=date(2026, 1, 1),
        balloon_amount=Decimal("3000"),
        auto_confirm=False,
    )
    drafts = expand_lease_schedule(lease)

    assert len(drafts) == 8
    assert drafts[0].type == CashflowType.DOWN_PAYMENT
    assert drafts[-1].type == CashflowType.BALLOON
    assert drafts[-1].due_date == date(2026, 7, 1)
    assert not any(d.auto_confirmed for d in drafts)


@pytest.mark.parametrize("expand", [expand_single_payment, expand_installment_plan, expand_lease_schedule])
def test_missing_structure_raises(expand):
    with pytest.raises(StructureMismatch):
        expand(None)


def test_wrong_structure_raises():
    with pytest.raises(StructureMismatch):
        expand_lease_schedule(SinglePayment(date=date(2026, 1, 1), amount=Decimal("1")))


@pytest.mark.parametrize(
    ("actual", "valid"),
    [("10000", True), ("10100", True), ("9900", True), ("10100.01", False), ("9899.99", False)],
)
def test_validate_sum_tolerance_boundary(actual: str, valid: bool):
    drafts = expand_single_payment(SinglePayment(date=date(2026, 1, 1), amount=Decimal(actual)))
    result = validate_sum(drafts, Decimal("10000"))
    assert result.valid is valid
    assert result.difference == abs(Decimal(actual) - Decimal("10000"))
