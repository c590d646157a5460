from __future__ import annotations

import datetime as dt
import uuid
from collections.abc import Iterable
from decimal import Decimal

from pydantic import BaseModel

from capex.domain.cashflows.enums import CashflowStatus, CashflowType
from capex.domain.cashflows.schemas.cashflows import CashflowDraft, SumValidation
from capex.domain.cashflows.services.dates import add_months, month_year, step_interval
from capex.domain.investments.schemas.investments import InstallmentPlan, LeaseSchedule, SinglePayment
from capex.shared.exceptions import StructureMismatch


DEFAULT_TOLERANCE_PERCENT = Decimal("1")


def _draft(
    *,
    investment_id: uuid.UUID | None,
    due_date: dt.date,
    amount: Decimal,
    type: CashflowType,
    status: CashflowStatus,
    custom_due_date: dt.date | None = None,
    period_number: int | None = None,
    total_periods: int | None = None,
    auto_confirmed: bool = False,
) -> CashflowDraft:
    # Reporting bucket follows the effective date, not the nominal one.
    month, year = month_year(custom_due_date or due_date)
    return CashflowDraft(
        investment_id=investment_id,
        due_date=due_date,
        custom_due_date=custom_due_date,
        amount=amount,
        type=type,
        period_number=period_number,
        total_periods=total_periods,
        month=month,
        year=year,
        status=status,
        auto_confirmed=auto_confirmed,
    )


def _require(structure: BaseModel | None, expected: type[BaseModel]) -> None:
    if not isinstance(structure, expected):
        found = getattr(structure, "kind", None) or "none"
        raise StructureMismatch(f"{expected.__name__} structure is required, got {found}")


def _present(amount: Decimal | None) -> bool:
    return amount is not None and amount > 0


def expand_single_payment(
    structure: SinglePayment | None,
    *,
    investment_id: uuid.UUID | None = None,
    status: CashflowStatus = CashflowStatus.PLANNED,
) -> list[CashflowDraft]:
    _require(structure, SinglePayment)
    return [
        _draft(
            investment_id=investment_id,
            due_date=structure.date,
            custom_due_date=structure.custom_due_date,
            amount=structure.amount,
            type=CashflowType.SINGLE,
            status=status,
        )
    ]


def expand_installment_plan(
    structure: InstallmentPlan | None,
    *,
    investment_id: uuid.UUID | None = None,
    status: CashflowStatus = CashflowStatus.PLANNED,
) -> list[CashflowDraft]:
    _require(structure, InstallmentPlan)
    drafts: list[CashflowDraft] = []

    if _present(structure.down_payment) and structure.down_payment_date:
        drafts.append(
            _draft(
                investment_id=investment_id,
                due_date=structure.down_payment_date,
                custom_due_date=structure.down_payment_custom_due,
                amount=structure.down_payment,
                type=CashflowType.DOWN_PAYMENT,
                status=status,
            )
        )

    overrides = structure.rates_custom_due_dates
    for i in range(structure.number_of_rates):
        drafts.append(
            _draft(
                investment_id=investment_id,
                due_date=step_interval(structure.first_rate_date, i, structure.rate_interval),
                custom_due_date=overrides[i] if i < len(overrides) else None,
                amount=structure.rate_amount,
                type=CashflowType.INSTALLMENT,
                period_number=i + 1,
                total_periods=structure.number_of_rates,
                status=status,
            )
        )

    if _present(structure.balloon_amount) and structure.balloon_date:
        drafts.append(
            _draft(
                investment_id=investment_id,
                due_date=structure.balloon_date,
                custom_due_date=structure.balloon_custom_due,
                amount=structure.balloon_amount,
                type=CashflowType.BALLOON,
                status=status,
            )
        )
    return drafts


def expand_lease_schedule(
    structure: LeaseSchedule | None,
    *,
    investment_id: uuid.UUID | None = None,
    status: CashflowStatus = CashflowStatus.PLANNED,
) -> list[CashflowDraft]:
    _require(structure, LeaseSchedule)
    drafts: list[CashflowDraft] = []

    if _present(structure.down_payment) and structure.down_payment_date:
        drafts.append(
            _draft(
                investment_id=investment_id,
                due_date=structure.down_payment_date,
                amount=structure.down_payment,
                type=CashflowType.DOWN_PAYMENT,
                status=status,
            )
        )

    for i in range(structure.duration_months):
        drafts.append(
            _draft(
                investment_id=investment_id,
                due_date=add_months(structure.start_month, i),
                amount=structure.monthly_rate,
                type=CashflowType.INSTALLMENT,
                period_number=i + 1,
                total_periods=structure.duration_months,
                auto_confirmed=structure.auto_confirm,
                status=status,
            )
        )

    if _present(structure.balloon_amount):
        drafts.append(
            _draft(
                investment_id=investment_id,
                due_date=add_months(structure.start_month, structure.duration_months),
                amount=structure.balloon_amount,
                type=CashflowType.BALLOON,
                status=status,
            )
        )
    return drafts


def validate_sum(
    drafts: Iterable[CashflowDraft],
    expected_total: Decimal,
    tolerance_percent: Decimal = DEFAULT_TOLERANCE_PERCENT,
) -> SumValidation:
    """
    Reconcile generated amounts against the investment total.

    Rates are rounded to whole currency units, so an exact match is not
    required: the difference may be up to `tolerance_percent` of the total.
    """
    expected = Decimal(expected_total)
    actual = sum((d.amount for d in drafts), Decimal("0"))
    difference = abs(actual - expected)
    tolerance = expected * Decimal(tolerance_percent) / Decimal("100")
    return SumValidation(
        valid=difference <= tolerance,
        actual_total=actual,
        expected_total=expected,
        difference=difference,
    )
