from __future__ import annotations

from collections.abc import Callable, Sequence
from decimal import Decimal
from typing import Any

import structlog

from capex.core.config import settings
from capex.core.storage.repository import Collection, QueryFilter, Record, Repository, eq
from capex.domain.cashflows.schemas.cashflows import (
    CashflowDraft,
    CashflowRecord,
    CashflowStatistics,
    GenerationResult,
    SumValidation,
)
from capex.domain.cashflows.services.calculator import (
    expand_installment_plan,
    expand_lease_schedule,
    expand_single_payment,
    validate_sum,
)
from capex.domain.cashflows.services.status_machine import initial_status_for
from capex.domain.investments.enums import FinancingType, InvestmentStatus
from capex.domain.investments.schemas.investments import InvestmentRecord
from capex.shared.exceptions import StructureMismatch
from capex.shared.utils import utcnow


logger = structlog.get_logger(__name__)

Strategy = Callable[..., list[CashflowDraft]]

STRATEGIES: dict[FinancingType, Strategy] = {
    FinancingType.PURCHASE: expand_single_payment,
    FinancingType.INSTALLMENT: expand_installment_plan,
    FinancingType.LEASE: expand_lease_schedule,
    FinancingType.RENT: expand_lease_schedule,
}


def _failed(total: Decimal, errors: list[str]) -> GenerationResult:
    return GenerationResult(
        cashflows=[],
        validation=SumValidation(valid=False, actual_total=Decimal("0"), expected_total=total, difference=total),
        errors=errors,
    )


def generate_cashflows(investment: InvestmentRecord, *, tolerance_percent: Decimal | None = None) -> GenerationResult:
    """
    Expand the investment's payment structure into cashflow drafts.

    Never raises for a structure or sum mismatch: both are reported in
    `errors`, and a structure mismatch yields no drafts at all.
    """
    total = Decimal(investment.total_amount)
    strategy = STRATEGIES.get(investment.financing_type)
    if strategy is None:
        return _failed(total, [f"Unknown financing type: {investment.financing_type}"])

    try:
        drafts = strategy(
            investment.payment_structure,
            investment_id=investment.id,
            status=initial_status_for(investment.status),
        )
    except StructureMismatch as exc:
        return _failed(total, [f"Cashflow generation failed: {exc}"])

    tolerance = settings.sum_tolerance_percent if tolerance_percent is None else tolerance_percent
    validation = validate_sum(drafts, total, tolerance)
    errors: list[str] = []
    if not validation.valid:
        errors.append(
            f"Cashflow total ({validation.actual_total}) does not match investment amount "
            f"({validation.expected_total}). Difference: {validation.difference}"
        )
    return GenerationResult(cashflows=drafts, validation=validation, errors=errors)


def preview_cashflows(financing_type: FinancingType, payment_structure: Any, total_amount: Decimal) -> GenerationResult:
    """Same expansion as generate_cashflows, for a structure not yet persisted."""
    preview = InvestmentRecord(
        financing_type=financing_type,
        payment_structure=payment_structure,
        total_amount=total_amount,
        status=InvestmentStatus.DRAFT,
    )
    return generate_cashflows(preview)


def draft_to_record(draft: CashflowDraft) -> dict[str, Any]:
    """Full cashflow row: confirmation and postponement fields start out empty."""
    data: dict[str, Any] = {name: None for name in CashflowRecord.model_fields if name != "id"}
    data.update(draft.model_dump())
    data["created_at"] = utcnow()
    return data


def replace_cashflows(repo: Repository, investment_id, drafts: Sequence[CashflowDraft]) -> list[Record]:
    """Delete every cashflow of the investment and insert `drafts`. Does not commit."""
    existing = repo.query(Collection.CASHFLOWS, QueryFilter.of(eq("investment_id", investment_id)))
    for row in existing:
        repo.delete(Collection.CASHFLOWS, row["id"])
    created = []
    for draft in drafts:
        data = draft_to_record(draft)
        data["investment_id"] = investment_id
        created.append(repo.create(Collection.CASHFLOWS, data))
    return created


def regenerate_cashflows(
    repo: Repository,
    investment: InvestmentRecord,
    *,
    commit: bool = True,
) -> tuple[GenerationResult, list[Record]]:
    """
    Discard and rebuild the investment's cashflows as one unit of work.

    With commit=False the caller owns the transaction boundary.
    """
    result = generate_cashflows(investment)
    try:
        created = replace_cashflows(repo, investment.id, result.cashflows)
        if commit:
            repo.commit()
    except Exception:
        repo.rollback()
        raise

    if result.errors:
        logger.warning("cashflows.generation_warnings", investment_id=str(investment.id), errors=result.errors)
    logger.info("cashflows.regenerated", investment_id=str(investment.id), count=len(created))
    return result, created


def cashflow_statistics(drafts: Sequence[CashflowDraft]) -> CashflowStatistics:
    by_type: dict[str, Decimal] = {}
    by_month: dict[str, Decimal] = {}
    for d in drafts:
        by_type[d.type.value] = by_type.get(d.type.value, Decimal("0")) + d.amount
        key = f"{d.year}-{d.month:02d}"
        by_month[key] = by_month.get(key, Decimal("0")) + d.amount

    dates = sorted(d.effective_due_date for d in drafts)
    return CashflowStatistics(
        count=len(drafts),
        total=sum((d.amount for d in drafts), Decimal("0")),
        by_type=by_type,
        by_month=dict(sorted(by_month.items())),
        first_payment=dates[0] if dates else None,
        last_payment=dates[-1] if dates else None,
    )

