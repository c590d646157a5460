from __future__ import annotations

import datetime as dt
import uuid
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from capex.domain.cashflows.enums import CashflowStatus, CashflowType


class CashflowDraft(BaseModel):
    """A generated payment before it is persisted."""

    investment_id: uuid.UUID | None = None
    due_date: dt.date
    custom_due_date: dt.date | None = None
    amount: Decimal
    type: CashflowType
    period_number: int | None = None
    total_periods: int | None = None
    month: int
    year: int
    status: CashflowStatus = CashflowStatus.PLANNED
    auto_confirmed: bool = False

    @property
    def effective_due_date(self) -> dt.date:
        return self.custom_due_date or self.due_date


class CashflowRecord(CashflowDraft):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    investment_id: uuid.UUID

    confirmed_by_manager: uuid.UUID | None = None
    confirmed_at_manager: dt.datetime | None = None
    manager_comment: str | None = None

    confirmed_by_executive: uuid.UUID | None = None
    confirmed_at_executive: dt.datetime | None = None
    executive_comment: str | None = None

    original_due_date: dt.date | None = None
    postponed_by: uuid.UUID | None = None
    postponed_at: dt.datetime | None = None
    postpone_reason: str | None = None

    accounting_reference: str | None = None
    created_at: dt.datetime | None = None
    updated_at: dt.datetime | None = None


class SumValidation(BaseModel):
    valid: bool
    actual_total: Decimal
    expected_total: Decimal
    difference: Decimal


class GenerationResult(BaseModel):
    cashflows: list[CashflowDraft] = Field(default_factory=list)
    validation: SumValidation
    errors: list[str] = Field(default_factory=list)


class CashflowStatistics(BaseModel):
    count: int
    total: Decimal
    by_type: dict[str, Decimal]
    by_month: dict[str, Decimal]
    first_payment: dt.date | None
    last_payment: dt.date | None


class CashflowComment(BaseModel):
    comment: str | None = Field(default=None, max_length=2000)


class CashflowSendBack(BaseModel):
    reason: str = Field(default="", max_length=2000)


class CashflowPostpone(BaseModel):
    new_date: dt.date
    reason: str = Field(default="", max_length=2000)
