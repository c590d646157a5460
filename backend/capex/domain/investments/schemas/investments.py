from __future__ import annotations

import datetime as dt
import uuid
from decimal import Decimal
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, model_validator

from capex.domain.cashflows.enums import RateInterval
from capex.domain.cashflows.schemas.cashflows import GenerationResult
from capex.domain.investments.enums import FinancingType, InvestmentCategory, InvestmentStatus


class SinglePayment(BaseModel):
    kind: Literal["single_payment"] = "single_payment"
    date: dt.date
    amount: Decimal = Field(ge=0)
    custom_due_date: dt.date | None = None


class InstallmentPlan(BaseModel):
    kind: Literal["installment_plan"] = "installment_plan"

    down_payment: Decimal | None = Field(default=None, ge=0)
    down_payment_date: dt.date | None = None
    down_payment_custom_due: dt.date | None = None

    number_of_rates: int = Field(ge=1)
    rate_amount: Decimal = Field(ge=0)
    rate_interval: RateInterval = RateInterval.MONTHLY
    first_rate_date: dt.date
    # index i overrides the due date of rate i+1; None keeps the computed date
    rates_custom_due_dates: list[dt.date | None] = Field(default_factory=list)

    balloon_amount: Decimal | None = Field(default=None, ge=0)
    balloon_date: dt.date | None = None
    balloon_custom_due: dt.date | None = None


class LeaseSchedule(BaseModel):
    """Lease and rent: fixed monthly rate for a number of months."""

    kind: Literal["lease_schedule"] = "lease_schedule"

    down_payment: Decimal | None = Field(default=None, ge=0)
    down_payment_date: dt.date | None = None

    monthly_rate: Decimal = Field(ge=0)
    duration_months: int = Field(ge=1, le=240)
    start_month: dt.date
    balloon_amount: Decimal | None = Field(default=None, ge=0)

    purchase_option: bool = False
    auto_confirm: bool = True


PaymentStructure = Annotated[Union[SinglePayment, InstallmentPlan, LeaseSchedule], Field(discriminator="kind")]

PAYMENT_STRUCTURE_ADAPTER: TypeAdapter = TypeAdapter(PaymentStructure)

STRUCTURE_FOR_FINANCING_TYPE: dict[FinancingType, type[BaseModel]] = {
    FinancingType.PURCHASE: SinglePayment,
    FinancingType.INSTALLMENT: InstallmentPlan,
    FinancingType.LEASE: LeaseSchedule,
    FinancingType.RENT: LeaseSchedule,
}


def structure_matches(financing_type: FinancingType, structure: BaseModel | None) -> bool:
    expected = STRUCTURE_FOR_FINANCING_TYPE.get(FinancingType(financing_type))
    return expected is not None and isinstance(structure, expected)


def mismatch_message(financing_type: FinancingType, structure: BaseModel | None) -> str:
    expected = STRUCTURE_FOR_FINANCING_TYPE[FinancingType(financing_type)]
    found = getattr(structure, "kind", None) or "none"
    return f"Financing type {FinancingType(financing_type).value} requires {expected.__name__}, got {found}"


class InvestmentMetadata(BaseModel):
    vendor: str | None = None
    contract_number: str | None = None
    internal_reference: str | None = None


class InvestmentCreate(BaseModel):
    company_id: uuid.UUID
    name: str = Field(min_length=1, max_length=255)
    description: str | None = Field(default=None, max_length=4000)
    category: InvestmentCategory
    total_amount: Decimal = Field(gt=0)
    financing_type: FinancingType
    start_date: dt.date | None = None
    end_date: dt.date | None = None
    metadata: InvestmentMetadata | None = None
    payment_structure: PaymentStructure

    @model_validator(mode="after")
    def _structure_matches_financing_type(self) -> "InvestmentCreate":
        if not structure_matches(self.financing_type, self.payment_structure):
            raise ValueError(mismatch_message(self.financing_type, self.payment_structure))
        return self


class InvestmentUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = Field(default=None, max_length=4000)
    category: InvestmentCategory | None = None
    total_amount: Decimal | None = Field(default=None, gt=0)
    financing_type: FinancingType | None = None
    start_date: dt.date | None = None
    end_date: dt.date | None = None
    metadata: InvestmentMetadata | None = None
    payment_structure: PaymentStructure | None = None

    @model_validator(mode="after")
    def _structure_matches_financing_type(self) -> "InvestmentUpdate":
        # Only checkable here when both travel together; the service re-checks the merged record.
        if self.financing_type is not None and self.payment_structure is not None:
            if not structure_matches(self.financing_type, self.payment_structure):
                raise ValueError(mismatch_message(self.financing_type, self.payment_structure))
        return self


class InvestmentRecord(BaseModel):
    """
    Stored investment.

    Deliberately lenient about the structure/financing-type pairing so the
    generator can report a mismatch instead of failing to load the record.
    """

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID | None = None
    group_id: uuid.UUID | None = None
    company_id: uuid.UUID | None = None

    name: str = ""
    description: str | None = None
    category: InvestmentCategory = InvestmentCategory.OTHER
    total_amount: Decimal = Decimal("0")
    financing_type: FinancingType
    status: InvestmentStatus = InvestmentStatus.DRAFT

    created_by: uuid.UUID | None = None
    created_at: dt.datetime | None = None
    updated_at: dt.datetime | None = None
    submitted_at: dt.datetime | None = None
    start_date: dt.date | None = None
    end_date: dt.date | None = None

    metadata: InvestmentMetadata | None = None
    payment_structure: PaymentStructure | None = None


class InvestmentDecision(BaseModel):
    comment: str | None = Field(default=None, max_length=2000)


class InvestmentApprovalOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    investment_id: uuid.UUID
    decided_by: uuid.UUID
    decision: str
    comment: str | None
    decided_at: dt.datetime


class CashflowPreviewRequest(BaseModel):
    financing_type: FinancingType
    total_amount: Decimal = Field(gt=0)
    payment_structure: PaymentStructure


class InvestmentWithSchedule(BaseModel):
    investment: InvestmentRecord
    generation: GenerationResult | None = None
