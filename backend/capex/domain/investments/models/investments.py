from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import JSON, Date, DateTime, Enum as SAEnum, ForeignKey, Index, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from capex.core.db.base import AuditMetaMixin, Base, IdMixin
from capex.domain.investments.enums import ApprovalDecision, FinancingType, InvestmentCategory, InvestmentStatus


class Investment(Base, IdMixin, AuditMetaMixin):
    __tablename__ = "investments"

    group_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("groups.id", ondelete="CASCADE"), index=True)
    company_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("companies.id", ondelete="CASCADE"), index=True)

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(String(4000), nullable=True)
    category: Mapped[InvestmentCategory] = mapped_column(SAEnum(InvestmentCategory, name="investment_category_enum"), nullable=False)
    total_amount: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False)
    financing_type: Mapped[FinancingType] = mapped_column(SAEnum(FinancingType, name="financing_type_enum"), nullable=False)
    status: Mapped[InvestmentStatus] = mapped_column(
        SAEnum(InvestmentStatus, name="investment_status_enum"),
        nullable=False,
        server_default=InvestmentStatus.DRAFT.value,
        index=True,
    )

    submitted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    start_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    end_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    # vendor / contract_number / internal_reference
    metadata_: Mapped[dict | None] = mapped_column("metadata", JSON, nullable=True)
    # tagged union, see schemas.investments.PaymentStructure
    payment_structure: Mapped[dict] = mapped_column(JSON, nullable=False)

    __table_args__ = (Index("ix_investments_company_status", "company_id", "status"),)


class InvestmentApproval(Base, IdMixin, AuditMetaMixin):
    __tablename__ = "investment_approvals"

    investment_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("investments.id", ondelete="CASCADE"), index=True)
    decided_by: Mapped[uuid.UUID] = mapped_column(nullable=False)
    decision: Mapped[ApprovalDecision] = mapped_column(SAEnum(ApprovalDecision, name="approval_decision_enum"), nullable=False)
    comment: Mapped[str | None] = mapped_column(String(2000), nullable=True)
    decided_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
