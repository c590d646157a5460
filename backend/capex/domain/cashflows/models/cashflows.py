from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import Boolean, Date, DateTime, Enum as SAEnum, ForeignKey, Index, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from capex.core.db.base import AuditMetaMixin, Base, IdMixin
from capex.domain.cashflows.enums import CashflowStatus, CashflowType


class Cashflow(Base, IdMixin, AuditMetaMixin):
    __tablename__ = "cashflows"

    investment_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("investments.id", ondelete="CASCADE"), index=True)

    due_date: Mapped[date] = mapped_column(Date, nullable=False)
    custom_due_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    amount: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False)
    type: Mapped[CashflowType] = mapped_column(SAEnum(CashflowType, name="cashflow_type_enum"), nullable=False)
    period_number: Mapped[int | None] = mapped_column(Integer, nullable=True)
    total_periods: Mapped[int | None] = mapped_column(Integer, nullable=True)

    # Reporting bucket of the effective due date
    month: Mapped[int] = mapped_column(Integer, nullable=False)
    year: Mapped[int] = mapped_column(Integer, nullable=False)

    status: Mapped[CashflowStatus] = mapped_column(
        SAEnum(CashflowStatus, name="cashflow_status_enum"),
        nullable=False,
        server_default=CashflowStatus.PLANNED.value,
        index=True,
    )

    # Manager (pre-confirmation)
    confirmed_by_manager: Mapped[uuid.UUID | None] = mapped_column(nullable=True)
    confirmed_at_manager: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    manager_comment: Mapped[str | None] = mapped_column(String(2000), nullable=True)

    # Executive (final confirmation)
    confirmed_by_executive: Mapped[uuid.UUID | None] = mapped_column(nullable=True)
    confirmed_at_executive: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    executive_comment: Mapped[str | None] = mapped_column(String(2000), nullable=True)

    # Postponement
    original_due_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    postponed_by: Mapped[uuid.UUID | None] = mapped_column(nullable=True)
    postponed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    postpone_reason: Mapped[str | None] = mapped_column(String(2000), nullable=True)

    auto_confirmed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    accounting_reference: Mapped[str | None] = mapped_column(String(200), nullable=True)

    __table_args__ = (Index("ix_cashflows_year_month", "year", "month"),)
