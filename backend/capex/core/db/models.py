from __future__ import annotations

import uuid

from sqlalchemy import JSON, Boolean, ForeignKey, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from capex.core.db.base import AuditMetaMixin, Base, IdMixin


class Group(Base, IdMixin, AuditMetaMixin):
    __tablename__ = "groups"

    name: Mapped[str] = mapped_column(String(200), unique=True, index=True)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="EUR")
    fiscal_year_start: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    payment_reminder_days: Mapped[int] = mapped_column(Integer, nullable=False, default=7)
    monthly_report_deadline_day: Mapped[int] = mapped_column(Integer, nullable=False, default=5)


class Company(Base, IdMixin, AuditMetaMixin):
    __tablename__ = "companies"

    group_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("groups.id", ondelete="CASCADE"), index=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    company_code: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)


class User(Base, IdMixin, AuditMetaMixin):
    __tablename__ = "users"

    email: Mapped[str] = mapped_column(String(320), unique=True, index=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)


class UserRole(Base, IdMixin, AuditMetaMixin):
    """
    Role held by a user inside a group.

    company_id=None means the role is group-scoped and spans every company
    of the group; otherwise it is limited to that company.
    """

    __tablename__ = "user_roles"

    user_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), index=True)
    group_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("groups.id", ondelete="CASCADE"), index=True)
    company_id: Mapped[uuid.UUID | None] = mapped_column(ForeignKey("companies.id", ondelete="CASCADE"), nullable=True, index=True)
    role: Mapped[str] = mapped_column(String(32), index=True)

    __table_args__ = (UniqueConstraint("user_id", "group_id", "company_id", "role", name="uq_user_role_scope"),)


class AuditEvent(Base, IdMixin, AuditMetaMixin):
    __tablename__ = "audit_events"

    actor_id: Mapped[str] = mapped_column(String(200), index=True)
    actor_roles: Mapped[list[str]] = mapped_column(JSON, default=list)

    action: Mapped[str] = mapped_column(String(200), index=True)
    entity_type: Mapped[str] = mapped_column(String(100), index=True)
    entity_id: Mapped[str] = mapped_column(String(200), index=True)

    before: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    after: Mapped[dict | None] = mapped_column(JSON, nullable=True)

    request_id: Mapped[str] = mapped_column(String(64), index=True)

    __table_args__ = (
        Index("ix_audit_events_entity", "entity_type", "entity_id"),
    )
