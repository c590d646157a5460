"""initial schema

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-17
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa


revision = "0001_initial"
down_revision = None
branch_labels = None
depends_on = None


def _audit_columns() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True),
        sa.Column("created_by", sa.String(length=128), nullable=True),
        sa.Column("updated_by", sa.String(length=128), nullable=True),
    ]


def _enum(name: str, *values: str) -> sa.Enum:
    return sa.Enum(*values, name=name)


INVESTMENT_STATUS = ("DRAFT", "SUBMITTED", "APPROVED", "REJECTED", "ACTIVE", "COMPLETED")
CASHFLOW_STATUS = ("PLANNED", "OUTSTANDING", "PRE_CONFIRMED", "CONFIRMED", "POSTPONED", "CANCELLED")
NOTIFICATION_TYPES = (
    "PAYMENT_DUE_SOON",
    "PAYMENT_OVERDUE",
    "INVESTMENT_SUBMITTED",
    "INVESTMENT_APPROVED",
    "INVESTMENT_REJECTED",
    "CASHFLOW_NEEDS_CONFIRMATION",
    "MONTHLY_REPORT_DUE",
    "CASHFLOW_POSTPONED",
)


def upgrade() -> None:
    # --- Organisation / identity
    op.create_table(
        "groups",
        sa.Column("id", sa.Uuid(), primary_key=True, nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("currency", sa.String(length=3), nullable=False, server_default="EUR"),
        sa.Column("fiscal_year_start", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("payment_reminder_days", sa.Integer(), nullable=False, server_default="7"),
        sa.Column("monthly_report_deadline_day", sa.Integer(), nullable=False, server_default="5"),
        *_audit_columns(),
    )
    op.create_index("ix_groups_name", "groups", ["name"], unique=True)

    op.create_table(
        "companies",
        sa.Column("id", sa.Uuid(), primary_key=True, nullable=False),
        sa.Column("group_id", sa.Uuid(), sa.ForeignKey("groups.id", ondelete="CASCADE"), nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("company_code", sa.String(length=32), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_audit_columns(),
    )
    op.create_index("ix_companies_group_id", "companies", ["group_id"])
    op.create_index("ix_companies_company_code", "companies", ["company_code"])

    op.create_table(
        "users",
        sa.Column("id", sa.Uuid(), primary_key=True, nullable=False),
        sa.Column("email", sa.String(length=320), nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_audit_columns(),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    op.create_table(
        "user_roles",
        sa.Column("id", sa.Uuid(), primary_key=True, nullable=False),
        sa.Column("user_id", sa.Uuid(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("group_id", sa.Uuid(), sa.ForeignKey("groups.id", ondelete="CASCADE"), nullable=False),
        sa.Column("company_id", sa.Uuid(), sa.ForeignKey("companies.id", ondelete="CASCADE"), nullable=True),
        sa.Column("role", sa.String(length=32), nullable=False),
        *_audit_columns(),
        sa.UniqueConstraint("user_id", "group_id", "company_id", "role", name="uq_user_role_scope"),
    )
    op.create_index("ix_user_roles_user_id", "user_roles", ["user_id"])
    op.create_index("ix_user_roles_group_id", "user_roles", ["group_id"])
    op.create_index("ix_user_roles_company_id", "user_roles", ["company_id"])
    op.create_index("ix_user_roles_role", "user_roles", ["role"])

    op.create_table(
        "audit_events",
        sa.Column("id", sa.Uuid(), primary_key=True, nullable=False),
        sa.Column("actor_id", sa.String(length=200), nullable=False),
        sa.Column("actor_roles", sa.JSON(), nullable=False),
        sa.Column("action", sa.String(length=200), nullable=False),
        sa.Column("entity_type", sa.String(length=100), nullable=False),
        sa.Column("entity_id", sa.String(length=200), nullable=False),
        sa.Column("before", sa.JSON(), nullable=True),
        sa.Column("after", sa.JSON(), nullable=True),
        sa.Column("request_id", sa.String(length=64), nullable=False),
        *_audit_columns(),
    )
    op.create_index("ix_audit_events_actor_id", "audit_events", ["actor_id"])
    op.create_index("ix_audit_events_action", "audit_events", ["action"])
    op.create_index("ix_audit_events_request_id", "audit_events", ["request_id"])
    op.create_index("ix_audit_events_entity", "audit_events", ["entity_type", "entity_id"])

    # --- Investments
    op.create_table(
        "investments",
        sa.Column("id", sa.Uuid(), primary_key=True, nullable=False),
        sa.Column("group_id", sa.Uuid(), sa.ForeignKey("groups.id", ondelete="CASCADE"), nullable=False),
        sa.Column("company_id", sa.Uuid(), sa.ForeignKey("companies.id", ondelete="CASCADE"), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.String(length=4000), nullable=True),
        sa.Column(
            "category",
            _enum("investment_category_enum", "VEHICLES", "IT", "MACHINERY", "REAL_ESTATE", "OTHER"),
            nullable=False,
        ),
        sa.Column("total_amount", sa.Numeric(18, 2), nullable=False),
        sa.Column("financing_type", _enum("financing_type_enum", "PURCHASE", "INSTALLMENT", "LEASE", "RENT"), nullable=False),
        sa.Column("status", _enum("investment_status_enum", *INVESTMENT_STATUS), nullable=False, server_default="DRAFT"),
        sa.Column("submitted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("start_date", sa.Date(), nullable=True),
        sa.Column("end_date", sa.Date(), nullable=True),
        sa.Column("metadata", sa.JSON(), nullable=True),
        sa.Column("payment_structure", sa.JSON(), nullable=False),
        *_audit_columns(),
    )
    op.create_index("ix_investments_group_id", "investments", ["group_id"])
    op.create_index("ix_investments_company_id", "investments", ["company_id"])
    op.create_index("ix_investments_status", "investments", ["status"])
    op.create_index("ix_investments_company_status", "investments", ["company_id", "status"])

    op.create_table(
        "investment_approvals",
        sa.Column("id", sa.Uuid(), primary_key=True, nullable=False),
        sa.Column("investment_id", sa.Uuid(), sa.ForeignKey("investments.id", ondelete="CASCADE"), nullable=False),
        sa.Column("decided_by", sa.Uuid(), nullable=False),
        sa.Column("decision", _enum("approval_decision_enum", "APPROVED", "REJECTED"), nullable=False),
        sa.Column("comment", sa.String(length=2000), nullable=True),
        sa.Column("decided_at", sa.DateTime(timezone=True), nullable=False),
        *_audit_columns(),
    )
    op.create_index("ix_investment_approvals_investment_id", "investment_approvals", ["investment_id"])

    # --- Cashflows
    op.create_table(
        "cashflows",
        sa.Column("id", sa.Uuid(), primary_key=True, nullable=False),
        sa.Column("investment_id", sa.Uuid(), sa.ForeignKey("investments.id", ondelete="CASCADE"), nullable=False),
        sa.Column("due_date", sa.Date(), nullable=False),
        sa.Column("custom_due_date", sa.Date(), nullable=True),
        sa.Column("amount", sa.Numeric(18, 2), nullable=False),
        sa.Column("type", _enum("cashflow_type_enum", "DOWN_PAYMENT", "INSTALLMENT", "BALLOON", "SINGLE"), nullable=False),
        sa.Column("period_number", sa.Integer(), nullable=True),
        sa.Column("total_periods", sa.Integer(), nullable=True),
        sa.Column("month", sa.Integer(), nullable=False),
        sa.Column("year", sa.Integer(), nullable=False),
        sa.Column("status", _enum("cashflow_status_enum", *CASHFLOW_STATUS), nullable=False, server_default="PLANNED"),
        sa.Column("confirmed_by_manager", sa.Uuid(), nullable=True),
        sa.Column("confirmed_at_manager", sa.DateTime(timezone=True), nullable=True),
        sa.Column("manager_comment", sa.String(length=2000), nullable=True),
        sa.Column("confirmed_by_executive", sa.Uuid(), nullable=True),
        sa.Column("confirmed_at_executive", sa.DateTime(timezone=True), nullable=True),
        sa.Column("executive_comment", sa.String(length=2000), nullable=True),
        sa.Column("original_due_date", sa.Date(), nullable=True),
        sa.Column("postponed_by", sa.Uuid(), nullable=True),
        sa.Column("postponed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("postpone_reason", sa.String(length=2000), nullable=True),
        sa.Column("auto_confirmed", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("accounting_reference", sa.String(length=200), nullable=True),
        *_audit_columns(),
    )
    op.create_index("ix_cashflows_investment_id", "cashflows", ["investment_id"])
    op.create_index("ix_cashflows_status", "cashflows", ["status"])
    op.create_index("ix_cashflows_year_month", "cashflows", ["year", "month"])

    # --- Notifications
    op.create_table(
        "notifications",
        sa.Column("id", sa.Uuid(), primary_key=True, nullable=False),
        sa.Column("user_id", sa.Uuid(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("type", _enum("notification_type_enum", *NOTIFICATION_TYPES), nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("message", sa.String(length=2000), nullable=False),
        sa.Column("priority", _enum("notification_priority_enum", "LOW", "MEDIUM", "HIGH", "URGENT"), nullable=False),
        sa.Column("related_type", _enum("related_type_enum", "INVESTMENT", "CASHFLOW"), nullable=True),
        sa.Column("related_id", sa.Uuid(), nullable=True),
        sa.Column("read", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("read_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True),
    )
    op.create_index("ix_notifications_user_id", "notifications", ["user_id"])
    op.create_index("ix_notifications_related_id", "notifications", ["related_id"])
    op.create_index("ix_notifications_user_read", "notifications", ["user_id", "read"])


def downgrade() -> None:
    op.drop_index("ix_notifications_user_read", table_name="notifications")
    op.drop_table("notifications")
    op.drop_index("ix_cashflows_year_month", table_name="cashflows")
    op.drop_table("cashflows")
    op.drop_table("investment_approvals")
    op.drop_index("ix_investments_company_status", table_name="investments")
    op.drop_table("investments")
    op.drop_index("ix_audit_events_entity", table_name="audit_events")
    op.drop_table("audit_events")
    op.drop_table("user_roles")
    op.drop_table("users")
    op.drop_table("companies")
    op.drop_table("groups")
