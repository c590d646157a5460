from __future__ import annotations

import calendar
import datetime as dt
import uuid
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

from capex.core.config import settings
from capex.core.security.auth import RoleAssignment
from capex.domain.cashflows.enums import CashflowStatus
from capex.domain.cashflows.schemas.cashflows import CashflowRecord
from capex.domain.cashflows.services.dates import days_between, previous_month
from capex.domain.investments.enums import InvestmentStatus
from capex.domain.investments.schemas.investments import InvestmentRecord
from capex.domain.notifications.enums import NotificationPriority, NotificationType, RuleTrigger
from capex.shared.enums import RelatedType, Role
from capex.shared.utils import as_uuid, utcnow


@dataclass
class RuleContext:
    current_date: dt.date
    users: list[dict[str, Any]] = field(default_factory=list)
    user_roles: list[RoleAssignment] = field(default_factory=list)
    groups: list[dict[str, Any]] = field(default_factory=list)
    cashflow: CashflowRecord | None = None
    investment: InvestmentRecord | None = None
    triggered_by: uuid.UUID | None = None

    def group(self, group_id: uuid.UUID | None) -> dict[str, Any] | None:
        for g in self.groups:
            if as_uuid(g["id"]) == group_id:
                return g
        return None

    def group_setting(self, group_id: uuid.UUID | None, key: str, default: Any) -> Any:
        g = self.group(group_id)
        if g is None or g.get(key) is None:
            return default
        return g[key]

    def timestamp(self) -> dt.datetime:
        """Creation time for notifications; follows current_date when it is simulated."""
        now = utcnow()
        if now.date() == self.current_date:
            return now
        return dt.datetime.combine(self.current_date, now.timetz())


@dataclass(frozen=True)
class RuleResult:
    should_trigger: bool
    related_type: RelatedType | None = None
    related_id: uuid.UUID | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Message:
    title: str
    message: str


@dataclass(frozen=True)
class BusinessRule:
    id: str
    name: str
    type: NotificationType
    priority: NotificationPriority
    trigger: RuleTrigger
    description: str
    evaluate: Callable[[RuleContext], RuleResult | None]
    get_recipients: Callable[[RuleContext], list[uuid.UUID]]
    get_message: Callable[[RuleContext], Message]


def users_with_role(
    roles: Iterable[Role],
    assignments: Sequence[RoleAssignment],
    *,
    group_id: uuid.UUID | None = None,
    company_id: uuid.UUID | None = None,
) -> list[uuid.UUID]:
    """
    Holders of any of `roles`, optionally narrowed to a group and company.

    A company filter also matches group-scoped holders of the same group.
    Duplicates are removed, first occurrence wins.
    """
    wanted = set(roles)
    out: list[uuid.UUID] = []
    for a in assignments:
        if a.role not in wanted:
            continue
        if group_id is not None and a.group_id != group_id:
            continue
        if company_id is not None and not a.covers_company(company_id):
            continue
        if a.user_id not in out:
            out.append(a.user_id)
    return out


def format_money(amount: Decimal, currency: str) -> str:
    return f"{Decimal(amount):,.2f} {currency}"


def _currency(ctx: RuleContext) -> str:
    group_id = ctx.investment.group_id if ctx.investment else None
    return ctx.group_setting(group_id, "currency", settings.default_currency)


def _company_recipients(ctx: RuleContext, roles: Iterable[Role]) -> list[uuid.UUID]:
    if ctx.cashflow is None or ctx.investment is None:
        return []
    return users_with_role(
        roles,
        ctx.user_roles,
        group_id=ctx.investment.group_id,
        company_id=ctx.investment.company_id,
    )


def _outstanding(ctx: RuleContext) -> CashflowRecord | None:
    if ctx.cashflow is None or ctx.cashflow.status != CashflowStatus.OUTSTANDING:
        return None
    return ctx.cashflow


# -- payment_due_soon ------------------------------------------------------


def _reminder_days(ctx: RuleContext) -> int:
    group_id = ctx.investment.group_id if ctx.investment else None
    return int(ctx.group_setting(group_id, "payment_reminder_days", settings.payment_reminder_days))


def _due_soon_evaluate(ctx: RuleContext) -> RuleResult | None:
    cashflow = _outstanding(ctx)
    if cashflow is None:
        return None
    due = cashflow.effective_due_date
    if days_between(due, ctx.current_date) != _reminder_days(ctx):
        return None
    return RuleResult(
        should_trigger=True,
        related_type=RelatedType.CASHFLOW,
        related_id=cashflow.id,
        metadata={"due_date": due, "amount": cashflow.amount},
    )


def _due_soon_message(ctx: RuleContext) -> Message:
    cashflow, investment = ctx.cashflow, ctx.investment
    if cashflow is None or investment is None:
        return Message("", "")
    return Message(
        title=f"Payment due in {_reminder_days(ctx)} days",
        message=(
            f"Payment of {format_money(cashflow.amount, _currency(ctx))} for \"{investment.name}\" "
            f"is due on {cashflow.effective_due_date.isoformat()}."
        ),
    )


payment_due_soon = BusinessRule(
    id="payment_due_soon",
    name="Payment due soon",
    type=NotificationType.PAYMENT_DUE_SOON,
    priority=NotificationPriority.MEDIUM,
    trigger=RuleTrigger.DAILY,
    description="Reminder a configured number of days before an outstanding payment is due",
    evaluate=_due_soon_evaluate,
    get_recipients=lambda ctx: _company_recipients(ctx, [Role.CASHFLOW_MANAGER, Role.MANAGING_DIRECTOR]),
    get_message=_due_soon_message,
)


# -- payment_overdue -------------------------------------------------------


def _overdue_evaluate(ctx: RuleContext) -> RuleResult | None:
    cashflow = _outstanding(ctx)
    if cashflow is None:
        return None
    due = cashflow.effective_due_date
    if ctx.current_date <= due:
        return None
    return RuleResult(
        should_trigger=True,
        related_type=RelatedType.CASHFLOW,
        related_id=cashflow.id,
        metadata={"due_date": due, "amount": cashflow.amount, "days_overdue": days_between(ctx.current_date, due)},
    )


def _overdue_message(ctx: RuleContext) -> Message:
    cashflow, investment = ctx.cashflow, ctx.investment
    if cashflow is None or investment is None:
        return Message("", "")
    due = cashflow.effective_due_date
    return Message(
        title="Payment overdue",
        message=(
            f"Payment of {format_money(cashflow.amount, _currency(ctx))} for \"{investment.name}\" is "
            f"{days_between(ctx.current_date, due)} day(s) overdue (due {due.isoformat()})."
        ),
    )


payment_overdue = BusinessRule(
    id="payment_overdue",
    name="Payment overdue",
    type=NotificationType.PAYMENT_OVERDUE,
    priority=NotificationPriority.HIGH,
    trigger=RuleTrigger.DAILY,
    description="Outstanding payment past its effective due date",
    evaluate=_overdue_evaluate,
    get_recipients=lambda ctx: _company_recipients(
        ctx, [Role.CASHFLOW_MANAGER, Role.MANAGING_DIRECTOR, Role.CFO]
    ),
    get_message=_overdue_message,
)


# -- monthly_report_due ----------------------------------------------------


def _groups_reporting_today(ctx: RuleContext) -> list[uuid.UUID]:
    day = ctx.current_date.day
    return [
        as_uuid(g["id"])
        for g in ctx.groups
        if int(g.get("monthly_report_deadline_day") or settings.monthly_report_deadline_day) == day
    ]


def _monthly_report_evaluate(ctx: RuleContext) -> RuleResult | None:
    if not _groups_reporting_today(ctx):
        return None
    month = previous_month(ctx.current_date)
    return RuleResult(should_trigger=True, metadata={"month": month.month, "year": month.year})


def _monthly_report_recipients(ctx: RuleContext) -> list[uuid.UUID]:
    out: list[uuid.UUID] = []
    for group_id in _groups_reporting_today(ctx):
        for user_id in users_with_role([Role.CASHFLOW_MANAGER, Role.MANAGING_DIRECTOR], ctx.user_roles, group_id=group_id):
            if user_id not in out:
                out.append(user_id)
    return out


def _monthly_report_message(ctx: RuleContext) -> Message:
    month = previous_month(ctx.current_date)
    return Message(
        title="Monthly report due",
        message=(
            f"The cashflow report for {calendar.month_name[month.month]} {month.year} is due. "
            "Please review and close it."
        ),
    )


monthly_report_due = BusinessRule(
    id="monthly_report_due",
    name="Monthly report due",
    type=NotificationType.MONTHLY_REPORT_DUE,
    priority=NotificationPriority.HIGH,
    trigger=RuleTrigger.DAILY,
    description="Fires on the group's reporting deadline day for the previous month",
    evaluate=_monthly_report_evaluate,
    get_recipients=_monthly_report_recipients,
    get_message=_monthly_report_message,
)


# -- investment lifecycle --------------------------------------------------


def _investment_in(status: InvestmentStatus) -> Callable[[RuleContext], RuleResult | None]:
    def _evaluate(ctx: RuleContext) -> RuleResult | None:
        investment = ctx.investment
        if investment is None or investment.status != status:
            return None
        return RuleResult(
            should_trigger=True,
            related_type=RelatedType.INVESTMENT,
            related_id=investment.id,
            metadata={"name": investment.name, "amount": investment.total_amount},
        )

    return _evaluate


def _creator(ctx: RuleContext) -> list[uuid.UUID]:
    if ctx.investment is None or ctx.investment.created_by is None:
        return []
    return [ctx.investment.created_by]


def _approvers(ctx: RuleContext) -> list[uuid.UUID]:
    if ctx.investment is None:
        return []
    return users_with_role([Role.BOARD_APPROVER], ctx.user_roles, group_id=ctx.investment.group_id)


def _submitted_message(ctx: RuleContext) -> Message:
    investment = ctx.investment
    if investment is None:
        return Message("", "")
    return Message(
        title="New investment awaiting approval",
        message=(
            f"Investment \"{investment.name}\" ({format_money(investment.total_amount, _currency(ctx))}) "
            "was submitted for approval."
        ),
    )


def _approved_message(ctx: RuleContext) -> Message:
    if ctx.investment is None:
        return Message("", "")
    return Message(title="Investment approved", message=f"Your investment \"{ctx.investment.name}\" was approved.")


def _rejected_message(ctx: RuleContext) -> Message:
    if ctx.investment is None:
        return Message("", "")
    return Message(
        title="Investment rejected",
        message=f"Your investment \"{ctx.investment.name}\" was rejected. See the details for the reason.",
    )


investment_submitted = BusinessRule(
    id="investment_submitted",
    name="Investment submitted",
    type=NotificationType.INVESTMENT_SUBMITTED,
    priority=NotificationPriority.MEDIUM,
    trigger=RuleTrigger.EVENT,
    description="Tell the group's approvers about a new submission",
    evaluate=_investment_in(InvestmentStatus.SUBMITTED),
    get_recipients=_approvers,
    get_message=_submitted_message,
)

investment_approved = BusinessRule(
    id="investment_approved",
    name="Investment approved",
    type=NotificationType.INVESTMENT_APPROVED,
    priority=NotificationPriority.MEDIUM,
    trigger=RuleTrigger.EVENT,
    description="Tell the creator the investment was approved",
    evaluate=_investment_in(InvestmentStatus.APPROVED),
    get_recipients=_creator,
    get_message=_approved_message,
)

investment_rejected = BusinessRule(
    id="investment_rejected",
    name="Investment rejected",
    type=NotificationType.INVESTMENT_REJECTED,
    priority=NotificationPriority.HIGH,
    trigger=RuleTrigger.EVENT,
    description="Tell the creator the investment was rejected",
    evaluate=_investment_in(InvestmentStatus.REJECTED),
    get_recipients=_creator,
    get_message=_rejected_message,
)


# -- cashflow confirmation -------------------------------------------------


def _needs_confirmation_evaluate(ctx: RuleContext) -> RuleResult | None:
    cashflow = ctx.cashflow
    if cashflow is None or cashflow.status != CashflowStatus.PRE_CONFIRMED:
        return None
    return RuleResult(
        should_trigger=True,
        related_type=RelatedType.CASHFLOW,
        related_id=cashflow.id,
        metadata={"amount": cashflow.amount},
    )


def _needs_confirmation_message(ctx: RuleContext) -> Message:
    cashflow, investment = ctx.cashflow, ctx.investment
    if cashflow is None or investment is None:
        return Message("", "")
    return Message(
        title="Cashflow awaiting confirmation",
        message=(
            f"A payment of {format_money(cashflow.amount, _currency(ctx))} for \"{investment.name}\" was "
            "pre-confirmed and awaits your confirmation."
        ),
    )


cashflow_needs_confirmation = BusinessRule(
    id="cashflow_needs_confirmation",
    name="Cashflow needs confirmation",
    type=NotificationType.CASHFLOW_NEEDS_CONFIRMATION,
    priority=NotificationPriority.MEDIUM,
    trigger=RuleTrigger.EVENT,
    description="Tell the company's executives a pre-confirmed payment is waiting",
    evaluate=_needs_confirmation_evaluate,
    get_recipients=lambda ctx: _company_recipients(ctx, [Role.MANAGING_DIRECTOR]),
    get_message=_needs_confirmation_message,
)


def _postponed_evaluate(ctx: RuleContext) -> RuleResult | None:
    cashflow = ctx.cashflow
    if cashflow is None or cashflow.status != CashflowStatus.POSTPONED or cashflow.postponed_at is None:
        return None
    return RuleResult(
        should_trigger=True,
        related_type=RelatedType.CASHFLOW,
        related_id=cashflow.id,
        metadata={"amount": cashflow.amount, "new_date": cashflow.custom_due_date, "reason": cashflow.postpone_reason},
    )


def _postponed_recipients(ctx: RuleContext) -> list[uuid.UUID]:
    if ctx.cashflow is None or ctx.investment is None:
        return []
    pair = {Role.CASHFLOW_MANAGER, Role.MANAGING_DIRECTOR}
    postponer = ctx.cashflow.postponed_by
    postponer_roles = {
        a.role
        for a in ctx.user_roles
        if a.user_id == postponer and a.group_id == ctx.investment.group_id and a.covers_company(ctx.investment.company_id)
    }
    # Notify the side of the pair that did not postpone; both when unclear.
    others = (pair - postponer_roles) or pair
    return [u for u in _company_recipients(ctx, sorted(others, key=lambda r: r.value)) if u != postponer]


def _postponed_message(ctx: RuleContext) -> Message:
    cashflow, investment = ctx.cashflow, ctx.investment
    if cashflow is None or investment is None:
        return Message("", "")
    reason = cashflow.postpone_reason or "No reason given"
    return Message(
        title="Payment postponed",
        message=(
            f"Payment of {format_money(cashflow.amount, _currency(ctx))} for \"{investment.name}\" was "
            f"postponed to {cashflow.effective_due_date.isoformat()}. Reason: {reason}"
        ),
    )


cashflow_postponed = BusinessRule(
    id="cashflow_postponed",
    name="Cashflow postponed",
    type=NotificationType.CASHFLOW_POSTPONED,
    priority=NotificationPriority.MEDIUM,
    trigger=RuleTrigger.EVENT,
    description="Tell the other confirming role about a postponement",
    evaluate=_postponed_evaluate,
    get_recipients=_postponed_recipients,
    get_message=_postponed_message,
)


ALL_RULES: tuple[BusinessRule, ...] = (
    payment_due_soon,
    payment_overdue,
    investment_submitted,
    investment_approved,
    investment_rejected,
    cashflow_needs_confirmation,
    monthly_report_due,
    cashflow_postponed,
)
