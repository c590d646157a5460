from __future__ import annotations

import datetime as dt
import uuid
from collections.abc import Iterable, Sequence
from datetime import timedelta

import structlog

from capex.core.config import settings
from capex.core.security.auth import RoleAssignment
from capex.core.storage.repository import Collection, Condition, OrderBy, QueryFilter, Record, Repository, eq
from capex.domain.cashflows.enums import CashflowStatus
from capex.domain.cashflows.schemas.cashflows import CashflowRecord
from capex.domain.investments.schemas.investments import InvestmentRecord
from capex.domain.notifications.enums import NotificationPriority
from capex.domain.notifications.schemas.notifications import NotificationDraft
from capex.domain.notifications.services.engine import RuleEngine, rule_engine
from capex.domain.notifications.services.rules import RuleContext
from capex.shared.exceptions import NotFound
from capex.shared.utils import utcnow


logger = structlog.get_logger(__name__)

PRIORITY_ORDER: dict[str, int] = {
    NotificationPriority.URGENT.value: 0,
    NotificationPriority.HIGH.value: 1,
    NotificationPriority.MEDIUM.value: 2,
    NotificationPriority.LOW.value: 3,
}


def build_rule_context(
    repo: Repository,
    current_date: dt.date,
    *,
    cashflow: CashflowRecord | None = None,
    investment: InvestmentRecord | None = None,
    triggered_by: uuid.UUID | None = None,
) -> RuleContext:
    return RuleContext(
        current_date=current_date,
        users=repo.query(Collection.USERS),
        user_roles=[RoleAssignment.from_record(r) for r in repo.query(Collection.USER_ROLES)],
        groups=repo.query(Collection.GROUPS),
        cashflow=cashflow,
        investment=investment,
        triggered_by=triggered_by,
    )


def persist_notifications(repo: Repository, drafts: Iterable[NotificationDraft]) -> list[Record]:
    return [repo.create(Collection.NOTIFICATIONS, d.model_dump()) for d in drafts]


def trigger_investment_notifications(
    repo: Repository,
    investment: InvestmentRecord,
    rule_id: str,
    *,
    today: dt.date | None = None,
    triggered_by: uuid.UUID | None = None,
    engine: RuleEngine = rule_engine,
) -> list[Record]:
    """Evaluate one event rule for an investment and store the result. Does not commit."""
    ctx = build_rule_context(repo, today or dt.date.today(), investment=investment, triggered_by=triggered_by)
    created = persist_notifications(repo, engine.evaluate_rule(rule_id, ctx))
    logger.info("notifications.triggered", rule_id=rule_id, investment_id=str(investment.id), count=len(created))
    return created


def trigger_cashflow_notifications(
    repo: Repository,
    cashflow: CashflowRecord,
    investment: InvestmentRecord,
    rule_id: str,
    *,
    today: dt.date | None = None,
    triggered_by: uuid.UUID | None = None,
    engine: RuleEngine = rule_engine,
) -> list[Record]:
    """Evaluate one event rule for a cashflow and store the result. Does not commit."""
    ctx = build_rule_context(
        repo,
        today or dt.date.today(),
        cashflow=cashflow,
        investment=investment,
        triggered_by=triggered_by,
    )
    created = persist_notifications(repo, engine.evaluate_rule(rule_id, ctx))
    logger.info("notifications.triggered", rule_id=rule_id, cashflow_id=str(cashflow.id), count=len(created))
    return created


def _day_bounds(day: dt.date) -> tuple[dt.datetime, dt.datetime]:
    start = dt.datetime.combine(day, dt.time.min, tzinfo=dt.timezone.utc)
    return start, start + timedelta(days=1)


def _already_notified(repo: Repository, draft: NotificationDraft, today: dt.date) -> bool:
    start, end = _day_bounds(today)
    existing = repo.query(
        Collection.NOTIFICATIONS,
        QueryFilter.of(
            eq("type", draft.type),
            eq("related_id", draft.related_id),
            eq("user_id", draft.user_id),
            Condition("created_at", ">=", start),
            Condition("created_at", "<", end),
            limit=1,
        ),
    )
    return bool(existing)


def check_daily_notifications(repo: Repository, today: dt.date | None = None, *, engine: RuleEngine = rule_engine) -> list[Record]:
    """
    Run the time-based rules once for `today`.

    Due-soon and overdue are evaluated per outstanding cashflow, the monthly
    report once. A notification already created today for the same type,
    entity and recipient is not created again.
    """
    today = today or dt.date.today()
    base = build_rule_context(repo, today)
    cashflow_rules = [r for r in engine.daily_rules() if r.id in ("payment_due_soon", "payment_overdue")]
    global_rules = [r for r in engine.daily_rules() if r not in cashflow_rules]

    drafts: list[NotificationDraft] = []
    investments: dict[uuid.UUID, InvestmentRecord | None] = {}
    for row in repo.query(Collection.CASHFLOWS, QueryFilter.of(eq("status", CashflowStatus.OUTSTANDING))):
        cashflow = CashflowRecord.model_validate(row)
        if cashflow.investment_id not in investments:
            inv_row = repo.read(Collection.INVESTMENTS, cashflow.investment_id)
            investments[cashflow.investment_id] = InvestmentRecord.model_validate(inv_row) if inv_row else None
        investment = investments[cashflow.investment_id]
        if investment is None:
            continue
        ctx = RuleContext(
            current_date=today,
            users=base.users,
            user_roles=base.user_roles,
            groups=base.groups,
            cashflow=cashflow,
            investment=investment,
        )
        drafts.extend(engine.evaluate_rules(ctx, cashflow_rules))

    drafts.extend(engine.evaluate_rules(base, global_rules))

    fresh = [d for d in drafts if not _already_notified(repo, d, today)]
    created = persist_notifications(repo, fresh)
    repo.commit()
    logger.info("notifications.daily_check", date=today.isoformat(), evaluated=len(drafts), created=len(created))
    return created


def _owned(repo: Repository, notification_id: uuid.UUID, user_id: uuid.UUID) -> Record:
    row = repo.read(Collection.NOTIFICATIONS, notification_id)
    if row is None or row["user_id"] != user_id:
        raise NotFound("Notification not found")
    return row


def mark_as_read(repo: Repository, notification_id: uuid.UUID, *, user_id: uuid.UUID, now: dt.datetime | None = None) -> Record:
    row = _owned(repo, notification_id, user_id)
    if not row.get("read"):
        row = repo.update(Collection.NOTIFICATIONS, notification_id, {"read": True, "read_at": now or utcnow()})
        repo.commit()
    return row


def mark_all_as_read(repo: Repository, user_id: uuid.UUID, *, now: dt.datetime | None = None) -> int:
    now = now or utcnow()
    rows = repo.query(Collection.NOTIFICATIONS, QueryFilter.of(eq("user_id", user_id), eq("read", False)))
    for row in rows:
        repo.update(Collection.NOTIFICATIONS, row["id"], {"read": True, "read_at": now})
    repo.commit()
    return len(rows)


def clear_notifications(repo: Repository, user_id: uuid.UUID) -> int:
    rows = repo.query(Collection.NOTIFICATIONS, QueryFilter.of(eq("user_id", user_id)))
    for row in rows:
        repo.delete(Collection.NOTIFICATIONS, row["id"])
    repo.commit()
    return len(rows)


def delete_old_notifications(repo: Repository, *, now: dt.datetime | None = None, days_old: int | None = None) -> int:
    """Delete read notifications whose read_at is older than the retention window. Unread ones are kept."""
    days = settings.notification_retention_days if days_old is None else days_old
    cutoff = (now or utcnow()) - timedelta(days=days)
    rows = repo.query(
        Collection.NOTIFICATIONS,
        QueryFilter.of(eq("read", True), Condition("read_at", "<", cutoff)),
    )
    for row in rows:
        repo.delete(Collection.NOTIFICATIONS, row["id"])
    repo.commit()
    logger.info("notifications.cleanup", cutoff=cutoff.isoformat(), deleted=len(rows))
    return len(rows)


def list_for_user(
    repo: Repository,
    user_id: uuid.UUID,
    *,
    unread_only: bool = False,
    limit: int | None = None,
) -> list[Record]:
    conditions = [eq("user_id", user_id)]
    if unread_only:
        conditions.append(eq("read", False))
    return repo.query(
        Collection.NOTIFICATIONS,
        QueryFilter.of(*conditions, order_by=OrderBy("created_at", descending=True), limit=limit),
    )


def unread_count(repo: Repository, user_id: uuid.UUID) -> int:
    return len(list_for_user(repo, user_id, unread_only=True))


def sort_by_priority(rows: Sequence[Record]) -> list[Record]:
    """Most urgent first; newest first within the same priority."""
    by_newest = sorted(rows, key=lambda r: r["created_at"], reverse=True)
    return sorted(by_newest, key=lambda r: PRIORITY_ORDER.get(str(r["priority"]), len(PRIORITY_ORDER)))
