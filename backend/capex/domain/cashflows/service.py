from __future__ import annotations

import datetime as dt
import uuid
from typing import Any

import structlog

from capex.core.db.audit import write_audit_event
from capex.core.security.auth import Actor
from capex.core.storage.repository import Collection, OrderBy, QueryFilter, Repository, eq
from capex.domain.cashflows.enums import CashflowAction
from capex.domain.cashflows.schemas.cashflows import CashflowRecord
from capex.domain.cashflows.services.dates import month_year
from capex.domain.cashflows.services.status_machine import apply_cashflow_action
from capex.domain.governance.services.guards import can_perform_cashflow_action, can_view_investment
from capex.domain.investments.schemas.investments import InvestmentRecord
from capex.domain.investments.service import get_investment, load_investment
from capex.domain.notifications.service import trigger_cashflow_notifications
from capex.shared.exceptions import NotFound
from capex.shared.utils import utcnow


logger = structlog.get_logger(__name__)

EVENT_RULES: dict[CashflowAction, str] = {
    CashflowAction.PRE_CONFIRM: "cashflow_needs_confirmation",
    CashflowAction.POSTPONE: "cashflow_postponed",
}


def load_cashflow(repo: Repository, cashflow_id: uuid.UUID) -> CashflowRecord:
    row = repo.read(Collection.CASHFLOWS, cashflow_id)
    if row is None:
        raise NotFound("Cashflow not found")
    return CashflowRecord.model_validate(row)


def get_cashflow(repo: Repository, *, actor: Actor, cashflow_id: uuid.UUID) -> CashflowRecord:
    cashflow = load_cashflow(repo, cashflow_id)
    get_investment(repo, actor=actor, investment_id=cashflow.investment_id)
    return cashflow


def _apply(
    repo: Repository,
    *,
    actor: Actor,
    cashflow_id: uuid.UUID,
    action: CashflowAction,
    changes: dict[str, Any],
    reason: str | None = None,
    new_date: dt.date | None = None,
    today: dt.date | None = None,
) -> CashflowRecord:
    """guard -> machine -> persist -> notify -> audit -> commit"""
    cashflow = load_cashflow(repo, cashflow_id)
    investment = load_investment(repo, cashflow.investment_id)

    can_perform_cashflow_action(
        actor.user_id,
        actor.roles,
        cashflow,
        investment,
        action,
        reason=reason,
        new_date=new_date,
        today=today,
    ).raise_if_denied()
    new_status = apply_cashflow_action(cashflow.status, action)

    data = dict(changes)
    data.update({"status": new_status, "updated_at": utcnow(), "updated_by": actor.actor_id})

    try:
        updated = CashflowRecord.model_validate(repo.update(Collection.CASHFLOWS, cashflow_id, data))

        rule_id = EVENT_RULES.get(action)
        if rule_id:
            trigger_cashflow_notifications(repo, updated, investment, rule_id, today=today, triggered_by=actor.user_id)

        write_audit_event(
            repo,
            actor_id=actor.actor_id,
            actor_roles=actor.role_names,
            action=f"cashflow.{action.value.lower()}",
            entity_type="cashflow",
            entity_id=cashflow_id,
            before=cashflow.model_dump(mode="json"),
            after={**updated.model_dump(mode="json"), "reason": reason},
        )
        repo.commit()
    except Exception:
        repo.rollback()
        raise

    logger.info(
        "cashflow.transition",
        cashflow_id=str(cashflow_id),
        investment_id=str(cashflow.investment_id),
        action=action.value,
        from_status=cashflow.status.value,
        to_status=new_status.value,
    )
    return updated


def make_outstanding(repo: Repository, *, actor: Actor, cashflow_id: uuid.UUID) -> CashflowRecord:
    return _apply(repo, actor=actor, cashflow_id=cashflow_id, action=CashflowAction.MAKE_OUTSTANDING, changes={})


def pre_confirm(
    repo: Repository,
    *,
    actor: Actor,
    cashflow_id: uuid.UUID,
    comment: str | None = None,
    today: dt.date | None = None,
) -> CashflowRecord:
    return _apply(
        repo,
        actor=actor,
        cashflow_id=cashflow_id,
        action=CashflowAction.PRE_CONFIRM,
        changes={"confirmed_by_manager": actor.user_id, "confirmed_at_manager": utcnow(), "manager_comment": comment},
        today=today,
    )


def confirm(
    repo: Repository,
    *,
    actor: Actor,
    cashflow_id: uuid.UUID,
    comment: str | None = None,
) -> CashflowRecord:
    return _apply(
        repo,
        actor=actor,
        cashflow_id=cashflow_id,
        action=CashflowAction.CONFIRM,
        changes={"confirmed_by_executive": actor.user_id, "confirmed_at_executive": utcnow(), "executive_comment": comment},
    )


def send_back(repo: Repository, *, actor: Actor, cashflow_id: uuid.UUID, reason: str | None) -> CashflowRecord:
    """Return a pre-confirmed payment to the manager. The reason lives in the audit trail."""
    return _apply(
        repo,
        actor=actor,
        cashflow_id=cashflow_id,
        action=CashflowAction.SEND_BACK,
        changes={"confirmed_by_manager": None, "confirmed_at_manager": None, "manager_comment": None},
        reason=reason,
    )


def postpone(
    repo: Repository,
    *,
    actor: Actor,
    cashflow_id: uuid.UUID,
    new_date: dt.date | None,
    reason: str | None,
    today: dt.date | None = None,
) -> CashflowRecord:
    current = load_cashflow(repo, cashflow_id)
    changes: dict[str, Any] = {
        # the first postponement's date is kept across later ones
        "original_due_date": current.original_due_date or current.due_date,
        "postponed_by": actor.user_id,
        "postponed_at": utcnow(),
        "postpone_reason": reason,
    }
    if new_date is not None:
        month, year = month_year(new_date)
        changes.update({"custom_due_date": new_date, "month": month, "year": year})
    return _apply(
        repo,
        actor=actor,
        cashflow_id=cashflow_id,
        action=CashflowAction.POSTPONE,
        changes=changes,
        reason=reason,
        new_date=new_date,
        today=today,
    )


def cancel(repo: Repository, *, actor: Actor, cashflow_id: uuid.UUID, reason: str | None = None) -> CashflowRecord:
    return _apply(repo, actor=actor, cashflow_id=cashflow_id, action=CashflowAction.CANCEL, changes={}, reason=reason)


def list_for_investment(repo: Repository, *, actor: Actor, investment_id: uuid.UUID) -> list[CashflowRecord]:
    get_investment(repo, actor=actor, investment_id=investment_id)
    rows = repo.query(
        Collection.CASHFLOWS,
        QueryFilter.of(eq("investment_id", investment_id), order_by=OrderBy("due_date")),
    )
    return [CashflowRecord.model_validate(r) for r in rows]


def list_for_month(
    repo: Repository,
    *,
    actor: Actor,
    month: int,
    year: int,
    company_id: uuid.UUID | None = None,
) -> list[CashflowRecord]:
    """Cashflows bucketed in month/year (by effective due date) on investments the actor can see."""
    rows = repo.query(
        Collection.CASHFLOWS,
        QueryFilter.of(eq("month", month), eq("year", year), order_by=OrderBy("due_date")),
    )
    visible: dict[uuid.UUID, bool] = {}
    out: list[CashflowRecord] = []
    for row in rows:
        cashflow = CashflowRecord.model_validate(row)
        if cashflow.investment_id not in visible:
            inv_row = repo.read(Collection.INVESTMENTS, cashflow.investment_id)
            investment = InvestmentRecord.model_validate(inv_row) if inv_row else None
            visible[cashflow.investment_id] = (
                investment is not None
                and (company_id is None or investment.company_id == company_id)
                and can_view_investment(actor.user_id, actor.roles, investment)
            )
        if visible[cashflow.investment_id]:
            out.append(cashflow)
    # postponed payments sort by the date they are now due
    out.sort(key=lambda cf: cf.effective_due_date)
    return out
