from __future__ import annotations

import datetime as dt
import uuid
from typing import Any

import structlog

from capex.core.db.audit import write_audit_event
from capex.core.security.auth import Actor
from capex.core.storage.repository import Collection, OrderBy, QueryFilter, Record, Repository, eq
from capex.domain.cashflows.enums import CashflowStatus
from capex.domain.cashflows.schemas.cashflows import CashflowRecord, GenerationResult
from capex.domain.cashflows.services import status_machine as cashflow_sm
from capex.domain.cashflows.services.generator import regenerate_cashflows
from capex.domain.governance.services.guards import (
    can_delete_investment,
    can_edit_investment,
    can_perform_investment_action,
    can_view_investment,
)
from capex.domain.investments.enums import ApprovalDecision, InvestmentAction, InvestmentStatus
from capex.domain.investments.schemas.investments import (
    InvestmentCreate,
    InvestmentRecord,
    InvestmentUpdate,
    mismatch_message,
    structure_matches,
)
from capex.domain.investments.services.status_machine import apply_investment_action
from capex.domain.notifications.service import trigger_cashflow_notifications, trigger_investment_notifications
from capex.shared.exceptions import NotFound, StructureMismatch
from capex.shared.utils import utcnow


logger = structlog.get_logger(__name__)

EVENT_RULES: dict[InvestmentAction, str] = {
    InvestmentAction.SUBMIT: "investment_submitted",
    InvestmentAction.APPROVE: "investment_approved",
    InvestmentAction.REJECT: "investment_rejected",
}

# Changing any of these invalidates the generated schedule.
SCHEDULE_FIELDS = frozenset({"payment_structure", "total_amount", "financing_type"})
# Fields an update may explicitly clear.
CLEARABLE_FIELDS = frozenset({"description", "start_date", "end_date", "metadata"})

AUTO_CONFIRM_COMMENT = "Auto-confirmed lease rate"


def _snapshot(investment: InvestmentRecord) -> dict[str, Any]:
    return investment.model_dump(mode="json")


def _storable(changes: dict[str, Any]) -> dict[str, Any]:
    out = dict(changes)
    if out.get("payment_structure") is not None:
        out["payment_structure"] = out["payment_structure"].model_dump(mode="json")
    if out.get("metadata") is not None:
        out["metadata"] = out["metadata"].model_dump(mode="json")
    return out


def load_investment(repo: Repository, investment_id: uuid.UUID) -> InvestmentRecord:
    row = repo.read(Collection.INVESTMENTS, investment_id)
    if row is None:
        raise NotFound("Investment not found")
    return InvestmentRecord.model_validate(row)


def get_investment(repo: Repository, *, actor: Actor, investment_id: uuid.UUID) -> InvestmentRecord:
    investment = load_investment(repo, investment_id)
    if not can_view_investment(actor.user_id, actor.roles, investment):
        # invisible and missing look the same to the caller
        raise NotFound("Investment not found")
    return investment


def list_visible_investments(
    repo: Repository,
    actor: Actor,
    *,
    status: InvestmentStatus | None = None,
    company_id: uuid.UUID | None = None,
) -> list[InvestmentRecord]:
    conditions = []
    if status is not None:
        conditions.append(eq("status", status))
    if company_id is not None:
        conditions.append(eq("company_id", company_id))
    rows = repo.query(Collection.INVESTMENTS, QueryFilter.of(*conditions, order_by=OrderBy("created_at", descending=True)))
    investments = [InvestmentRecord.model_validate(r) for r in rows]
    return [i for i in investments if can_view_investment(actor.user_id, actor.roles, i)]


def create_investment(
    repo: Repository,
    *,
    actor: Actor,
    payload: InvestmentCreate,
) -> tuple[InvestmentRecord, GenerationResult]:
    """
    Create a DRAFT investment and generate its (PLANNED) cashflows.

    A sum mismatch does not block creation; it is returned and logged.
    """
    company = repo.read(Collection.COMPANIES, payload.company_id)
    if company is None:
        raise NotFound("Company not found")

    now = utcnow()
    prospective = InvestmentRecord(
        group_id=company["group_id"],
        company_id=payload.company_id,
        name=payload.name,
        description=payload.description,
        category=payload.category,
        total_amount=payload.total_amount,
        financing_type=payload.financing_type,
        status=InvestmentStatus.DRAFT,
        created_by=actor.user_id,
        start_date=payload.start_date,
        end_date=payload.end_date,
        metadata=payload.metadata,
        payment_structure=payload.payment_structure,
    )
    # a new record has no creator yet, so only company scope counts
    can_edit_investment(actor.user_id, actor.roles, prospective.model_copy(update={"created_by": None})).raise_if_denied()

    data = _storable(prospective.model_dump(exclude={"id", "payment_structure", "metadata"}))
    data.update(_storable({"payment_structure": payload.payment_structure, "metadata": payload.metadata}))
    data.update({"created_at": now, "updated_at": now, "created_by": actor.actor_id, "updated_by": actor.actor_id})

    try:
        row = repo.create(Collection.INVESTMENTS, data)
        investment = InvestmentRecord.model_validate(row)
        result, _ = regenerate_cashflows(repo, investment, commit=False)

        write_audit_event(
            repo,
            actor_id=actor.actor_id,
            actor_roles=actor.role_names,
            action="investment.created",
            entity_type="investment",
            entity_id=investment.id,
            before=None,
            after=_snapshot(investment),
        )
        repo.commit()
    except Exception:
        repo.rollback()
        raise

    logger.info(
        "investment.created",
        investment_id=str(investment.id),
        financing_type=investment.financing_type.value,
        cashflows=len(result.cashflows),
        sum_valid=result.validation.valid,
    )
    return investment, result


def update_investment(
    repo: Repository,
    *,
    actor: Actor,
    investment_id: uuid.UUID,
    payload: InvestmentUpdate,
) -> tuple[InvestmentRecord, GenerationResult | None]:
    current = load_investment(repo, investment_id)
    can_edit_investment(actor.user_id, actor.roles, current).raise_if_denied()

    changes = {
        name: getattr(payload, name)
        for name in payload.model_fields_set
        if getattr(payload, name) is not None or name in CLEARABLE_FIELDS
    }
    merged = current.model_copy(update=changes)
    if not structure_matches(merged.financing_type, merged.payment_structure):
        raise StructureMismatch(mismatch_message(merged.financing_type, merged.payment_structure))

    data = _storable(changes)
    data.update({"updated_at": utcnow(), "updated_by": actor.actor_id})

    result: GenerationResult | None = None
    try:
        row = repo.update(Collection.INVESTMENTS, investment_id, data)
        updated = InvestmentRecord.model_validate(row)
        if SCHEDULE_FIELDS & set(changes):
            result, _ = regenerate_cashflows(repo, updated, commit=False)

        write_audit_event(
            repo,
            actor_id=actor.actor_id,
            actor_roles=actor.role_names,
            action="investment.updated",
            entity_type="investment",
            entity_id=investment_id,
            before=_snapshot(current),
            after=_snapshot(updated),
        )
        repo.commit()
    except Exception:
        repo.rollback()
        raise

    logger.info("investment.updated", investment_id=str(investment_id), fields=sorted(changes), regenerated=result is not None)
    return updated, result


def delete_investment(repo: Repository, *, actor: Actor, investment_id: uuid.UUID) -> None:
    current = load_investment(repo, investment_id)
    can_delete_investment(actor.user_id, actor.roles, current).raise_if_denied()

    try:
        for row in repo.query(Collection.CASHFLOWS, QueryFilter.of(eq("investment_id", investment_id))):
            repo.delete(Collection.CASHFLOWS, row["id"])
        repo.delete(Collection.INVESTMENTS, investment_id)
        write_audit_event(
            repo,
            actor_id=actor.actor_id,
            actor_roles=actor.role_names,
            action="investment.deleted",
            entity_type="investment",
            entity_id=investment_id,
            before=_snapshot(current),
            after=None,
        )
        repo.commit()
    except Exception:
        repo.rollback()
        raise

    logger.info("investment.deleted", investment_id=str(investment_id))


def sync_cashflow_statuses(
    repo: Repository,
    investment: InvestmentRecord,
    *,
    now: dt.datetime | None = None,
) -> list[CashflowRecord]:
    """
    Bring the investment's cashflows in line with initial_status_for().

    Only PLANNED cashflows are promoted to OUTSTANDING, and only cashflows the
    machine allows to be cancelled are cancelled. Auto-confirmed lease rates
    that become OUTSTANDING move straight on to PRE_CONFIRMED.
    """
    now = now or utcnow()
    target = cashflow_sm.initial_status_for(investment.status)
    changed: list[CashflowRecord] = []

    for row in repo.query(Collection.CASHFLOWS, QueryFilter.of(eq("investment_id", investment.id))):
        cashflow = CashflowRecord.model_validate(row)
        if target == CashflowStatus.OUTSTANDING:
            if cashflow.status != CashflowStatus.PLANNED:
                continue
            changes: dict[str, Any] = {"status": cashflow_sm.transition(cashflow.status, target)}
            if cashflow.auto_confirmed:
                changes["status"] = cashflow_sm.transition(CashflowStatus.OUTSTANDING, CashflowStatus.PRE_CONFIRMED)
                changes.update({"confirmed_at_manager": now, "manager_comment": AUTO_CONFIRM_COMMENT})
        elif target == CashflowStatus.CANCELLED:
            if not cashflow_sm.can_transition(cashflow.status, target):
                continue
            changes = {"status": target}
        else:
            continue

        changes["updated_at"] = now
        updated = repo.update(Collection.CASHFLOWS, cashflow.id, changes)
        changed.append(CashflowRecord.model_validate(updated))

    return changed


def _transition(
    repo: Repository,
    *,
    actor: Actor,
    investment_id: uuid.UUID,
    action: InvestmentAction,
    comment: str | None = None,
    today: dt.date | None = None,
) -> InvestmentRecord:
    current = load_investment(repo, investment_id)
    can_perform_investment_action(actor.user_id, actor.roles, current, action, comment=comment).raise_if_denied()
    new_status = apply_investment_action(current.status, action)

    now = utcnow()
    changes: dict[str, Any] = {"status": new_status, "updated_at": now, "updated_by": actor.actor_id}
    if action == InvestmentAction.SUBMIT:
        changes["submitted_at"] = now

    try:
        updated = InvestmentRecord.model_validate(repo.update(Collection.INVESTMENTS, investment_id, changes))

        if action in (InvestmentAction.APPROVE, InvestmentAction.REJECT):
            repo.create(
                Collection.INVESTMENT_APPROVALS,
                {
                    "investment_id": investment_id,
                    "decided_by": actor.user_id,
                    "decision": ApprovalDecision.APPROVED if action == InvestmentAction.APPROVE else ApprovalDecision.REJECTED,
                    "comment": comment,
                    "decided_at": now,
                    "created_at": now,
                    "created_by": actor.actor_id,
                },
            )

        synced = sync_cashflow_statuses(repo, updated, now=now)
        rule_id = EVENT_RULES.get(action)
        if rule_id:
            trigger_investment_notifications(repo, updated, rule_id, today=today, triggered_by=actor.user_id)
        for cashflow in synced:
            if cashflow.status == CashflowStatus.PRE_CONFIRMED:
                trigger_cashflow_notifications(
                    repo, cashflow, updated, "cashflow_needs_confirmation", today=today, triggered_by=actor.user_id
                )

        write_audit_event(
            repo,
            actor_id=actor.actor_id,
            actor_roles=actor.role_names,
            action=f"investment.{action.value.lower()}",
            entity_type="investment",
            entity_id=investment_id,
            before={"status": current.status},
            after={"status": new_status, "comment": comment, "cashflows_synced": len(synced)},
        )
        repo.commit()
    except Exception:
        repo.rollback()
        raise

    logger.info(
        "investment.transition",
        investment_id=str(investment_id),
        action=action.value,
        from_status=current.status.value,
        to_status=new_status.value,
    )
    return updated


def submit(repo: Repository, *, actor: Actor, investment_id: uuid.UUID, today: dt.date | None = None) -> InvestmentRecord:
    return _transition(repo, actor=actor, investment_id=investment_id, action=InvestmentAction.SUBMIT, today=today)


def approve(
    repo: Repository,
    *,
    actor: Actor,
    investment_id: uuid.UUID,
    comment: str | None = None,
    today: dt.date | None = None,
) -> InvestmentRecord:
    return _transition(
        repo, actor=actor, investment_id=investment_id, action=InvestmentAction.APPROVE, comment=comment, today=today
    )


def reject(
    repo: Repository,
    *,
    actor: Actor,
    investment_id: uuid.UUID,
    comment: str | None,
    today: dt.date | None = None,
) -> InvestmentRecord:
    return _transition(
        repo, actor=actor, investment_id=investment_id, action=InvestmentAction.REJECT, comment=comment, today=today
    )


def activate(repo: Repository, *, actor: Actor, investment_id: uuid.UUID) -> InvestmentRecord:
    return _transition(repo, actor=actor, investment_id=investment_id, action=InvestmentAction.ACTIVATE)


def complete(repo: Repository, *, actor: Actor, investment_id: uuid.UUID) -> InvestmentRecord:
    return _transition(repo, actor=actor, investment_id=investment_id, action=InvestmentAction.COMPLETE)


def reset_to_draft(repo: Repository, *, actor: Actor, investment_id: uuid.UUID) -> InvestmentRecord:
    return _transition(repo, actor=actor, investment_id=investment_id, action=InvestmentAction.RESET_TO_DRAFT)


def list_approvals(repo: Repository, investment_id: uuid.UUID) -> list[Record]:
    return repo.query(
        Collection.INVESTMENT_APPROVALS,
        QueryFilter.of(eq("investment_id", investment_id), order_by=OrderBy("decided_at")),
    )
