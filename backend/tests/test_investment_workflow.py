from __future__ import annotations

from datetime import date
from decimal import Decimal

import pytest

from capex.core.db.audit import get_audit_log
from capex.core.storage.repository import Collection, QueryFilter, eq
from capex.domain.cashflows.enums import CashflowStatus
from capex.domain.investments import service as investments
from capex.domain.investments.enums import InvestmentStatus
from capex.domain.investments.schemas.investments import InvestmentUpdate
from capex.shared.exceptions import InvalidTransition, InvariantViolation, NotAuthorized, NotFound, StructureMismatch
from conftest import Org, installment_payload, lease_payload, purchase_payload


def _cashflows(org: Org, investment_id) -> list[dict]:
    return org.repo.query(Collection.CASHFLOWS, QueryFilter.of(eq("investment_id", investment_id)))


def _statuses(org: Org, investment_id) -> set[str]:
    return {r["status"] for r in _cashflows(org, investment_id)}


def test_create_single_payment_investment(org: Org):
    investment, result = investments.create_investment(org.repo, actor=org.actor("md_a"), payload=purchase_payload(org.company_a))

    assert investment.status == InvestmentStatus.DRAFT
    assert investment.group_id == org.group_id
    assert investment.created_by == org.users["md_a"]
    assert result.validation.valid

    [cf] = _cashflows(org, investment.id)
    assert cf["type"] == "SINGLE"
    assert cf["amount"] == Decimal("10000")
    assert cf["due_date"] == date(2026, 3, 1)
    assert cf["status"] == CashflowStatus.PLANNED.value

    [event] = get_audit_log(org.repo, entity_id=investment.id, entity_type="investment")
    assert event["action"] == "investment.created"
    assert event["actor_id"] == str(org.users["md_a"])


def test_create_for_other_company_denied(org: Org):
    with pytest.raises(NotAuthorized):
        investments.create_investment(org.repo, actor=org.actor("md_a"), payload=purchase_payload(org.company_b))
    assert org.repo.query(Collection.INVESTMENTS) == []


def test_create_requires_editor_role(org: Org):
    with pytest.raises(NotAuthorized):
        investments.create_investment(org.repo, actor=org.actor("cm_a"), payload=purchase_payload(org.company_a))


def test_create_with_sum_mismatch_still_succeeds(org: Org):
    payload = purchase_payload(org.company_a).model_copy(update={"total_amount": Decimal("20000")})
    investment, result = investments.create_investment(org.repo, actor=org.actor("cfo"), payload=payload)

    assert not result.validation.valid
    assert result.errors
    assert len(_cashflows(org, investment.id)) == 1


def test_full_lifecycle(org: Org):
    investment, _ = investments.create_investment(org.repo, actor=org.actor("md_a"), payload=installment_payload(org.company_a))
    assert len(_cashflows(org, investment.id)) == 13

    submitted = investments.submit(org.repo, actor=org.actor("md_a"), investment_id=investment.id)
    assert submitted.status == InvestmentStatus.SUBMITTED
    assert submitted.submitted_at is not None
    assert _statuses(org, investment.id) == {"PLANNED"}

    approved = investments.approve(org.repo, actor=org.actor("board"), investment_id=investment.id, comment="Go")
    assert approved.status == InvestmentStatus.APPROVED
    assert _statuses(org, investment.id) == {"OUTSTANDING"}
    [approval] = investments.list_approvals(org.repo, investment.id)
    assert approval["decision"] == "APPROVED"
    assert approval["comment"] == "Go"

    assert investments.activate(org.repo, actor=org.actor("cfo"), investment_id=investment.id).status == InvestmentStatus.ACTIVE
    assert _statuses(org, investment.id) == {"OUTSTANDING"}

    completed = investments.complete(org.repo, actor=org.actor("cfo"), investment_id=investment.id)
    assert completed.status == InvestmentStatus.COMPLETED
    assert _statuses(org, investment.id) == {"CANCELLED"}

    actions = [e["action"] for e in get_audit_log(org.repo, entity_id=investment.id)]
    assert actions == [
        "investment.created",
        "investment.submit",
        "investment.approve",
        "investment.activate",
        "investment.complete",
    ]


def test_reject_and_rework(org: Org):
    investment, _ = investments.create_investment(org.repo, actor=org.actor("md_a"), payload=purchase_payload(org.company_a))
    investments.submit(org.repo, actor=org.actor("md_a"), investment_id=investment.id)

    with pytest.raises(InvariantViolation):
        investments.reject(org.repo, actor=org.actor("board"), investment_id=investment.id, comment="")

    rejected = investments.reject(org.repo, actor=org.actor("board"), investment_id=investment.id, comment="Too expensive")
    assert rejected.status == InvestmentStatus.REJECTED
    assert _statuses(org, investment.id) == {"PLANNED"}

    draft = investments.reset_to_draft(org.repo, actor=org.actor("md_a"), investment_id=investment.id)
    assert draft.status == InvestmentStatus.DRAFT


def test_approve_draft_is_invalid_transition(org: Org):
    investment, _ = investments.create_investment(org.repo, actor=org.actor("md_a"), payload=purchase_payload(org.company_a))

    with pytest.raises(InvalidTransition):
        investments.approve(org.repo, actor=org.actor("board"), investment_id=investment.id)
    with pytest.raises(NotAuthorized):
        investments.approve(org.repo, actor=org.actor("cfo"), investment_id=investment.id)

    assert investments.load_investment(org.repo, investment.id).status == InvestmentStatus.DRAFT


def test_lease_approval_auto_confirms_rates(org: Org):
    investment, _ = investments.create_investment(org.repo, actor=org.actor("md_a"), payload=lease_payload(org.company_a))
    investments.submit(org.repo, actor=org.actor("md_a"), investment_id=investment.id)
    investments.approve(org.repo, actor=org.actor("board"), investment_id=investment.id)

    rows = _cashflows(org, investment.id)
    assert len(rows) == 24
    assert {r["status"] for r in rows} == {"PRE_CONFIRMED"}
    assert all(r["confirmed_at_manager"] is not None and r["confirmed_by_manager"] is None for r in rows)

    md_inbox = org.repo.query(
        Collection.NOTIFICATIONS,
        QueryFilter.of(eq("user_id", org.users["md_a"]), eq("type", "CASHFLOW_NEEDS_CONFIRMATION")),
    )
    assert len(md_inbox) == 24


def test_lease_without_auto_confirm_stays_outstanding(org: Org):
    payload = lease_payload(org.company_a, financing_type="RENT", auto_confirm=False)
    investment, _ = investments.create_investment(org.repo, actor=org.actor("md_a"), payload=payload)
    investments.submit(org.repo, actor=org.actor("md_a"), investment_id=investment.id)
    investments.approve(org.repo, actor=org.actor("board"), investment_id=investment.id)

    assert _statuses(org, investment.id) == {"OUTSTANDING"}


def test_update_regenerates_schedule(org: Org):
    investment, _ = investments.create_investment(org.repo, actor=org.actor("md_a"), payload=purchase_payload(org.company_a))
    old_ids = {r["id"] for r in _cashflows(org, investment.id)}

    payload = InvestmentUpdate.model_validate(
        {
            "total_amount": "12000",
            "payment_structure": {"kind": "single_payment", "date": "2026-05-01", "amount": "12000"},
        }
    )
    updated, result = investments.update_investment(org.repo, actor=org.actor("md_a"), investment_id=investment.id, payload=payload)

    assert updated.total_amount == Decimal("12000")
    assert result is not None and result.validation.valid
    rows = _cashflows(org, investment.id)
    assert len(rows) == 1
    assert rows[0]["due_date"] == date(2026, 5, 1)
    assert rows[0]["id"] not in old_ids


def test_update_name_only_keeps_schedule(org: Org):
    investment, _ = investments.create_investment(org.repo, actor=org.actor("md_a"), payload=purchase_payload(org.company_a))
    old_ids = {r["id"] for r in _cashflows(org, investment.id)}

    updated, result = investments.update_investment(
        org.repo, actor=org.actor("md_a"), investment_id=investment.id, payload=InvestmentUpdate(name="Electric forklift")
    )
    assert updated.name == "Electric forklift"
    assert result is None
    assert {r["id"] for r in _cashflows(org, investment.id)} == old_ids


def test_update_structure_mismatch(org: Org):
    investment, _ = investments.create_investment(org.repo, actor=org.actor("md_a"), payload=purchase_payload(org.company_a))
    payload = InvestmentUpdate.model_validate({"financing_type": "LEASE"})

    with pytest.raises(StructureMismatch):
        investments.update_investment(org.repo, actor=org.actor("md_a"), investment_id=investment.id, payload=payload)


def test_submitted_investment_cannot_be_edited_or_deleted(org: Org):
    investment, _ = investments.create_investment(org.repo, actor=org.actor("md_a"), payload=purchase_payload(org.company_a))
    investments.submit(org.repo, actor=org.actor("md_a"), investment_id=investment.id)

    with pytest.raises(InvariantViolation):
        investments.update_investment(
            org.repo, actor=org.actor("md_a"), investment_id=investment.id, payload=InvestmentUpdate(name="x")
        )
    with pytest.raises(InvariantViolation):
        investments.delete_investment(org.repo, actor=org.actor("md_a"), investment_id=investment.id)


def test_delete_removes_cashflows(org: Org):
    investment, _ = investments.create_investment(org.repo, actor=org.actor("md_a"), payload=installment_payload(org.company_a))
    investments.delete_investment(org.repo, actor=org.actor("md_a"), investment_id=investment.id)

    assert org.repo.read(Collection.INVESTMENTS, investment.id) is None
    assert _cashflows(org, investment.id) == []


def test_visibility(org: Org):
    investment, _ = investments.create_investment(org.repo, actor=org.actor("md_a"), payload=purchase_payload(org.company_a))

    assert [i.id for i in investments.list_visible_investments(org.repo, org.actor("viewer"))] == [investment.id]
    assert investments.list_visible_investments(org.repo, org.actor("md_b")) == []
    with pytest.raises(NotFound):
        investments.get_investment(org.repo, actor=org.actor("cm_b"), investment_id=investment.id)
    assert investments.get_investment(org.repo, actor=org.actor("cm_a"), investment_id=investment.id).id == investment.id
