from __future__ import annotations

from datetime import date

import pytest

from capex.core.db.audit import get_audit_log
from capex.core.storage.repository import Collection, QueryFilter, eq
from capex.domain.cashflows import service as cashflows
from capex.domain.cashflows.enums import CashflowStatus
from capex.domain.investments import service as investments
from capex.shared.exceptions import InvalidTransition, InvariantViolation, NotAuthorized, NotFound
from conftest import Org, installment_payload


TODAY = date(2026, 1, 15)


@pytest.fixture()
def approved(org: Org):
    investment, _ = investments.create_investment(org.repo, actor=org.actor("md_a"), payload=installment_payload(org.company_a))
    investments.submit(org.repo, actor=org.actor("md_a"), investment_id=investment.id)
    investments.approve(org.repo, actor=org.actor("board"), investment_id=investment.id)
    return investment


def _first_rate(org: Org, investment_id):
    rows = cashflows.list_for_investment(org.repo, actor=org.actor("cfo"), investment_id=investment_id)
    return next(cf for cf in rows if cf.period_number == 1)


def _inbox(org: Org, user: str, kind: str) -> list[dict]:
    return org.repo.query(Collection.NOTIFICATIONS, QueryFilter.of(eq("user_id", org.users[user]), eq("type", kind)))


def test_manager_pre_confirms_executive_confirms(org: Org, approved):
    cf = _first_rate(org, approved.id)
    assert cf.status == CashflowStatus.OUTSTANDING

    pre = cashflows.pre_confirm(org.repo, actor=org.actor("cm_a"), cashflow_id=cf.id, comment="Invoice checked")
    assert pre.status == CashflowStatus.PRE_CONFIRMED
    assert pre.confirmed_by_manager == org.users["cm_a"]
    assert pre.manager_comment == "Invoice checked"
    assert len(_inbox(org, "md_a", "CASHFLOW_NEEDS_CONFIRMATION")) == 1

    with pytest.raises(NotAuthorized):
        cashflows.confirm(org.repo, actor=org.actor("cm_a"), cashflow_id=cf.id)

    done = cashflows.confirm(org.repo, actor=org.actor("md_a"), cashflow_id=cf.id, comment="Paid")
    assert done.status == CashflowStatus.CONFIRMED
    assert done.confirmed_by_executive == org.users["md_a"]
    assert done.confirmed_at_executive is not None

    with pytest.raises(InvalidTransition):
        cashflows.cancel(org.repo, actor=org.actor("cfo"), cashflow_id=cf.id)


def test_other_company_md_cannot_confirm(org: Org, approved):
    cf = _first_rate(org, approved.id)
    cashflows.pre_confirm(org.repo, actor=org.actor("cm_a"), cashflow_id=cf.id)

    with pytest.raises(InvariantViolation):
        cashflows.confirm(org.repo, actor=org.actor("md_b"), cashflow_id=cf.id)


def test_send_back_clears_manager_confirmation(org: Org, approved):
    cf = _first_rate(org, approved.id)
    cashflows.pre_confirm(org.repo, actor=org.actor("cm_a"), cashflow_id=cf.id, comment="ok")

    with pytest.raises(InvariantViolation):
        cashflows.send_back(org.repo, actor=org.actor("md_a"), cashflow_id=cf.id, reason=" ")

    back = cashflows.send_back(org.repo, actor=org.actor("md_a"), cashflow_id=cf.id, reason="Wrong amount")
    assert back.status == CashflowStatus.OUTSTANDING
    assert back.confirmed_by_manager is None
    assert back.confirmed_at_manager is None
    assert back.manager_comment is None

    last = get_audit_log(org.repo, entity_id=cf.id, entity_type="cashflow")[-1]
    assert last["action"] == "cashflow.send_back"
    assert last["after"]["reason"] == "Wrong amount"


def test_postpone_to_past_rejected(org: Org, approved):
    cf = _first_rate(org, approved.id)

    with pytest.raises(InvariantViolation, match="date must be in the future"):
        cashflows.postpone(
            org.repo, actor=org.actor("cm_a"), cashflow_id=cf.id, new_date=date(2026, 1, 1), reason="Late", today=TODAY
        )
    assert cashflows.load_cashflow(org.repo, cf.id).status == CashflowStatus.OUTSTANDING


def test_postpone_records_original_date(org: Org, approved):
    cf = _first_rate(org, approved.id)

    moved = cashflows.postpone(
        org.repo, actor=org.actor("cm_a"), cashflow_id=cf.id, new_date=date(2026, 3, 10), reason="Supplier delay", today=TODAY
    )
    assert moved.status == CashflowStatus.POSTPONED
    assert moved.original_due_date == date(2026, 2, 1)
    assert moved.due_date == date(2026, 2, 1)
    assert moved.custom_due_date == date(2026, 3, 10)
    assert (moved.month, moved.year) == (3, 2026)
    assert moved.postponed_by == org.users["cm_a"]
    assert moved.postpone_reason == "Supplier delay"

    # the postponer's counterpart hears about it, the postponer does not
    assert len(_inbox(org, "md_a", "CASHFLOW_POSTPONED")) == 1
    assert _inbox(org, "cm_a", "CASHFLOW_POSTPONED") == []


def test_second_postponement_keeps_first_original_date(org: Org, approved):
    cf = _first_rate(org, approved.id)
    cashflows.postpone(
        org.repo, actor=org.actor("cm_a"), cashflow_id=cf.id, new_date=date(2026, 3, 10), reason="Delay", today=TODAY
    )
    cashflows.make_outstanding(org.repo, actor=org.actor("cfo"), cashflow_id=cf.id)
    again = cashflows.postpone(
        org.repo, actor=org.actor("md_a"), cashflow_id=cf.id, new_date=date(2026, 4, 20), reason="Delay again", today=TODAY
    )

    assert again.original_due_date == date(2026, 2, 1)
    assert again.custom_due_date == date(2026, 4, 20)


def test_pre_confirm_before_approval_is_rejected(org: Org):
    investment, _ = investments.create_investment(org.repo, actor=org.actor("md_a"), payload=installment_payload(org.company_a))
    cf = _first_rate(org, investment.id)

    with pytest.raises(InvalidTransition):
        cashflows.pre_confirm(org.repo, actor=org.actor("cm_a"), cashflow_id=cf.id)


def test_cancel_by_cfo(org: Org, approved):
    cf = _first_rate(org, approved.id)
    cancelled = cashflows.cancel(org.repo, actor=org.actor("cfo"), cashflow_id=cf.id, reason="Contract renegotiated")
    assert cancelled.status == CashflowStatus.CANCELLED

    with pytest.raises(NotAuthorized):
        cashflows.make_outstanding(org.repo, actor=org.actor("cm_a"), cashflow_id=cf.id)


def test_monthly_listing_respects_visibility(org: Org, approved):
    feb = cashflows.list_for_month(org.repo, actor=org.actor("cm_a"), month=2, year=2026)
    assert [cf.period_number for cf in feb] == [1]

    assert cashflows.list_for_month(org.repo, actor=org.actor("cm_b"), month=2, year=2026) == []
    assert cashflows.list_for_month(org.repo, actor=org.actor("cfo"), month=2, year=2026, company_id=org.company_b) == []


def test_monthly_listing_follows_postponement(org: Org, approved):
    cf = _first_rate(org, approved.id)
    cashflows.postpone(
        org.repo, actor=org.actor("cm_a"), cashflow_id=cf.id, new_date=date(2026, 3, 10), reason="Delay", today=TODAY
    )

    assert cashflows.list_for_month(org.repo, actor=org.actor("cfo"), month=2, year=2026) == []
    march = cashflows.list_for_month(org.repo, actor=org.actor("cfo"), month=3, year=2026)
    assert sorted(c.period_number for c in march) == [1, 2]


def test_cashflows_of_invisible_investment(org: Org, approved):
    with pytest.raises(NotFound):
        cashflows.list_for_investment(org.repo, actor=org.actor("md_b"), investment_id=approved.id)


def test_monthly_listing_orders_by_effective_date(org: Org, approved):
    cf = _first_rate(org, approved.id)
    cashflows.postpone(
        org.repo, actor=org.actor("cm_a"), cashflow_id=cf.id, new_date=date(2026, 3, 20), reason="Delay", today=TODAY
    )

    march = cashflows.list_for_month(org.repo, actor=org.actor("cfo"), month=3, year=2026)
    assert [(c.period_number, c.effective_due_date) for c in march] == [(2, date(2026, 3, 1)), (1, date(2026, 3, 20))]
