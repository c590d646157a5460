from __future__ import annotations

from capex.domain.cashflows.enums import CashflowAction, CashflowStatus
from capex.domain.investments.enums import InvestmentStatus
from capex.shared.state_machine import StatusMachine


CASHFLOW_TRANSITIONS: dict[CashflowStatus, list[CashflowStatus]] = {
    CashflowStatus.PLANNED: [CashflowStatus.OUTSTANDING, CashflowStatus.CANCELLED],
    CashflowStatus.OUTSTANDING: [CashflowStatus.PRE_CONFIRMED, CashflowStatus.POSTPONED, CashflowStatus.CANCELLED],
    # the executive may send a pre-confirmed payment back to the manager
    CashflowStatus.PRE_CONFIRMED: [CashflowStatus.CONFIRMED, CashflowStatus.OUTSTANDING],
    CashflowStatus.POSTPONED: [CashflowStatus.OUTSTANDING, CashflowStatus.CANCELLED],
    CashflowStatus.CONFIRMED: [],
    CashflowStatus.CANCELLED: [],
}

ACTION_TARGETS: dict[CashflowAction, CashflowStatus] = {
    CashflowAction.MAKE_OUTSTANDING: CashflowStatus.OUTSTANDING,
    CashflowAction.PRE_CONFIRM: CashflowStatus.PRE_CONFIRMED,
    CashflowAction.CONFIRM: CashflowStatus.CONFIRMED,
    CashflowAction.SEND_BACK: CashflowStatus.OUTSTANDING,
    CashflowAction.POSTPONE: CashflowStatus.POSTPONED,
    CashflowAction.CANCEL: CashflowStatus.CANCELLED,
}

INITIAL_STATUS: dict[InvestmentStatus, CashflowStatus] = {
    InvestmentStatus.DRAFT: CashflowStatus.PLANNED,
    InvestmentStatus.SUBMITTED: CashflowStatus.PLANNED,
    InvestmentStatus.REJECTED: CashflowStatus.PLANNED,
    InvestmentStatus.APPROVED: CashflowStatus.OUTSTANDING,
    InvestmentStatus.ACTIVE: CashflowStatus.OUTSTANDING,
    InvestmentStatus.COMPLETED: CashflowStatus.CANCELLED,
}

cashflow_machine: StatusMachine[CashflowStatus] = StatusMachine("cashflow", CASHFLOW_TRANSITIONS)


def can_transition(current: CashflowStatus, target: CashflowStatus) -> bool:
    return cashflow_machine.can_transition(CashflowStatus(current), CashflowStatus(target))


def next_states(current: CashflowStatus) -> list[CashflowStatus]:
    return cashflow_machine.next_states(CashflowStatus(current))


def transition(current: CashflowStatus, target: CashflowStatus) -> CashflowStatus:
    return cashflow_machine.transition(CashflowStatus(current), CashflowStatus(target))


def is_final_state(status: CashflowStatus) -> bool:
    return cashflow_machine.is_final_state(CashflowStatus(status))


def target_for(action: CashflowAction) -> CashflowStatus:
    return ACTION_TARGETS[CashflowAction(action)]


def apply_cashflow_action(current: CashflowStatus, action: CashflowAction) -> CashflowStatus:
    return transition(current, target_for(action))


def initial_status_for(investment_status: InvestmentStatus) -> CashflowStatus:
    """
    Cashflow status implied by the investment lifecycle.

    The only place this mapping lives: generation and the investment
    workflow both derive cashflow status through it.
    """
    return INITIAL_STATUS[InvestmentStatus(investment_status)]
