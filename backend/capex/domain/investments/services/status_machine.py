from __future__ import annotations

from capex.domain.investments.enums import InvestmentAction, InvestmentStatus
from capex.shared.state_machine import StatusMachine


INVESTMENT_TRANSITIONS: dict[InvestmentStatus, list[InvestmentStatus]] = {
    InvestmentStatus.DRAFT: [InvestmentStatus.SUBMITTED],
    InvestmentStatus.SUBMITTED: [InvestmentStatus.APPROVED, InvestmentStatus.REJECTED],
    InvestmentStatus.APPROVED: [InvestmentStatus.ACTIVE],
    InvestmentStatus.REJECTED: [InvestmentStatus.DRAFT],
    InvestmentStatus.ACTIVE: [InvestmentStatus.COMPLETED],
    InvestmentStatus.COMPLETED: [],
}

ACTION_TARGETS: dict[InvestmentAction, InvestmentStatus] = {
    InvestmentAction.SUBMIT: InvestmentStatus.SUBMITTED,
    InvestmentAction.APPROVE: InvestmentStatus.APPROVED,
    InvestmentAction.REJECT: InvestmentStatus.REJECTED,
    InvestmentAction.ACTIVATE: InvestmentStatus.ACTIVE,
    InvestmentAction.COMPLETE: InvestmentStatus.COMPLETED,
    InvestmentAction.RESET_TO_DRAFT: InvestmentStatus.DRAFT,
}

investment_machine: StatusMachine[InvestmentStatus] = StatusMachine("investment", INVESTMENT_TRANSITIONS)


def can_transition(current: InvestmentStatus, target: InvestmentStatus) -> bool:
    return investment_machine.can_transition(InvestmentStatus(current), InvestmentStatus(target))


def next_states(current: InvestmentStatus) -> list[InvestmentStatus]:
    return investment_machine.next_states(InvestmentStatus(current))


def transition(current: InvestmentStatus, target: InvestmentStatus) -> InvestmentStatus:
    return investment_machine.transition(InvestmentStatus(current), InvestmentStatus(target))


def is_final_state(status: InvestmentStatus) -> bool:
    return investment_machine.is_final_state(InvestmentStatus(status))


def target_for(action: InvestmentAction) -> InvestmentStatus:
    return ACTION_TARGETS[InvestmentAction(action)]


def apply_investment_action(current: InvestmentStatus, action: InvestmentAction) -> InvestmentStatus:
    """Status after `action`; raises InvalidTransition if the table forbids it."""
    return transition(current, target_for(action))
