from __future__ import annotations

import datetime as dt
import uuid
from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum

from capex.core.security.auth import RoleAssignment
from capex.domain.cashflows.enums import CashflowAction, CashflowStatus
from capex.domain.cashflows.schemas.cashflows import CashflowRecord
from capex.domain.cashflows.services import status_machine as cashflow_sm
from capex.domain.investments.enums import InvestmentAction, InvestmentStatus
from capex.domain.investments.schemas.investments import InvestmentRecord
from capex.domain.investments.services import status_machine as investment_sm
from capex.shared.enums import Role
from capex.shared.exceptions import InvalidTransition, InvariantViolation, NotAuthorized


class GuardFailure(str, Enum):
    PERMISSION_DENIED = "PERMISSION_DENIED"
    INVALID_TRANSITION = "INVALID_TRANSITION"
    INVARIANT_VIOLATION = "INVARIANT_VIOLATION"


INVESTMENT_ACTION_PERMISSIONS: dict[InvestmentAction, frozenset[Role]] = {
    InvestmentAction.SUBMIT: frozenset({Role.MANAGING_DIRECTOR, Role.CFO}),
    InvestmentAction.APPROVE: frozenset({Role.BOARD_APPROVER}),
    InvestmentAction.REJECT: frozenset({Role.BOARD_APPROVER}),
    InvestmentAction.ACTIVATE: frozenset({Role.CFO}),
    InvestmentAction.COMPLETE: frozenset({Role.CFO}),
    InvestmentAction.RESET_TO_DRAFT: frozenset({Role.MANAGING_DIRECTOR, Role.CFO}),
}

CASHFLOW_ACTION_PERMISSIONS: dict[CashflowAction, frozenset[Role]] = {
    CashflowAction.MAKE_OUTSTANDING: frozenset({Role.CFO}),
    CashflowAction.PRE_CONFIRM: frozenset({Role.CASHFLOW_MANAGER}),
    CashflowAction.CONFIRM: frozenset({Role.MANAGING_DIRECTOR}),
    CashflowAction.SEND_BACK: frozenset({Role.MANAGING_DIRECTOR}),
    CashflowAction.POSTPONE: frozenset({Role.CASHFLOW_MANAGER, Role.MANAGING_DIRECTOR}),
    CashflowAction.CANCEL: frozenset({Role.CFO}),
}

EDITOR_ROLES: frozenset[Role] = frozenset({Role.MANAGING_DIRECTOR, Role.CFO})
GROUP_VIEWER_ROLES: frozenset[Role] = frozenset({Role.BOARD_APPROVER, Role.BOARD_VIEWER, Role.CFO, Role.SYSTEM_ADMIN})


@dataclass(frozen=True)
class GuardResult:
    """
    Outcome of a guard check.

    `target_status` is the status the action leads to and is reported
    whether or not the action is allowed.
    """

    allowed: bool
    reason: str | None = None
    kind: GuardFailure | None = None
    current_status: Enum | None = None
    target_status: Enum | None = None

    def raise_if_denied(self) -> None:
        if self.allowed:
            return
        if self.kind == GuardFailure.INVALID_TRANSITION and self.current_status is not None and self.target_status is not None:
            raise InvalidTransition(self.current_status.value, self.target_status.value)
        if self.kind == GuardFailure.INVARIANT_VIOLATION:
            raise InvariantViolation(self.reason or "Precondition not met")
        raise NotAuthorized(self.reason or "Not permitted")


def _ok(current: Enum | None = None, target: Enum | None = None) -> GuardResult:
    return GuardResult(allowed=True, current_status=current, target_status=target)


def _deny(kind: GuardFailure, reason: str, current: Enum | None = None, target: Enum | None = None) -> GuardResult:
    return GuardResult(allowed=False, reason=reason, kind=kind, current_status=current, target_status=target)


def roles_in_group(user_id: uuid.UUID, roles: Sequence[RoleAssignment], group_id: uuid.UUID | None) -> list[RoleAssignment]:
    return [a for a in roles if a.user_id == user_id and (group_id is None or a.group_id == group_id)]


def _blank(text: str | None) -> bool:
    return text is None or not text.strip()


def _role_names(assignments: Sequence[RoleAssignment]) -> str:
    return ", ".join(sorted({a.role.value for a in assignments}))


def can_perform_investment_action(
    user_id: uuid.UUID,
    roles: Sequence[RoleAssignment],
    investment: InvestmentRecord,
    action: InvestmentAction,
    *,
    comment: str | None = None,
) -> GuardResult:
    action = InvestmentAction(action)
    current = investment.status
    target = investment_sm.target_for(action)

    held = roles_in_group(user_id, roles, investment.group_id)
    if not held:
        return _deny(GuardFailure.PERMISSION_DENIED, "No role assigned in this group", current, target)

    acting = [a for a in held if a.role in INVESTMENT_ACTION_PERMISSIONS[action]]
    if not acting:
        return _deny(
            GuardFailure.PERMISSION_DENIED,
            f"Role '{_role_names(held)}' is not permitted to {action.value}",
            current,
            target,
        )

    if not investment_sm.can_transition(current, target):
        return _deny(
            GuardFailure.INVALID_TRANSITION,
            f"Status change from '{current.value}' to '{target.value}' is not allowed",
            current,
            target,
        )

    if action == InvestmentAction.SUBMIT:
        own_company = any(a.covers_company(investment.company_id) for a in held)
        if investment.created_by != user_id and not own_company:
            return _deny(GuardFailure.PERMISSION_DENIED, "Can only submit own company's investments", current, target)
        if not investment.name or investment.total_amount <= 0 or investment.company_id is None:
            return _deny(GuardFailure.INVARIANT_VIOLATION, "Investment is incomplete", current, target)

    if action == InvestmentAction.REJECT and _blank(comment):
        return _deny(GuardFailure.INVARIANT_VIOLATION, "A rejection reason is required", current, target)

    return _ok(current, target)


def can_perform_cashflow_action(
    user_id: uuid.UUID,
    roles: Sequence[RoleAssignment],
    cashflow: CashflowRecord,
    investment: InvestmentRecord,
    action: CashflowAction,
    *,
    reason: str | None = None,
    new_date: dt.date | None = None,
    today: dt.date | None = None,
) -> GuardResult:
    action = CashflowAction(action)
    current = cashflow.status
    target = cashflow_sm.target_for(action)

    held = roles_in_group(user_id, roles, investment.group_id)
    if not held:
        return _deny(GuardFailure.PERMISSION_DENIED, "No role assigned in this group", current, target)

    acting = [a for a in held if a.role in CASHFLOW_ACTION_PERMISSIONS[action]]
    if not acting:
        return _deny(
            GuardFailure.PERMISSION_DENIED,
            f"Role '{_role_names(held)}' is not permitted to {action.value}",
            current,
            target,
        )

    if not cashflow_sm.can_transition(current, target):
        return _deny(
            GuardFailure.INVALID_TRANSITION,
            f"Status change from '{current.value}' to '{target.value}' is not allowed",
            current,
            target,
        )

    if action == CashflowAction.PRE_CONFIRM:
        if investment.status not in (InvestmentStatus.APPROVED, InvestmentStatus.ACTIVE):
            return _deny(GuardFailure.INVARIANT_VIOLATION, "Investment must be approved", current, target)

    if action == CashflowAction.CONFIRM:
        if current != CashflowStatus.PRE_CONFIRMED:
            return _deny(
                GuardFailure.INVARIANT_VIOLATION,
                "Cashflow must be pre-confirmed by the cashflow manager first",
                current,
                target,
            )
        if not any(a.covers_company(investment.company_id) for a in acting):
            return _deny(GuardFailure.INVARIANT_VIOLATION, "Can only confirm cashflows of your own company", current, target)

    if action == CashflowAction.SEND_BACK and _blank(reason):
        return _deny(GuardFailure.INVARIANT_VIOLATION, "A reason for sending back is required", current, target)

    if action == CashflowAction.POSTPONE:
        if _blank(reason):
            return _deny(GuardFailure.INVARIANT_VIOLATION, "A reason for postponement is required", current, target)
        if new_date is None:
            return _deny(GuardFailure.INVARIANT_VIOLATION, "A new date is required", current, target)
        if new_date <= (today or dt.date.today()):
            return _deny(GuardFailure.INVARIANT_VIOLATION, "New date must be in the future", current, target)

    return _ok(current, target)


def _can_modify(user_id: uuid.UUID, roles: Sequence[RoleAssignment], investment: InvestmentRecord, verb: str) -> GuardResult:
    if investment.status != InvestmentStatus.DRAFT:
        return _deny(GuardFailure.INVARIANT_VIOLATION, f"Only drafts can be {verb}", investment.status)

    held = roles_in_group(user_id, roles, investment.group_id)
    if not held:
        return _deny(GuardFailure.PERMISSION_DENIED, "No role assigned in this group", investment.status)

    editors = [a for a in held if a.role in EDITOR_ROLES]
    if not editors:
        return _deny(GuardFailure.PERMISSION_DENIED, f"Role '{_role_names(held)}' is not permitted to modify investments", investment.status)

    if investment.created_by != user_id and not any(a.covers_company(investment.company_id) for a in editors):
        return _deny(GuardFailure.PERMISSION_DENIED, f"Only own company's investments can be {verb}", investment.status)

    return _ok(investment.status)


def can_edit_investment(user_id: uuid.UUID, roles: Sequence[RoleAssignment], investment: InvestmentRecord) -> GuardResult:
    return _can_modify(user_id, roles, investment, "edited")


def can_delete_investment(user_id: uuid.UUID, roles: Sequence[RoleAssignment], investment: InvestmentRecord) -> GuardResult:
    return _can_modify(user_id, roles, investment, "deleted")


def can_view_investment(user_id: uuid.UUID, roles: Sequence[RoleAssignment], investment: InvestmentRecord) -> bool:
    held = roles_in_group(user_id, roles, investment.group_id)
    if any(a.role in GROUP_VIEWER_ROLES for a in held):
        return True
    # everyone else only sees their own company
    return any(a.company_id is not None and a.company_id == investment.company_id for a in held)
