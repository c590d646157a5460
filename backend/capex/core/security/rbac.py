from __future__ import annotations

from collections.abc import Iterable

from capex.shared.enums import Permission, Role


ROLE_PERMISSIONS: dict[Role, frozenset[Permission]] = {
    Role.SYSTEM_ADMIN: frozenset(Permission),
    Role.BOARD_APPROVER: frozenset({Permission.VIEW_AUDIT_LOGS}),
    Role.BOARD_VIEWER: frozenset({Permission.VIEW_AUDIT_LOGS}),
    Role.CFO: frozenset({Permission.VIEW_AUDIT_LOGS}),
    Role.MANAGING_DIRECTOR: frozenset(),
    Role.CASHFLOW_MANAGER: frozenset(),
    Role.ACCOUNTING: frozenset(),
}


def role_has_permission(role: Role, permission: Permission) -> bool:
    return permission in ROLE_PERMISSIONS.get(role, frozenset())


def has_permission(roles: Iterable[Role], permission: Permission) -> bool:
    return any(role_has_permission(r, permission) for r in roles)


def permissions_for_roles(roles: Iterable[Role]) -> set[Permission]:
    out: set[Permission] = set()
    for role in roles:
        out |= ROLE_PERMISSIONS.get(role, frozenset())
    return out


def require_permission(permission: Permission):
    """FastAPI dependency: the current actor must hold `permission` through any role."""

    # Avoid circular imports at module import time.
    from fastapi import Depends, HTTPException, status

    from capex.core.security.dependencies import get_actor

    def _inner(actor=Depends(get_actor)):
        if not has_permission((a.role for a in actor.roles), permission):
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Insufficient permission")
        return actor

    return _inner
