from __future__ import annotations

import json
import uuid
from dataclasses import dataclass
from typing import Any, Mapping

from starlette.requests import Request

from capex.core.config import settings
from capex.core.storage.repository import Collection, Repository, eq, QueryFilter
from capex.shared.enums import Env, Role
from capex.shared.utils import as_uuid


@dataclass(frozen=True)
class RoleAssignment:
    """
    A role held by a user inside a group.

    company_id=None means the role spans every company of the group.
    """

    user_id: uuid.UUID
    role: Role
    group_id: uuid.UUID
    company_id: uuid.UUID | None = None

    @property
    def is_group_scoped(self) -> bool:
        return self.company_id is None

    def covers_company(self, company_id: uuid.UUID | None) -> bool:
        return self.company_id is None or self.company_id == company_id

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "RoleAssignment":
        return cls(
            user_id=as_uuid(record["user_id"]),
            role=Role(record["role"]),
            group_id=as_uuid(record["group_id"]),
            company_id=as_uuid(record.get("company_id")),
        )


@dataclass(frozen=True)
class Actor:
    user_id: uuid.UUID
    roles: tuple[RoleAssignment, ...] = ()

    @property
    def actor_id(self) -> str:
        return str(self.user_id)

    @property
    def role_names(self) -> list[str]:
        return sorted({a.role.value for a in self.roles})

    def roles_in_group(self, group_id: uuid.UUID) -> list[RoleAssignment]:
        return [a for a in self.roles if a.group_id == group_id]


def load_role_assignments(repo: Repository, user_id: uuid.UUID) -> tuple[RoleAssignment, ...]:
    rows = repo.query(Collection.USER_ROLES, QueryFilter.of(eq("user_id", user_id)))
    return tuple(RoleAssignment.from_record(r) for r in rows)


def _parse_dev_actor_header(raw: str) -> uuid.UUID:
    """
    DEV ONLY: X-DEV-ACTOR header payload as JSON.

    Example:
      {"user_id": "5b0c3c43-8f59-4a5e-9c1b-2a3c2f6f5d10"}
    """
    payload = json.loads(raw)
    return uuid.UUID(str(payload["user_id"]))


def actor_from_request(request: Request, repo: Repository) -> Actor:
    # Identity is resolved upstream in prod; the header shortcut is non-prod only.
    if settings.env == Env.prod:
        raise PermissionError("Dev actor header is disabled in prod")

    raw = request.headers.get(settings.dev_actor_header)
    if not raw:
        raise PermissionError("Missing actor")

    user_id = _parse_dev_actor_header(raw)
    user = repo.read(Collection.USERS, user_id)
    if user is None or not user.get("is_active", True):
        raise PermissionError("Unknown or inactive user")

    return Actor(user_id=user_id, roles=load_role_assignments(repo, user_id))
