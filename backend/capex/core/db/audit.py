from __future__ import annotations

import uuid
from typing import Any

from capex.core.middleware.audit import current_context
from capex.core.storage.repository import Collection, OrderBy, QueryFilter, Record, Repository, eq
from capex.shared.utils import json_safe, utcnow


def write_audit_event(
    repo: Repository,
    *,
    actor_id: str | uuid.UUID | None = None,
    actor_roles: list[str] | None = None,
    request_id: str | None = None,
    action: str,
    entity_type: str,
    entity_id: str | uuid.UUID,
    before: dict[str, Any] | None,
    after: dict[str, Any] | None,
) -> Record:
    """
    Append an audit event. Never updated or deleted afterwards.

    Actor and request id fall back to the values bound on the request context.
    """
    bound = current_context()
    request_id = request_id or bound.request_id or "unknown"
    actor = str(actor_id) if actor_id is not None else (bound.actor_id or "unknown")
    actor_roles = actor_roles or list(bound.actor_roles)

    return repo.create(
        Collection.AUDIT_EVENTS,
        {
            "actor_id": actor,
            "actor_roles": actor_roles,
            "action": action,
            "entity_type": entity_type,
            "entity_id": str(entity_id),
            "before": json_safe(before),
            "after": json_safe(after),
            "request_id": request_id,
            "created_at": utcnow(),
            "created_by": actor,
            "updated_by": actor,
        },
    )


def get_audit_log(
    repo: Repository,
    *,
    entity_id: str | uuid.UUID,
    entity_type: str | None = None,
    limit: int = 200,
) -> list[Record]:
    conditions = [eq("entity_id", str(entity_id))]
    if entity_type:
        conditions.append(eq("entity_type", entity_type))
    return repo.query(
        Collection.AUDIT_EVENTS,
        QueryFilter.of(*conditions, order_by=OrderBy("created_at"), limit=limit),
    )
