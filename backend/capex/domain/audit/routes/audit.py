from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from capex.core.db.audit import get_audit_log
from capex.core.security.dependencies import get_repository
from capex.core.security.rbac import require_permission
from capex.core.storage.repository import Repository
from capex.domain.audit.schemas.audit import AuditEventOut
from capex.shared.enums import Permission


router = APIRouter(prefix="/audit", tags=["Audit"])


@router.get("/{entity_type}/{entity_id}", response_model=list[AuditEventOut])
def list_audit_events(
    entity_type: str,
    entity_id: str,
    limit: int = Query(default=200, ge=1, le=1000),
    repo: Repository = Depends(get_repository),
    actor=Depends(require_permission(Permission.VIEW_AUDIT_LOGS)),
):
    return get_audit_log(repo, entity_id=entity_id, entity_type=entity_type, limit=limit)
