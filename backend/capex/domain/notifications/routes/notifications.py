from __future__ import annotations

import datetime as dt
import uuid

from fastapi import APIRouter, Depends, Query

from capex.core.security.auth import Actor
from capex.core.security.dependencies import get_actor, get_repository
from capex.core.security.rbac import require_permission
from capex.core.storage.repository import Repository
from capex.domain.notifications import service
from capex.domain.notifications.schemas.notifications import BulkResult, NotificationOut, UnreadCount
from capex.shared.enums import Permission


router = APIRouter(prefix="/notifications", tags=["Notifications"])


@router.get("", response_model=list[NotificationOut])
def list_notifications(
    unread_only: bool = False,
    by_priority: bool = False,
    limit: int | None = Query(default=None, ge=1, le=500),
    repo: Repository = Depends(get_repository),
    actor: Actor = Depends(get_actor),
):
    rows = service.list_for_user(repo, actor.user_id, unread_only=unread_only, limit=limit)
    return service.sort_by_priority(rows) if by_priority else rows


@router.get("/unread-count", response_model=UnreadCount)
def get_unread_count(repo: Repository = Depends(get_repository), actor: Actor = Depends(get_actor)):
    return UnreadCount(unread=service.unread_count(repo, actor.user_id))


@router.post("/{notification_id}/read", response_model=NotificationOut)
def mark_read(
    notification_id: uuid.UUID,
    repo: Repository = Depends(get_repository),
    actor: Actor = Depends(get_actor),
):
    return service.mark_as_read(repo, notification_id, user_id=actor.user_id)


@router.post("/read-all", response_model=BulkResult)
def mark_all_read(repo: Repository = Depends(get_repository), actor: Actor = Depends(get_actor)):
    return BulkResult(affected=service.mark_all_as_read(repo, actor.user_id))


@router.delete("", response_model=BulkResult)
def clear_all(repo: Repository = Depends(get_repository), actor: Actor = Depends(get_actor)):
    return BulkResult(affected=service.clear_notifications(repo, actor.user_id))


@router.post("/daily-check", response_model=BulkResult)
def run_daily_check(
    today: dt.date | None = None,
    repo: Repository = Depends(get_repository),
    actor: Actor = Depends(require_permission(Permission.MANAGE_SYSTEM_SETTINGS)),
):
    """Evaluate the time-based rules. Meant for a scheduler; `today` allows replaying a given day."""
    return BulkResult(affected=len(service.check_daily_notifications(repo, today)))


@router.post("/cleanup", response_model=BulkResult)
def cleanup_notifications(
    days_old: int | None = Query(default=None, ge=0),
    repo: Repository = Depends(get_repository),
    actor: Actor = Depends(require_permission(Permission.MANAGE_SYSTEM_SETTINGS)),
):
    return BulkResult(affected=service.delete_old_notifications(repo, days_old=days_old))
