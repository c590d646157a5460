from __future__ import annotations

import datetime as dt
import uuid

from pydantic import BaseModel, ConfigDict

from capex.domain.notifications.enums import NotificationPriority, NotificationType
from capex.shared.enums import RelatedType


class NotificationDraft(BaseModel):
    user_id: uuid.UUID
    type: NotificationType
    title: str
    message: str
    priority: NotificationPriority
    related_type: RelatedType | None = None
    related_id: uuid.UUID | None = None
    read: bool = False
    created_at: dt.datetime


class NotificationOut(NotificationDraft):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    read_at: dt.datetime | None = None


class UnreadCount(BaseModel):
    unread: int


class BulkResult(BaseModel):
    affected: int
