from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import Boolean, DateTime, Enum as SAEnum, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from capex.core.db.base import Base, IdMixin, TimestampMixin
from capex.domain.notifications.enums import NotificationPriority, NotificationType
from capex.shared.enums import RelatedType


class Notification(Base, IdMixin, TimestampMixin):
    __tablename__ = "notifications"

    user_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), index=True)
    type: Mapped[NotificationType] = mapped_column(SAEnum(NotificationType, name="notification_type_enum"), nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    message: Mapped[str] = mapped_column(String(2000), nullable=False)
    priority: Mapped[NotificationPriority] = mapped_column(
        SAEnum(NotificationPriority, name="notification_priority_enum"), nullable=False
    )

    related_type: Mapped[RelatedType | None] = mapped_column(SAEnum(RelatedType, name="related_type_enum"), nullable=True)
    related_id: Mapped[uuid.UUID | None] = mapped_column(nullable=True, index=True)

    read: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    read_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (Index("ix_notifications_user_read", "user_id", "read"),)
