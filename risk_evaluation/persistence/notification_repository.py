"""Notification repository using SQLAlchemy 2.0 async.

Table: notifications

Soft-deleted rows (deleted_at set) are excluded from every read unless
``include_deleted`` is passed.
"""

import logging
from datetime import UTC, datetime
from typing import Any
from uuid import UUID

from sqlalchemy import case, select
from sqlalchemy.ext.asyncio import AsyncSession

from risk_evaluation.domain.models.transaction import NotificationPriority, NotificationType
from risk_evaluation.persistence.models import Notification

logger = logging.getLogger(__name__)

_PRIORITY_ORDER = case(
    (Notification.priority == NotificationPriority.HIGH.value, 1),
    (Notification.priority == NotificationPriority.MEDIUM.value, 2),
    else_=3,
)


class NotificationRepository:
    """Repository for notifications data access."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(
        self,
        user_id: UUID,
        notification_type: NotificationType,
        title: str,
        message: str,
        priority: NotificationPriority,
        data: dict[str, Any] | None = None,
    ) -> Notification:
        """Store a notification for later retrieval by the user."""
        notification = Notification(
            user_id=user_id,
            notification_type=notification_type.value,
            title=title,
            message=message,
            priority=priority.value,
            read=False,
            data=data or {},
        )
        self.session.add(notification)
        await self.session.flush()
        return notification

    async def get_by_id(
        self, notification_id: UUID, include_deleted: bool = False
    ) -> Notification | None:
        conditions = [Notification.id == notification_id]
        if not include_deleted:
            conditions.append(Notification.deleted_at.is_(None))
        result = await self.session.execute(select(Notification).where(*conditions))
        return result.scalar_one_or_none()

    async def list_for_user(
        self,
        user_id: UUID,
        unread_only: bool = False,
        include_deleted: bool = False,
        limit: int = 50,
    ) -> list[Notification]:
        """List a user's notifications, highest priority first, then newest first."""
        conditions = [Notification.user_id == user_id]
        if unread_only:
            conditions.append(Notification.read.is_(False))
        if not include_deleted:
            conditions.append(Notification.deleted_at.is_(None))

        result = await self.session.execute(
            select(Notification)
            .where(*conditions)
            .order_by(_PRIORITY_ORDER, Notification.created_at.desc())
            .limit(limit)
        )
        return list(result.scalars().all())

    async def mark_read(self, notification: Notification) -> Notification:
        notification.read = True
        await self.session.flush()
        return notification

    async def soft_delete(self, notification: Notification) -> Notification:
        notification.deleted_at = datetime.now(UTC)
        await self.session.flush()
        return notification

    async def restore(self, notification: Notification) -> Notification:
        notification.deleted_at = None
        await self.session.flush()
        return notification
