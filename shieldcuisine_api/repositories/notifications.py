from __future__ import annotations

from datetime import datetime
from typing import List, Optional, Tuple
from uuid import UUID

from sqlalchemy import update

from shieldcuisine_api.db.models.notifications import Notification, NotificationPreferences
from .base import BaseRepository


class NotificationRepository(BaseRepository):
    """Repository for a user's notifications and notification preferences."""

    async def list_for_user(
        self, user_id: UUID, *, unread_only: bool = False, limit: int = 100, offset: int = 0
    ) -> Tuple[List[Notification], int]:
        stmt = self.scoped(Notification).where(Notification.user_id == user_id)
        if unread_only:
            stmt = stmt.where(Notification.is_read.is_(False))
        return await self.paginate(stmt.order_by(Notification.created_at.desc()), limit, offset)

    async def get_notification(self, notification_id: UUID) -> Optional[Notification]:
        stmt = self.scoped(Notification).where(Notification.id == notification_id)
        return await self.scalar_one_or_none(stmt)

    async def mark_all_read(self, user_id: UUID, when: datetime) -> None:
        stmt = (
            update(Notification)
            .where(
                Notification.tenant_id == self.tenant_id,
                Notification.user_id == user_id,
                Notification.is_read.is_(False),
            )
            .values(is_read=True, read_at=when)
            .execution_options(synchronize_session="fetch")
        )
        await self.execute(stmt)
        await self.commit()

    async def get_preferences(self, user_id: UUID) -> Optional[NotificationPreferences]:
        stmt = self.scoped(NotificationPreferences).where(NotificationPreferences.user_id == user_id)
        return await self.scalar_one_or_none(stmt)
