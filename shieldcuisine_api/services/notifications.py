from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Optional
from uuid import UUID

from shieldcuisine_api.core.errors import ForbiddenError, NotFoundError
from shieldcuisine_api.db.base import utcnow
from shieldcuisine_api.db.models.notifications import Notification, NotificationPreferences
from shieldcuisine_api.repositories.notifications import NotificationRepository
from shieldcuisine_api.repositories.security import SecurityRepository
from shieldcuisine_api.schemas.notifications import NotificationDisplay, NotificationRead
from shieldcuisine_api.services.base import BaseService
from shieldcuisine_api.services.realtime import broadcast_manager

logger = logging.getLogger(__name__)

DEFAULT_NOTIFICATION_TYPE = "system"

NOTIFICATION_DISPLAY: Dict[str, NotificationDisplay] = {
    "security": NotificationDisplay(icon="shield", color="red"),
    "inventory": NotificationDisplay(icon="package", color="blue"),
    "appcc_control": NotificationDisplay(icon="clipboard-check", color="green"),
    "learning": NotificationDisplay(icon="graduation-cap", color="purple"),
    "banking": NotificationDisplay(icon="credit-card", color="yellow"),
    "purchasing": NotificationDisplay(icon="shopping-cart", color="orange"),
    "system": NotificationDisplay(icon="server-cog", color="gray"),
}

# Preference switch consulted for each notification type
PREFERENCE_FIELDS: Dict[str, str] = {
    "security": "security_notifications",
    "inventory": "inventory_notifications",
    "appcc_control": "appcc_notifications",
    "learning": "learning_notifications",
    "banking": "banking_notifications",
    "purchasing": "purchasing_notifications",
    "system": "system_notifications",
}


# PUBLIC_INTERFACE
def display_for(notification_type: Optional[str]) -> NotificationDisplay:
    """Icon and colour for a notification type; unknown types render as system."""
    return NOTIFICATION_DISPLAY.get(notification_type or "", NOTIFICATION_DISPLAY[DEFAULT_NOTIFICATION_TYPE])


# PUBLIC_INTERFACE
def to_read(notification: Notification) -> NotificationRead:
    """Serialize a notification together with its display config."""
    return NotificationRead(
        id=notification.id,
        user_id=notification.user_id,
        type=notification.type,
        title=notification.title,
        message=notification.message,
        link=notification.link,
        is_read=notification.is_read,
        read_at=notification.read_at,
        created_at=notification.created_at,
        display=display_for(notification.type),
    )


class NotificationService(BaseService):
    """Creates notifications honouring user preferences and pushes them live."""

    def __init__(self, session) -> None:
        super().__init__(session)
        self.repo = NotificationRepository(session)

    # PUBLIC_INTERFACE
    async def get_or_create_preferences(self, user_id: UUID) -> NotificationPreferences:
        """Return the user's preferences, creating the all-enabled defaults on first access."""
        prefs = await self.repo.get_preferences(user_id)
        if prefs is None:
            prefs = await self.repo.save(NotificationPreferences(user_id=user_id))
        return prefs

    async def wants(self, user_id: UUID, notification_type: str) -> bool:
        prefs = await self.repo.get_preferences(user_id)
        if prefs is None:
            return True
        field = PREFERENCE_FIELDS.get(notification_type, PREFERENCE_FIELDS[DEFAULT_NOTIFICATION_TYPE])
        return bool(getattr(prefs, field))

    # PUBLIC_INTERFACE
    async def create(
        self,
        *,
        user_id: UUID,
        type: str,
        title: str,
        message: str,
        link: Optional[str] = None,
    ) -> Notification:
        """Store a notification unconditionally and push it to the owner."""
        notification = await self.repo.save(
            Notification(user_id=user_id, type=type, title=title, message=message, link=link)
        )
        await broadcast_manager.publish_notification(
            notification.tenant_id, user_id, to_read(notification).model_dump(mode="json")
        )
        return notification

    # PUBLIC_INTERFACE
    async def notify(
        self,
        user_ids: Iterable[UUID],
        *,
        type: str,
        title: str,
        message: str,
        link: Optional[str] = None,
    ) -> List[Notification]:
        """
        Notify each user (once) unless they disabled this notification type.

        Used by internal producers (APPCC, warehouse, e-learning).
        """
        created: List[Notification] = []
        seen: set[UUID] = set()
        for user_id in user_ids:
            if user_id is None or user_id in seen:
                continue
            seen.add(user_id)
            if not await self.wants(user_id, type):
                logger.info("Skipping %s notification for user=%s (disabled)", type, user_id)
                continue
            created.append(
                await self.create(user_id=user_id, type=type, title=title, message=message, link=link)
            )
        return created

    # PUBLIC_INTERFACE
    async def notify_admins(
        self, *, type: str, title: str, message: str, link: Optional[str] = None, extra: Iterable[UUID] = ()
    ) -> List[Notification]:
        """Notify every active admin of the tenant plus any extra recipients."""
        admins = await SecurityRepository(self.session).list_users_with_role("admin")
        recipients = [u.id for u in admins] + list(extra)
        return await self.notify(recipients, type=type, title=title, message=message, link=link)

    async def get_owned(self, notification_id: UUID, user_id: UUID) -> Notification:
        """Return a notification, checking it belongs to user_id."""
        notification = await self.repo.get_notification(notification_id)
        if notification is None:
            raise NotFoundError("Notification not found")
        if notification.user_id != user_id:
            raise ForbiddenError("This notification belongs to another user")
        return notification

    # PUBLIC_INTERFACE
    async def mark_read(self, notification_id: UUID, user_id: UUID) -> Notification:
        notification = await self.get_owned(notification_id, user_id)
        if not notification.is_read:
            notification.is_read = True
            notification.read_at = utcnow()
            await self.commit_and_refresh(notification)
        return notification

    # PUBLIC_INTERFACE
    async def mark_all_read(self, user_id: UUID) -> None:
        await self.repo.mark_all_read(user_id, utcnow())

    # PUBLIC_INTERFACE
    async def delete(self, notification_id: UUID, user_id: UUID) -> None:
        notification = await self.get_owned(notification_id, user_id)
        await self.repo.delete(notification)
