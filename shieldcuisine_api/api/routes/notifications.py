from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Path, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from shieldcuisine_api.core.deps import get_current_active_user, get_tenant_session
from shieldcuisine_api.db.models.security import User
from shieldcuisine_api.repositories.notifications import NotificationRepository
from shieldcuisine_api.repositories.security import SecurityRepository
from shieldcuisine_api.schemas.auth import Message
from shieldcuisine_api.schemas.common import Page, page_of
from shieldcuisine_api.schemas.notifications import (
    NotificationCreate,
    NotificationPreferencesRead,
    NotificationPreferencesUpdate,
    NotificationRead,
    UnreadCount,
)
from shieldcuisine_api.services.notifications import NotificationService, to_read

router = APIRouter(tags=["Notifications"])


# PUBLIC_INTERFACE
@router.get("/notifications", response_model=Page[NotificationRead], summary="List my notifications")
async def list_notifications(
    user: User = Depends(get_current_active_user),
    session: AsyncSession = Depends(get_tenant_session),
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
):
    items, total = await NotificationRepository(session).list_for_user(user.id, limit=limit, offset=offset)
    return page_of([to_read(n) for n in items], total, limit, offset)


# PUBLIC_INTERFACE
@router.get("/notifications/unread", response_model=Page[NotificationRead], summary="List my unread notifications")
async def list_unread(
    user: User = Depends(get_current_active_user),
    session: AsyncSession = Depends(get_tenant_session),
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
):
    items, total = await NotificationRepository(session).list_for_user(
        user.id, unread_only=True, limit=limit, offset=offset
    )
    return page_of([to_read(n) for n in items], total, limit, offset)


# PUBLIC_INTERFACE
@router.get("/notifications/unread/count", response_model=UnreadCount, summary="Unread badge count")
async def unread_count(
    user: User = Depends(get_current_active_user),
    session: AsyncSession = Depends(get_tenant_session),
) -> UnreadCount:
    _, total = await NotificationRepository(session).list_for_user(user.id, unread_only=True, limit=1, offset=0)
    return UnreadCount(count=total)


# PUBLIC_INTERFACE
@router.post(
    "/notifications",
    response_model=NotificationRead,
    status_code=status.HTTP_201_CREATED,
    summary="Create notification",
    description="Without user_id the notification is for the caller; other recipients require the admin role.",
)
async def create_notification(
    payload: NotificationCreate,
    user: User = Depends(get_current_active_user),
    session: AsyncSession = Depends(get_tenant_session),
) -> NotificationRead:
    recipient_id = payload.user_id or user.id
    if recipient_id != user.id:
        repo = SecurityRepository(session)
        roles = {r.name for r in await repo.list_roles_for_user(user.id)}
        if not user.is_superadmin and "admin" not in roles:
            raise HTTPException(status_code=403, detail="Insufficient role")
        if not await repo.get_user_by_id(recipient_id):
            raise HTTPException(status_code=404, detail="User not found")
    notification = await NotificationService(session).create(
        user_id=recipient_id,
        type=payload.type,
        title=payload.title,
        message=payload.message,
        link=payload.link,
    )
    return to_read(notification)


# PUBLIC_INTERFACE
@router.post("/notifications/read-all", response_model=Message, summary="Mark all my notifications as read")
async def mark_all_read(
    user: User = Depends(get_current_active_user),
    session: AsyncSession = Depends(get_tenant_session),
) -> Message:
    await NotificationService(session).mark_all_read(user.id)
    return Message(message="All notifications marked as read")


# PUBLIC_INTERFACE
@router.post("/notifications/{notification_id}/read", response_model=NotificationRead, summary="Mark as read")
async def mark_read(
    notification_id: UUID = Path(..., description="Notification ID"),
    user: User = Depends(get_current_active_user),
    session: AsyncSession = Depends(get_tenant_session),
) -> NotificationRead:
    return to_read(await NotificationService(session).mark_read(notification_id, user.id))


# PUBLIC_INTERFACE
@router.delete("/notifications/{notification_id}", response_model=Message, summary="Delete notification")
async def delete_notification(
    notification_id: UUID = Path(..., description="Notification ID"),
    user: User = Depends(get_current_active_user),
    session: AsyncSession = Depends(get_tenant_session),
) -> Message:
    await NotificationService(session).delete(notification_id, user.id)
    return Message(message="Notification deleted")


# Preferences

# PUBLIC_INTERFACE
@router.get(
    "/notification-preferences",
    response_model=NotificationPreferencesRead,
    summary="My notification preferences",
    description="Defaults (everything enabled, daily e-mail digest) are created on first read.",
)
async def get_preferences(
    user: User = Depends(get_current_active_user),
    session: AsyncSession = Depends(get_tenant_session),
) -> NotificationPreferencesRead:
    prefs = await NotificationService(session).get_or_create_preferences(user.id)
    return NotificationPreferencesRead.model_validate(prefs)


# PUBLIC_INTERFACE
@router.put(
    "/notification-preferences",
    response_model=NotificationPreferencesRead,
    summary="Update my notification preferences",
)
async def update_preferences(
    payload: NotificationPreferencesUpdate,
    user: User = Depends(get_current_active_user),
    session: AsyncSession = Depends(get_tenant_session),
) -> NotificationPreferencesRead:
    service = NotificationService(session)
    prefs = await service.get_or_create_preferences(user.id)
    service.repo.apply_changes(prefs, payload.model_dump(exclude_unset=True, exclude_none=True))
    await service.repo.commit()
    await session.refresh(prefs)
    return NotificationPreferencesRead.model_validate(prefs)
