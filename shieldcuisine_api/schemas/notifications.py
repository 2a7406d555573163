from __future__ import annotations

from datetime import datetime
from typing import Literal, Optional
from uuid import UUID

from pydantic import BaseModel, Field

NotificationType = Literal[
    "security", "inventory", "appcc_control", "learning", "banking", "purchasing", "system"
]


class NotificationDisplay(BaseModel):
    """How the client should render a notification of a given type."""
    icon: str
    color: str


class NotificationCreate(BaseModel):
    user_id: Optional[UUID] = Field(None, description="Recipient; defaults to the caller")
    type: str = Field("system", description="Notification type")
    title: str = Field(..., min_length=1)
    message: str = Field(..., min_length=1)
    link: Optional[str] = None


class NotificationRead(BaseModel):
    """Read model for a notification with its display config."""
    id: UUID
    user_id: UUID
    type: str
    title: str
    message: str
    link: Optional[str] = None
    is_read: bool
    read_at: Optional[datetime] = None
    created_at: datetime
    display: NotificationDisplay

    class Config:
        from_attributes = True


class UnreadCount(BaseModel):
    count: int


class NotificationPreferencesRead(BaseModel):
    """Per-type notification switches of the current user."""
    appcc_notifications: bool
    inventory_notifications: bool
    learning_notifications: bool
    banking_notifications: bool
    system_notifications: bool
    security_notifications: bool
    purchasing_notifications: bool
    email_notifications: bool
    email_frequency: str
    updated_at: datetime

    class Config:
        from_attributes = True


class NotificationPreferencesUpdate(BaseModel):
    appcc_notifications: Optional[bool] = None
    inventory_notifications: Optional[bool] = None
    learning_notifications: Optional[bool] = None
    banking_notifications: Optional[bool] = None
    system_notifications: Optional[bool] = None
    security_notifications: Optional[bool] = None
    purchasing_notifications: Optional[bool] = None
    email_notifications: Optional[bool] = None
    email_frequency: Optional[Literal["immediate", "daily", "weekly", "never"]] = None
