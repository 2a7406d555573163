from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, DateTime, ForeignKey, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from shieldcuisine_api.db.base import Base, TenantMixin, TimestampMixin, UUIDPkMixin


class Notification(UUIDPkMixin, TenantMixin, TimestampMixin, Base):
    """In-app notification addressed to one user."""
    __tablename__ = "notifications"

    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    type: Mapped[str] = mapped_column(Text, nullable=False, default="system")
    title: Mapped[str] = mapped_column(Text, nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    link: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    is_read: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="false")
    read_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)


class NotificationPreferences(UUIDPkMixin, TenantMixin, TimestampMixin, Base):
    """Per-user switches for each notification type."""
    __tablename__ = "notification_preferences"

    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True
    )
    appcc_notifications: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    inventory_notifications: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    learning_notifications: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    banking_notifications: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    system_notifications: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    security_notifications: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    purchasing_notifications: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    email_notifications: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    email_frequency: Mapped[str] = mapped_column(Text, nullable=False, default="daily")
