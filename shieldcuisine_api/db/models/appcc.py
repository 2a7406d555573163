from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, ForeignKey, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from shieldcuisine_api.db.base import Base, JSONType, TenantMixin, TimestampMixin, UUIDPkMixin


class ControlTemplate(UUIDPkMixin, TenantMixin, TimestampMixin, Base):
    """APPCC checklist definition: which fields are captured and how often."""
    __tablename__ = "control_templates"

    name: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    category: Mapped[str] = mapped_column(Text, nullable=False)  # e.g. temperatures, cleaning, reception
    frequency: Mapped[str] = mapped_column(Text, nullable=False)  # daily/weekly/monthly/...
    fields: Mapped[list] = mapped_column(JSONType, nullable=False, default=list)


class ControlRecord(UUIDPkMixin, TenantMixin, TimestampMixin, Base):
    """A scheduled (and eventually completed) execution of a control template at a location."""
    __tablename__ = "control_records"

    template_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("control_templates.id", ondelete="CASCADE"), nullable=False, index=True
    )
    location_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("locations.id", ondelete="CASCADE"), nullable=False, index=True
    )
    status: Mapped[str] = mapped_column(Text, nullable=False, default="pending")  # pending/completed/delayed/failed
    data: Mapped[dict] = mapped_column(JSONType, nullable=False, default=dict)
    comments: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    completed_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    scheduled_for: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
