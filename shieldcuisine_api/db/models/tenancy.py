from __future__ import annotations

from typing import Optional

from sqlalchemy import Boolean, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from shieldcuisine_api.db.base import Base, TenantMixin, TimestampMixin, UUIDPkMixin


class Tenant(UUIDPkMixin, TimestampMixin, Base):
    """Company using the platform; the data isolation boundary."""
    __tablename__ = "tenants"

    name: Mapped[str] = mapped_column(Text, nullable=False, unique=True)
    slug: Mapped[str] = mapped_column(Text, nullable=False, unique=True)


class Location(UUIDPkMixin, TenantMixin, TimestampMixin, Base):
    """Establishment (kitchen, restaurant, warehouse) belonging to a company."""
    __tablename__ = "locations"
    __table_args__ = (
        UniqueConstraint("tenant_id", "name", name="uq_locations_tenant_name"),
    )

    name: Mapped[str] = mapped_column(Text, nullable=False)
    address: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default="true")
