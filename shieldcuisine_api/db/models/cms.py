from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import BigInteger, Boolean, DateTime, ForeignKey, Integer, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from shieldcuisine_api.db.base import Base, JSONType, TenantMixin, TimestampMixin, UUIDPkMixin


class Page(UUIDPkMixin, TenantMixin, TimestampMixin, Base):
    """CMS page whose content is a list of typed blocks."""
    __tablename__ = "cms_pages"
    __table_args__ = (
        UniqueConstraint("tenant_id", "slug", name="uq_cms_pages_tenant_slug"),
    )

    title: Mapped[str] = mapped_column(Text, nullable=False)
    slug: Mapped[str] = mapped_column(Text, nullable=False)
    content: Mapped[dict] = mapped_column(JSONType, nullable=False, default=dict)  # {"blocks": [...]}
    status: Mapped[str] = mapped_column(Text, nullable=False, default="draft")  # draft/published
    published_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    seo_title: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    seo_description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    featured: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="false")
    thumbnail: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    page_type: Mapped[str] = mapped_column(Text, nullable=False, default="page")  # page/blog/product
    created_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    last_updated_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )


class PageVersion(UUIDPkMixin, TenantMixin, TimestampMixin, Base):
    """Snapshot of a page's title and content."""
    __tablename__ = "cms_page_versions"
    __table_args__ = (
        UniqueConstraint("page_id", "version_number", name="uq_cms_page_versions_page_version"),
    )

    page_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("cms_pages.id", ondelete="CASCADE"), nullable=False, index=True
    )
    version_number: Mapped[int] = mapped_column(Integer, nullable=False)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    content: Mapped[dict] = mapped_column(JSONType, nullable=False, default=dict)
    comment: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )


class MediaCategory(UUIDPkMixin, TenantMixin, TimestampMixin, Base):
    """Folder-like grouping for media files."""
    __tablename__ = "media_categories"
    __table_args__ = (
        UniqueConstraint("tenant_id", "slug", name="uq_media_categories_tenant_slug"),
    )

    name: Mapped[str] = mapped_column(Text, nullable=False)
    slug: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)


class MediaFile(UUIDPkMixin, TenantMixin, TimestampMixin, Base):
    """Uploaded media asset stored on disk."""
    __tablename__ = "media_files"

    filename: Mapped[str] = mapped_column(Text, nullable=False)
    original_name: Mapped[str] = mapped_column(Text, nullable=False)
    mime_type: Mapped[str] = mapped_column(Text, nullable=False)
    file_type: Mapped[str] = mapped_column(Text, nullable=False)  # image/video/audio/document/other
    size: Mapped[int] = mapped_column(BigInteger, nullable=False)
    url: Mapped[str] = mapped_column(Text, nullable=False)
    alt: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    title: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    category_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("media_categories.id", ondelete="SET NULL"), nullable=True
    )
    uploaded_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )


class FormSubmission(UUIDPkMixin, TenantMixin, TimestampMixin, Base):
    """Data posted by a visitor through a contact-form block."""
    __tablename__ = "cms_form_submissions"

    form_id: Mapped[str] = mapped_column(Text, nullable=False)
    page_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("cms_pages.id", ondelete="SET NULL"), nullable=True
    )
    data: Mapped[dict] = mapped_column(JSONType, nullable=False, default=dict)
    ip_address: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    user_agent: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
