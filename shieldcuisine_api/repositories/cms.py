from __future__ import annotations

from typing import Dict, List, Optional, Tuple
from uuid import UUID

from sqlalchemy import func, or_, update

from shieldcuisine_api.db.models.cms import (
    FormSubmission,
    MediaCategory,
    MediaFile,
    Page,
    PageVersion,
)
from .base import BaseRepository


class PageRepository(BaseRepository):
    """Repository for CMS pages and their version history."""

    async def list_pages(
        self,
        *,
        status: Optional[str],
        page_type: Optional[str],
        search: Optional[str],
        limit: int,
        offset: int,
    ) -> Tuple[List[Page], int]:
        stmt = self.scoped(Page)
        if status:
            stmt = stmt.where(Page.status == status)
        if page_type:
            stmt = stmt.where(Page.page_type == page_type)
        if search:
            like = f"%{search}%"
            stmt = stmt.where(or_(Page.title.ilike(like), Page.slug.ilike(like)))
        return await self.paginate(stmt.order_by(Page.updated_at.desc()), limit, offset)

    async def get_page(self, page_id: UUID) -> Optional[Page]:
        stmt = self.scoped(Page).where(Page.id == page_id)
        return await self.scalar_one_or_none(stmt)

    async def get_page_by_slug(self, slug: str) -> Optional[Page]:
        stmt = self.scoped(Page).where(Page.slug == slug)
        return await self.scalar_one_or_none(stmt)

    async def count_by_status(self) -> Dict[str, int]:
        stmt = self.scoped(Page).with_only_columns(Page.status, func.count(Page.id)).group_by(Page.status)
        result = await self.execute(stmt)
        return {status: int(n) for status, n in result.all()}

    # Versions
    async def list_versions(self, page_id: UUID) -> List[PageVersion]:
        stmt = (
            self.scoped(PageVersion)
            .where(PageVersion.page_id == page_id)
            .order_by(PageVersion.version_number.desc())
        )
        return list(await self.scalars(stmt))

    async def get_version(self, page_id: UUID, version_id: UUID) -> Optional[PageVersion]:
        stmt = self.scoped(PageVersion).where(
            PageVersion.page_id == page_id, PageVersion.id == version_id
        )
        return await self.scalar_one_or_none(stmt)

    async def next_version_number(self, page_id: UUID) -> int:
        stmt = self.scoped(PageVersion).where(PageVersion.page_id == page_id).with_only_columns(
            func.coalesce(func.max(PageVersion.version_number), 0)
        )
        result = await self.execute(stmt)
        return int(result.scalar_one()) + 1


class MediaRepository(BaseRepository):
    """Repository for media files and media categories."""

    async def list_files(
        self,
        *,
        file_type: Optional[str],
        category_id: Optional[UUID],
        search: Optional[str],
        limit: int,
        offset: int,
    ) -> Tuple[List[MediaFile], int]:
        stmt = self.scoped(MediaFile)
        if file_type:
            stmt = stmt.where(MediaFile.file_type == file_type)
        if category_id:
            stmt = stmt.where(MediaFile.category_id == category_id)
        if search:
            like = f"%{search}%"
            stmt = stmt.where(
                or_(MediaFile.original_name.ilike(like), MediaFile.title.ilike(like), MediaFile.alt.ilike(like))
            )
        return await self.paginate(stmt.order_by(MediaFile.created_at.desc()), limit, offset)

    async def get_file(self, file_id: UUID) -> Optional[MediaFile]:
        stmt = self.scoped(MediaFile).where(MediaFile.id == file_id)
        return await self.scalar_one_or_none(stmt)

    async def count_files(self) -> int:
        return await self.count(self.scoped(MediaFile))

    async def list_categories(self) -> List[MediaCategory]:
        stmt = self.scoped(MediaCategory).order_by(MediaCategory.name)
        return list(await self.scalars(stmt))

    async def get_category(self, category_id: UUID) -> Optional[MediaCategory]:
        stmt = self.scoped(MediaCategory).where(MediaCategory.id == category_id)
        return await self.scalar_one_or_none(stmt)

    async def get_category_by_slug(self, slug: str) -> Optional[MediaCategory]:
        stmt = self.scoped(MediaCategory).where(MediaCategory.slug == slug)
        return await self.scalar_one_or_none(stmt)

    async def detach_category(self, category_id: UUID) -> None:
        """Clear the category of every file filed under it (no commit)."""
        stmt = (
            update(MediaFile)
            .where(MediaFile.category_id == category_id, MediaFile.tenant_id == self.tenant_id)
            .values(category_id=None)
            .execution_options(synchronize_session="fetch")
        )
        await self.execute(stmt)


class FormSubmissionRepository(BaseRepository):
    """Repository for contact-form submissions."""

    async def list_submissions(
        self, *, form_id: Optional[str], limit: int, offset: int
    ) -> Tuple[List[FormSubmission], int]:
        stmt = self.scoped(FormSubmission)
        if form_id:
            stmt = stmt.where(FormSubmission.form_id == form_id)
        return await self.paginate(stmt.order_by(FormSubmission.created_at.desc()), limit, offset)

    async def get_submission(self, submission_id: UUID) -> Optional[FormSubmission]:
        stmt = self.scoped(FormSubmission).where(FormSubmission.id == submission_id)
        return await self.scalar_one_or_none(stmt)

    async def count_submissions(self) -> int:
        return await self.count(self.scoped(FormSubmission))
