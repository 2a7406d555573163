from __future__ import annotations

import logging
import re
import unicodedata
from typing import Any, Dict, List, Optional
from uuid import UUID

from shieldcuisine_api.core.errors import ConflictError, NotFoundError
from shieldcuisine_api.db.base import utcnow
from shieldcuisine_api.db.models.cms import Page, PageVersion
from shieldcuisine_api.repositories.cms import PageRepository
from shieldcuisine_api.schemas.cms import BlockChange, VersionComparison
from shieldcuisine_api.services.base import BaseService

logger = logging.getLogger(__name__)


# PUBLIC_INTERFACE
def slugify(value: str) -> str:
    """Lowercase ASCII slug: accents stripped, runs of other characters become single hyphens."""
    value = unicodedata.normalize("NFKD", value or "").encode("ascii", "ignore").decode("ascii")
    value = re.sub(r"[^\w\s-]", "", value.lower())
    return re.sub(r"[-\s_]+", "-", value).strip("-")


def _blocks(content: Optional[Dict[str, Any]]) -> List[Dict[str, Any]]:
    return list((content or {}).get("blocks") or [])


# PUBLIC_INTERFACE
def compare_contents(
    a_number: int, a_title: str, a_content: Dict[str, Any], b_number: int, b_title: str, b_content: Dict[str, Any]
) -> VersionComparison:
    """Block-level diff keyed by block id, from version a to version b."""
    before = {b.get("id"): b for b in _blocks(a_content)}
    after = {b.get("id"): b for b in _blocks(b_content)}
    return VersionComparison(
        version_a=a_number,
        version_b=b_number,
        title_changed=a_title != b_title,
        added=[block for block_id, block in after.items() if block_id not in before],
        removed=[block for block_id, block in before.items() if block_id not in after],
        changed=[
            BlockChange(id=str(block_id), before=before[block_id], after=block)
            for block_id, block in after.items()
            if block_id in before and before[block_id] != block
        ],
    )


class PageService(BaseService):
    """Page lifecycle: slugs, publishing and version history."""

    def __init__(self, session) -> None:
        super().__init__(session)
        self.repo = PageRepository(session)

    async def require_page(self, page_id: UUID) -> Page:
        page = await self.repo.get_page(page_id)
        if page is None:
            raise NotFoundError("Page not found")
        return page

    async def _check_slug(self, slug: str, page_id: Optional[UUID] = None) -> str:
        slug = slugify(slug)
        if not slug:
            raise ConflictError("A page slug cannot be empty")
        existing = await self.repo.get_page_by_slug(slug)
        if existing is not None and existing.id != page_id:
            raise ConflictError(f"A page with slug '{slug}' already exists")
        return slug

    # PUBLIC_INTERFACE
    async def create_page(self, values: Dict[str, Any], user_id: Optional[UUID]) -> Page:
        """Create a draft page; the slug is derived from the title when absent."""
        slug = await self._check_slug(values.pop("slug", None) or values["title"])
        page = Page(slug=slug, status="draft", created_by=user_id, last_updated_by=user_id, **values)
        return await self.repo.save(page)

    async def snapshot(self, page: Page, user_id: Optional[UUID], comment: Optional[str] = None) -> PageVersion:
        """Store the page's current title and content as a new version (no commit)."""
        version = PageVersion(
            page_id=page.id,
            version_number=await self.repo.next_version_number(page.id),
            title=page.title,
            content=page.content or {},
            comment=comment,
            created_by=user_id,
        )
        await self.repo.add(version)
        await self.session.flush()
        return version

    # PUBLIC_INTERFACE
    async def create_version(self, page_id: UUID, user_id: Optional[UUID], comment: Optional[str]) -> PageVersion:
        page = await self.require_page(page_id)
        version = await self.snapshot(page, user_id, comment)
        await self.commit_and_refresh(version)
        return version

    # PUBLIC_INTERFACE
    async def update_page(self, page_id: UUID, changes: Dict[str, Any], user_id: Optional[UUID]) -> Page:
        """Apply changes, snapshotting the previous title/content first."""
        page = await self.require_page(page_id)
        comment = changes.pop("version_comment", None)
        if "slug" in changes:
            if changes["slug"]:
                changes["slug"] = await self._check_slug(changes["slug"], page.id)
            else:
                changes.pop("slug")
        if "content" in changes or "title" in changes:
            await self.snapshot(page, user_id, comment or "Auto-guardado antes de actualizar")
        self.repo.apply_changes(page, changes)
        page.last_updated_by = user_id
        await self.commit_and_refresh(page)
        return page

    # PUBLIC_INTERFACE
    async def set_published(self, page_id: UUID, published: bool, user_id: Optional[UUID]) -> Page:
        page = await self.require_page(page_id)
        if published:
            page.status = "published"
            page.published_at = utcnow()
        else:
            page.status = "draft"
        page.last_updated_by = user_id
        await self.commit_and_refresh(page)
        logger.info("Page %s is now %s", page.slug, page.status)
        return page

    async def require_version(self, page_id: UUID, version_id: UUID) -> PageVersion:
        version = await self.repo.get_version(page_id, version_id)
        if version is None:
            raise NotFoundError("Page version not found")
        return version

    # PUBLIC_INTERFACE
    async def restore_version(self, page_id: UUID, version_id: UUID, user_id: Optional[UUID]) -> Page:
        """Bring back a version's title/content after snapshotting the current state."""
        page = await self.require_page(page_id)
        version = await self.require_version(page_id, version_id)
        await self.snapshot(page, user_id, f"Antes de restaurar la versión {version.version_number}")
        page.title = version.title
        page.content = version.content
        page.last_updated_by = user_id
        await self.commit_and_refresh(page)
        return page

    # PUBLIC_INTERFACE
    async def compare_versions(self, page_id: UUID, version_a: UUID, version_b: UUID) -> VersionComparison:
        await self.require_page(page_id)
        a = await self.require_version(page_id, version_a)
        b = await self.require_version(page_id, version_b)
        return compare_contents(a.version_number, a.title, a.content, b.version_number, b.title, b.content)
