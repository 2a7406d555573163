from __future__ import annotations

import logging
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Path, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from shieldcuisine_api.core.deps import get_current_active_user, get_tenant_session, require_roles
from shieldcuisine_api.db.models.cms import FormSubmission
from shieldcuisine_api.db.models.security import User
from shieldcuisine_api.db.session import get_async_session, tenant_context
from shieldcuisine_api.repositories.cms import FormSubmissionRepository, MediaRepository, PageRepository
from shieldcuisine_api.repositories.security import TenantRepository
from shieldcuisine_api.schemas.auth import Message
from shieldcuisine_api.schemas.cms import (
    CmsStats,
    FormSubmissionRead,
    FormSubmit,
    PageCreate,
    PageRead,
    PageType,
    PageUpdate,
    PageVersionCreate,
    PageVersionRead,
    PublicPageRead,
    VersionComparison,
)
from shieldcuisine_api.schemas.common import Page, page_of
from shieldcuisine_api.services.cms import PageService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/cms", tags=["CMS"])

MANAGE_CMS = require_roles("admin", "cms:manage")


# Pages

# PUBLIC_INTERFACE
@router.get(
    "/pages",
    response_model=Page[PageRead],
    summary="List pages",
    dependencies=[Depends(get_current_active_user)],
)
async def list_pages(
    session: AsyncSession = Depends(get_tenant_session),
    status_filter: Optional[str] = Query(None, alias="status", description="draft | published"),
    page_type: Optional[PageType] = Query(None),
    search: Optional[str] = Query(None, description="Matches title or slug"),
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
):
    items, total = await PageRepository(session).list_pages(
        status=status_filter, page_type=page_type, search=search, limit=limit, offset=offset
    )
    return page_of([PageRead.model_validate(p) for p in items], total, limit, offset)


# PUBLIC_INTERFACE
@router.get(
    "/pages/{page_id}",
    response_model=PageRead,
    summary="Get page",
    dependencies=[Depends(get_current_active_user)],
)
async def get_page(
    page_id: UUID = Path(..., description="Page ID"),
    session: AsyncSession = Depends(get_tenant_session),
) -> PageRead:
    return PageRead.model_validate(await PageService(session).require_page(page_id))


# PUBLIC_INTERFACE
@router.post(
    "/pages",
    response_model=PageRead,
    status_code=status.HTTP_201_CREATED,
    summary="Create page",
    description="Creates a draft. The slug is derived from the title when omitted; 409 when it is taken.",
)
async def create_page(
    payload: PageCreate,
    user: User = Depends(MANAGE_CMS),
    session: AsyncSession = Depends(get_tenant_session),
) -> PageRead:
    page = await PageService(session).create_page(payload.model_dump(mode="json"), user.id)
    return PageRead.model_validate(page)


# PUBLIC_INTERFACE
@router.patch(
    "/pages/{page_id}",
    response_model=PageRead,
    summary="Update page",
    description="Title or content changes store the previous state as a new version first.",
)
async def update_page(
    payload: PageUpdate,
    page_id: UUID = Path(..., description="Page ID"),
    user: User = Depends(MANAGE_CMS),
    session: AsyncSession = Depends(get_tenant_session),
) -> PageRead:
    changes = payload.model_dump(mode="json", exclude_unset=True)
    page = await PageService(session).update_page(page_id, changes, user.id)
    return PageRead.model_validate(page)


# PUBLIC_INTERFACE
@router.delete(
    "/pages/{page_id}",
    response_model=Message,
    summary="Delete page",
    dependencies=[Depends(MANAGE_CMS)],
)
async def delete_page(
    page_id: UUID = Path(..., description="Page ID"),
    session: AsyncSession = Depends(get_tenant_session),
) -> Message:
    service = PageService(session)
    page = await service.require_page(page_id)
    for version in await service.repo.list_versions(page_id):
        await session.delete(version)
    await service.repo.delete(page)
    return Message(message="Page deleted")


# PUBLIC_INTERFACE
@router.post("/pages/{page_id}/publish", response_model=PageRead, summary="Publish page")
async def publish_page(
    page_id: UUID = Path(..., description="Page ID"),
    user: User = Depends(MANAGE_CMS),
    session: AsyncSession = Depends(get_tenant_session),
) -> PageRead:
    return PageRead.model_validate(await PageService(session).set_published(page_id, True, user.id))


# PUBLIC_INTERFACE
@router.post("/pages/{page_id}/unpublish", response_model=PageRead, summary="Unpublish page")
async def unpublish_page(
    page_id: UUID = Path(..., description="Page ID"),
    user: User = Depends(MANAGE_CMS),
    session: AsyncSession = Depends(get_tenant_session),
) -> PageRead:
    return PageRead.model_validate(await PageService(session).set_published(page_id, False, user.id))


# Versions

# PUBLIC_INTERFACE
@router.get(
    "/pages/{page_id}/versions",
    response_model=List[PageVersionRead],
    summary="List page versions",
    dependencies=[Depends(get_current_active_user)],
)
async def list_versions(
    page_id: UUID = Path(..., description="Page ID"),
    session: AsyncSession = Depends(get_tenant_session),
) -> List[PageVersionRead]:
    service = PageService(session)
    await service.require_page(page_id)
    return [PageVersionRead.model_validate(v) for v in await service.repo.list_versions(page_id)]


# PUBLIC_INTERFACE
@router.get(
    "/pages/{page_id}/versions/compare",
    response_model=VersionComparison,
    summary="Compare two versions",
    dependencies=[Depends(get_current_active_user)],
)
async def compare_versions(
    page_id: UUID = Path(..., description="Page ID"),
    version_a: UUID = Query(..., description="Older version ID"),
    version_b: UUID = Query(..., description="Newer version ID"),
    session: AsyncSession = Depends(get_tenant_session),
) -> VersionComparison:
    return await PageService(session).compare_versions(page_id, version_a, version_b)


# PUBLIC_INTERFACE
@router.get(
    "/pages/{page_id}/versions/{version_id}",
    response_model=PageVersionRead,
    summary="Get page version",
    dependencies=[Depends(get_current_active_user)],
)
async def get_version(
    page_id: UUID = Path(..., description="Page ID"),
    version_id: UUID = Path(..., description="Version ID"),
    session: AsyncSession = Depends(get_tenant_session),
) -> PageVersionRead:
    return PageVersionRead.model_validate(await PageService(session).require_version(page_id, version_id))


# PUBLIC_INTERFACE
@router.post(
    "/pages/{page_id}/versions",
    response_model=PageVersionRead,
    status_code=status.HTTP_201_CREATED,
    summary="Snapshot page",
)
async def create_version(
    payload: PageVersionCreate,
    page_id: UUID = Path(..., description="Page ID"),
    user: User = Depends(MANAGE_CMS),
    session: AsyncSession = Depends(get_tenant_session),
) -> PageVersionRead:
    version = await PageService(session).create_version(page_id, user.id, payload.comment)
    return PageVersionRead.model_validate(version)


# PUBLIC_INTERFACE
@router.post(
    "/pages/{page_id}/versions/{version_id}/restore",
    response_model=PageRead,
    summary="Restore page version",
    description="The current state is stored as a new version before restoring.",
)
async def restore_version(
    page_id: UUID = Path(..., description="Page ID"),
    version_id: UUID = Path(..., description="Version ID"),
    user: User = Depends(MANAGE_CMS),
    session: AsyncSession = Depends(get_tenant_session),
) -> PageRead:
    return PageRead.model_validate(await PageService(session).restore_version(page_id, version_id, user.id))


# Public site

async def _require_tenant(session: AsyncSession, tenant_id: UUID) -> None:
    if not await TenantRepository(session).get_tenant(tenant_id):
        raise HTTPException(status_code=404, detail="Company not found")


# PUBLIC_INTERFACE
@router.get(
    "/public/{tenant_id}/pages/{slug}",
    response_model=PublicPageRead,
    summary="Public page",
    description="Returns a published page without authentication; drafts are 404.",
)
async def public_page(
    tenant_id: UUID = Path(..., description="Company ID"),
    slug: str = Path(..., description="Page slug"),
    session: AsyncSession = Depends(get_async_session),
) -> PublicPageRead:
    await _require_tenant(session, tenant_id)
    async with tenant_context(session, tenant_id):
        page = await PageRepository(session).get_page_by_slug(slug)
        if not page or page.status != "published":
            raise HTTPException(status_code=404, detail="Page not found")
        return PublicPageRead.model_validate(page)


# PUBLIC_INTERFACE
@router.post(
    "/public/{tenant_id}/forms/submit",
    response_model=Message,
    status_code=status.HTTP_201_CREATED,
    summary="Submit contact form",
)
async def submit_form(
    payload: FormSubmit,
    request: Request,
    tenant_id: UUID = Path(..., description="Company ID"),
    session: AsyncSession = Depends(get_async_session),
) -> Message:
    await _require_tenant(session, tenant_id)
    async with tenant_context(session, tenant_id):
        if payload.page_id:
            page = await PageRepository(session).get_page(payload.page_id)
            if not page or page.status != "published":
                raise HTTPException(status_code=404, detail="Page not found")
        submission = FormSubmission(
            form_id=payload.form_id,
            page_id=payload.page_id,
            data=payload.data,
            ip_address=request.client.host if request.client else None,
            user_agent=request.headers.get("user-agent"),
        )
        await FormSubmissionRepository(session).save(submission)
    logger.info("Form %s submitted for tenant %s", payload.form_id, tenant_id)
    return Message(message="Form submitted")


# Form submissions

# PUBLIC_INTERFACE
@router.get(
    "/form-submissions",
    response_model=Page[FormSubmissionRead],
    summary="List form submissions",
    dependencies=[Depends(MANAGE_CMS)],
)
async def list_submissions(
    session: AsyncSession = Depends(get_tenant_session),
    form_id: Optional[str] = Query(None),
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
):
    items, total = await FormSubmissionRepository(session).list_submissions(
        form_id=form_id, limit=limit, offset=offset
    )
    return page_of([FormSubmissionRead.model_validate(s) for s in items], total, limit, offset)


# PUBLIC_INTERFACE
@router.delete(
    "/form-submissions/{submission_id}",
    response_model=Message,
    summary="Delete form submission",
    dependencies=[Depends(MANAGE_CMS)],
)
async def delete_submission(
    submission_id: UUID = Path(..., description="Submission ID"),
    session: AsyncSession = Depends(get_tenant_session),
) -> Message:
    repo = FormSubmissionRepository(session)
    submission = await repo.get_submission(submission_id)
    if not submission:
        raise HTTPException(status_code=404, detail="Form submission not found")
    await repo.delete(submission)
    return Message(message="Form submission deleted")


# PUBLIC_INTERFACE
@router.get(
    "/stats",
    response_model=CmsStats,
    summary="CMS statistics",
    dependencies=[Depends(get_current_active_user)],
)
async def stats(session: AsyncSession = Depends(get_tenant_session)) -> CmsStats:
    by_status = await PageRepository(session).count_by_status()
    return CmsStats(
        total_pages=sum(by_status.values()),
        published_pages=by_status.get("published", 0),
        draft_pages=by_status.get("draft", 0),
        media_files=await MediaRepository(session).count_files(),
        form_submissions=await FormSubmissionRepository(session).count_submissions(),
    )
