from __future__ import annotations

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, File, Form, HTTPException, Path, Query, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from shieldcuisine_api.core.deps import get_current_active_user, get_tenant_session, require_roles
from shieldcuisine_api.core.settings import AppSettings, get_app_settings
from shieldcuisine_api.db.models.cms import MediaCategory
from shieldcuisine_api.db.models.security import User
from shieldcuisine_api.repositories.cms import MediaRepository
from shieldcuisine_api.schemas.auth import Message
from shieldcuisine_api.schemas.cms import (
    MediaCategoryCreate,
    MediaCategoryRead,
    MediaCategoryUpdate,
    MediaFileRead,
    MediaFileUpdate,
    UploadResult,
)
from shieldcuisine_api.schemas.common import Page, page_of
from shieldcuisine_api.services.cms import slugify
from shieldcuisine_api.services.media import MediaService

router = APIRouter(prefix="/cms/media", tags=["Media"])

MANAGE_MEDIA = require_roles("admin", "cms:manage")


# PUBLIC_INTERFACE
@router.post(
    "/upload",
    response_model=UploadResult,
    status_code=status.HTTP_201_CREATED,
    summary="Upload media files",
    description="Files are processed one by one; rejected files are listed in `errors`.",
)
async def upload_files(
    files: List[UploadFile] = File(..., description="One or more files"),
    category_id: Optional[UUID] = Form(None),
    user: User = Depends(MANAGE_MEDIA),
    session: AsyncSession = Depends(get_tenant_session),
    settings: AppSettings = Depends(get_app_settings),
) -> UploadResult:
    return await MediaService(session, settings).upload(files, category_id, user.id)


# Categories (declared before /{file_id})

# PUBLIC_INTERFACE
@router.get(
    "/categories",
    response_model=List[MediaCategoryRead],
    summary="List media categories",
    dependencies=[Depends(get_current_active_user)],
)
async def list_categories(session: AsyncSession = Depends(get_tenant_session)) -> List[MediaCategoryRead]:
    return [MediaCategoryRead.model_validate(c) for c in await MediaRepository(session).list_categories()]


async def _require_category(repo: MediaRepository, category_id: UUID) -> MediaCategory:
    category = await repo.get_category(category_id)
    if not category:
        raise HTTPException(status_code=404, detail="Media category not found")
    return category


# PUBLIC_INTERFACE
@router.post(
    "/categories",
    response_model=MediaCategoryRead,
    status_code=status.HTTP_201_CREATED,
    summary="Create media category",
    dependencies=[Depends(MANAGE_MEDIA)],
)
async def create_category(
    payload: MediaCategoryCreate,
    session: AsyncSession = Depends(get_tenant_session),
) -> MediaCategoryRead:
    repo = MediaRepository(session)
    slug = slugify(payload.slug or payload.name)
    if not slug:
        raise HTTPException(status_code=400, detail="Category slug cannot be empty")
    if await repo.get_category_by_slug(slug):
        raise HTTPException(status_code=409, detail=f"A category with slug '{slug}' already exists")
    category = await repo.save(MediaCategory(name=payload.name, slug=slug, description=payload.description))
    return MediaCategoryRead.model_validate(category)


# PUBLIC_INTERFACE
@router.patch(
    "/categories/{category_id}",
    response_model=MediaCategoryRead,
    summary="Update media category",
    dependencies=[Depends(MANAGE_MEDIA)],
)
async def update_category(
    payload: MediaCategoryUpdate,
    category_id: UUID = Path(..., description="Category ID"),
    session: AsyncSession = Depends(get_tenant_session),
) -> MediaCategoryRead:
    repo = MediaRepository(session)
    category = await _require_category(repo, category_id)
    repo.apply_changes(category, payload.model_dump(exclude_unset=True, exclude_none=True))
    await repo.commit()
    await session.refresh(category)
    return MediaCategoryRead.model_validate(category)


# PUBLIC_INTERFACE
@router.delete(
    "/categories/{category_id}",
    response_model=Message,
    summary="Delete media category",
    description="Files filed under the category are kept without a category.",
    dependencies=[Depends(MANAGE_MEDIA)],
)
async def delete_category(
    category_id: UUID = Path(..., description="Category ID"),
    session: AsyncSession = Depends(get_tenant_session),
) -> Message:
    repo = MediaRepository(session)
    category = await _require_category(repo, category_id)
    await repo.detach_category(category_id)
    await repo.delete(category)
    return Message(message="Media category deleted")


# Files

# PUBLIC_INTERFACE
@router.get(
    "",
    response_model=Page[MediaFileRead],
    summary="List media files",
    dependencies=[Depends(get_current_active_user)],
)
async def list_files(
    session: AsyncSession = Depends(get_tenant_session),
    file_type: Optional[str] = Query(None, description="image | video | audio | document"),
    category_id: Optional[UUID] = Query(None),
    search: Optional[str] = Query(None),
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
):
    items, total = await MediaRepository(session).list_files(
        file_type=file_type, category_id=category_id, search=search, limit=limit, offset=offset
    )
    return page_of([MediaFileRead.model_validate(f) for f in items], total, limit, offset)


async def _require_file(repo: MediaRepository, file_id: UUID):
    media = await repo.get_file(file_id)
    if not media:
        raise HTTPException(status_code=404, detail="Media file not found")
    return media


# PUBLIC_INTERFACE
@router.get(
    "/{file_id}",
    response_model=MediaFileRead,
    summary="Get media file",
    dependencies=[Depends(get_current_active_user)],
)
async def get_file(
    file_id: UUID = Path(..., description="Media file ID"),
    session: AsyncSession = Depends(get_tenant_session),
) -> MediaFileRead:
    return MediaFileRead.model_validate(await _require_file(MediaRepository(session), file_id))


# PUBLIC_INTERFACE
@router.patch(
    "/{file_id}",
    response_model=MediaFileRead,
    summary="Update media metadata",
    dependencies=[Depends(MANAGE_MEDIA)],
)
async def update_file(
    payload: MediaFileUpdate,
    file_id: UUID = Path(..., description="Media file ID"),
    session: AsyncSession = Depends(get_tenant_session),
) -> MediaFileRead:
    repo = MediaRepository(session)
    media = await _require_file(repo, file_id)
    changes = payload.model_dump(exclude_unset=True)
    if changes.get("category_id"):
        await _require_category(repo, changes["category_id"])
    repo.apply_changes(media, changes)
    await repo.commit()
    await session.refresh(media)
    return MediaFileRead.model_validate(media)


# PUBLIC_INTERFACE
@router.delete(
    "/{file_id}",
    response_model=Message,
    summary="Delete media file",
    description="Removes the record and the stored file.",
    dependencies=[Depends(MANAGE_MEDIA)],
)
async def delete_file(
    file_id: UUID = Path(..., description="Media file ID"),
    session: AsyncSession = Depends(get_tenant_session),
    settings: AppSettings = Depends(get_app_settings),
) -> Message:
    await MediaService(session, settings).delete(file_id)
    return Message(message="Media file deleted")
