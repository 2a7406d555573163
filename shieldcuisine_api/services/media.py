"""
Media library storage.

Files are written below `<UPLOAD_DIR>/<tenant_id>/` under a generated unique name
and served from `<UPLOAD_URL_PREFIX>/<tenant_id>/<filename>`.
"""
from __future__ import annotations

import logging
import os
import re
import uuid
from pathlib import Path
from typing import List, Optional, Sequence
from uuid import UUID

from fastapi import UploadFile
from starlette.concurrency import run_in_threadpool

from shieldcuisine_api.core.errors import NotFoundError, ValidationFailed
from shieldcuisine_api.core.settings import AppSettings
from shieldcuisine_api.db.models.cms import MediaFile
from shieldcuisine_api.db.session import set_current_tenant
from shieldcuisine_api.repositories.cms import MediaRepository
from shieldcuisine_api.schemas.cms import MediaFileRead, UploadError, UploadResult
from shieldcuisine_api.services.base import BaseService

logger = logging.getLogger(__name__)

DOCUMENT_MIME_TYPES = {
    "application/pdf",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "application/vnd.ms-excel",
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "application/vnd.ms-powerpoint",
    "application/vnd.openxmlformats-officedocument.presentationml.presentation",
    "text/plain",
    "text/csv",
}
ALLOWED_FILE_TYPES = ("image", "video", "audio", "document")
READ_CHUNK_BYTES = 1024 * 1024

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


# PUBLIC_INTERFACE
def file_type_for(mime_type: Optional[str]) -> str:
    """Classify a MIME type as image, video, audio, document or other."""
    mime = (mime_type or "").lower()
    for prefix in ("image", "video", "audio"):
        if mime.startswith(prefix + "/"):
            return prefix
    if mime in DOCUMENT_MIME_TYPES:
        return "document"
    return "other"


# PUBLIC_INTERFACE
def safe_filename(original: str) -> str:
    """Unique on-disk name keeping a sanitized version of the original name."""
    name = os.path.basename(original or "file")
    stem, ext = os.path.splitext(name)
    stem = _UNSAFE_CHARS.sub("-", stem).strip("-.")[:80] or "file"
    ext = _UNSAFE_CHARS.sub("", ext)[:10].lower()
    return f"{uuid.uuid4().hex[:12]}-{stem}{ext}"


class MediaService(BaseService):
    """Validates, stores and removes uploaded media files."""

    def __init__(self, session, settings: AppSettings) -> None:
        super().__init__(session)
        self.settings = settings
        self.repo = MediaRepository(session)

    def tenant_dir(self) -> Path:
        return Path(self.settings.UPLOAD_DIR) / str(self.tenant_id)

    def _path_of(self, media: MediaFile) -> Path:
        return Path(self.settings.UPLOAD_DIR) / str(media.tenant_id) / media.filename

    def _too_large(self, filename: str) -> ValidationFailed:
        limit_mb = self.settings.MAX_UPLOAD_BYTES // (1024 * 1024)
        return ValidationFailed(f"{filename} exceeds the maximum size of {limit_mb} MB")

    def _validate(self, filename: str, mime_type: str, size: int) -> str:
        if size <= 0:
            raise ValidationFailed(f"{filename} is empty")
        if size > self.settings.MAX_UPLOAD_BYTES:
            raise self._too_large(filename)
        file_type = file_type_for(mime_type)
        if file_type not in ALLOWED_FILE_TYPES:
            raise ValidationFailed(f"{filename}: file type {mime_type or 'unknown'} is not allowed")
        return file_type

    async def _read_limited(self, upload: UploadFile, filename: str) -> bytes:
        """Read the upload in chunks, stopping as soon as it exceeds MAX_UPLOAD_BYTES."""
        limit = self.settings.MAX_UPLOAD_BYTES
        if upload.size is not None and upload.size > limit:
            raise self._too_large(filename)
        chunks: List[bytes] = []
        received = 0
        while True:
            chunk = await upload.read(READ_CHUNK_BYTES)
            if not chunk:
                break
            received += len(chunk)
            if received > limit:
                raise self._too_large(filename)
            chunks.append(chunk)
        return b"".join(chunks)

    async def _store_one(self, upload: UploadFile, category_id: Optional[UUID], user_id: Optional[UUID]) -> MediaFile:
        original = upload.filename or "file"
        mime_type = upload.content_type or "application/octet-stream"
        content = await self._read_limited(upload, original)
        file_type = self._validate(original, mime_type, len(content))
        if category_id and await self.repo.get_category(category_id) is None:
            raise NotFoundError("Media category not found")

        directory = self.tenant_dir()
        filename = safe_filename(original)
        path = directory / filename

        def _write() -> None:
            directory.mkdir(parents=True, exist_ok=True)
            path.write_bytes(content)

        await run_in_threadpool(_write)
        prefix = self.settings.UPLOAD_URL_PREFIX.rstrip("/")
        media = MediaFile(
            filename=filename,
            original_name=original,
            mime_type=mime_type,
            file_type=file_type,
            size=len(content),
            url=f"{prefix}/{self.tenant_id}/{filename}",
            title=os.path.splitext(os.path.basename(original))[0],
            category_id=category_id,
            uploaded_by=user_id,
        )
        try:
            return await self.repo.save(media)
        except Exception:
            tenant_id = self.tenant_id
            await self.session.rollback()
            # the rollback also reverts the tenant GUC on Postgres
            await set_current_tenant(self.session, tenant_id)
            await run_in_threadpool(path.unlink, True)
            raise

    # PUBLIC_INTERFACE
    async def upload(
        self, files: Sequence[UploadFile], category_id: Optional[UUID], user_id: Optional[UUID]
    ) -> UploadResult:
        """
        Store each file in turn. A failing file is reported in `errors` and the
        remaining files are still processed.
        """
        uploaded: List[MediaFileRead] = []
        errors: List[UploadError] = []
        for upload in files:
            name = upload.filename or "file"
            try:
                media = await self._store_one(upload, category_id, user_id)
            except (ValidationFailed, NotFoundError) as exc:
                logger.info("Upload of %s rejected: %s", name, exc.message)
                errors.append(UploadError(filename=name, message=exc.message))
                continue
            except OSError as exc:
                logger.error("Could not store %s: %s", name, exc)
                errors.append(UploadError(filename=name, message="The file could not be stored"))
                continue
            except Exception:
                logger.exception("Unexpected failure storing %s", name)
                errors.append(UploadError(filename=name, message="The file could not be stored"))
                continue
            finally:
                await upload.close()
            uploaded.append(MediaFileRead.model_validate(media))
        return UploadResult(uploaded=uploaded, errors=errors)

    # PUBLIC_INTERFACE
    async def delete(self, file_id: UUID) -> None:
        """Delete the record and the stored file."""
        media = await self.repo.get_file(file_id)
        if media is None:
            raise NotFoundError("Media file not found")
        path = self._path_of(media)
        await self.repo.delete(media)
        try:
            await run_in_threadpool(path.unlink, True)
        except OSError as exc:
            logger.warning("Stored file %s could not be removed: %s", path, exc)
