from __future__ import annotations

from datetime import datetime
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Path, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from shieldcuisine_api.core.deps import get_current_active_user, get_tenant_session, require_roles
from shieldcuisine_api.db.models.appcc import ControlTemplate
from shieldcuisine_api.db.models.security import User
from shieldcuisine_api.repositories.appcc import ControlRecordRepository, ControlTemplateRepository
from shieldcuisine_api.repositories.security import LocationRepository
from shieldcuisine_api.schemas.appcc import (
    AppccDashboard,
    CompletionResult,
    ControlRecordComplete,
    ControlRecordCreate,
    ControlRecordRead,
    ControlRecordUpdate,
    ControlTemplateCreate,
    ControlTemplateRead,
    ControlTemplateUpdate,
    RecordStatus,
)
from shieldcuisine_api.schemas.auth import Message
from shieldcuisine_api.schemas.common import Page, page_of
from shieldcuisine_api.services.appcc import AppccService
from shieldcuisine_api.services.exports import export_rows

router = APIRouter(prefix="/appcc", tags=["APPCC"])

MANAGE_APPCC = require_roles("admin", "appcc:manage")


# Templates

# PUBLIC_INTERFACE
@router.get(
    "/templates",
    response_model=Page[ControlTemplateRead],
    summary="List control templates",
    dependencies=[Depends(get_current_active_user)],
)
async def list_templates(
    session: AsyncSession = Depends(get_tenant_session),
    category: Optional[str] = Query(None, description="Filter by category"),
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
):
    items, total = await ControlTemplateRepository(session).list_templates(
        category=category, limit=limit, offset=offset
    )
    return page_of([ControlTemplateRead.model_validate(t) for t in items], total, limit, offset)


async def _require_template(repo: ControlTemplateRepository, template_id: UUID) -> ControlTemplate:
    template = await repo.get_template(template_id)
    if not template:
        raise HTTPException(status_code=404, detail="Control template not found")
    return template


# PUBLIC_INTERFACE
@router.get(
    "/templates/{template_id}",
    response_model=ControlTemplateRead,
    summary="Get control template",
    dependencies=[Depends(get_current_active_user)],
)
async def get_template(
    template_id: UUID = Path(..., description="Template ID"),
    session: AsyncSession = Depends(get_tenant_session),
) -> ControlTemplateRead:
    template = await _require_template(ControlTemplateRepository(session), template_id)
    return ControlTemplateRead.model_validate(template)


# PUBLIC_INTERFACE
@router.post(
    "/templates",
    response_model=ControlTemplateRead,
    status_code=status.HTTP_201_CREATED,
    summary="Create control template",
    dependencies=[Depends(MANAGE_APPCC)],
)
async def create_template(
    payload: ControlTemplateCreate,
    session: AsyncSession = Depends(get_tenant_session),
) -> ControlTemplateRead:
    template = await ControlTemplateRepository(session).save(ControlTemplate(**payload.model_dump()))
    return ControlTemplateRead.model_validate(template)


# PUBLIC_INTERFACE
@router.patch(
    "/templates/{template_id}",
    response_model=ControlTemplateRead,
    summary="Update control template",
    dependencies=[Depends(MANAGE_APPCC)],
)
async def update_template(
    payload: ControlTemplateUpdate,
    template_id: UUID = Path(..., description="Template ID"),
    session: AsyncSession = Depends(get_tenant_session),
) -> ControlTemplateRead:
    repo = ControlTemplateRepository(session)
    template = await _require_template(repo, template_id)
    repo.apply_changes(template, payload.model_dump(exclude_unset=True, exclude_none=True))
    await repo.commit()
    await session.refresh(template)
    return ControlTemplateRead.model_validate(template)


# PUBLIC_INTERFACE
@router.delete(
    "/templates/{template_id}",
    response_model=Message,
    summary="Delete control template",
    description="Deletes the template and its records.",
    dependencies=[Depends(MANAGE_APPCC)],
)
async def delete_template(
    template_id: UUID = Path(..., description="Template ID"),
    session: AsyncSession = Depends(get_tenant_session),
) -> Message:
    repo = ControlTemplateRepository(session)
    template = await _require_template(repo, template_id)
    records = ControlRecordRepository(session)
    for record in await records.all_records(template_id=template_id):
        await session.delete(record)
    await repo.delete(template)
    return Message(message="Template deleted")


# Records

# PUBLIC_INTERFACE
@router.get(
    "/records",
    response_model=Page[ControlRecordRead],
    summary="List control records",
    dependencies=[Depends(get_current_active_user)],
)
async def list_records(
    session: AsyncSession = Depends(get_tenant_session),
    location_id: Optional[UUID] = Query(None),
    status_filter: Optional[RecordStatus] = Query(None, alias="status"),
    template_id: Optional[UUID] = Query(None),
    date_from: Optional[datetime] = Query(None, description="Scheduled on or after"),
    date_to: Optional[datetime] = Query(None, description="Scheduled on or before"),
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
):
    items, total = await ControlRecordRepository(session).list_records(
        location_id=location_id,
        status=status_filter,
        template_id=template_id,
        date_from=date_from,
        date_to=date_to,
        limit=limit,
        offset=offset,
    )
    return page_of([ControlRecordRead.model_validate(r) for r in items], total, limit, offset)


# PUBLIC_INTERFACE
@router.get(
    "/records/{record_id}",
    response_model=ControlRecordRead,
    summary="Get control record",
    dependencies=[Depends(get_current_active_user)],
)
async def get_record(
    record_id: UUID = Path(..., description="Record ID"),
    session: AsyncSession = Depends(get_tenant_session),
) -> ControlRecordRead:
    record = await ControlRecordRepository(session).get_record(record_id)
    if not record:
        raise HTTPException(status_code=404, detail="Control record not found")
    return ControlRecordRead.model_validate(record)


# PUBLIC_INTERFACE
@router.post(
    "/records",
    response_model=ControlRecordRead,
    status_code=status.HTTP_201_CREATED,
    summary="Schedule a control",
)
async def create_record(
    payload: ControlRecordCreate,
    user: User = Depends(get_current_active_user),
    session: AsyncSession = Depends(get_tenant_session),
) -> ControlRecordRead:
    record = await AppccService(session).schedule(
        template_id=payload.template_id,
        location_id=payload.location_id,
        scheduled_for=payload.scheduled_for,
        comments=payload.comments,
        created_by=user.id,
    )
    return ControlRecordRead.model_validate(record)


# PUBLIC_INTERFACE
@router.patch(
    "/records/{record_id}",
    response_model=ControlRecordRead,
    summary="Update control record",
    dependencies=[Depends(get_current_active_user)],
)
async def update_record(
    payload: ControlRecordUpdate,
    record_id: UUID = Path(..., description="Record ID"),
    session: AsyncSession = Depends(get_tenant_session),
) -> ControlRecordRead:
    record = await ControlRecordRepository(session).get_record(record_id)
    if not record:
        raise HTTPException(status_code=404, detail="Control record not found")
    record = await AppccService(session).update(record, payload.model_dump(exclude_unset=True, exclude_none=True))
    return ControlRecordRead.model_validate(record)


# PUBLIC_INTERFACE
@router.post(
    "/records/{record_id}/complete",
    response_model=CompletionResult,
    summary="Complete a control",
    description=(
        "Store the captured values. Required fields must be present; numeric readings outside their "
        "limits complete the record as 'failed' and notify the administrators."
    ),
)
async def complete_record(
    payload: ControlRecordComplete,
    record_id: UUID = Path(..., description="Record ID"),
    user: User = Depends(get_current_active_user),
    session: AsyncSession = Depends(get_tenant_session),
) -> CompletionResult:
    record, out_of_range = await AppccService(session).complete(
        record_id, data=payload.data, comments=payload.comments, user_id=user.id
    )
    return CompletionResult(record=ControlRecordRead.model_validate(record), out_of_range=out_of_range)


# PUBLIC_INTERFACE
@router.delete(
    "/records/{record_id}",
    response_model=Message,
    summary="Delete control record",
    dependencies=[Depends(MANAGE_APPCC)],
)
async def delete_record(
    record_id: UUID = Path(..., description="Record ID"),
    session: AsyncSession = Depends(get_tenant_session),
) -> Message:
    repo = ControlRecordRepository(session)
    record = await repo.get_record(record_id)
    if not record:
        raise HTTPException(status_code=404, detail="Control record not found")
    await repo.delete(record)
    return Message(message="Record deleted")


# PUBLIC_INTERFACE
@router.get(
    "/dashboard",
    response_model=AppccDashboard,
    summary="APPCC dashboard",
    description="Counts by status; overdue pending controls are reported as delayed.",
    dependencies=[Depends(get_current_active_user)],
)
async def dashboard(
    session: AsyncSession = Depends(get_tenant_session),
    location_id: Optional[UUID] = Query(None),
) -> AppccDashboard:
    return await AppccService(session).dashboard(location_id)


# PUBLIC_INTERFACE
@router.get(
    "/reports/records",
    summary="Export control records",
    response_description="File stream (CSV/XLSX/PDF)",
    dependencies=[Depends(require_roles("admin", "appcc:manage", "reports:view"))],
)
async def export_records(
    session: AsyncSession = Depends(get_tenant_session),
    location_id: Optional[UUID] = Query(None),
    status_filter: Optional[RecordStatus] = Query(None, alias="status"),
    date_from: Optional[datetime] = Query(None),
    date_to: Optional[datetime] = Query(None),
    format: str = Query("csv", description="Export format: csv | xlsx | pdf"),
):
    """Export control records with template and location names."""
    records = await ControlRecordRepository(session).all_records(
        location_id=location_id, status=status_filter, date_from=date_from, date_to=date_to
    )
    templates = await ControlTemplateRepository(session).get_templates(list({r.template_id for r in records}))
    locations, _ = await LocationRepository(session).list_locations(limit=10000, offset=0)
    location_names = {loc.id: loc.name for loc in locations}

    rows = []
    for r in records:
        template = templates.get(r.template_id)
        rows.append(
            {
                "control": template.name if template else str(r.template_id),
                "category": template.category if template else None,
                "location": location_names.get(r.location_id, str(r.location_id)),
                "status": r.status,
                "scheduled_for": r.scheduled_for.isoformat() if r.scheduled_for else None,
                "completed_at": r.completed_at.isoformat() if r.completed_at else None,
                "data": ", ".join(f"{k}={v}" for k, v in (r.data or {}).items()),
                "comments": r.comments,
            }
        )
    columns = ["control", "category", "location", "status", "scheduled_for", "completed_at", "data", "comments"]
    return export_rows(rows, columns, "appcc_records", format)
