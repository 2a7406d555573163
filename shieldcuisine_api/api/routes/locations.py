from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Path, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from shieldcuisine_api.core.deps import get_current_active_user, get_tenant_session, require_roles
from shieldcuisine_api.db.models.tenancy import Location
from shieldcuisine_api.repositories.security import LocationRepository
from shieldcuisine_api.schemas.auth import LocationCreate, LocationRead, LocationUpdate
from shieldcuisine_api.schemas.common import Page, page_of

router = APIRouter(prefix="/locations", tags=["Locations"])


# PUBLIC_INTERFACE
@router.get(
    "",
    response_model=Page[LocationRead],
    summary="List locations",
    description="Establishments of the current company.",
    dependencies=[Depends(get_current_active_user)],
)
async def list_locations(
    session: AsyncSession = Depends(get_tenant_session),
    active_only: bool = Query(False),
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
):
    items, total = await LocationRepository(session).list_locations(
        active_only=active_only, limit=limit, offset=offset
    )
    return page_of([LocationRead.model_validate(i) for i in items], total, limit, offset)


# PUBLIC_INTERFACE
@router.post(
    "",
    response_model=LocationRead,
    status_code=status.HTTP_201_CREATED,
    summary="Create location",
    dependencies=[Depends(require_roles("admin"))],
)
async def create_location(
    payload: LocationCreate,
    session: AsyncSession = Depends(get_tenant_session),
) -> LocationRead:
    repo = LocationRepository(session)
    if await repo.get_location_by_name(payload.name):
        raise HTTPException(status_code=409, detail="A location with this name already exists")
    location = await repo.save(Location(**payload.model_dump()))
    return LocationRead.model_validate(location)


# PUBLIC_INTERFACE
@router.patch(
    "/{location_id}",
    response_model=LocationRead,
    summary="Update location",
    dependencies=[Depends(require_roles("admin"))],
)
async def update_location(
    payload: LocationUpdate,
    location_id: UUID = Path(..., description="Location ID"),
    session: AsyncSession = Depends(get_tenant_session),
) -> LocationRead:
    repo = LocationRepository(session)
    location = await repo.get_location(location_id)
    if not location:
        raise HTTPException(status_code=404, detail="Location not found")
    changes = payload.model_dump(exclude_unset=True)
    if changes.get("name") and changes["name"] != location.name:
        if await repo.get_location_by_name(changes["name"]):
            raise HTTPException(status_code=409, detail="A location with this name already exists")
    repo.apply_changes(location, changes)
    await repo.commit()
    await session.refresh(location)
    return LocationRead.model_validate(location)
