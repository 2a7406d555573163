from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Path, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from shieldcuisine_api.core.deps import get_tenant_session, require_roles
from shieldcuisine_api.repositories.security import SecurityRepository
from shieldcuisine_api.schemas.auth import Message, RoleCreate, RoleRead
from shieldcuisine_api.schemas.common import Page, page_of

router = APIRouter(prefix="/admin/roles", tags=["Roles"])


# PUBLIC_INTERFACE
@router.get(
    "",
    response_model=Page[RoleRead],
    summary="List roles",
    dependencies=[Depends(require_roles("admin", "roles:manage"))],
)
async def list_roles(
    session: AsyncSession = Depends(get_tenant_session),
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
):
    repo = SecurityRepository(session)
    roles, total = await repo.list_roles(limit=limit, offset=offset)
    return page_of([RoleRead.model_validate(r) for r in roles], total, limit, offset)


# PUBLIC_INTERFACE
@router.post(
    "",
    response_model=RoleRead,
    status_code=status.HTTP_201_CREATED,
    summary="Create role",
    dependencies=[Depends(require_roles("admin", "roles:manage"))],
)
async def create_role(
    payload: RoleCreate,
    session: AsyncSession = Depends(get_tenant_session),
) -> RoleRead:
    repo = SecurityRepository(session)
    if await repo.get_role_by_name(payload.name):
        raise HTTPException(status_code=400, detail="Role already exists")
    role = await repo.create_role(payload.name, payload.description)
    return RoleRead.model_validate(role)


# PUBLIC_INTERFACE
@router.delete(
    "/{role_id}",
    response_model=Message,
    summary="Delete role",
    dependencies=[Depends(require_roles("admin", "roles:manage"))],
)
async def delete_role(
    role_id: UUID = Path(..., description="Role ID"),
    session: AsyncSession = Depends(get_tenant_session),
) -> Message:
    repo = SecurityRepository(session)
    if not await repo.get_role_by_id(role_id):
        raise HTTPException(status_code=404, detail="Role not found")
    await repo.delete_role(role_id)
    return Message(message="Role deleted")
