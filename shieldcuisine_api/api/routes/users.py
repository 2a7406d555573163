from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Path, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from shieldcuisine_api.api.routes.auth import read_user
from shieldcuisine_api.core.deps import get_tenant_session, require_roles
from shieldcuisine_api.core.security import get_password_hash
from shieldcuisine_api.repositories.security import LocationRepository, SecurityRepository
from shieldcuisine_api.schemas.auth import Message, UserCreate, UserRead, UserUpdate
from shieldcuisine_api.schemas.common import Page, page_of

router = APIRouter(prefix="/admin/users", tags=["Users"])

MANAGE_USERS = require_roles("admin", "users:manage")


async def _require_user(repo: SecurityRepository, user_id: UUID):
    user = await repo.get_user_by_id(user_id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user


# PUBLIC_INTERFACE
@router.get(
    "",
    response_model=Page[UserRead],
    summary="List users",
    description="List users for the current tenant.",
    dependencies=[Depends(MANAGE_USERS)],
)
async def list_users(
    session: AsyncSession = Depends(get_tenant_session),
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
):
    repo = SecurityRepository(session)
    items, total = await repo.list_users(limit=limit, offset=offset)
    return page_of([await read_user(repo, u) for u in items], total, limit, offset)


# PUBLIC_INTERFACE
@router.post(
    "",
    response_model=UserRead,
    status_code=status.HTTP_201_CREATED,
    summary="Create user",
    description="Create a user. Requires admin or users:manage role.",
    dependencies=[Depends(MANAGE_USERS)],
)
async def create_user(
    payload: UserCreate,
    session: AsyncSession = Depends(get_tenant_session),
) -> UserRead:
    repo = SecurityRepository(session)
    if await repo.get_user_by_username(payload.username):
        raise HTTPException(status_code=400, detail="Username already taken")
    if await repo.get_user_by_email(payload.email):
        raise HTTPException(status_code=400, detail="User with this email already exists")
    if payload.location_id and await LocationRepository(session).get_location(payload.location_id) is None:
        raise HTTPException(status_code=400, detail="Unknown location")

    user = await repo.create_user(
        username=payload.username,
        email=payload.email,
        full_name=payload.full_name,
        hashed_password=get_password_hash(payload.password),
        is_active=payload.is_active if payload.is_active is not None else True,
        is_superadmin=payload.is_superadmin if payload.is_superadmin is not None else False,
        location_id=payload.location_id,
    )
    for role_name in payload.roles:
        role = await repo.ensure_role(role_name)
        await repo.assign_role_to_user(user.id, role.id)
    return await read_user(repo, user)


# PUBLIC_INTERFACE
@router.get(
    "/{user_id}",
    response_model=UserRead,
    summary="Get user",
    dependencies=[Depends(MANAGE_USERS)],
)
async def get_user(
    user_id: UUID = Path(..., description="User ID"),
    session: AsyncSession = Depends(get_tenant_session),
) -> UserRead:
    repo = SecurityRepository(session)
    return await read_user(repo, await _require_user(repo, user_id))


# PUBLIC_INTERFACE
@router.patch(
    "/{user_id}",
    response_model=UserRead,
    summary="Update user",
    dependencies=[Depends(MANAGE_USERS)],
)
async def update_user(
    payload: UserUpdate,
    user_id: UUID = Path(..., description="User ID"),
    session: AsyncSession = Depends(get_tenant_session),
) -> UserRead:
    repo = SecurityRepository(session)
    user = await _require_user(repo, user_id)
    if payload.email and payload.email.lower() != user.email.lower():
        if await repo.get_user_by_email(payload.email):
            raise HTTPException(status_code=400, detail="User with this email already exists")
    user = await repo.update_user(
        user,
        email=payload.email,
        full_name=payload.full_name,
        hashed_password=get_password_hash(payload.password) if payload.password else None,
        is_active=payload.is_active,
        is_superadmin=payload.is_superadmin,
        location_id=payload.location_id,
    )
    return await read_user(repo, user)


# PUBLIC_INTERFACE
@router.delete(
    "/{user_id}",
    response_model=Message,
    summary="Delete user",
    dependencies=[Depends(MANAGE_USERS)],
)
async def delete_user(
    user_id: UUID = Path(..., description="User ID"),
    session: AsyncSession = Depends(get_tenant_session),
) -> Message:
    repo = SecurityRepository(session)
    await _require_user(repo, user_id)
    await repo.delete_user(user_id)
    return Message(message="User deleted")


# PUBLIC_INTERFACE
@router.post(
    "/{user_id}/roles/{role_id}",
    response_model=UserRead,
    summary="Assign role to user",
    dependencies=[Depends(MANAGE_USERS)],
)
async def assign_role(
    user_id: UUID,
    role_id: UUID,
    session: AsyncSession = Depends(get_tenant_session),
) -> UserRead:
    repo = SecurityRepository(session)
    user = await _require_user(repo, user_id)
    if not await repo.get_role_by_id(role_id):
        raise HTTPException(status_code=404, detail="Role not found")
    await repo.assign_role_to_user(user_id, role_id)
    return await read_user(repo, user)


# PUBLIC_INTERFACE
@router.delete(
    "/{user_id}/roles/{role_id}",
    response_model=UserRead,
    summary="Remove role from user",
    dependencies=[Depends(MANAGE_USERS)],
)
async def remove_role(
    user_id: UUID,
    role_id: UUID,
    session: AsyncSession = Depends(get_tenant_session),
) -> UserRead:
    repo = SecurityRepository(session)
    user = await _require_user(repo, user_id)
    await repo.remove_role_from_user(user_id, role_id)
    return await read_user(repo, user)
