from __future__ import annotations

from typing import Any, Dict, List
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Response, status
from jose import JWTError
from sqlalchemy.ext.asyncio import AsyncSession

from shieldcuisine_api.core.deps import get_current_active_user, get_tenant_id, get_tenant_session
from shieldcuisine_api.core.security import (
    REFRESH_TOKEN_TYPE,
    create_access_token,
    create_refresh_token,
    decode_token,
    get_password_hash,
    verify_password,
)
from shieldcuisine_api.core.settings import get_app_settings
from shieldcuisine_api.db.base import utcnow
from shieldcuisine_api.db.models.security import User
from shieldcuisine_api.repositories.security import LocationRepository, SecurityRepository, TenantRepository
from shieldcuisine_api.schemas.auth import (
    LoginRequest,
    LoginResponse,
    Message,
    RefreshRequest,
    RegisterRequest,
    TokenPair,
    UserRead,
)

router = APIRouter(tags=["Auth"])

ADMIN_ROLE = "admin"


def _user_to_read(user: User, roles: List[str]) -> UserRead:
    return UserRead(
        id=user.id,
        tenant_id=user.tenant_id,
        username=user.username,
        email=user.email,
        full_name=user.full_name,
        is_active=user.is_active,
        is_superadmin=user.is_superadmin,
        location_id=user.location_id,
        last_login_at=user.last_login_at,
        created_at=user.created_at,
        updated_at=user.updated_at,
        roles=roles,
    )


async def read_user(repo: SecurityRepository, user: User) -> UserRead:
    """Serialize a user with its role names."""
    roles = [r.name for r in await repo.list_roles_for_user(user.id)]
    return _user_to_read(user, roles)


def _issue_tokens(user: User, tenant_id: UUID, roles: List[str]) -> TokenPair:
    access = create_access_token(subject=str(user.id), tenant_id=str(tenant_id), roles=roles)
    refresh = create_refresh_token(subject=str(user.id), tenant_id=str(tenant_id))
    return TokenPair(access_token=access, refresh_token=refresh)


def _set_session_cookie(response: Response, token: str) -> None:
    settings = get_app_settings()
    response.set_cookie(
        key=settings.SESSION_COOKIE_NAME,
        value=token,
        max_age=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        httponly=True,
        secure=settings.SESSION_COOKIE_SECURE or settings.is_production,
        samesite="lax",
        path="/",
    )


# PUBLIC_INTERFACE
@router.post(
    "/register",
    response_model=UserRead,
    status_code=status.HTTP_201_CREATED,
    summary="Register user",
    description="Create a new user for the current tenant. If this is the first user in the tenant, it is assigned the 'admin' role.",
)
async def register_user(
    payload: RegisterRequest,
    tenant_id: UUID = Depends(get_tenant_id),
    session: AsyncSession = Depends(get_tenant_session),
) -> UserRead:
    """Register a new user under the tenant."""
    if await TenantRepository(session).get_tenant(tenant_id) is None:
        raise HTTPException(status_code=400, detail="Unknown company")
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
        location_id=payload.location_id,
    )

    # Assign admin role if first user for tenant
    if await repo.count_users() == 1:
        role = await repo.ensure_role(ADMIN_ROLE, "Administrator")
        await repo.assign_role_to_user(user.id, role.id)

    return await read_user(repo, user)


# PUBLIC_INTERFACE
@router.post(
    "/login",
    response_model=LoginResponse,
    summary="Login",
    description="Authenticate with username (or email) and password; returns tokens and sets the session cookie.",
)
async def login(
    payload: LoginRequest,
    response: Response,
    tenant_id: UUID = Depends(get_tenant_id),
    session: AsyncSession = Depends(get_tenant_session),
) -> LoginResponse:
    """Authenticate user and issue tokens."""
    repo = SecurityRepository(session)
    user = await repo.get_user_by_login(payload.username)
    if not user or not verify_password(payload.password, user.hashed_password):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")
    if not user.is_active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="User is inactive")

    user = await repo.update_user(user, last_login_at=utcnow())
    user_read = await read_user(repo, user)
    tokens = _issue_tokens(user, tenant_id, user_read.roles)
    _set_session_cookie(response, tokens.access_token)
    return LoginResponse(**tokens.model_dump(), user=user_read)


# PUBLIC_INTERFACE
@router.post(
    "/token/refresh",
    response_model=TokenPair,
    summary="Refresh access token",
    description="Issue a new token pair from a valid refresh token.",
)
async def refresh_token(
    payload: RefreshRequest,
    response: Response,
    tenant_id: UUID = Depends(get_tenant_id),
    session: AsyncSession = Depends(get_tenant_session),
) -> TokenPair:
    """Validate refresh token and issue a new access token pair."""
    try:
        claims: Dict[str, Any] = decode_token(payload.refresh_token, expected_type=REFRESH_TOKEN_TYPE)
    except JWTError:
        raise HTTPException(status_code=401, detail="Invalid refresh token")

    if str(tenant_id) != str(claims.get("tenant_id")):
        raise HTTPException(status_code=403, detail="Tenant mismatch")

    repo = SecurityRepository(session)
    try:
        user = await repo.get_user_by_id(UUID(str(claims.get("sub"))))
    except ValueError:
        user = None
    if not user or not user.is_active:
        raise HTTPException(status_code=401, detail="User not found or inactive")

    roles = [r.name for r in await repo.list_roles_for_user(user.id)]
    tokens = _issue_tokens(user, tenant_id, roles)
    _set_session_cookie(response, tokens.access_token)
    return tokens


# PUBLIC_INTERFACE
@router.post(
    "/logout",
    response_model=Message,
    summary="Logout",
    description="Clear the session cookie. Clients should discard their tokens.",
)
async def logout(response: Response) -> Message:
    """Drop the session cookie; JWTs themselves are stateless."""
    response.delete_cookie(get_app_settings().SESSION_COOKIE_NAME, path="/")
    return Message(message="Logged out")


# PUBLIC_INTERFACE
@router.get(
    "/user",
    response_model=UserRead,
    summary="Read current user",
    description="Return the current authenticated user and their roles (bearer token or session cookie).",
)
async def read_current_user(
    user: User = Depends(get_current_active_user),
    session: AsyncSession = Depends(get_tenant_session),
) -> UserRead:
    """Return current user profile."""
    return await read_user(SecurityRepository(session), user)
