from __future__ import annotations

import logging
from typing import AsyncGenerator, Optional
from uuid import UUID

from fastapi import Depends, Header, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError
from sqlalchemy.ext.asyncio import AsyncSession

from shieldcuisine_api.core.logging import user_id_var
from shieldcuisine_api.core.security import ACCESS_TOKEN_TYPE, decode_token
from shieldcuisine_api.core.settings import get_app_settings
from shieldcuisine_api.db.models.security import User
from shieldcuisine_api.db.session import get_async_session, tenant_context
from shieldcuisine_api.repositories.security import SecurityRepository

logger = logging.getLogger(__name__)

# OAuth2 bearer (used by docs); the session cookie is accepted when no header is sent
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/login", auto_error=False)


# PUBLIC_INTERFACE
async def get_tenant_id(x_tenant_id: str | None = Header(default=None, alias="X-Tenant-ID")) -> UUID:
    """
    Extract and validate the tenant id from the X-Tenant-ID header.

    Raises:
        HTTPException: 400 Bad Request if header missing or invalid UUID.
    Returns:
        UUID: tenant identifier
    """
    if not x_tenant_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="X-Tenant-ID header is required.",
        )
    try:
        return UUID(x_tenant_id)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="X-Tenant-ID header must be a valid UUID string.",
        )


# PUBLIC_INTERFACE
async def get_tenant_session(
    tenant_id: UUID = Depends(get_tenant_id),
    session: AsyncSession = Depends(get_async_session),
) -> AsyncGenerator[AsyncSession, None]:
    """
    Yield an AsyncSession bound to the given tenant.

    Repositories filter and stamp rows with this tenant; on Postgres the session GUC
    `app.tenant_id` used by the RLS policies is set too, then reset after use.
    """
    async with tenant_context(session, tenant_id):
        yield session


def _token_from_request(request: Request, bearer: Optional[str]) -> Optional[str]:
    if bearer:
        return bearer
    return request.cookies.get(get_app_settings().SESSION_COOKIE_NAME)


# PUBLIC_INTERFACE
async def get_current_user(
    request: Request,
    tenant_id: UUID = Depends(get_tenant_id),
    token: Optional[str] = Depends(oauth2_scheme),
    session: AsyncSession = Depends(get_tenant_session),
) -> User:
    """
    Resolve and return the current user from the bearer token or the session cookie.

    Validates the token, ensures tenant claim matches the incoming tenant header,
    and loads the user through the tenant-scoped session.
    """
    raw = _token_from_request(request, token)
    if not raw:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    try:
        payload = decode_token(raw, expected_type=ACCESS_TOKEN_TYPE)
    except JWTError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")

    tok_tenant = payload.get("tenant_id")
    if not tok_tenant or str(tok_tenant) != str(tenant_id):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Tenant mismatch")

    user_id = payload.get("sub")
    try:
        user_uuid = UUID(str(user_id))
    except ValueError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")

    repo = SecurityRepository(session)
    user = await repo.get_user_by_id(user_uuid)
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found")
    user_id_var.set(str(user.id))
    return user


# PUBLIC_INTERFACE
async def get_current_active_user(user: User = Depends(get_current_user)) -> User:
    """Ensure user is active."""
    if not user.is_active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Inactive user")
    return user


# PUBLIC_INTERFACE
def require_roles(*required: str):
    """
    Create a dependency that requires the current user to have one of the specified roles.

    Superadmins pass every role check.
    """

    async def _dep(
        user: User = Depends(get_current_active_user),
        session: AsyncSession = Depends(get_tenant_session),
    ) -> User:
        if user.is_superadmin:
            return user
        repo = SecurityRepository(session)
        roles = {r.name for r in await repo.list_roles_for_user(user.id)}
        if roles.isdisjoint(required):
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Insufficient role")
        return user

    return _dep
