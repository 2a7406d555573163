from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Union
from uuid import UUID

from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from .config import get_settings


_ENGINE: AsyncEngine | None = None
_SESSION_MAKER: async_sessionmaker[AsyncSession] | None = None

TENANT_INFO_KEY = "tenant_id"


def _ensure_engine_initialized() -> None:
    """
    Lazily initialize the AsyncEngine and session maker.
    """
    global _ENGINE, _SESSION_MAKER
    if _ENGINE is None:
        settings = get_settings()
        _ENGINE = create_async_engine(
            settings.async_database_url,
            echo=settings.SQL_ECHO,
            pool_pre_ping=True,
        )
    if _SESSION_MAKER is None:
        _SESSION_MAKER = async_sessionmaker(
            bind=_ENGINE, expire_on_commit=False, autoflush=False, autocommit=False
        )


# PUBLIC_INTERFACE
def get_engine() -> AsyncEngine:
    """Return the global AsyncEngine instance."""
    _ensure_engine_initialized()
    assert _ENGINE is not None
    return _ENGINE


# PUBLIC_INTERFACE
def get_session_maker() -> async_sessionmaker[AsyncSession]:
    """Return the global session factory (for code running outside request dependencies)."""
    _ensure_engine_initialized()
    assert _SESSION_MAKER is not None
    return _SESSION_MAKER


# PUBLIC_INTERFACE
async def get_async_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Yield an AsyncSession suitable for FastAPI dependency injection.
    """
    async with get_session_maker()() as session:
        yield session


def _is_postgres(session: AsyncSession) -> bool:
    bind = session.bind
    return bind is not None and bind.dialect.name == "postgresql"


# PUBLIC_INTERFACE
async def set_current_tenant(
    session: AsyncSession, tenant_id: Union[str, UUID, None]
) -> None:
    """
    Set the current tenant for the DB session.

    The tenant is always stored in session.info so repositories can filter and stamp
    rows explicitly. On Postgres the custom GUC used by the RLS policies is set too:
      current_setting('app.tenant_id', true)
    """
    if tenant_id is None:
        session.info.pop(TENANT_INFO_KEY, None)
    else:
        session.info[TENANT_INFO_KEY] = UUID(str(tenant_id))
    if _is_postgres(session):
        await session.execute(
            text("SELECT set_config('app.tenant_id', :tenant_id, false);"),
            {"tenant_id": str(tenant_id) if tenant_id is not None else ""},
        )


# PUBLIC_INTERFACE
def current_tenant(session: AsyncSession) -> UUID | None:
    """Return the tenant id bound to the session by tenant_context, if any."""
    return session.info.get(TENANT_INFO_KEY)


# PUBLIC_INTERFACE
@asynccontextmanager
async def tenant_context(
    session: AsyncSession, tenant_id: Union[str, UUID]
) -> AsyncGenerator[AsyncSession, None]:
    """
    Async context manager that sets and resets the tenant context on the session.

    Usage:
        async with tenant_context(session, tenant_id):
            ...
    """
    await set_current_tenant(session, tenant_id)
    try:
        yield session
    finally:
        await set_current_tenant(session, None)
