"""
Persistence layer of ShieldCuisine: declarative Base, database settings,
the async engine/session factory and the per-session tenant binding.
"""

from .base import Base
from .config import get_settings, Settings
from .session import (
    current_tenant,
    get_async_session,
    get_engine,
    get_session_maker,
    set_current_tenant,
    tenant_context,
)

# Registers every table on Base.metadata (Alembic autogenerate, create_all in tests)
from . import models as models  # noqa: F401

__all__ = [
    "Base",
    "Settings",
    "current_tenant",
    "get_async_session",
    "get_engine",
    "get_session_maker",
    "get_settings",
    "models",
    "set_current_tenant",
    "tenant_context",
]
