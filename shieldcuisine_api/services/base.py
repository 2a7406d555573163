from __future__ import annotations

from typing import Any, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from shieldcuisine_api.db.session import current_tenant


class BaseService:
    """
    Base class for services. Holds the tenant-scoped session shared by the
    repositories a service orchestrates.

    Services own the unit of work: repositories stage changes, services commit.
    """

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    @property
    def tenant_id(self) -> Optional[UUID]:
        return current_tenant(self.session)

    async def commit_and_refresh(self, *entities: Any) -> None:
        """Commit the session and reload server-generated columns of the given rows."""
        await self.session.commit()
        for entity in entities:
            await self.session.refresh(entity)
