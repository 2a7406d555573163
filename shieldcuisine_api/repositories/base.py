from __future__ import annotations

from typing import Any, Iterable, List, Optional, Tuple
from uuid import UUID

from sqlalchemy import Executable, Select, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from shieldcuisine_api.db.session import current_tenant


class BaseRepository:
    """
    Base class for repositories providing common helpers.

    Note:
      Every query on tenant-owned tables is filtered with the tenant bound to the
      session (see tenant_context), and new rows are stamped with it. On Postgres the
      RLS policies using the `app.tenant_id` GUC enforce the same boundary.
    """

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    @property
    def tenant_id(self) -> UUID:
        """Tenant bound to the session; repositories refuse to run without one."""
        tenant = current_tenant(self.session)
        if tenant is None:
            raise RuntimeError("No tenant context set on the session")
        return tenant

    def scoped(self, model: Any, stmt: Optional[Select] = None) -> Select:
        """Return a select on model (or the given statement) restricted to the current tenant."""
        if stmt is None:
            stmt = select(model)
        return stmt.where(model.tenant_id == self.tenant_id)

    async def execute(self, statement: Executable, params: Optional[dict[str, Any]] = None):
        """Execute a SQLAlchemy statement."""
        return await self.session.execute(statement, params or {})

    async def scalars(self, statement: Executable, params: Optional[dict[str, Any]] = None):
        """Execute and return scalars."""
        result = await self.execute(statement, params)
        return result.scalars()

    async def scalar_one_or_none(self, statement: Executable, params: Optional[dict[str, Any]] = None):
        """Execute and return a single scalar or None."""
        result = await self.execute(statement, params)
        return result.scalar_one_or_none()

    async def count(self, stmt: Select) -> int:
        """Count rows produced by a select, ignoring its ordering/paging."""
        sub = stmt.order_by(None).limit(None).offset(None).subquery()
        result = await self.execute(select(func.count()).select_from(sub))
        return int(result.scalar_one())

    async def paginate(self, stmt: Select, limit: int, offset: int) -> Tuple[List[Any], int]:
        """Return one page of ORM rows for stmt together with the unpaged total."""
        total = await self.count(stmt)
        result = await self.scalars(stmt.offset(offset).limit(limit))
        return list(result), total

    async def commit(self) -> None:
        """Commit current transaction."""
        await self.session.commit()

    async def add_all(self, entities: Iterable[Any]) -> None:
        """Add multiple entities to session, stamping the tenant where missing."""
        for entity in entities:
            await self.add(entity)

    async def add(self, entity: Any) -> None:
        """Add a single entity to session, stamping the tenant where missing."""
        if hasattr(entity, "tenant_id") and getattr(entity, "tenant_id", None) is None:
            entity.tenant_id = self.tenant_id
        self.session.add(entity)

    async def save(self, entity: Any) -> Any:
        """Add, commit and refresh an entity; returns it with database state loaded."""
        await self.add(entity)
        await self.commit()
        await self.session.refresh(entity)
        return entity

    async def delete(self, entity: Any) -> None:
        """Delete an entity and commit."""
        await self.session.delete(entity)
        await self.commit()

    @staticmethod
    def apply_changes(entity: Any, changes: dict[str, Any]) -> Any:
        """Copy the given attribute values onto an ORM entity."""
        for key, value in changes.items():
            setattr(entity, key, value)
        return entity
