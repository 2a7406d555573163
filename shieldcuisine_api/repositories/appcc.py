from __future__ import annotations

from datetime import datetime
from typing import Dict, List, Optional, Tuple
from uuid import UUID

from sqlalchemy import func

from shieldcuisine_api.db.models.appcc import ControlRecord, ControlTemplate
from .base import BaseRepository


class ControlTemplateRepository(BaseRepository):
    """Repository for APPCC control templates."""

    async def list_templates(
        self, *, category: Optional[str], limit: int, offset: int
    ) -> Tuple[List[ControlTemplate], int]:
        stmt = self.scoped(ControlTemplate)
        if category:
            stmt = stmt.where(ControlTemplate.category == category)
        return await self.paginate(stmt.order_by(ControlTemplate.name), limit, offset)

    async def get_template(self, template_id: UUID) -> Optional[ControlTemplate]:
        stmt = self.scoped(ControlTemplate).where(ControlTemplate.id == template_id)
        return await self.scalar_one_or_none(stmt)

    async def get_templates(self, template_ids: List[UUID]) -> Dict[UUID, ControlTemplate]:
        if not template_ids:
            return {}
        stmt = self.scoped(ControlTemplate).where(ControlTemplate.id.in_(template_ids))
        return {t.id: t for t in await self.scalars(stmt)}


class ControlRecordRepository(BaseRepository):
    """Repository for scheduled/completed APPCC control records."""

    def _filtered(
        self,
        *,
        location_id: Optional[UUID] = None,
        status: Optional[str] = None,
        template_id: Optional[UUID] = None,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
    ):
        stmt = self.scoped(ControlRecord)
        if location_id:
            stmt = stmt.where(ControlRecord.location_id == location_id)
        if status:
            stmt = stmt.where(ControlRecord.status == status)
        if template_id:
            stmt = stmt.where(ControlRecord.template_id == template_id)
        if date_from:
            stmt = stmt.where(ControlRecord.scheduled_for >= date_from)
        if date_to:
            stmt = stmt.where(ControlRecord.scheduled_for <= date_to)
        return stmt

    async def list_records(
        self,
        *,
        location_id: Optional[UUID] = None,
        status: Optional[str] = None,
        template_id: Optional[UUID] = None,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> Tuple[List[ControlRecord], int]:
        stmt = self._filtered(
            location_id=location_id,
            status=status,
            template_id=template_id,
            date_from=date_from,
            date_to=date_to,
        ).order_by(ControlRecord.scheduled_for.desc())
        return await self.paginate(stmt, limit, offset)

    async def all_records(self, **filters) -> List[ControlRecord]:
        stmt = self._filtered(**filters).order_by(ControlRecord.scheduled_for.desc())
        return list(await self.scalars(stmt))

    async def get_record(self, record_id: UUID) -> Optional[ControlRecord]:
        stmt = self.scoped(ControlRecord).where(ControlRecord.id == record_id)
        return await self.scalar_one_or_none(stmt)

    async def count_by_status(self, location_id: Optional[UUID] = None) -> Dict[str, int]:
        stmt = self._filtered(location_id=location_id).with_only_columns(
            ControlRecord.status, func.count(ControlRecord.id)
        ).group_by(ControlRecord.status)
        result = await self.execute(stmt)
        return {status: int(n) for status, n in result.all()}

    async def count_overdue(self, now: datetime, location_id: Optional[UUID] = None) -> int:
        stmt = self._filtered(location_id=location_id, status="pending").where(
            ControlRecord.scheduled_for < now
        )
        return await self.count(stmt)

    async def completed_since(self, location_id: UUID, since: datetime) -> List[ControlRecord]:
        """Records of a location completed (or failed on completion) since the given instant."""
        stmt = (
            self._filtered(location_id=location_id)
            .where(ControlRecord.completed_at.is_not(None), ControlRecord.completed_at >= since)
            .order_by(ControlRecord.completed_at)
        )
        return list(await self.scalars(stmt))
