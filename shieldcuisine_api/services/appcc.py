from __future__ import annotations

import logging
import math
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple
from uuid import UUID

from shieldcuisine_api.core.errors import ConflictError, NotFoundError, ValidationFailed
from shieldcuisine_api.db.base import utcnow
from shieldcuisine_api.db.models.appcc import ControlRecord, ControlTemplate
from shieldcuisine_api.repositories.appcc import ControlRecordRepository, ControlTemplateRepository
from shieldcuisine_api.repositories.security import LocationRepository
from shieldcuisine_api.schemas.appcc import AppccDashboard
from shieldcuisine_api.services.base import BaseService
from shieldcuisine_api.services.notifications import NotificationService

logger = logging.getLogger(__name__)

NUMERIC_TYPES = ("number", "temperature")
TRUE_STRINGS = ("true", "1", "yes", "si", "sí", "on")
FALSE_STRINGS = ("false", "0", "no", "off")


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _coerce(field: Dict[str, Any], value: Any) -> Any:
    """Convert a submitted value to the field's type."""
    ftype = field.get("type")
    name = field.get("name")
    if ftype in NUMERIC_TYPES:
        if isinstance(value, bool):
            raise ValidationFailed(f"Field '{name}' must be numeric")
        try:
            number = float(value)
        except (TypeError, ValueError):
            raise ValidationFailed(f"Field '{name}' must be numeric")
        # nan and inf would slip past the range checks
        if not math.isfinite(number):
            raise ValidationFailed(f"Field '{name}' must be numeric")
        return number
    if ftype == "boolean":
        if isinstance(value, bool):
            return value
        text = str(value).strip().lower()
        if text in TRUE_STRINGS:
            return True
        if text in FALSE_STRINGS:
            return False
        raise ValidationFailed(f"Field '{name}' must be a boolean")
    if ftype == "select":
        options = field.get("options") or []
        if options and value not in options:
            raise ValidationFailed(f"Field '{name}' must be one of: {', '.join(map(str, options))}")
        return value
    return value


# PUBLIC_INTERFACE
def validate_control_data(fields: List[Dict[str, Any]], data: Dict[str, Any]) -> Tuple[Dict[str, Any], List[str]]:
    """
    Check submitted values against template field definitions.

    Returns the cleaned data and the names of numeric fields outside their
    [min, max] range.

    Raises:
        ValidationFailed: when a required field is missing or a value has the wrong type.
    """
    missing = [
        f.get("label") or f.get("name")
        for f in fields
        if f.get("required") and _is_blank(data.get(f.get("name")))
    ]
    if missing:
        raise ValidationFailed("Required fields are missing", details={"missing": missing})

    cleaned = dict(data)
    out_of_range: List[str] = []
    for field in fields:
        name = field.get("name")
        if _is_blank(data.get(name)):
            continue
        value = _coerce(field, data[name])
        cleaned[name] = value
        if field.get("type") in NUMERIC_TYPES:
            low, high = field.get("min"), field.get("max")
            if (low is not None and value < low) or (high is not None and value > high):
                out_of_range.append(name)
    return cleaned, out_of_range


class AppccService(BaseService):
    """Control scheduling, completion and dashboard figures."""

    def __init__(self, session) -> None:
        super().__init__(session)
        self.templates = ControlTemplateRepository(session)
        self.records = ControlRecordRepository(session)
        self.locations = LocationRepository(session)

    async def _require_template(self, template_id: UUID) -> ControlTemplate:
        template = await self.templates.get_template(template_id)
        if template is None:
            raise NotFoundError("Control template not found")
        return template

    async def _require_location(self, location_id: UUID) -> None:
        if await self.locations.get_location(location_id) is None:
            raise NotFoundError("Location not found")

    # PUBLIC_INTERFACE
    async def schedule(
        self,
        *,
        template_id: UUID,
        location_id: UUID,
        scheduled_for: datetime,
        comments: Optional[str],
        created_by: Optional[UUID],
    ) -> ControlRecord:
        """Create a pending control record for a template at a location."""
        await self._require_template(template_id)
        await self._require_location(location_id)
        record = ControlRecord(
            template_id=template_id,
            location_id=location_id,
            scheduled_for=scheduled_for,
            comments=comments,
            created_by=created_by,
            status="pending",
            data={},
        )
        return await self.records.save(record)

    # PUBLIC_INTERFACE
    async def update(self, record: ControlRecord, changes: Dict[str, Any]) -> ControlRecord:
        """Edit an open record. Completed and failed records are closed."""
        if record.status in ("completed", "failed"):
            raise ConflictError("Completed control records cannot be edited")
        if changes.get("location_id"):
            await self._require_location(changes["location_id"])
        self.records.apply_changes(record, changes)
        await self.commit_and_refresh(record)
        return record

    # PUBLIC_INTERFACE
    async def complete(
        self,
        record_id: UUID,
        *,
        data: Dict[str, Any],
        comments: Optional[str],
        user_id: UUID,
    ) -> Tuple[ControlRecord, List[str]]:
        """
        Complete a control with the captured values.

        Out-of-range readings complete the record as `failed` and raise an
        appcc_control notification to the tenant admins and the record creator.
        """
        record = await self.records.get_record(record_id)
        if record is None:
            raise NotFoundError("Control record not found")
        if record.status in ("completed", "failed"):
            raise ConflictError("Control record is already completed")
        template = await self._require_template(record.template_id)

        cleaned, out_of_range = validate_control_data(template.fields or [], data)
        record.data = cleaned
        if comments is not None:
            record.comments = comments
        record.status = "failed" if out_of_range else "completed"
        record.completed_at = utcnow()
        record.completed_by = user_id
        await self.commit_and_refresh(record)
        logger.info("Control record %s completed with status=%s", record.id, record.status)

        if out_of_range:
            labels = {f.get("name"): f.get("label") or f.get("name") for f in template.fields or []}
            await NotificationService(self.session).notify_admins(
                type="appcc_control",
                title=f"Control fuera de rango: {template.name}",
                message="Valores fuera de límites: " + ", ".join(labels.get(n, n) for n in out_of_range),
                link=f"/appcc/records/{record.id}",
                extra=[record.created_by] if record.created_by else [],
            )
        return record, out_of_range

    # PUBLIC_INTERFACE
    async def dashboard(self, location_id: Optional[UUID] = None) -> AppccDashboard:
        """
        Counts by status. Pending records whose schedule has passed are reported as delayed.
        """
        counts = await self.records.count_by_status(location_id)
        overdue = await self.records.count_overdue(utcnow(), location_id)
        total = sum(counts.values())
        completed = counts.get("completed", 0)
        failed = counts.get("failed", 0)
        pending = counts.get("pending", 0) - overdue
        delayed = counts.get("delayed", 0) + overdue
        rate = round((completed + failed) * 100.0 / total, 1) if total else 0.0
        return AppccDashboard(
            total=total,
            pending=pending,
            completed=completed,
            delayed=delayed,
            failed=failed,
            completion_rate=rate,
        )
