from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, Field, field_validator, model_validator

FieldType = Literal["text", "number", "boolean", "select", "temperature", "date"]
Frequency = Literal["daily", "weekly", "monthly", "quarterly", "yearly", "once"]
RecordStatus = Literal["pending", "completed", "delayed", "failed"]


class ControlField(BaseModel):
    """One input of a control checklist."""
    name: str = Field(..., min_length=1, description="Key used in the record data")
    label: str = Field(..., min_length=1, description="Label shown to the operator")
    type: FieldType = Field(..., description="Input type")
    required: bool = Field(False)
    options: List[str] = Field(default_factory=list, description="Choices for select fields")
    min: Optional[float] = Field(None, description="Lowest acceptable value (number/temperature)")
    max: Optional[float] = Field(None, description="Highest acceptable value (number/temperature)")
    unit: Optional[str] = Field(None, description="Display unit, e.g. °C")

    @model_validator(mode="after")
    def _check_consistency(self) -> "ControlField":
        if self.type == "select" and not self.options:
            raise ValueError(f"select field '{self.name}' needs options")
        if self.min is not None and self.max is not None and self.min > self.max:
            raise ValueError(f"field '{self.name}' has min greater than max")
        return self


def _ensure_unique_names(fields: List[ControlField]) -> List[ControlField]:
    names = [f.name for f in fields]
    if len(names) != len(set(names)):
        raise ValueError("field names must be unique")
    return fields


class _TemplateFields(BaseModel):
    fields: List[ControlField] = Field(default_factory=list)

    @field_validator("fields")
    @classmethod
    def _unique_names(cls, v: List[ControlField]) -> List[ControlField]:
        return _ensure_unique_names(v)


class ControlTemplateCreate(_TemplateFields):
    name: str = Field(..., min_length=1)
    description: Optional[str] = Field(None)
    category: str = Field(..., min_length=1, description="e.g. temperatures, cleaning, reception")
    frequency: Frequency = Field("daily")


class ControlTemplateUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = Field(None)
    category: Optional[str] = Field(None, min_length=1)
    frequency: Optional[Frequency] = Field(None)
    fields: Optional[List[ControlField]] = Field(None)

    @field_validator("fields")
    @classmethod
    def _unique_names(cls, v: Optional[List[ControlField]]) -> Optional[List[ControlField]]:
        if v is not None:
            _ensure_unique_names(v)
        return v


class ControlTemplateRead(BaseModel):
    """Read model for a control template."""
    id: UUID
    name: str
    description: Optional[str] = None
    category: str
    frequency: str
    fields: List[ControlField] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class ControlRecordCreate(BaseModel):
    """Schedule a control for a location."""
    template_id: UUID
    location_id: UUID
    scheduled_for: datetime
    comments: Optional[str] = None


class ControlRecordUpdate(BaseModel):
    """Reschedule or annotate an open record; completion goes through /complete."""
    status: Optional[Literal["pending", "delayed"]] = None
    comments: Optional[str] = None
    scheduled_for: Optional[datetime] = None
    location_id: Optional[UUID] = None


class ControlRecordComplete(BaseModel):
    """Values captured when the control is carried out."""
    data: Dict[str, Any] = Field(default_factory=dict)
    comments: Optional[str] = None


class ControlRecordRead(BaseModel):
    """Read model for a control record."""
    id: UUID
    template_id: UUID
    location_id: UUID
    status: str
    data: Dict[str, Any] = Field(default_factory=dict)
    comments: Optional[str] = None
    created_by: Optional[UUID] = None
    completed_by: Optional[UUID] = None
    scheduled_for: datetime
    completed_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class CompletionResult(BaseModel):
    """Outcome of completing a control."""
    record: ControlRecordRead
    out_of_range: List[str] = Field(default_factory=list, description="Fields outside their limits")


class AppccDashboard(BaseModel):
    """Summary counts for the APPCC dashboard."""
    total: int
    pending: int
    completed: int
    delayed: int
    failed: int
    completion_rate: float = Field(..., description="Completed (incl. failed checks) over total, 0-100")
