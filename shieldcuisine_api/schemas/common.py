from __future__ import annotations

from datetime import datetime
from typing import Any, Generic, List, Optional, Sequence, TypeVar
from uuid import UUID

from pydantic import BaseModel, Field

from shieldcuisine_api.core.settings import get_app_settings

T = TypeVar("T")


class IDModel(BaseModel):
    """Base schema exposing a UUID primary key."""
    id: UUID = Field(..., description="Unique identifier")


class Timestamps(BaseModel):
    """Common created/updated timestamp fields."""
    created_at: datetime = Field(..., description="Creation timestamp (UTC)")
    updated_at: datetime = Field(..., description="Last update timestamp (UTC)")


class MessageResponse(BaseModel):
    """Standard message response."""
    message: str = Field(..., description="Human readable message")
    details: Optional[dict] = Field(default=None, description="Optional extra data")


class Page(BaseModel, Generic[T]):
    """
    Envelope returned by list endpoints.

    `windowed` tells clients the result set is large enough that only a window of
    rows should be rendered at a time.
    """
    items: List[T] = Field(default_factory=list, description="Rows of the requested page")
    total: int = Field(..., description="Total rows matching the filters")
    limit: int = Field(..., description="Requested page size")
    offset: int = Field(..., description="Requested offset")
    windowed: bool = Field(False, description="True when total exceeds the list window threshold")


# PUBLIC_INTERFACE
def page_of(items: Sequence[Any], total: int, limit: int, offset: int) -> dict:
    """Build the Page envelope payload for a list endpoint."""
    threshold = get_app_settings().LIST_WINDOW_THRESHOLD
    return {
        "items": list(items),
        "total": total,
        "limit": limit,
        "offset": offset,
        "windowed": total > threshold,
    }


class ErrorInfo(BaseModel):
    """Structured error description."""
    type: str = Field(..., description="Machine-readable error type code")
    message: str = Field(..., description="Human-readable error message")
    details: Optional[Any] = Field(default=None, description="Optional error details (e.g., validation issues)")


# PUBLIC_INTERFACE
class ErrorResponse(BaseModel):
    """Standardized API error envelope returned by exception handlers."""
    status: int = Field(..., description="HTTP status code")
    message: str = Field(..., description="Human-readable message, suitable for a toast")
    error: ErrorInfo = Field(..., description="Error details")
    correlation_id: Optional[str] = Field(default=None, description="Request correlation ID")
    tenant_id: Optional[str] = Field(default=None, description="Tenant ID (if available)")
    path: Optional[str] = Field(default=None, description="Request path")
    method: Optional[str] = Field(default=None, description="HTTP method")
    timestamp: datetime = Field(..., description="Error timestamp (UTC)")
