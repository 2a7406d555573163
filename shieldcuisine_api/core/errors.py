"""
Domain exceptions raised by services.

Routes let these propagate; the handler registered in shieldcuisine_api.api.main
turns them into the standard error envelope with the carried status code.
"""
from __future__ import annotations

from typing import Any, Optional


class ServiceError(Exception):
    """Base class for errors raised by the service layer."""

    status_code: int = 400
    error_type: str = "service_error"

    def __init__(self, message: str, details: Optional[Any] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details


class NotFoundError(ServiceError):
    status_code = 404
    error_type = "not_found"


class ConflictError(ServiceError):
    status_code = 409
    error_type = "conflict"


class ValidationFailed(ServiceError):
    status_code = 400
    error_type = "validation_failed"


class ProviderUnavailable(ServiceError):
    """An external AI provider is not configured."""

    status_code = 503
    error_type = "provider_unavailable"


class UpstreamError(ServiceError):
    """An external service answered with an error or could not be reached."""

    status_code = 502
    error_type = "upstream_error"


class ForbiddenError(ServiceError):
    status_code = 403
    error_type = "forbidden"
