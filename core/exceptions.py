"""Floorline — Core Exceptions.

Domain-specific exceptions for the service layer.
These exceptions are caught by API routes and converted to HTTP responses.

Usage:
    from core.exceptions import ResourceNotFound

    class LogService:
        async def insert_log(self, payload: LogCreate):
            machine = await self.machines.get_by_name(payload.machine_name)
            if not machine:
                raise ResourceNotFound("Machine", payload.machine_name)
"""

from __future__ import annotations

from typing import Any


class FloorlineError(Exception):
    """Base exception for all Floorline domain errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for API responses."""
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "details": self.details,
        }


class ResourceNotFound(FloorlineError):
    """Raised when a requested resource does not exist.

    Maps to HTTP 404 Not Found.

    Attributes:
        resource_type: Type of resource (e.g., "Machine").
        resource_id: Identifier of the missing resource.
    """

    def __init__(self, resource_type: str, resource_id: Any):
        self.resource_type = resource_type
        self.resource_id = resource_id
        message = f"{resource_type.lower()} not found: '{resource_id}'"
        super().__init__(message, {"resource_type": resource_type, "resource_id": str(resource_id)})


class ValidationError(FloorlineError):
    """Raised when input validation fails beyond Pydantic's scope.

    Maps to HTTP 422 Unprocessable Entity.
    """

    def __init__(self, field: str, message: str):
        self.field = field
        super().__init__(f"Validation error on '{field}': {message}", {"field": field})


class ExternalServiceError(FloorlineError):
    """Raised when a collaborator (store, notifier transport) call fails.

    Maps to HTTP 502 Bad Gateway.

    Attributes:
        service_name: Name of the external service.
        original_error: The underlying error message.
    """

    def __init__(self, service_name: str, original_error: str):
        self.service_name = service_name
        self.original_error = original_error
        super().__init__(
            f"External service '{service_name}' failed: {original_error}",
            {"service": service_name, "error": original_error},
        )


class TimestampParseError(FloorlineError, ValueError):
    """Raised when a timestamp cannot be resolved to a single instant."""

    def __init__(self, value: Any):
        self.value = value
        super().__init__(f"Unparseable timestamp: {value!r}", {"value": repr(value)})
