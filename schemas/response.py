"""Floorline — Standardized API Response Schemas.

Provides a consistent response format for all API endpoints and a
high-performance ORJSONResponse class for faster serialization.

Response Format:
    {
        "success": bool,        // false whenever error is set
        "data": T,              // The actual response payload
        "meta": {...},          // Timing, count, version info
        "error": null | string  // Error message if applicable
    }

Usage:
    from schemas.response import APIResponse, ORJSONResponse

    @app.get("/api/machines")
    async def get_machines() -> APIResponse[list[MachineOut]]:
        machines = await service.list_machines()
        return APIResponse.ok(machines)
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Generic, TypeVar

import orjson
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

T = TypeVar("T")


class ResponseMeta(BaseModel):
    """Metadata included in every API response.

    Attributes:
        timestamp: ISO 8601 timestamp of response generation.
        request_id: Correlation ID for tracing.
        version: API version string.
        count: Number of items in data (for collections).
    """

    model_config = ConfigDict(extra="allow")  # Allow additional metadata

    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Response generation timestamp",
    )
    request_id: str | None = Field(None, description="Request correlation ID")
    version: str = Field(default="1.0.0", description="API version")
    count: int | None = Field(None, description="Number of items in response")


class APIResponse(BaseModel, Generic[T]):
    """Standardized API response wrapper.

    Example Success:
        {
            "success": true,
            "data": [{"name": "SM73", "last_updated": "2024-05-01 08:00:00"}],
            "meta": {"count": 1, "timestamp": "2024-12-24T20:00:00Z"},
            "error": null
        }

    Example Error:
        {
            "success": false,
            "data": null,
            "meta": {"timestamp": "2024-12-24T20:00:00Z"},
            "error": "machine not found: 'SM99'"
        }
    """

    success: bool = Field(default=True, description="False when the request failed")
    data: T | None = Field(None, description="Response payload")
    meta: ResponseMeta = Field(
        default_factory=ResponseMeta,
        description="Response metadata",
    )
    error: str | None = Field(None, description="Error message if failed")

    @classmethod
    def ok(
        cls,
        data: T,
        request_id: str | None = None,
        **extra_meta: Any,
    ) -> "APIResponse[T]":
        """Create a successful response; lists get ``meta.count``."""
        meta = ResponseMeta(request_id=request_id, **extra_meta)

        if isinstance(data, list):
            meta.count = len(data)

        return cls(success=True, data=data, meta=meta, error=None)

    @classmethod
    def fail(
        cls,
        message: str,
        request_id: str | None = None,
        **extra_meta: Any,
    ) -> "APIResponse[None]":
        """Create an error response."""
        return cls(
            success=False,
            data=None,
            meta=ResponseMeta(request_id=request_id, **extra_meta),
            error=message,
        )


# =============================================================================
# High-Performance ORJSON Response
# =============================================================================

def _orjson_serializer(obj: Any) -> bytes:
    return orjson.dumps(
        obj,
        option=(
            orjson.OPT_UTC_Z |                 # Use Z suffix for UTC
            orjson.OPT_NAIVE_UTC |             # Treat naive datetimes as UTC
            orjson.OPT_NON_STR_KEYS            # Allow non-string dict keys
        ),
    )


class ORJSONResponse(JSONResponse):
    """High-performance JSON response using orjson.

    Usage:
        app = FastAPI(default_response_class=ORJSONResponse)
    """

    media_type = "application/json"

    def render(self, content: Any) -> bytes:
        if hasattr(content, "model_dump"):
            content = content.model_dump(mode="json")
        return _orjson_serializer(content)
