"""Floorline — Structured Logging.

structlog on top of the stdlib ``logging`` tree. Development gets colored
console lines, every other environment one JSON object per line. Each event
carries the service name/version and, inside a request, the request and
correlation ids; credentials never reach the output.

Usage:
    from logger import get_logger, configure_logging

    configure_logging(environment="production", log_level="INFO")

    logger = get_logger(__name__)
    logger.info("Log stored", machine="SM73", log_id=42)
"""

from __future__ import annotations

import logging
import re
import sys
import time
import uuid
from contextvars import ContextVar
from typing import Any

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response
from structlog.types import EventDict, Processor, WrappedLogger

SERVICE_NAME = "floorline"

# Set per request by RequestContextMiddleware
request_id_var: ContextVar[str | None] = ContextVar("request_id", default=None)
correlation_id_var: ContextVar[str | None] = ContextVar("correlation_id", default=None)

# Third-party loggers kept at WARNING regardless of the configured level
QUIET_LOGGERS = ("uvicorn.access", "httpx", "httpcore", "asyncio", "aiosqlite", "sqlalchemy.engine")


# =============================================================================
# Credential Redaction
# =============================================================================

REDACTED = "[REDACTED]"

# Keys whose values are dropped wholesale (redis password, tokens in headers)
SECRET_KEY_PATTERN = re.compile(r"password|secret|token|api[_-]?key|authorization", re.IGNORECASE)

# user:password@ in DB and Redis URLs
URL_CREDENTIAL_PATTERN = re.compile(r"(://[^:/@\s]*:)[^@\s]+@")


def redact(value: Any, key: str = "") -> Any:
    if key and SECRET_KEY_PATTERN.search(key):
        return REDACTED
    if isinstance(value, str):
        return URL_CREDENTIAL_PATTERN.sub(r"\1***@", value)
    if isinstance(value, dict):
        return {k: redact(v, str(k)) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return type(value)(redact(item, key) for item in value)
    return value


# =============================================================================
# Processors
# =============================================================================

def add_request_context(
    logger: WrappedLogger,
    method_name: str,
    event_dict: EventDict,
) -> EventDict:
    """Copy the current request/correlation ids onto the event."""
    for key, var in (("request_id", request_id_var), ("correlation_id", correlation_id_var)):
        value = var.get()
        if value:
            event_dict.setdefault(key, value)
    return event_dict


def redact_credentials(
    logger: WrappedLogger,
    method_name: str,
    event_dict: EventDict,
) -> EventDict:
    return {key: redact(value, key) for key, value in event_dict.items()}


def service_context(version: str) -> Processor:
    """Processor stamping the service name and version on every event."""

    def add_service_context(
        logger: WrappedLogger,
        method_name: str,
        event_dict: EventDict,
    ) -> EventDict:
        event_dict["service"] = SERVICE_NAME
        event_dict["version"] = version
        return event_dict

    return add_service_context


def drop_color_message_key(
    logger: WrappedLogger,
    method_name: str,
    event_dict: EventDict,
) -> EventDict:
    """uvicorn adds ``color_message``; it is noise in JSON output."""
    event_dict.pop("color_message", None)
    return event_dict


# =============================================================================
# Configuration
# =============================================================================

def configure_logging(
    environment: str = "development",
    log_level: str = "INFO",
    json_format: bool | None = None,
    version: str = "1.0.0",
) -> None:
    """Install the structlog processor chain and the stdlib handler.

    Args:
        environment: development, staging or production.
        log_level: Root level name (DEBUG ... CRITICAL).
        json_format: Force JSON (True) or console (False) output; by default
            only development renders to the console.
        version: Application version stamped on every event.
    """
    use_json = environment != "development" if json_format is None else json_format

    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        service_context(version),
        add_request_context,
        redact_credentials,
    ]
    if use_json:
        processors += [
            drop_color_message_key,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=True))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level.upper()),
        force=True,
    )
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Module logger; pass ``__name__``."""
    return structlog.stdlib.get_logger(name)


# =============================================================================
# Request Context Middleware
# =============================================================================

class RequestContextMiddleware(BaseHTTPMiddleware):
    """Assigns request/correlation ids and logs one line per request.

    Incoming ``X-Request-ID`` / ``X-Correlation-ID`` headers are honored and
    echoed back on the response.
    """

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        correlation_id = request.headers.get("X-Correlation-ID") or request_id
        request_id_var.set(request_id)
        correlation_id_var.set(correlation_id)

        logger = get_logger("floorline.http")
        started = time.perf_counter()
        logger.debug("Request started", method=request.method, path=request.url.path)

        try:
            response = await call_next(request)
        except Exception as exc:
            logger.exception(
                "Request failed",
                method=request.method,
                path=request.url.path,
                duration_ms=round((time.perf_counter() - started) * 1000, 2),
                error_type=type(exc).__name__,
            )
            request_id_var.set(None)
            correlation_id_var.set(None)
            raise

        logger.info(
            "Request completed",
            method=request.method,
            path=request.url.path,
            status_code=response.status_code,
            duration_ms=round((time.perf_counter() - started) * 1000, 2),
        )
        request_id_var.set(None)
        correlation_id_var.set(None)

        response.headers["X-Request-ID"] = request_id
        response.headers["X-Correlation-ID"] = correlation_id
        return response
