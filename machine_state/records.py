"""Record shapes consumed by the machine-state engine."""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime, tzinfo
from typing import Any, Protocol

from core.exceptions import TimestampParseError
from logger import get_logger
from machine_state.timestamps import parse_timestamp

logger = get_logger(__name__)


class LogRecord(Protocol):
    """Anything carrying the LogEntry fields (ORM row or schema)."""
    event: str | None
    created_at: Any
    interval_count: int | None
    machine_rate: float | None
    comments: str | None


class MachineRecord(Protocol):
    name: str
    last_updated: Any


def order_logs(logs: Iterable[LogRecord], tz: tzinfo | None = None) -> list[tuple[datetime, LogRecord]]:
    """Pair each log with its parsed ``created_at`` and sort ascending.

    Logs whose timestamp does not parse are left out with a warning; the rest
    keep their relative order when timestamps tie.
    """
    parsed: list[tuple[datetime, LogRecord]] = []
    for log in logs:
        try:
            parsed.append((parse_timestamp(log.created_at, tz), log))
        except TimestampParseError:
            logger.warning(
                "Skipping log with unparseable created_at",
                log_id=getattr(log, "id", None),
                value=repr(log.created_at),
            )
    parsed.sort(key=lambda pair: pair[0])
    return parsed
