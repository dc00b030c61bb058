"""Floorline — Timestamp Resolution.

Machines and their agents report times in several shapes: ISO-8601 strings
(``T`` or space separated, with or without ``Z``/offset), unix seconds and
unix milliseconds, either as numbers or digit-only strings. Everything in the
engine goes through :func:`parse_timestamp` so that each value resolves to one
timezone-aware instant.

Naive values are wall-clock times in the dashboard's zone (``tz``), which
defaults to the host's local zone. Aware values (``Z``, offsets, epochs) are
converted into that zone, so ``.hour`` and ``.date()`` of a parsed value are
always dashboard wall-clock fields.
"""

from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone, tzinfo
from typing import Any

from core.exceptions import TimestampParseError

# Epoch values below this are seconds, at or above are milliseconds.
EPOCH_MS_THRESHOLD = 1e12


def _localize(dt: datetime, tz: tzinfo | None) -> datetime:
    if dt.tzinfo is not None:
        return dt.astimezone(tz)
    if tz is not None:
        return dt.replace(tzinfo=tz)
    return dt.astimezone()


def _from_epoch(number: float) -> datetime:
    seconds = number / 1000.0 if number >= EPOCH_MS_THRESHOLD else number
    return datetime.fromtimestamp(seconds, tz=timezone.utc)


def parse_timestamp(value: Any, tz: tzinfo | None = None) -> datetime:
    """Resolve a reported timestamp to an aware datetime.

    Args:
        value: datetime, epoch number, digit-only string or ISO string.
        tz: Dashboard zone (host local zone when None).

    Returns:
        Timezone-aware datetime in ``tz``.

    Raises:
        TimestampParseError: If the value cannot be resolved.
    """
    if value is None or isinstance(value, bool):
        raise TimestampParseError(value)

    if isinstance(value, datetime):
        return _localize(value, tz)

    if isinstance(value, (int, float)):
        try:
            dt = _from_epoch(float(value))
        except (OverflowError, OSError, ValueError) as exc:
            raise TimestampParseError(value) from exc
        return dt.astimezone(tz)

    if not isinstance(value, str):
        raise TimestampParseError(value)

    text = value.strip()
    if not text:
        raise TimestampParseError(value)

    if text.isdigit():
        return parse_timestamp(int(text), tz)

    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"

    try:
        dt = datetime.fromisoformat(text)
    except ValueError as exc:
        raise TimestampParseError(value) from exc
    return _localize(dt, tz)


def to_epoch_ms(value: Any, tz: tzinfo | None = None) -> float:
    """Milliseconds since the unix epoch for a reported timestamp."""
    return parse_timestamp(value, tz).timestamp() * 1000.0


def day_origin(day: date, tz: tzinfo | None = None) -> datetime:
    """Aware midnight that starts ``day`` in the dashboard's zone."""
    return _localize(datetime.combine(day, time.min), tz)


STORE_FORMAT = "%Y-%m-%d %H:%M:%S"


def to_store_text(value: Any, tz: tzinfo | None = None) -> str:
    """Render a timestamp as the store's local ``YYYY-MM-DD HH:MM:SS`` text."""
    return parse_timestamp(value, tz).strftime(STORE_FORMAT)


def elapsed_seconds(origin: datetime, instant: datetime) -> int:
    """Whole seconds from ``origin`` to ``instant`` (floored), in absolute time."""
    delta = instant.astimezone(timezone.utc) - origin.astimezone(timezone.utc)
    return int(delta.total_seconds() // 1)


def day_seconds(day: date, tz: tzinfo | None = None) -> int:
    """Length of ``day`` in the dashboard's zone (23 or 25 hours across DST)."""
    return elapsed_seconds(day_origin(day, tz), day_origin(day + timedelta(days=1), tz))
