"""Floorline — Production Aggregation.

Rolls one machine's logs up into hour-level and shift-level figures. An
hour is the wall-clock hour of ``created_at`` in the dashboard zone, keyed by
the UTC instant it starts at (see :func:`hour_key`), so a span may cross
midnight or a DST change.

Target rates are declared in shift comments and carried forward hour by hour
across the active span (first log hour through last log hour). Hours before
the first declaration count as 0 unless they produced parts, in which case the
first declared rate is applied to them.
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Sequence
from dataclasses import asdict, dataclass
from datetime import datetime, timedelta, timezone, tzinfo
from typing import Any

from machine_state.rates import Status, is_interval_log, parse_target_rate, static_status
from machine_state.records import LogRecord, order_logs

ONE_HOUR = timedelta(hours=1)


def round_half_up(value: float, digits: int = 0) -> float:
    factor = 10 ** digits
    return math.floor(value * factor + 0.5) / factor


def percent_of(part: float, whole: float) -> float:
    """One-decimal percentage, 0 when ``whole`` is 0."""
    if not whole:
        return 0.0
    return math.floor(part / whole * 1000 + 0.5) / 10


@dataclass(frozen=True)
class ShiftTotals:
    """Produced-vs-predicted totals across a shift (day)."""
    produced: int
    predicted: float
    percent: float

    @property
    def label(self) -> str:
        return f"{self.produced}/{int(round_half_up(self.predicted))}"

    def to_dict(self) -> dict[str, Any]:
        return {**asdict(self), "label": self.label}


def hour_key(dt: datetime) -> datetime:
    """UTC instant at which the wall-clock hour containing ``dt`` starts."""
    return dt.replace(minute=0, second=0, microsecond=0).astimezone(timezone.utc)


def hourly_production(logs: Iterable[LogRecord], tz: tzinfo | None = None) -> dict[datetime, int]:
    """Sum of ``interval_count`` over interval logs, keyed by hour."""
    produced: dict[datetime, int] = {}
    for dt, log in order_logs(logs, tz):
        if not is_interval_log(log.event):
            continue
        hour = hour_key(dt)
        produced[hour] = produced.get(hour, 0) + int(log.interval_count or 0)
    return produced


def declared_rates(logs: Iterable[LogRecord], tz: tzinfo | None = None) -> dict[datetime, float]:
    """Last target rate declared within each hour."""
    declared: dict[datetime, float] = {}
    for dt, log in order_logs(logs, tz):
        rate = parse_target_rate(log.comments)
        if rate is not None:
            declared[hour_key(dt)] = rate
    return declared


def hourly_targets(logs: Sequence[LogRecord], tz: tzinfo | None = None) -> dict[datetime, float]:
    """Carried-forward target rate for every hour of the active span."""
    ordered = order_logs(logs, tz)
    if not ordered:
        return {}

    declared = declared_rates(logs, tz)
    produced = hourly_production(logs, tz)
    first_declared = declared[min(declared)] if declared else None

    targets: dict[datetime, float] = {}
    current: float | None = None
    hour, last = hour_key(ordered[0][0]), hour_key(ordered[-1][0])
    while hour <= last:
        if hour in declared:
            current = declared[hour]
        if current is not None:
            targets[hour] = current
        elif first_declared is not None and produced.get(hour, 0) > 0:
            targets[hour] = first_declared
        else:
            targets[hour] = 0.0
        hour += ONE_HOUR
    return targets


def shift_totals(logs: Sequence[LogRecord], tz: tzinfo | None = None) -> ShiftTotals:
    produced = sum(hourly_production(logs, tz).values())
    predicted = sum(hourly_targets(logs, tz).values())
    return ShiftTotals(produced=produced, predicted=predicted, percent=percent_of(produced, predicted))


def health_score(logs: Sequence[LogRecord]) -> float:
    """Share of logs whose event kind is statically good, as a percent.

    Count-based; independent of the rate classification of segments.
    """
    if not logs:
        return 0.0
    good = sum(1 for log in logs if static_status(log.event) is Status.GOOD)
    return percent_of(good, len(logs))
