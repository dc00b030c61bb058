"""Floorline — Dashboard Views.

Pure compositions of the engine used by the dashboard endpoints: the day
timeline, the per-hour shift rows, the machine card and factory status
summaries, and small helpers over a log list.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import date, datetime, tzinfo
from enum import Enum
from typing import Any

from machine_state.aggregation import (
    ShiftTotals,
    health_score,
    hour_key,
    hourly_production,
    hourly_targets,
    round_half_up,
    shift_totals,
)
from machine_state.rates import is_interval_log
from machine_state.records import LogRecord, order_logs
from machine_state.segments import (
    StatusSegment,
    build_segments,
    minute_markers,
)
from machine_state.timestamps import day_origin, day_seconds, elapsed_seconds

SECONDS_PER_HOUR = 3600
DEFAULT_PRODUCTION_PERIODS = 13


class CardStatus(str, Enum):
    GOOD = "good"
    WARNING = "warning"
    BAD = "bad"
    STOPPED = "stopped"


@dataclass
class Timeline:
    day: date
    window_start: int
    window_end: int
    segments: list[StatusSegment]
    markers: list[int]

    def to_dict(self) -> dict[str, Any]:
        return {
            "date": self.day.isoformat(),
            "window_start": self.window_start,
            "window_end": self.window_end,
            "segments": [s.to_dict() for s in self.segments],
            "markers": self.markers,
        }


@dataclass
class HourRow:
    hour: int
    segments: list[StatusSegment]
    produced: int
    predicted: float
    window_start: int = 0

    @property
    def label(self) -> str:
        suffix = "AM" if self.hour < 12 else "PM"
        return f"{(self.hour % 12) or 12}{suffix}"

    @property
    def count_label(self) -> str:
        return f"{self.produced}/{int(round_half_up(self.predicted))}"

    def to_dict(self) -> dict[str, Any]:
        return {
            "hour": self.hour,
            "label": self.label,
            "window_start": self.window_start,
            "segments": [s.to_dict() for s in self.segments],
            "produced": self.produced,
            "predicted": self.predicted,
            "count_label": self.count_label,
        }


@dataclass
class ShiftView:
    day: date
    rows: list[HourRow]
    totals: ShiftTotals

    def to_dict(self) -> dict[str, Any]:
        return {
            "date": self.day.isoformat(),
            "rows": [r.to_dict() for r in self.rows],
            "totals": self.totals.to_dict(),
        }


@dataclass
class MachineCard:
    name: str
    health: float
    status: CardStatus
    online: bool | None
    totals: ShiftTotals
    production: list[int] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "health": self.health,
            "status": self.status.value,
            "online": self.online,
            "totals": self.totals.to_dict(),
            "production": self.production,
        }


def window_end_for(day: date, now: datetime | None, tz: tzinfo | None = None) -> int:
    """Full day for past days; clamp to "now" for the current day."""
    full_day = day_seconds(day, tz)
    if now is None:
        return full_day
    elapsed = elapsed_seconds(day_origin(day, tz), now)
    if elapsed >= full_day:
        return full_day
    return max(1, elapsed)


def build_timeline(
    logs: Sequence[LogRecord],
    day: date,
    now: datetime | None = None,
    tz: tzinfo | None = None,
) -> Timeline:
    window_end = window_end_for(day, now, tz)
    segments = build_segments(logs, day_origin(day, tz), 0, window_end, tz=tz)
    return Timeline(
        day=day,
        window_start=0,
        window_end=window_end,
        segments=segments,
        markers=minute_markers(segments, 0, window_end),
    )


def build_hour_rows(logs: Sequence[LogRecord], day: date, tz: tzinfo | None = None) -> ShiftView:
    """One row per active hour with its own slice of the timeline.

    A row's window is its hour's offset from local midnight of ``day``.
    """
    origin = day_origin(day, tz)
    targets = hourly_targets(logs, tz)
    produced = hourly_production(logs, tz)
    rows = []
    for hour in sorted(targets):
        start = elapsed_seconds(origin, hour)
        rows.append(
            HourRow(
                hour=hour.astimezone(tz).hour,
                segments=build_segments(logs, origin, start, start + SECONDS_PER_HOUR, targets, tz),
                produced=produced.get(hour, 0),
                predicted=targets[hour],
                window_start=start,
            )
        )
    return ShiftView(day=day, rows=rows, totals=shift_totals(logs, tz))


def production_series(
    logs: Sequence[LogRecord],
    periods: int = DEFAULT_PRODUCTION_PERIODS,
    tz: tzinfo | None = None,
) -> list[int]:
    """Interval-log production split into ``periods`` equal-count buckets."""
    interval_logs = [log for _, log in order_logs(logs, tz) if is_interval_log(log.event)]
    if not interval_logs:
        return [0] * periods
    per_period = -(-len(interval_logs) // periods)
    series = []
    for i in range(periods):
        chunk = interval_logs[i * per_period:(i + 1) * per_period]
        series.append(sum(int(log.interval_count or 0) for log in chunk))
    return series


def card_status(percent: float) -> CardStatus:
    if percent == 0:
        return CardStatus.STOPPED
    if percent > 75:
        return CardStatus.GOOD
    if percent > 40:
        return CardStatus.WARNING
    return CardStatus.BAD


def build_machine_card(
    name: str,
    logs: Sequence[LogRecord],
    online: bool | None,
    periods: int = DEFAULT_PRODUCTION_PERIODS,
    tz: tzinfo | None = None,
) -> MachineCard:
    health = health_score(logs)
    return MachineCard(
        name=name,
        health=health,
        status=card_status(health),
        online=online,
        totals=shift_totals(logs, tz),
        production=production_series(logs, periods, tz),
    )


def factory_status(cards: Sequence[MachineCard]) -> dict[str, int]:
    counts = {status: 0 for status in CardStatus}
    for card in cards:
        counts[card.status] += 1
    return {
        "stations": len(cards),
        "good": counts[CardStatus.GOOD],
        "warning": counts[CardStatus.WARNING],
        "bad": counts[CardStatus.BAD],
        "stopped": counts[CardStatus.STOPPED],
        "operating": counts[CardStatus.GOOD] + counts[CardStatus.WARNING],
        "not_operating": counts[CardStatus.BAD] + counts[CardStatus.STOPPED],
        "online": sum(1 for card in cards if card.online),
    }


def available_dates(logs: Sequence[LogRecord], tz: tzinfo | None = None) -> list[date]:
    """Distinct calendar dates with logs, most recent first."""
    return sorted({dt.date() for dt, _ in order_logs(logs, tz)}, reverse=True)


def group_logs_by_hour(logs: Sequence[LogRecord], tz: tzinfo | None = None) -> dict[datetime, list[LogRecord]]:
    """Logs in time order, bucketed by the local hour they start in."""
    grouped: dict[datetime, list[LogRecord]] = {}
    for dt, log in order_logs(logs, tz):
        grouped.setdefault(hour_key(dt).astimezone(tz), []).append(log)
    return grouped
