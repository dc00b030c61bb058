"""Floorline — Segment Builder.

Turns one machine's logs into a contiguous, non-overlapping sequence of
status segments covering a window ``[window_start, window_end]`` given in
whole seconds from an origin (usually midnight of the viewed day).

Each log spans from its own offset to the next log's offset; the last log
spans to the window end. Spans are clipped to the window, a ``none`` segment
fills the window before the first log, and every segment is at least one
second wide (a segment squeezed by an earlier one starts where that one
ends). The list keeps one marker candidate per interval log; per-minute
marker thinning is done separately by :func:`minute_markers`.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from datetime import datetime, tzinfo
from typing import Any

from machine_state.aggregation import hour_key, hourly_targets
from machine_state.rates import Status, classify_rate, is_interval_log, static_status
from machine_state.records import LogRecord, order_logs
from machine_state.timestamps import elapsed_seconds

SECONDS_PER_DAY = 86400
MIN_SEGMENT_SECONDS = 1


@dataclass(frozen=True)
class StatusSegment:
    """A span of the timeline with one status."""
    time_start: int
    time_end: int
    status: Status
    has_marker: bool = False

    @property
    def duration(self) -> int:
        return self.time_end - self.time_start

    def to_dict(self) -> dict[str, Any]:
        return {
            "time_start": self.time_start,
            "time_end": self.time_end,
            "status": self.status.value,
            "has_marker": self.has_marker,
        }


def segment_status(log: LogRecord, hour: datetime, targets: Mapping[datetime, float]) -> Status:
    """Rate classification for interval logs with a target, else static."""
    if is_interval_log(log.event):
        return classify_rate(log.machine_rate, targets.get(hour), log.event)
    return static_status(log.event)


def build_segments(
    logs: Sequence[LogRecord],
    origin: datetime,
    window_start: int = 0,
    window_end: int = SECONDS_PER_DAY,
    targets: Mapping[datetime, float] | None = None,
    tz: tzinfo | None = None,
) -> list[StatusSegment]:
    """Build the status timeline for one machine.

    Args:
        logs: The machine's logs in any order.
        origin: Aware instant that offset 0 refers to.
        window_start: First second of the window (inclusive).
        window_end: Last second of the window (exclusive end of coverage).
        targets: Target rates keyed by :func:`hour_key`; derived from ``logs``
            when None.
        tz: Zone for naive timestamps.

    Returns:
        Segments ordered by time covering exactly the window.
    """
    if window_end <= window_start:
        raise ValueError(f"empty window [{window_start}, {window_end}]")

    ordered = order_logs(logs, tz)
    if targets is None:
        targets = hourly_targets(logs, tz)

    entries = [
        (elapsed_seconds(origin, dt), dt, log)
        for dt, log in ordered
    ]

    segments: list[StatusSegment] = []
    cursor = window_start
    for i, (offset, dt, log) in enumerate(entries):
        is_last = i + 1 == len(entries)
        natural_end = window_end if is_last else entries[i + 1][0]

        if not is_last and natural_end <= window_start:
            continue
        if offset >= window_end:
            break

        start = max(offset, cursor)
        if start >= window_end:
            break
        if not segments and start > window_start:
            segments.append(StatusSegment(window_start, start, Status.NONE))

        end = min(window_end, max(natural_end, start + MIN_SEGMENT_SECONDS))
        segments.append(
            StatusSegment(
                time_start=start,
                time_end=end,
                status=segment_status(log, hour_key(dt), targets),
                has_marker=is_interval_log(log.event),
            )
        )
        cursor = end

    if not segments:
        return [StatusSegment(window_start, window_end, Status.NONE)]
    return segments


def minute_markers(
    segments: Sequence[StatusSegment],
    window_start: int,
    window_end: int,
) -> list[int]:
    """Midpoints of marker segments, at most one per minute of the window."""
    seen: set[int] = set()
    markers: list[int] = []
    for segment in segments:
        if not segment.has_marker:
            continue
        midpoint = (segment.time_start + segment.time_end) // 2
        if midpoint <= window_start or midpoint >= window_end:
            continue
        minute = (midpoint - window_start) // 60
        if minute in seen:
            continue
        seen.add(minute)
        markers.append(midpoint)
    return markers
