"""Floorline — Rate Classifier.

Classifies a single production sample against its hour's target rate, and
maps event kinds to their static timeline status when no target applies.

Status levels:
    good     measured / target >= 0.70
    warning  0.40 <= measured / target < 0.70
    bad      measured / target < 0.40
"""

from __future__ import annotations

import re
from enum import Enum


class Status(str, Enum):
    """Timeline status of a segment."""
    GOOD = "good"
    WARNING = "warning"
    BAD = "bad"
    ON = "on"
    NONE = "none"


class EventKind(str, Enum):
    """Event kinds with a defined meaning; anything else is a running kind."""
    START_BUTTON = "start button"
    INTERVAL_LOG = "auto interval log"
    OFF = "off"
    START_SHIFT = "start shift"


GOOD_RATIO = 0.70
WARNING_RATIO = 0.40

STATIC_STATUS: dict[str, Status] = {
    EventKind.START_BUTTON.value: Status.BAD,
    EventKind.INTERVAL_LOG.value: Status.GOOD,
    EventKind.OFF.value: Status.NONE,
}

TARGET_RATE_PATTERN = re.compile(
    r"standard\s+parts\s+rate:\s*([\d,]+(?:\.\d+)?)\s*parts",
    re.IGNORECASE,
)


def normalize_event(event: str | None) -> str:
    """Trimmed, lower-cased event kind ('' for missing)."""
    return (event or "").strip().lower()


def is_interval_log(event: str | None) -> bool:
    return normalize_event(event) == EventKind.INTERVAL_LOG.value


def static_status(event: str | None) -> Status:
    """Status implied by the event kind alone."""
    kind = normalize_event(event)
    if not kind:
        return Status.NONE
    return STATIC_STATUS.get(kind, Status.ON)


def classify_ratio(ratio: float) -> Status:
    if ratio >= GOOD_RATIO:
        return Status.GOOD
    if ratio >= WARNING_RATIO:
        return Status.WARNING
    return Status.BAD


def classify_rate(
    machine_rate: float | None,
    target_rate: float | None,
    event: str | None = EventKind.INTERVAL_LOG.value,
) -> Status:
    """Classify a measured rate against the target for its hour.

    Args:
        machine_rate: Measured throughput of the sample.
        target_rate: Carried-forward target for the hour, if any.
        event: Event kind used for the static fallback.

    Returns:
        good/warning/bad from the ratio, or the static status of ``event``
        when there is no positive target.
    """
    if target_rate is None or target_rate <= 0:
        return static_status(event)
    return classify_ratio((machine_rate or 0.0) / target_rate)


def parse_target_rate(comments: str | None) -> float | None:
    """Extract the declared parts-per-hour from a shift comment.

    >>> parse_target_rate("Standard Parts Rate: 1,200 parts")
    1200.0
    """
    if not comments:
        return None
    match = TARGET_RATE_PATTERN.search(comments)
    if not match:
        return None
    digits = match.group(1).replace(",", "")
    try:
        return float(digits)
    except ValueError:
        return None
