"""Floorline — Liveness Evaluator.

Derives a machine's online/offline state from the silence since its
``last_updated``. Nothing is persisted; the state is always recomputed.

    elapsed < GRACE_MS            recent (too fresh to judge, never flagged)
    elapsed >= TIMEOUT_MS         offline
    otherwise                     online
    unparseable last_updated      unknown (reported, never defaulted)
"""

from __future__ import annotations

import time
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import tzinfo
from enum import Enum
from typing import Any

from core.exceptions import TimestampParseError
from machine_state.records import MachineRecord
from machine_state.timestamps import to_epoch_ms

TIMEOUT_MS = 8000
GRACE_MS = 2000


class Liveness(str, Enum):
    ONLINE = "online"
    OFFLINE = "offline"
    RECENT = "recent"
    UNKNOWN = "unknown"


def now_ms() -> float:
    return time.time() * 1000.0


def elapsed_ms(last_updated: Any, now: float, tz: tzinfo | None = None) -> float:
    """Milliseconds since ``last_updated``; raises TimestampParseError."""
    return now - to_epoch_ms(last_updated, tz)


def classify_liveness(
    last_updated: Any,
    now: float,
    timeout_ms: int = TIMEOUT_MS,
    grace_ms: int = GRACE_MS,
    tz: tzinfo | None = None,
) -> Liveness:
    try:
        elapsed = elapsed_ms(last_updated, now, tz)
    except TimestampParseError:
        return Liveness.UNKNOWN
    if elapsed < grace_ms:
        return Liveness.RECENT
    if elapsed >= timeout_ms:
        return Liveness.OFFLINE
    return Liveness.ONLINE


def is_online(
    last_updated: Any,
    now: float,
    timeout_ms: int = TIMEOUT_MS,
    grace_ms: int = GRACE_MS,
    tz: tzinfo | None = None,
) -> bool | None:
    """Power indicator for one machine; None when the timestamp is unparseable."""
    state = classify_liveness(last_updated, now, timeout_ms, grace_ms, tz)
    if state is Liveness.UNKNOWN:
        return None
    return state is not Liveness.OFFLINE


@dataclass
class LivenessReport:
    """Outcome of one evaluation pass over the machine table."""
    offline: list[MachineRecord] = field(default_factory=list)
    online: list[MachineRecord] = field(default_factory=list)
    recent: list[MachineRecord] = field(default_factory=list)
    unparseable: list[MachineRecord] = field(default_factory=list)

    @property
    def checked(self) -> int:
        return len(self.offline) + len(self.online) + len(self.recent) + len(self.unparseable)

    def summary(self) -> dict[str, int]:
        return {
            "checked": self.checked,
            "timed_out": len(self.offline),
            "skipped": len(self.recent),
            "unparseable": len(self.unparseable),
        }


def evaluate_machines(
    machines: Iterable[MachineRecord],
    now: float,
    timeout_ms: int = TIMEOUT_MS,
    grace_ms: int = GRACE_MS,
    tz: tzinfo | None = None,
) -> LivenessReport:
    """Partition machines by liveness; one bad record never stops the pass."""
    report = LivenessReport()
    buckets = {
        Liveness.OFFLINE: report.offline,
        Liveness.ONLINE: report.online,
        Liveness.RECENT: report.recent,
        Liveness.UNKNOWN: report.unparseable,
    }
    for machine in machines:
        state = classify_liveness(machine.last_updated, now, timeout_ms, grace_ms, tz)
        buckets[state].append(machine)
    return report
