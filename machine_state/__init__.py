"""Machine-state engine: liveness, rate classification, timeline segments and aggregation.

Pure and synchronous; callers fetch records and hand them in.
"""

from machine_state.aggregation import ShiftTotals, health_score, hourly_production, hourly_targets, shift_totals
from machine_state.identity import resolve_machine_key
from machine_state.liveness import GRACE_MS, TIMEOUT_MS, Liveness, classify_liveness, evaluate_machines, is_online
from machine_state.rates import Status, classify_rate, parse_target_rate, static_status
from machine_state.segments import StatusSegment, build_segments, minute_markers
from machine_state.timestamps import parse_timestamp

__all__ = [
    "GRACE_MS",
    "TIMEOUT_MS",
    "Liveness",
    "ShiftTotals",
    "Status",
    "StatusSegment",
    "build_segments",
    "classify_liveness",
    "classify_rate",
    "evaluate_machines",
    "health_score",
    "hourly_production",
    "hourly_targets",
    "is_online",
    "minute_markers",
    "parse_target_rate",
    "parse_timestamp",
    "resolve_machine_key",
    "shift_totals",
    "static_status",
]
