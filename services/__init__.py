"""Floorline — Service Layer.

This package contains the services that sit between the API routes and the
event store, keeping routes thin.

Services:
    - MachineService: Machine registry, upsert and last_updated touch
    - LogService: Log ingestion (validate, store, read back, notify) and queries
    - DashboardService: Timeline, shift and overview views
    - LivenessMonitor: Periodic machine timeout checker
    - WebSocketHub / RedisNotifier / CompositeNotifier: Machine-update fan-out

Usage:
    from services import LogService

    async def insert_log(payload: LogCreate, db: AsyncSession = Depends(get_db)):
        return await LogService(db, notifier).insert_log(payload)
"""

from services.base import BaseService
from services.dashboard_service import DashboardService
from services.liveness_service import LivenessMonitor
from services.log_service import LogService
from services.machine_service import MachineService
from services.notification_service import (
    CompositeNotifier,
    MachineNotifier,
    NullNotifier,
    RedisNotifier,
    WebSocketHub,
)

__all__ = [
    "BaseService",
    "CompositeNotifier",
    "DashboardService",
    "LivenessMonitor",
    "LogService",
    "MachineNotifier",
    "MachineService",
    "NullNotifier",
    "RedisNotifier",
    "WebSocketHub",
]
