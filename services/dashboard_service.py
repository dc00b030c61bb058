"""Floorline — Dashboard Service.

Fetches machines and logs from the store and composes the dashboard views
(timeline, shift rows, machine cards, factory overview).
"""

from __future__ import annotations

from collections import defaultdict
from datetime import date, datetime, tzinfo
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from config import DashboardSettings, LivenessSettings
from db.models import LogEntry
from machine_state.liveness import now_ms
from machine_state.views import (
    ShiftView,
    Timeline,
    available_dates,
    build_hour_rows,
    build_machine_card,
    build_timeline,
    factory_status,
    group_logs_by_hour,
)
from services.log_service import LogService
from services.machine_service import MachineService


class DashboardService:
    def __init__(
        self,
        db: AsyncSession,
        dashboard: DashboardSettings | None = None,
        liveness: LivenessSettings | None = None,
    ):
        self.dashboard = dashboard or DashboardSettings()
        self.tz: tzinfo | None = self.dashboard.tzinfo
        self.machines = MachineService(db, tz=self.tz, liveness=liveness)
        self.logs = LogService(db, tz=self.tz, liveness=liveness)

    def today(self) -> date:
        return datetime.now(self.tz).date()

    async def dates(self) -> list[date]:
        return available_dates(await self.logs.list_logs(), self.tz)

    async def logs_by_hour(
        self,
        machine: str | None = None,
        day: date | None = None,
    ) -> list[tuple[datetime, list[LogEntry]]]:
        """Logs bucketed by the dashboard-local hour they were created in."""
        logs = await self.logs.list_logs(machine, day)
        return list(group_logs_by_hour(logs, self.tz).items())

    async def timeline(self, name: str, day: date | None = None) -> Timeline:
        """Day timeline for one machine; today's window ends at "now"."""
        machine = await self.machines.get_or_404(name)
        day = day or self.today()
        logs = await self.logs.list_logs(machine.name, day)
        return build_timeline(logs, day, now=datetime.now(self.tz).astimezone(), tz=self.tz)

    async def shift(self, name: str, day: date | None = None) -> ShiftView:
        machine = await self.machines.get_or_404(name)
        day = day or self.today()
        logs = await self.logs.list_logs(machine.name, day)
        return build_hour_rows(logs, day, self.tz)

    async def overview(self, day: date | None = None) -> dict[str, Any]:
        """Machine cards for every registered machine plus factory counts."""
        day = day or self.today()
        by_machine: dict[str, list[LogEntry]] = defaultdict(list)
        for log in await self.logs.list_logs(day=day):
            by_machine[log.machine_name].append(log)

        now = now_ms()
        cards = []
        for machine in await self.machines.list_machines():
            record = self.machines.describe(machine, now)
            cards.append(
                build_machine_card(
                    machine.name,
                    by_machine.get(machine.name, []),
                    record["online"],
                    self.dashboard.production_periods,
                    self.tz,
                )
            )
        return {
            "date": day.isoformat(),
            "factory": factory_status(cards),
            "machines": [card.to_dict() for card in cards],
        }
