"""Floorline — Log Service.

Reads and writes the ``logs`` table. An insert validates the payload,
requires the machine to exist, stores the row, touches the machine's
``last_updated``, reads the row back and announces the machine through the
injected notifier. A notifier failure is logged; the insert stands.
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import date, datetime, tzinfo
from typing import Any

import pydantic
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from config import LivenessSettings
from core.exceptions import ResourceNotFound, TimestampParseError, ValidationError
from db.models import LogEntry
from machine_state.timestamps import to_store_text
from schemas.log import LogCreate
from services.base import BaseService
from services.machine_service import MachineService
from services.notification_service import MachineNotifier, NullNotifier


class LogService(BaseService[LogEntry]):
    """Service for machine logs.

    Args:
        db: Async session for the current unit of work.
        notifier: Receives the machine record after each stored log.
        tz: Zone for naive timestamps (host local zone when None).
    """

    def __init__(
        self,
        db: AsyncSession,
        notifier: MachineNotifier | None = None,
        tz: tzinfo | None = None,
        liveness: LivenessSettings | None = None,
    ):
        super().__init__(LogEntry, db)
        self.notifier = notifier or NullNotifier()
        self.tz = tz
        self.machines = MachineService(db, tz=tz, liveness=liveness)

    async def list_logs(
        self,
        machine: str | None = None,
        day: date | None = None,
    ) -> list[LogEntry]:
        """Logs filtered by machine and/or calendar date, in insertion order."""
        query = select(LogEntry)
        if machine:
            query = query.where(LogEntry.machine_name == machine)
        if day is not None:
            query = query.where(LogEntry.created_at.startswith(day.isoformat()))
        result = await self.db.execute(query.order_by(LogEntry.id))
        return list(result.scalars().all())

    async def insert_log(self, payload: LogCreate | Mapping[str, Any]) -> LogEntry:
        """Store one log and announce its machine.

        Raises:
            ValidationError: If the payload is incomplete or malformed.
            ResourceNotFound: If the machine is not registered (no row is
                written and nothing is published).
        """
        data = self._validate(payload)

        machine = await self.machines.get_by_name(data.machine_name)
        if machine is None:
            self.logger.warning("Log rejected for unknown machine", machine=data.machine_name)
            raise ResourceNotFound("Machine", data.machine_name)

        now = datetime.now(self.tz)
        try:
            created_at = to_store_text(data.created_at if data.created_at is not None else now, self.tz)
        except TimestampParseError as exc:
            raise ValidationError("created_at", exc.message) from exc

        entry = LogEntry(
            **data.model_dump(exclude={"created_at"}),
            created_at=created_at,
        )
        self.db.add(entry)
        await self.machines.touch(machine, now)
        await self.db.flush()
        await self.db.commit()

        stored = await self.get(entry.id)
        self.logger.info(
            "Log stored",
            machine=data.machine_name,
            log_id=entry.id,
            event_kind=data.event,
        )

        try:
            await self.notifier.publish(self.machines.describe(machine))
        except Exception as exc:
            self.logger.error(
                "Machine update notification failed",
                machine=data.machine_name,
                error_type=type(exc).__name__,
                error=str(exc),
            )

        return stored if stored is not None else entry

    @staticmethod
    def _validate(payload: LogCreate | Mapping[str, Any]) -> LogCreate:
        if isinstance(payload, LogCreate):
            return payload
        try:
            return LogCreate.model_validate(dict(payload))
        except pydantic.ValidationError as exc:
            first = exc.errors()[0]
            field = ".".join(str(part) for part in first.get("loc", ())) or "payload"
            raise ValidationError(field, first.get("msg", "invalid value")) from exc
