"""Floorline — Machine Service.

Machine registry on the event store: listing, lookup, registration (upsert)
and the ``last_updated`` touch performed on every log insert. Liveness is
derived on read; no status column is ever written.
"""

from __future__ import annotations

from datetime import datetime, tzinfo
from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from config import LivenessSettings, get_settings
from core.exceptions import ResourceNotFound, TimestampParseError, ValidationError
from db.models import Machine
from machine_state.liveness import Liveness, classify_liveness, now_ms
from machine_state.timestamps import parse_timestamp, to_store_text
from services.base import BaseService


class MachineService(BaseService[Machine]):
    """Service for the machine table.

    Args:
        db: Async session for the current unit of work.
        tz: Zone for naive timestamps (host local zone when None).
        liveness: Timeout thresholds used to derive the power indicator.
    """

    def __init__(
        self,
        db: AsyncSession,
        tz: tzinfo | None = None,
        liveness: LivenessSettings | None = None,
    ):
        super().__init__(Machine, db)
        self.tz = tz
        self.liveness = liveness or get_settings().liveness

    async def list_machines(self) -> list[Machine]:
        result = await self.db.execute(select(Machine).order_by(Machine.name))
        return list(result.scalars().all())

    async def get_by_name(self, name: str) -> Machine | None:
        result = await self.db.execute(select(Machine).where(Machine.name == name))
        return result.scalar_one_or_none()

    async def get_or_404(self, name: str) -> Machine:
        machine = await self.get_by_name(name)
        if machine is None:
            raise ResourceNotFound("Machine", name)
        return machine

    async def register(self, name: str, last_updated: Any = None) -> Machine:
        """Create the machine or refresh its ``last_updated``.

        A supplied ``last_updated`` is stored verbatim once it is known to
        parse; otherwise the current time is stored.

        Raises:
            ValidationError: If the name is blank or the timestamp unparseable.
        """
        name = (name or "").strip()
        if not name:
            raise ValidationError("name", "must not be blank")
        stamp = self._stamp(last_updated)

        machine = await self.get_by_name(name)
        if machine is not None:
            machine.last_updated = stamp
            await self.save(machine)
            self.logger.info("Machine refreshed", machine=name)
            return machine

        try:
            machine = await self.save(Machine(name=name, last_updated=stamp))
        except IntegrityError:
            # Registered concurrently; fall back to the update path.
            await self.db.rollback()
            machine = await self.get_or_404(name)
            machine.last_updated = stamp
            await self.save(machine)
        self.logger.info("Machine registered", machine=name)
        return machine

    async def touch(self, machine: Machine, at: datetime | None = None) -> Machine:
        machine.last_updated = to_store_text(at or datetime.now(self.tz), self.tz)
        return await self.save(machine)

    def describe(self, machine: Machine, now: float | None = None) -> dict[str, Any]:
        """Machine record as published to subscribers and API clients."""
        state = classify_liveness(
            machine.last_updated,
            now_ms() if now is None else now,
            self.liveness.timeout_ms,
            self.liveness.grace_ms,
            self.tz,
        )
        return {
            "name": machine.name,
            "last_updated": machine.last_updated,
            "online": None if state is Liveness.UNKNOWN else state is not Liveness.OFFLINE,
            "liveness": state.value,
        }

    def _stamp(self, value: Any) -> str:
        if value is None:
            return to_store_text(datetime.now(self.tz), self.tz)
        try:
            parse_timestamp(value, self.tz)
        except TimestampParseError as exc:
            raise ValidationError("last_updated", exc.message) from exc
        return str(value).strip()
