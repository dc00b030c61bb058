"""Floorline — Liveness Monitor.

Periodic machine timeout checker. Each pass reads every machine through a
fresh session, derives liveness from ``last_updated`` and publishes every
offline machine (one notification per offline machine per pass). Nothing
is written back to the store.

Usage:
    monitor = LivenessMonitor(get_session_maker(), notifier, settings.liveness)
    task = asyncio.create_task(monitor.run_forever())
    ...
    monitor.stop()
    await task
"""

from __future__ import annotations

import asyncio
import time
from datetime import tzinfo
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from config import LivenessSettings
from logger import get_logger
from machine_state.liveness import evaluate_machines, now_ms
from services.machine_service import MachineService
from services.notification_service import MachineNotifier

logger = get_logger(__name__)


class LivenessMonitor:
    """Runs liveness passes on a fixed interval.

    A pass that overruns the interval is abandoned and the ticks it missed
    are skipped rather than queued.
    """

    def __init__(
        self,
        session_maker: async_sessionmaker[AsyncSession] | None,
        notifier: MachineNotifier,
        settings: LivenessSettings | None = None,
        tz: tzinfo | None = None,
    ):
        self.session_maker = session_maker
        self.notifier = notifier
        self.settings = settings or LivenessSettings()
        self.tz = tz
        self._stop = asyncio.Event()
        self.passes = 0
        self.failures = 0
        self.logger = logger.bind(service="LivenessMonitor")

    async def run_once(self, now: float | None = None) -> dict[str, int]:
        """Evaluate all machines once through a fresh session.

        Returns:
            ``{checked, timed_out, skipped, unparseable}`` for the pass.
        """
        if self.session_maker is None:
            raise RuntimeError("LivenessMonitor has no session maker")
        async with self.session_maker() as session:
            return await self.check(session, now)

    async def check(self, session: AsyncSession, now: float | None = None) -> dict[str, int]:
        """Evaluate all machines once on ``session`` and publish the offline ones."""
        now = now_ms() if now is None else now
        machines = MachineService(session, tz=self.tz, liveness=self.settings)
        records = await machines.list_machines()
        report = evaluate_machines(
            records,
            now,
            self.settings.timeout_ms,
            self.settings.grace_ms,
            self.tz,
        )
        updates = [machines.describe(machine, now) for machine in report.offline]

        for machine in report.unparseable:
            self.logger.error(
                "Unparseable last_updated, machine skipped",
                machine=machine.name,
                value=machine.last_updated,
            )

        for update in updates:
            try:
                await self.notifier.publish(update)
            except Exception as exc:
                self.logger.warning(
                    "Timeout notification failed",
                    machine=update["name"],
                    error_type=type(exc).__name__,
                    error=str(exc),
                )

        summary = report.summary()
        if summary["timed_out"]:
            self.logger.debug("Liveness pass", **summary)
        return summary

    async def run_forever(self) -> None:
        """Loop until :meth:`stop` is called or the task is cancelled."""
        interval = self.settings.poll_interval_seconds
        self.logger.info(
            "Machine timeout checker started",
            interval_seconds=interval,
            timeout_ms=self.settings.timeout_ms,
        )
        if await self._sleep(self.settings.startup_delay_seconds):
            return

        next_tick = time.monotonic()
        while not self._stop.is_set():
            await self._tick(interval)
            self.passes += 1

            next_tick += interval
            now = time.monotonic()
            if now > next_tick:
                missed = int((now - next_tick) // interval) + 1
                next_tick += missed * interval
                self.logger.debug("Skipped overdue ticks", missed=missed)
            if await self._sleep(next_tick - now):
                break

        self.logger.info("Machine timeout checker stopped", passes=self.passes)

    def stop(self) -> None:
        self._stop.set()

    async def _tick(self, interval: float) -> Any:
        try:
            return await asyncio.wait_for(self.run_once(), timeout=interval)
        except asyncio.TimeoutError:
            self.failures += 1
            self.logger.warning("Liveness pass overran its interval", interval_seconds=interval)
        except Exception as exc:
            self.failures += 1
            self.logger.error(
                "Liveness pass failed",
                error_type=type(exc).__name__,
                error=str(exc),
            )
        return None

    async def _sleep(self, seconds: float) -> bool:
        """Sleep unless stopped first; True when a stop was requested."""
        if seconds <= 0:
            return self._stop.is_set()
        try:
            await asyncio.wait_for(self._stop.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            return False
        return True
