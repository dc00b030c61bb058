"""Tests for the machine registry and log ingestion services."""

from datetime import date, timezone

import pytest

from core.exceptions import ResourceNotFound, ValidationError
from factories import FailingNotifier
from services.log_service import LogService
from services.machine_service import MachineService

UTC = timezone.utc

# 2026-01-07T08:00:00Z in milliseconds
NOW = 1767772800000.0


def interval_payload(**overrides):
    payload = {
        "machine_name": "SM73",
        "event": "auto interval log",
        "interval_count": 150,
        "machine_rate": 900,
        "created_at": "2026-01-07T08:15:00Z",
    }
    payload.update(overrides)
    return payload


@pytest.fixture
async def machines(db_session):
    service = MachineService(db_session, tz=UTC)
    await service.register("SM73", "2020-01-01 00:00:00")
    await db_session.commit()
    return service


class TestMachineRegistry:
    async def test_register_and_list(self, db_session):
        service = MachineService(db_session, tz=UTC)
        await service.register("SM74")
        await service.register("SM73")

        names = [m.name for m in await service.list_machines()]
        assert names == ["SM73", "SM74"]

    async def test_register_again_refreshes(self, db_session, machines):
        machine = await machines.register("SM73", "2026-01-07T08:00:00Z")

        assert machine.last_updated == "2026-01-07T08:00:00Z"
        assert len(await machines.list_machines()) == 1

    async def test_register_defaults_to_now(self, db_session):
        service = MachineService(db_session, tz=UTC)
        machine = await service.register("  SM75  ")

        assert machine.name == "SM75"
        assert service.describe(machine)["liveness"] == "recent"

    async def test_register_rejects_bad_timestamp(self, db_session):
        service = MachineService(db_session, tz=UTC)
        with pytest.raises(ValidationError) as exc_info:
            await service.register("SM73", "garbage")
        assert exc_info.value.field == "last_updated"

    async def test_register_rejects_blank_name(self, db_session):
        with pytest.raises(ValidationError):
            await MachineService(db_session, tz=UTC).register("   ")

    async def test_get_or_404(self, machines):
        with pytest.raises(ResourceNotFound) as exc_info:
            await machines.get_or_404("SM99")
        assert exc_info.value.message == "machine not found: 'SM99'"

    async def test_describe(self, machines):
        machine = await machines.get_or_404("SM73")
        assert machines.describe(machine, NOW) == {
            "name": "SM73",
            "last_updated": "2020-01-01 00:00:00",
            "online": False,
            "liveness": "offline",
        }


class TestInsertLog:
    async def test_round_trip_and_notification(self, db_session, machines, notifier):
        service = LogService(db_session, notifier, tz=UTC)
        entry = await service.insert_log(interval_payload())

        assert entry.id is not None
        assert entry.machine_name == "SM73"
        assert entry.interval_count == 150
        assert entry.created_at == "2026-01-07 08:15:00"

        stored = await service.list_logs("SM73")
        assert [log.id for log in stored] == [entry.id]

        assert notifier.names == ["SM73"]
        assert notifier.published[0]["online"] is True

    async def test_touches_last_updated(self, db_session, machines):
        await LogService(db_session, tz=UTC).insert_log(interval_payload())

        machine = await machines.get_or_404("SM73")
        assert machine.last_updated != "2020-01-01 00:00:00"
        assert machines.describe(machine)["online"] is True

    async def test_unknown_machine(self, db_session, machines, notifier):
        service = LogService(db_session, notifier, tz=UTC)
        with pytest.raises(ResourceNotFound):
            await service.insert_log(interval_payload(machine_name="SM99"))

        assert await service.list_logs() == []
        assert notifier.published == []

    @pytest.mark.parametrize(
        "overrides,field",
        [
            ({"event": None}, "event"),
            ({"event": "   "}, "event"),
            ({"interval_count": -1}, "interval_count"),
            ({"machine_rate": "fast"}, "machine_rate"),
            ({"created_at": "garbage"}, "created_at"),
        ],
    )
    async def test_validation(self, db_session, machines, notifier, overrides, field):
        service = LogService(db_session, notifier, tz=UTC)
        with pytest.raises(ValidationError) as exc_info:
            await service.insert_log(interval_payload(**overrides))

        assert exc_info.value.field == field
        assert await service.list_logs() == []
        assert notifier.published == []

    async def test_identity_alias(self, db_session, machines):
        payload = interval_payload()
        del payload["machine_name"]
        payload["machine_id"] = "SM73"

        entry = await LogService(db_session, tz=UTC).insert_log(payload)
        assert entry.machine_name == "SM73"

    async def test_numeric_text_fields_are_stored_as_text(self, db_session, machines):
        entry = await LogService(db_session, tz=UTC).insert_log(
            interval_payload(mo=4512, shift_number=2, part_number="PN-7")
        )
        assert (entry.mo, entry.shift_number, entry.part_number) == ("4512", "2", "PN-7")

    async def test_created_at_defaults_to_now(self, db_session, machines):
        payload = interval_payload()
        del payload["created_at"]

        entry = await LogService(db_session, tz=UTC).insert_log(payload)
        assert len(entry.created_at) == len("2026-01-07 08:15:00")

    async def test_notifier_failure_keeps_the_log(self, db_session, machines):
        service = LogService(db_session, FailingNotifier(), tz=UTC)
        entry = await service.insert_log(interval_payload())

        assert [log.id for log in await service.list_logs()] == [entry.id]


class TestListLogs:
    async def test_filters(self, db_session, machines):
        await machines.register("SM74")
        service = LogService(db_session, tz=UTC)
        await service.insert_log(interval_payload(created_at="2026-01-06T23:00:00Z"))
        await service.insert_log(interval_payload())
        await service.insert_log(interval_payload(machine_name="SM74"))

        assert len(await service.list_logs()) == 3
        assert len(await service.list_logs("SM73")) == 2
        assert len(await service.list_logs(day=date(2026, 1, 7))) == 2
        assert len(await service.list_logs("SM73", date(2026, 1, 6))) == 1
        assert await service.list_logs("SM99") == []
