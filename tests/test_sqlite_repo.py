import asyncio
from datetime import timedelta

import aiosqlite

from babysitter.core.timeutil import now_utc
from babysitter.domain.models import Action, ActionKind, AirQuality, HvacSnapshot, Reading
from babysitter.storage.sqlite_repo import SQLiteRepository

from conftest import make_reading


def _action(kind: ActionKind, ts=None) -> Action:
    return Action(
        timestamp=ts or now_utc(),
        action=kind,
        reason="Avg temp 68.0°F is 2.0° below target",
        avg_temp=68.0,
        target_temp=70.0,
    )


def test_readings_are_returned_newest_first(repo):
    async def run():
        for i, temp in enumerate((68.0, 69.0, 70.0)):
            await repo.save_reading(make_reading(f"s{i}", temp))
        return await repo.get_readings(2)

    rows = asyncio.run(run())

    assert [r.source for r in rows] == ["s2", "s1"]
    assert rows[0].id > rows[1].id
    assert rows[0].air is None and rows[0].hvac is None


def test_reading_extras_round_trip(repo):
    reading = Reading(
        source="device",
        timestamp=now_utc(),
        temperature=67.5,
        humidity=41.0,
        hvac=HvacSnapshot(hvac_status="HEATING", fan_running=False, mode="HEAT", setpoint_heat=90.0),
    )
    asyncio.run(repo.save_reading(reading))

    stored = asyncio.run(repo.get_readings(1))[0]

    assert stored.hvac.fan_running is False
    assert stored.hvac.mode == "HEAT"
    assert stored.hvac.setpoint_heat == 90.0
    assert stored.hvac.setpoint_cool is None
    assert stored.air is None


def test_readings_since_filters_by_timestamp(repo):
    now = now_utc()

    async def run():
        await repo.save_reading(Reading(source="old", timestamp=now - timedelta(hours=30), temperature=65.0))
        await repo.save_reading(Reading(source="new", timestamp=now - timedelta(minutes=5), temperature=66.0,
                                        air=AirQuality(co2=800)))
        return await repo.get_readings_since(now - timedelta(hours=24))

    rows = asyncio.run(run())

    assert [r.source for r in rows] == ["new"]
    assert rows[0].air.co2 == 800


def test_actions_limit_and_since(repo):
    now = now_utc()

    async def run():
        await repo.save_action(_action(ActionKind.HEAT, now - timedelta(hours=2)))
        await repo.save_action(_action(ActionKind.SET_HEAT, now - timedelta(minutes=1)))
        await repo.save_action(_action(ActionKind.MAINTAIN))
        return await repo.get_actions(2), await repo.get_actions_since(now - timedelta(hours=1))

    latest, recent = asyncio.run(run())

    assert [a.action for a in latest] == [ActionKind.MAINTAIN, ActionKind.SET_HEAT]
    assert [a.action for a in recent] == [ActionKind.MAINTAIN, ActionKind.SET_HEAT]
    assert latest[0].reason.startswith("Avg temp 68.0")


def test_state_upsert_and_current_state(repo):
    async def run():
        await repo.set_state("target_temp", 70)
        await repo.set_state("target_temp", 72.5)
        await repo.set_state("device_state", {"mode": "HEAT", "temperature": 66.1})
        await repo.set_state("fan_always_on", True)
        return await repo.get_current_state()

    state = asyncio.run(run())

    assert state["target_temp"]["value"] == 72.5
    assert state["device_state"]["value"] == {"mode": "HEAT", "temperature": 66.1}
    assert state["fan_always_on"]["value"] is True
    assert state["target_temp"]["updated_at"]
    assert asyncio.run(repo.get_state_value("missing")) is None


def test_non_json_state_value_is_returned_raw(repo, tmp_path):
    async def run():
        async with aiosqlite.connect(str(tmp_path / "thermostat.db")) as db:
            await db.execute("INSERT INTO state(key, value, updated_at) VALUES ('legacy', 'not json', 'x')")
            await db.commit()
        return await repo.get_state_value("legacy")

    assert asyncio.run(run()) == "not json"


def test_state_survives_reopen(tmp_path):
    path = str(tmp_path / "durable.db")

    async def run():
        first = SQLiteRepository(path)
        await first.init()
        await first.set_state("target_temp", 68.0)
        await first.save_action(_action(ActionKind.COOL))

        second = SQLiteRepository(path)
        await second.init()
        return await second.get_state_value("target_temp"), await second.get_actions(5)

    target, actions = asyncio.run(run())

    assert target == 68.0
    assert [a.action for a in actions] == [ActionKind.COOL]
