import asyncio
from unittest.mock import AsyncMock, Mock

from babysitter.domain.models import ActionKind, ControlResult
from babysitter.services.poller import PollerService

from conftest import make_reading


def _sensor(source, reading=None, exc=None):
    s = Mock()
    s.source = source
    s.fetch_reading = AsyncMock(return_value=reading, side_effect=exc)
    return s


def _health():
    h = Mock()
    h.ping = AsyncMock(return_value=True)
    return h


def test_cycle_fans_out_and_pings():
    a = make_reading("awair", 68.0)
    sensors = [_sensor("awair", a), _sensor("airthings", None)]
    engine = Mock()
    result = ControlResult(ActionKind.HEAT, "cold", 68.0, [a])
    engine.evaluate_and_control = AsyncMock(return_value=result)
    health = _health()
    poller = PollerService(sensors, engine, health, poll_seconds=60)

    out = asyncio.run(poller.run_cycle())

    assert out is result
    engine.evaluate_and_control.assert_awaited_once_with([a, None])
    health.ping.assert_awaited_once()
    assert poller.live.cycles == 1
    assert poller.live.last_readings == (a,)


def test_one_broken_sensor_does_not_block_others():
    b = make_reading("airthings", 70.0)
    sensors = [_sensor("awair", exc=RuntimeError("boom")), _sensor("airthings", b)]
    engine = Mock()
    engine.evaluate_and_control = AsyncMock(return_value=None)
    poller = PollerService(sensors, engine, _health(), poll_seconds=60)

    asyncio.run(poller.run_cycle())

    engine.evaluate_and_control.assert_awaited_once_with([None, b])


def test_cycles_never_overlap():
    active = 0
    overlaps = []

    async def slow_evaluate(readings):
        nonlocal active
        active += 1
        overlaps.append(active)
        await asyncio.sleep(0.01)
        active -= 1
        return None

    engine = Mock()
    engine.evaluate_and_control = slow_evaluate
    poller = PollerService([_sensor("awair", make_reading("awair", 70.0))], engine, _health(), poll_seconds=60)

    async def run():
        await asyncio.gather(poller.run_cycle(), poller.run_cycle(), poller.run_cycle())

    asyncio.run(run())

    assert overlaps == [1, 1, 1]
    assert poller.live.cycles == 3


def test_loop_survives_engine_errors():
    engine = Mock()
    engine.evaluate_and_control = AsyncMock(side_effect=RuntimeError("db locked"))
    poller = PollerService([_sensor("awair", make_reading("awair", 70.0))], engine, _health(), poll_seconds=0.01)

    async def run():
        await poller.start()
        await asyncio.sleep(0.05)
        await poller.stop()

    asyncio.run(run())

    assert engine.evaluate_and_control.await_count >= 2
