import asyncio
from typing import Optional
from unittest.mock import AsyncMock, Mock

import pytest

from babysitter.core.timeutil import now_utc
from babysitter.domain.models import DeviceState, Reading
from babysitter.storage.sqlite_repo import SQLiteRepository


@pytest.fixture
def repo(tmp_path):
    """Fresh on-disk store per test"""
    r = SQLiteRepository(str(tmp_path / "thermostat.db"))
    asyncio.run(r.init())
    return r


def make_reading(source: str, temperature: Optional[float], **kwargs) -> Reading:
    return Reading(source=source, timestamp=now_utc(), temperature=temperature, **kwargs)


def make_state(
    mode: str = "OFF",
    temperature: Optional[float] = 70.0,
    setpoint_heat: Optional[float] = None,
    setpoint_cool: Optional[float] = None,
    fan_running: bool = False,
) -> DeviceState:
    return DeviceState(
        mode=mode,
        hvac_status="OFF",
        temperature=temperature,
        humidity=40.0,
        setpoint_heat=setpoint_heat,
        setpoint_cool=setpoint_cool,
        fan_running=fan_running,
    )


def make_device(state: Optional[DeviceState]) -> Mock:
    device = Mock()
    device.api_id = "nest"
    device.is_configured.return_value = True
    device.current_state = AsyncMock(return_value=state)
    for name in ("set_mode", "set_heat_setpoint", "set_cool_setpoint", "set_fan_timer"):
        setattr(device, name, AsyncMock(return_value=True))
    return device
