from __future__ import annotations
import logging
from dataclasses import replace
from typing import Optional

from ..domain.models import DeviceState, MODE_OFF

logger = logging.getLogger(__name__)


class SimulatedThermostat:
    api_id = "thermostat_sim"

    def __init__(self, temperature: float = 70.0, mode: str = MODE_OFF) -> None:
        self._state = DeviceState(
            mode=mode,
            hvac_status="OFF",
            temperature=temperature,
            humidity=45.0,
            setpoint_heat=None,
            setpoint_cool=None,
            fan_running=False,
        )

    def is_configured(self) -> bool:
        return True

    def set_temperature(self, temp_f: float) -> None:
        self._state = replace(self._state, temperature=float(temp_f))

    async def current_state(self) -> Optional[DeviceState]:
        return self._state

    async def set_mode(self, mode: str) -> bool:
        status = {"HEAT": "HEATING", "COOL": "COOLING"}.get(mode, "OFF")
        self._state = replace(self._state, mode=mode, hvac_status=status)
        logger.info("THERMOSTAT set_mode=%s", mode)
        return True

    async def set_heat_setpoint(self, temp_f: float) -> bool:
        self._state = replace(self._state, setpoint_heat=float(temp_f))
        logger.info("THERMOSTAT heat setpoint=%.1f", temp_f)
        return True

    async def set_cool_setpoint(self, temp_f: float) -> bool:
        self._state = replace(self._state, setpoint_cool=float(temp_f))
        logger.info("THERMOSTAT cool setpoint=%.1f", temp_f)
        return True

    async def set_fan_timer(self, duration_seconds: int) -> bool:
        self._state = replace(self._state, fan_running=True, fan_timer_timeout=f"{duration_seconds}s")
        logger.info("THERMOSTAT fan timer=%ss", duration_seconds)
        return True
