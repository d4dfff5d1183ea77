from __future__ import annotations
import logging
from dataclasses import asdict
from typing import Any, Iterable, Optional

from ..core.config import settings
from ..core.errors import NoValidReadings
from ..core.timeutil import now_utc, to_iso
from ..domain import controller
from ..domain.interfaces import DeviceController, Repository
from ..domain.models import (
    Action,
    ActionKind,
    ControlResult,
    Decision,
    DeviceState,
    MODE_COOL,
    MODE_HEAT,
    MODE_OFF,
    Reading,
)

logger = logging.getLogger(__name__)

DEVICE_SOURCE = "device"


class DecisionEngine:
    """One poll cycle: average the sensors, decide, drive the thermostat, record it all."""

    def __init__(
        self,
        repo: Repository,
        device: Optional[DeviceController] = None,
        default_target: float | None = None,
        threshold: float | None = None,
        fan_always_on_default: bool | None = None,
        fan_timer_seconds: int | None = None,
    ) -> None:
        self._repo = repo
        self._device = device
        self._default_target = settings.target_temp if default_target is None else default_target
        self._threshold = settings.threshold if threshold is None else threshold
        self._fan_default = settings.fan_always_on if fan_always_on_default is None else fan_always_on_default
        self._fan_timer_seconds = settings.fan_timer_seconds if fan_timer_seconds is None else fan_timer_seconds

    @property
    def threshold(self) -> float:
        return self._threshold

    # --- runtime parameters ---

    async def get_target_temp(self) -> float:
        value = await self._repo.get_state_value("target_temp")
        return self._default_target if value is None else float(value)

    async def set_target_temp(self, temp: float) -> None:
        await self._repo.set_state("target_temp", float(temp))
        logger.info("Target temperature set to %.1f°F", temp)

    async def get_fan_always_on(self) -> bool:
        value = await self._repo.get_state_value("fan_always_on")
        return self._fan_default if value is None else bool(value)

    async def set_fan_always_on(self, enabled: bool) -> None:
        await self._repo.set_state("fan_always_on", bool(enabled))
        logger.info("Fan always on set to %s", bool(enabled))

    async def renew_fan_timer(self) -> bool:
        if self._device is None or not self._device.is_configured():
            return False
        return await self._device.set_fan_timer(self._fan_timer_seconds)

    # --- control loop ---

    async def evaluate_and_control(self, readings: Iterable[Optional[Reading]]) -> Optional[ControlResult]:
        valid = controller.valid_readings(readings)
        try:
            avg_temp = controller.average_temperature(valid)
        except NoValidReadings as e:
            logger.warning("%s, skipping", e)
            await self._repo.set_state("last_error", str(e))
            return None

        for reading in valid:
            await self._repo.save_reading(reading)

        target = await self.get_target_temp()
        decision = controller.decide(avg_temp, target, self._threshold)
        logger.info("Avg: %.1f°F, Target: %.1f°F ±%s°F", avg_temp, target, self._threshold)
        logger.info("Action: %s - %s", decision.action.value, decision.reason)

        await self._repo.set_state_batch({
            "avg_temp": avg_temp,
            "target_temp": target,
            "threshold": self._threshold,
            "sensor_count": len(valid),
            "last_check": to_iso(now_utc()),
            "last_error": None,
        })

        state: Optional[DeviceState] = None
        if self._device is not None and self._device.is_configured():
            state = await self._device.current_state()
        await self._repo.set_state("device_state", asdict(state) if state else None)

        if state is None:
            # Decision still gets logged when the thermostat is out of reach
            await self._record(decision.action, decision)
        else:
            await self._repo.save_reading(state.to_reading(DEVICE_SOURCE, now_utc()))
            await self._keep_fan_running(state)
            await self._actuate(decision, state)

        await self._repo.set_state_batch({
            "last_action": decision.action.value,
            "last_reason": decision.reason,
        })
        return ControlResult(decision.action, decision.reason, avg_temp, valid)

    async def _record(self, kind: ActionKind, decision: Decision) -> None:
        await self._repo.save_action(
            Action(
                timestamp=now_utc(),
                action=kind,
                reason=decision.reason,
                avg_temp=decision.avg_temp,
                target_temp=decision.target_temp,
            )
        )

    async def _keep_fan_running(self, state: DeviceState) -> None:
        if state.fan_running or not await self.get_fan_always_on():
            return
        logger.info("Fan not running, renewing %ss timer", self._fan_timer_seconds)
        await self._device.set_fan_timer(self._fan_timer_seconds)

    async def _actuate(self, decision: Decision, state: DeviceState) -> None:
        device_temp = state.temperature

        if decision.action is ActionKind.HEAT:
            if state.mode != MODE_HEAT:
                logger.info("Switching thermostat to HEAT mode")
                await self._device.set_mode(MODE_HEAT)
                await self._record(ActionKind.SET_HEAT, decision)
            if device_temp is None:
                logger.warning("Thermostat reports no temperature, not forcing heat setpoint")
            elif controller.needs_heat_forcing(state.setpoint_heat, device_temp):
                forced = controller.forced_heat_setpoint(device_temp)
                logger.info("Forcing heat: setpoint %.1f°F (thermostat reads %.1f°F)", forced, device_temp)
                await self._device.set_heat_setpoint(forced)

        elif decision.action is ActionKind.COOL:
            if state.mode != MODE_COOL:
                logger.info("Switching thermostat to COOL mode")
                await self._device.set_mode(MODE_COOL)
                await self._record(ActionKind.SET_COOL, decision)
            if device_temp is None:
                logger.warning("Thermostat reports no temperature, not forcing cool setpoint")
            elif controller.needs_cool_forcing(state.setpoint_cool, device_temp):
                forced = controller.forced_cool_setpoint(device_temp)
                logger.info("Forcing cool: setpoint %.1f°F (thermostat reads %.1f°F)", forced, device_temp)
                await self._device.set_cool_setpoint(forced)

        else:
            if state.mode != MODE_OFF:
                logger.info("Temperature satisfied, turning thermostat OFF")
                await self._device.set_mode(MODE_OFF)
                await self._record(ActionKind.SET_OFF, decision)
            else:
                await self._record(ActionKind.MAINTAIN, decision)

    async def snapshot(self, readings: int = 20, actions: int = 10) -> dict[str, Any]:
        """Current state plus recent history, as the dashboard reads it."""
        return {
            "state": await self._repo.get_current_state(),
            "readings": await self._repo.get_readings(readings),
            "actions": await self._repo.get_actions(actions),
            "fan_always_on": await self.get_fan_always_on(),
        }
