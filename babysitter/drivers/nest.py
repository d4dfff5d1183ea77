from __future__ import annotations

import logging
from typing import Any, Optional

import httpx

from ..core.config import settings
from ..core.errors import CommandError, FetchError
from ..core.units import c_to_f, f_to_c
from ..domain.models import DeviceState
from ..services.credentials import CredentialCache, TokenGrant
from ..services.health import HealthMonitor

logger = logging.getLogger(__name__)

MAX_FAN_TIMER_SECONDS = 43200

_TRAIT = "sdm.devices.traits."
_COMMAND = "sdm.devices.commands."


class NestThermostat:
    """Google Nest thermostat via the Smart Device Management API.

    Reads return ``None`` and commands return ``False`` on failure; nothing
    here raises to the caller.
    """

    api_id = "nest"

    def __init__(
        self,
        credentials: CredentialCache,
        project_id: Optional[str],
        device_id: Optional[str],
        client_id: Optional[str],
        client_secret: Optional[str],
        refresh_token: Optional[str],
        token_url: str = "https://oauth2.googleapis.com/token",
        api_base: str = "https://smartdevicemanagement.googleapis.com/v1",
        health: Optional[HealthMonitor] = None,
        timeout: float | None = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._credentials = credentials
        self._project_id = project_id
        self._device_id = device_id
        self._refresh_token = refresh_token
        self._api_base = api_base.rstrip("/")
        self._health = health
        self._timeout = settings.http_timeout_seconds if timeout is None else timeout
        self._transport = transport

        if refresh_token and client_id and client_secret:
            credentials.register(
                self.api_id,
                TokenGrant.refresh_token(token_url, client_id, client_secret, refresh_token),
            )

    def is_configured(self) -> bool:
        return bool(self._project_id and self._device_id and self._refresh_token)

    @property
    def _device_url(self) -> str:
        return f"{self._api_base}/enterprises/{self._project_id}/devices/{self._device_id}"

    async def _get(self, url: str) -> dict[str, Any]:
        token = await self._credentials.get_token(self.api_id)
        async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
            resp = await client.get(url, headers={"Authorization": f"Bearer {token}"})
        if resp.status_code == 401:
            self._credentials.invalidate(self.api_id)
        if not resp.is_success:
            raise FetchError(f"API request failed: {resp.status_code}")
        return resp.json()

    async def current_state(self) -> Optional[DeviceState]:
        if not self.is_configured():
            logger.info("Nest: missing credentials, skipping")
            return None

        try:
            data = await self._get(self._device_url)
            state = self._parse_state(data.get("traits") or {})
        except Exception as e:
            logger.warning("Nest get state failed: %s", e, exc_info=True)
            if self._health is not None:
                self._health.report_error(self.api_id, str(e))
            return None

        logger.info(
            "Nest: mode=%s hvac=%s fan=%s temp=%s°F",
            state.mode, state.hvac_status, "ON" if state.fan_running else "OFF",
            f"{state.temperature:.1f}" if state.temperature is not None else "--",
        )
        if self._health is not None:
            self._health.report_success(self.api_id)
        return state

    @staticmethod
    def _parse_state(traits: dict[str, Any]) -> DeviceState:
        def trait(name: str) -> dict[str, Any]:
            return traits.get(_TRAIT + name) or {}

        setpoint = trait("ThermostatTemperatureSetpoint")
        fan = trait("Fan")
        return DeviceState(
            mode=trait("ThermostatMode").get("mode"),
            hvac_status=trait("ThermostatHvac").get("status"),
            temperature=c_to_f(trait("Temperature").get("ambientTemperatureCelsius")),
            humidity=trait("Humidity").get("ambientHumidityPercent"),
            setpoint_heat=c_to_f(setpoint.get("heatCelsius")),
            setpoint_cool=c_to_f(setpoint.get("coolCelsius")),
            fan_running=fan.get("timerMode") == "ON",
            fan_timer_timeout=fan.get("timerTimeout"),
        )

    async def _execute(self, command: str, params: dict[str, Any]) -> bool:
        if not self.is_configured():
            logger.info("Nest: missing credentials, cannot run %s", command)
            return False

        try:
            token = await self._credentials.get_token(self.api_id)
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                resp = await client.post(
                    f"{self._device_url}:executeCommand",
                    headers={"Authorization": f"Bearer {token}"},
                    json={"command": _COMMAND + command, "params": params},
                )
            if not resp.is_success:
                raise CommandError(f"{command} failed: {resp.status_code} - {resp.text}")
        except Exception:
            logger.warning("Nest %s(%s) failed", command, params, exc_info=True)
            return False
        return True

    async def set_mode(self, mode: str) -> bool:
        ok = await self._execute("ThermostatMode.SetMode", {"mode": mode})
        if ok:
            logger.info("Nest mode set to %s", mode)
        return ok

    async def set_heat_setpoint(self, temp_f: float) -> bool:
        ok = await self._execute(
            "ThermostatTemperatureSetpoint.SetHeat", {"heatCelsius": f_to_c(temp_f)}
        )
        if ok:
            logger.info("Nest heat setpoint: %.1f°F", temp_f)
        return ok

    async def set_cool_setpoint(self, temp_f: float) -> bool:
        ok = await self._execute(
            "ThermostatTemperatureSetpoint.SetCool", {"coolCelsius": f_to_c(temp_f)}
        )
        if ok:
            logger.info("Nest cool setpoint: %.1f°F", temp_f)
        return ok

    async def set_fan_timer(self, duration_seconds: int = MAX_FAN_TIMER_SECONDS) -> bool:
        duration = max(1, min(int(duration_seconds), MAX_FAN_TIMER_SECONDS))
        ok = await self._execute("Fan.SetTimer", {"timerMode": "ON", "duration": f"{duration}s"})
        if ok:
            logger.info("Nest fan timer set for %d seconds", duration)
        return ok

    async def list_devices(self) -> list[dict[str, Any]]:
        """List devices visible to the SDM project; used once during setup to find the device id.

        Unlike the control calls this raises, so the caller can show the error.
        """
        if not (self._project_id and self._refresh_token):
            raise FetchError("Nest project id and refresh token are required")

        data = await self._get(f"{self._api_base}/enterprises/{self._project_id}/devices")
        devices: list[dict[str, Any]] = []
        for d in data.get("devices") or []:
            traits = d.get("traits") or {}
            dtype = d.get("type", "")
            entry: dict[str, Any] = {
                "device_id": d.get("name", "").split("/")[-1],
                "type": dtype,
                "name": (traits.get(_TRAIT + "Info") or {}).get("customName") or "unnamed",
                "is_thermostat": "THERMOSTAT" in dtype,
            }
            if entry["is_thermostat"]:
                state = self._parse_state(traits)
                entry.update(mode=state.mode, hvac_status=state.hvac_status, temperature=state.temperature)
            devices.append(entry)

        logger.info("Nest discovery found %d device(s)", len(devices))
        return devices
