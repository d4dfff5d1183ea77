from __future__ import annotations

import logging
from typing import Any, Optional

import httpx

from .base import Sensor
from ..core.config import settings
from ..core.errors import FetchError
from ..core.timeutil import now_utc
from ..core.units import c_to_f
from ..domain.models import AirQuality, Reading
from ..services.health import HealthMonitor

logger = logging.getLogger(__name__)


def _component(sensors: list[dict[str, Any]], comp: str) -> Optional[float]:
    for s in sensors:
        if s.get("comp") == comp:
            return s.get("value")
    return None


class AwairSensor(Sensor):
    """Awair Element via the cloud API (static bearer token from the Awair app)."""

    source = "awair"

    def __init__(
        self,
        token: Optional[str],
        device_id: Optional[str],
        device_type: str = "awair-element",
        api_base: str = "https://developer-apis.awair.is/v1",
        health: Optional[HealthMonitor] = None,
        timeout: float | None = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        super().__init__(health)
        self._token = token
        self._device_id = device_id
        self._device_type = device_type
        self._api_base = api_base.rstrip("/")
        self._timeout = settings.http_timeout_seconds if timeout is None else timeout
        self._transport = transport

    def is_configured(self) -> bool:
        return bool(self._token and self._device_id)

    async def _fetch(self) -> Reading:
        url = (
            f"{self._api_base}/users/self/devices/"
            f"{self._device_type}/{self._device_id}/air-data/latest"
        )
        async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
            resp = await client.get(url, headers={"Authorization": f"Bearer {self._token}"})

        if not resp.is_success:
            raise FetchError(f"HTTP {resp.status_code}: {resp.text}")

        entries = resp.json().get("data") or []
        if not entries:
            raise FetchError("No data in response")
        latest = entries[0]

        # Newer payloads nest values under "sensors"; older ones are flat
        if "sensors" in latest:
            sensors = latest["sensors"] or []
            temp = _component(sensors, "temp")
            humidity = _component(sensors, "humid")
            voc = _component(sensors, "voc")
            co2 = _component(sensors, "co2")
            pm25 = _component(sensors, "pm25")
        else:
            temp = latest.get("temp")
            humidity = latest.get("humid")
            voc = latest.get("voc")
            co2 = latest.get("co2")
            pm25 = latest.get("pm25")

        if temp is None:
            raise FetchError("No temperature in response")

        temp_f = c_to_f(temp)
        logger.info(
            "Awair: %.1f°F, %s%% humidity, VOC: %sppb, CO2: %sppm",
            temp_f, humidity, voc if voc is not None else "--", co2 if co2 is not None else "--",
        )
        return Reading(
            source=self.source,
            timestamp=now_utc(),
            temperature=temp_f,
            humidity=humidity,
            air=AirQuality(voc=voc, co2=co2, pm25=pm25),
        )
