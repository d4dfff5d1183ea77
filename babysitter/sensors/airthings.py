from __future__ import annotations

import logging
from typing import Optional

import httpx

from .base import Sensor
from ..core.config import settings
from ..core.errors import FetchError
from ..core.timeutil import now_utc
from ..core.units import c_to_f
from ..domain.models import AirQuality, Reading
from ..services.credentials import CredentialCache, TokenGrant
from ..services.health import HealthMonitor

logger = logging.getLogger(__name__)

AIRTHINGS_SCOPE = "read:device:current_values"


class AirthingsSensor(Sensor):
    """Airthings View Plus via the cloud API (client-credentials OAuth)."""

    source = "airthings"

    def __init__(
        self,
        credentials: CredentialCache,
        client_id: Optional[str],
        client_secret: Optional[str],
        device_id: Optional[str],
        token_url: str = "https://accounts-api.airthings.com/v1/token",
        api_base: str = "https://ext-api.airthings.com/v1",
        health: Optional[HealthMonitor] = None,
        timeout: float | None = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        super().__init__(health)
        self._credentials = credentials
        self._client_id = client_id
        self._client_secret = client_secret
        self._device_id = device_id
        self._api_base = api_base.rstrip("/")
        self._timeout = settings.http_timeout_seconds if timeout is None else timeout
        self._transport = transport

        if self.is_configured():
            credentials.register(
                self.api_id,
                TokenGrant.client_credentials(token_url, client_id, client_secret, AIRTHINGS_SCOPE),
            )

    def is_configured(self) -> bool:
        return bool(self._client_id and self._client_secret and self._device_id)

    async def _fetch(self) -> Reading:
        token = await self._credentials.get_token(self.api_id)

        async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
            resp = await client.get(
                f"{self._api_base}/devices/{self._device_id}/latest-samples",
                headers={"Authorization": f"Bearer {token}"},
            )

        if resp.status_code == 401:
            self._credentials.invalidate(self.api_id)
        if not resp.is_success:
            raise FetchError(f"API request failed: {resp.status_code}")

        data = resp.json().get("data") or {}
        temp = data.get("temp")
        if temp is None:
            raise FetchError("No temperature in response")

        temp_f = c_to_f(temp)
        humidity = data.get("humidity")
        air = AirQuality(
            voc=data.get("voc"),
            co2=data.get("co2"),
            pm25=data.get("pm25"),
            radon=data.get("radonShortTermAvg"),
        )
        logger.info(
            "Airthings: %.1f°F, %s%% humidity, VOC: %sppb, CO2: %sppm",
            temp_f, humidity,
            air.voc if air.voc is not None else "--",
            air.co2 if air.co2 is not None else "--",
        )
        return Reading(
            source=self.source,
            timestamp=now_utc(),
            temperature=temp_f,
            humidity=humidity,
            air=air,
        )
