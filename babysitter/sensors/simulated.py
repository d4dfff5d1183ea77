from __future__ import annotations

import random
from threading import Lock
from typing import Optional

from .base import Sensor
from ..core.timeutil import now_utc
from ..domain.models import Reading
from ..services.health import HealthMonitor


class SimulatedSensor(Sensor):
    def __init__(
        self,
        source: str = "sim",
        temperature: float = 70.0,
        humidity: Optional[float] = 45.0,
        noise: float = 0.0,
        health: Optional[HealthMonitor] = None,
    ) -> None:
        super().__init__(health)
        self.source = source
        self._lock = Lock()
        self._enabled = True
        self._temperature = float(temperature)
        self._humidity = humidity
        self._noise = float(noise)

    def enable(self) -> None:
        with self._lock:
            self._enabled = True

    def disable(self) -> None:
        with self._lock:
            self._enabled = False

    def set_values(self, temperature: float, humidity: Optional[float] = None, noise: Optional[float] = None) -> None:
        with self._lock:
            self._temperature = float(temperature)
            if humidity is not None:
                self._humidity = humidity
            if noise is not None:
                self._noise = max(0.0, float(noise))

    def status(self) -> dict:
        with self._lock:
            return {
                "source": self.source,
                "enabled": self._enabled,
                "temperature": self._temperature,
                "humidity": self._humidity,
                "noise": self._noise,
            }

    async def _fetch(self) -> Reading:
        with self._lock:
            if not self._enabled:
                raise RuntimeError("Simulated sensor disabled")
            temp = self._temperature
            humidity = self._humidity
            noise = self._noise

        if noise > 0:
            temp += random.uniform(-noise, noise)

        return Reading(source=self.source, timestamp=now_utc(), temperature=temp, humidity=humidity)
