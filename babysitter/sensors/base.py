from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Optional

from ..domain.models import Reading
from ..services.health import HealthMonitor

logger = logging.getLogger(__name__)


class Sensor(ABC):
    """Domain-facing sensor abstraction.

    Subclasses implement ``_fetch`` and may raise; ``fetch_reading`` is the
    boundary that turns any failure into ``None`` and a health report.
    """

    source: str = "unknown"

    def __init__(self, health: Optional[HealthMonitor] = None) -> None:
        self._health = health

    @property
    def api_id(self) -> str:
        return self.source

    def is_configured(self) -> bool:
        return True

    @abstractmethod
    async def _fetch(self) -> Reading:
        """Return a normalized reading (°F). Raise on failure."""
        ...

    async def fetch_reading(self) -> Optional[Reading]:
        if not self.is_configured():
            logger.info("%s: missing credentials, skipping", self.source)
            return None

        try:
            reading = await self._fetch()
        except Exception as e:
            logger.warning("%s read FAILED: %s", self.source, e, exc_info=True)
            if self._health is not None:
                self._health.report_error(self.api_id, str(e))
            return None

        if self._health is not None:
            self._health.report_success(self.api_id)
        return reading
