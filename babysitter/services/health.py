from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Optional, Tuple

import httpx

from ..core.config import settings
from ..domain.models import ApiHealth

logger = logging.getLogger(__name__)

KNOWN_APIS = ("awair", "airthings", "nest")


class HealthMonitor:
    """Consecutive-failure tracking per external API plus the dead-man's-switch ping."""

    def __init__(
        self,
        ping_url: Optional[str] = None,
        failure_threshold: int | None = None,
        api_ids: Iterable[str] = KNOWN_APIS,
        timeout: float | None = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._ping_url = ping_url
        self._threshold = settings.failure_threshold if failure_threshold is None else failure_threshold
        self._timeout = settings.http_timeout_seconds if timeout is None else timeout
        self._transport = transport
        self._apis: Dict[str, ApiHealth] = {api_id: ApiHealth() for api_id in api_ids}

    def _entry(self, api_id: str) -> ApiHealth:
        return self._apis.setdefault(api_id, ApiHealth())

    def report_error(self, api_id: str, message: str) -> None:
        h = self._entry(api_id)
        h.consecutive_failures += 1
        h.last_error = message

        if h.consecutive_failures >= self._threshold and h.healthy:
            h.healthy = False
            logger.error(
                "%s API marked unhealthy after %d failures: %s",
                api_id.upper(), h.consecutive_failures, message,
            )

    def report_success(self, api_id: str) -> None:
        h = self._entry(api_id)
        if not h.healthy:
            logger.info("%s API recovered", api_id.upper())

        h.healthy = True
        h.last_error = None
        h.consecutive_failures = 0

    def status(self) -> Dict[str, ApiHealth]:
        return dict(self._apis)

    def is_healthy(self) -> bool:
        return all(h.healthy for h in self._apis.values())

    def unhealthy(self) -> List[Tuple[str, Optional[str]]]:
        return [(api_id, h.last_error) for api_id, h in self._apis.items() if not h.healthy]

    async def ping(self) -> bool:
        if not self._ping_url:
            return False

        unhealthy = self.unhealthy()
        url = self._ping_url.rstrip("/")
        body = ""
        if unhealthy:
            url = f"{url}/fail"
            body = "\n".join(f"{api_id}: {err}" for api_id, err in unhealthy)

        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                resp = await client.post(url, content=body)
                resp.raise_for_status()
        except Exception:
            logger.warning("Healthchecks ping failed (url=%s)", url, exc_info=True)
            return False

        if unhealthy:
            logger.info("Sent failure ping for %s", ", ".join(a for a, _ in unhealthy))
        return True
