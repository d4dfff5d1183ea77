from __future__ import annotations
import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Sequence

from ..core.config import settings
from ..core.timeutil import now_utc
from ..domain.interfaces import SensorAdapter
from ..domain.models import ControlResult, Reading
from .engine import DecisionEngine
from .health import HealthMonitor


logger = logging.getLogger(__name__)


@dataclass
class LiveState:
    last_readings: tuple[Reading, ...] = ()
    last_result: Optional[ControlResult] = None
    last_cycle_at: Optional[datetime] = None
    cycles: int = 0
    mode: str = "live"


class PollerService:
    def __init__(
        self,
        sensors: Sequence[SensorAdapter],
        engine: DecisionEngine,
        health: HealthMonitor,
        poll_seconds: float | None = None,
    ) -> None:
        self._sensors = list(sensors)
        self._engine = engine
        self._health = health
        self._poll_seconds = settings.poll_seconds if poll_seconds is None else poll_seconds

        self._task: Optional[asyncio.Task] = None
        self._stop = asyncio.Event()
        # Single-flight: timer ticks and manual triggers never overlap device commands
        self._cycle_lock = asyncio.Lock()

        self.live = LiveState(mode=settings.mode)

    async def start(self) -> None:
        self._stop.clear()
        self._task = asyncio.create_task(self._run(), name="poll_loop")

    async def stop(self) -> None:
        self._stop.set()
        if self._task:
            await self._task
            self._task = None

    async def _fetch_all(self) -> list[Optional[Reading]]:
        # return_exceptions keeps one misbehaving adapter from cancelling the rest
        results = await asyncio.gather(
            *(s.fetch_reading() for s in self._sensors), return_exceptions=True
        )
        out: list[Optional[Reading]] = []
        for sensor, res in zip(self._sensors, results):
            if isinstance(res, BaseException):
                logger.error("Sensor %s raised: %r", getattr(sensor, "source", "?"), res)
                out.append(None)
            else:
                out.append(res)
        return out

    async def run_cycle(self) -> Optional[ControlResult]:
        async with self._cycle_lock:
            logger.info("--- Polling %d sensor(s) ---", len(self._sensors))
            readings = await self._fetch_all()
            self.live.last_readings = tuple(r for r in readings if r is not None)

            result = await self._engine.evaluate_and_control(readings)
            self.live.last_result = result
            self.live.last_cycle_at = now_utc()
            self.live.cycles += 1

            await self._health.ping()
            return result

    async def _run(self) -> None:
        logger.info("Poll loop started (poll_seconds=%s sensors=%d)", self._poll_seconds, len(self._sensors))

        while not self._stop.is_set():
            try:
                await self.run_cycle()
            except Exception as e:
                logger.exception("Poll loop error: %s", e)

            # sleep with cancellation awareness
            try:
                await asyncio.wait_for(self._stop.wait(), timeout=self._poll_seconds)
            except asyncio.TimeoutError:
                pass

        logger.info("Poll loop stopped")
