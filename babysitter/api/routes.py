from __future__ import annotations

import logging
import time
from dataclasses import asdict
from datetime import datetime, timedelta
from typing import Any

from fastapi import APIRouter, Depends, HTTPException

from ..core.config import settings
from ..core.timeutil import now_utc
from ..domain.models import Action, Reading
from ..drivers.nest import NestThermostat
from ..sensors.simulated import SimulatedSensor
from ..services.engine import DecisionEngine
from ..services.health import HealthMonitor
from ..services.poller import PollerService
from .schemas import FanRequest, SimSensorRequest, TargetRequest

logger = logging.getLogger(__name__)

router = APIRouter()

_STARTED = time.monotonic()


# --- Dependency getters ---
# Defined here as placeholders; main.py wires the real ones via app.dependency_overrides.
def get_engine() -> DecisionEngine:  # overridden in main
    raise RuntimeError("Engine dependency not configured")

def get_poller() -> PollerService:  # overridden in main
    raise RuntimeError("Poller dependency not configured")

def get_health() -> HealthMonitor:  # overridden in main
    raise RuntimeError("Health dependency not configured")

def get_repo():  # overridden in main
    raise RuntimeError("Repo dependency not configured")

def get_nest() -> NestThermostat:  # overridden in main
    raise RuntimeError("Nest dependency not configured")

def get_sim_sensors() -> dict[str, SimulatedSensor]:  # overridden in main
    raise RuntimeError("Simulated sensors not available (mode is not 'sim')")


def _reading_out(r: Reading) -> dict[str, Any]:
    out: dict[str, Any] = {
        "id": r.id,
        "timestamp": r.timestamp.isoformat(),
        "source": r.source,
        "temperature": r.temperature,
        "humidity": r.humidity,
    }
    # Only the fields the source actually carries
    for extra in (r.air, r.hvac):
        if extra is not None:
            out.update({k: v for k, v in asdict(extra).items() if v is not None})
    return out


def _action_out(a: Action) -> dict[str, Any]:
    return {
        "id": a.id,
        "timestamp": a.timestamp.isoformat(),
        "action": a.action.value,
        "reason": a.reason,
        "avg_temp": a.avg_temp,
        "target_temp": a.target_temp,
    }


@router.get("/state")
async def get_state(engine: DecisionEngine = Depends(get_engine)):
    snap = await engine.snapshot()
    return {
        "state": snap["state"],
        "readings": [_reading_out(r) for r in snap["readings"]],
        "actions": [_action_out(a) for a in snap["actions"]],
        "fan_always_on": snap["fan_always_on"],
    }


@router.post("/target")
async def set_target(req: TargetRequest, engine: DecisionEngine = Depends(get_engine)):
    await engine.set_target_temp(req.target)
    return {"ok": True, "target": req.target}


@router.post("/fan")
async def set_fan(req: FanRequest, engine: DecisionEngine = Depends(get_engine)):
    await engine.set_fan_always_on(req.enabled)
    renewed = False
    if req.enabled:
        # Turn the fan on now rather than waiting for the next cycle
        renewed = await engine.renew_fan_timer()
    return {"ok": True, "enabled": req.enabled, "fan_timer_renewed": renewed}


@router.get("/health")
async def get_health_api(
    repo=Depends(get_repo),
    health: HealthMonitor = Depends(get_health),
):
    last_check = await repo.get_state_value("last_check")
    stale_minutes = None
    if last_check:
        stale_minutes = round((now_utc() - datetime.fromisoformat(last_check)).total_seconds() / 60.0, 1)
    return {
        "status": "ok" if health.is_healthy() else "degraded",
        "last_check": last_check,
        "stale_minutes": stale_minutes,
        "uptime_s": round(time.monotonic() - _STARTED, 1),
        "apis": {api_id: asdict(h) for api_id, h in health.status().items()},
    }


@router.get("/chart-data")
async def chart_data(hours: int = 24, repo=Depends(get_repo)):
    since = now_utc() - timedelta(hours=max(1, hours))
    readings = await repo.get_readings_since(since)
    actions = await repo.get_actions_since(since)
    return {
        "since_utc": since.isoformat(),
        "readings": [_reading_out(r) for r in readings],
        "actions": [_action_out(a) for a in actions],
        "state": await repo.get_current_state(),
    }


@router.post("/poll")
async def poll_now(poller: PollerService = Depends(get_poller)):
    result = await poller.run_cycle()
    if result is None:
        return {"ok": False, "error": "No valid sensor readings"}
    return {
        "ok": True,
        "action": result.action.value,
        "reason": result.reason,
        "avg_temp": result.avg_temp,
        "sensor_count": len(result.readings),
    }


@router.get("/devices/discover")
async def discover_devices(nest: NestThermostat = Depends(get_nest)):
    try:
        devices = await nest.list_devices()
    except Exception as e:
        logger.warning("Nest discovery failed: %s", e)
        raise HTTPException(status_code=502, detail=str(e))
    return {"devices": devices}


# --- Simulation endpoints ---
@router.get("/sim/status")
async def sim_status(sensors: dict[str, SimulatedSensor] = Depends(get_sim_sensors)):
    return {"mode": settings.mode, "sensors": [s.status() for s in sensors.values()]}


@router.post("/sim/sensors/{source}")
async def sim_set_sensor(
    source: str,
    req: SimSensorRequest,
    sensors: dict[str, SimulatedSensor] = Depends(get_sim_sensors),
):
    sensor = sensors.get(source)
    if sensor is None:
        raise HTTPException(status_code=404, detail=f"Unknown simulated sensor: {source}")
    sensor.set_values(req.temperature, humidity=req.humidity, noise=req.noise)
    if req.enabled:
        sensor.enable()
    else:
        sensor.disable()
    return {"ok": True, **sensor.status()}
