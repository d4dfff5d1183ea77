from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from .core.config import settings
from .core.log import configure_logging

from .api.routes import router as api_router
import babysitter.api.routes as routes_module

from .domain.interfaces import DeviceController
from .drivers.nest import NestThermostat
from .drivers.thermostat_sim import SimulatedThermostat
from .sensors.airthings import AirthingsSensor
from .sensors.awair import AwairSensor
from .sensors.base import Sensor
from .sensors.simulated import SimulatedSensor
from .services.credentials import CredentialCache
from .services.engine import DecisionEngine
from .services.health import HealthMonitor
from .services.poller import PollerService
from .storage.sqlite_repo import SQLiteRepository


logger = logging.getLogger(__name__)


# --- Singletons ---
credentials = CredentialCache()
health = HealthMonitor(ping_url=settings.healthchecks_url)
repo = SQLiteRepository(settings.sqlite_path)

nest = NestThermostat(
    credentials=credentials,
    project_id=settings.nest_project_id,
    device_id=settings.nest_device_id,
    client_id=settings.nest_client_id,
    client_secret=settings.nest_client_secret,
    refresh_token=settings.nest_refresh_token,
    token_url=settings.nest_token_url,
    api_base=settings.nest_api_base,
    health=health,
)

sim_sensors: dict[str, SimulatedSensor] = {}


def build_sensors() -> list[Sensor]:
    if settings.mode.lower() == "sim":
        for source, temp in (("sim_living", 68.0), ("sim_bedroom", 69.0)):
            sim_sensors[source] = SimulatedSensor(source=source, temperature=temp, noise=0.2, health=health)
        return list(sim_sensors.values())

    return [
        AwairSensor(
            token=settings.awair_token,
            device_id=settings.awair_device_id,
            device_type=settings.awair_device_type,
            api_base=settings.awair_api_base,
            health=health,
        ),
        AirthingsSensor(
            credentials=credentials,
            client_id=settings.airthings_client_id,
            client_secret=settings.airthings_client_secret,
            device_id=settings.airthings_device_id,
            token_url=settings.airthings_token_url,
            api_base=settings.airthings_api_base,
            health=health,
        ),
    ]


def build_device() -> DeviceController:
    if settings.mode.lower() == "sim":
        return SimulatedThermostat()
    return nest


sensors = build_sensors()
engine = DecisionEngine(repo=repo, device=build_device())
poller: PollerService | None = None


def get_poller() -> PollerService:
    assert poller is not None
    return poller


def get_engine() -> DecisionEngine:
    return engine


def get_health() -> HealthMonitor:
    return health


def get_repo() -> SQLiteRepository:
    return repo


def get_nest() -> NestThermostat:
    return nest


def get_sim_sensors() -> dict[str, SimulatedSensor]:
    if not sim_sensors:
        raise RuntimeError("Simulated sensors not available (mode is not 'sim').")
    return sim_sensors


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    logger.info(
        "Starting %s (mode=%s, poll every %ss, nest configured=%s)",
        settings.app_name, settings.mode, settings.poll_seconds, nest.is_configured(),
    )

    await repo.init()

    global poller
    poller = PollerService(sensors=sensors, engine=engine, health=health)
    await poller.start()

    try:
        yield
    finally:
        if poller:
            await poller.stop()

        logger.info("Shutdown complete")


app = FastAPI(title=settings.app_name, lifespan=lifespan)

# Make the dependency functions in routes resolve to the real ones
app.dependency_overrides[routes_module.get_engine] = get_engine
app.dependency_overrides[routes_module.get_poller] = get_poller
app.dependency_overrides[routes_module.get_health] = get_health
app.dependency_overrides[routes_module.get_repo] = get_repo
app.dependency_overrides[routes_module.get_nest] = get_nest
app.dependency_overrides[routes_module.get_sim_sensors] = get_sim_sensors

app.include_router(api_router, prefix="/api")
