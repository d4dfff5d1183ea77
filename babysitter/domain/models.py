from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional


class ActionKind(str, Enum):
    HEAT = "HEAT"
    COOL = "COOL"
    MAINTAIN = "MAINTAIN"
    SET_HEAT = "SET_HEAT"
    SET_COOL = "SET_COOL"
    SET_OFF = "SET_OFF"


# Thermostat modes as the device API names them
MODE_HEAT = "HEAT"
MODE_COOL = "COOL"
MODE_HEATCOOL = "HEATCOOL"
MODE_OFF = "OFF"


@dataclass(frozen=True)
class AirQuality:
    voc: Optional[float] = None    # ppb
    co2: Optional[float] = None    # ppm
    pm25: Optional[float] = None   # µg/m³
    radon: Optional[float] = None  # Bq/m³, short-term average


@dataclass(frozen=True)
class HvacSnapshot:
    hvac_status: Optional[str] = None  # HEATING | COOLING | OFF
    fan_running: Optional[bool] = None
    mode: Optional[str] = None
    setpoint_heat: Optional[float] = None  # °F
    setpoint_cool: Optional[float] = None  # °F


@dataclass(frozen=True)
class Reading:
    source: str
    timestamp: datetime
    temperature: Optional[float]  # °F
    humidity: Optional[float] = None  # %
    air: Optional[AirQuality] = None
    hvac: Optional[HvacSnapshot] = None
    id: Optional[int] = None

    @property
    def has_temperature(self) -> bool:
        return self.temperature is not None


@dataclass(frozen=True)
class Action:
    timestamp: datetime
    action: ActionKind
    reason: str
    avg_temp: Optional[float]
    target_temp: Optional[float]
    id: Optional[int] = None


@dataclass(frozen=True)
class DeviceState:
    mode: Optional[str]
    hvac_status: Optional[str]
    temperature: Optional[float]  # °F, the device's own (distrusted) sensor
    humidity: Optional[float]
    setpoint_heat: Optional[float]  # °F
    setpoint_cool: Optional[float]  # °F
    fan_running: bool = False
    fan_timer_timeout: Optional[str] = None

    def to_reading(self, source: str, timestamp: datetime) -> Reading:
        return Reading(
            source=source,
            timestamp=timestamp,
            temperature=self.temperature,
            humidity=self.humidity,
            hvac=HvacSnapshot(
                hvac_status=self.hvac_status,
                fan_running=self.fan_running,
                mode=self.mode,
                setpoint_heat=self.setpoint_heat,
                setpoint_cool=self.setpoint_cool,
            ),
        )


@dataclass(frozen=True)
class Decision:
    action: ActionKind  # HEAT | COOL | MAINTAIN
    reason: str
    avg_temp: float
    target_temp: float
    threshold: float


@dataclass(frozen=True)
class ControlResult:
    action: ActionKind
    reason: str
    avg_temp: float
    readings: list[Reading] = field(default_factory=list)


@dataclass(frozen=True)
class CredentialToken:
    access_token: str
    expires_at: datetime


@dataclass
class ApiHealth:
    healthy: bool = True
    last_error: Optional[str] = None
    consecutive_failures: int = 0
