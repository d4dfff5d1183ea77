from __future__ import annotations
import logging
from typing import Iterable, Optional
from ..core.errors import NoValidReadings
from .models import ActionKind, Decision, Reading

logger = logging.getLogger(__name__)

# Setpoint forcing: pin the device's setpoint far past its own reading so its
# internal logic keeps calling for the action the external average wants.
FORCE_OFFSET_F = 15.0
FORCE_MARGIN_F = 2.0
FORCE_HEAT_FLOOR_F = 90.0
FORCE_COOL_CEILING_F = 50.0


def valid_readings(readings: Iterable[Optional[Reading]]) -> list[Reading]:
    return [r for r in readings if r is not None and r.has_temperature]


def average_temperature(readings: list[Reading]) -> float:
    if not readings:
        raise NoValidReadings("No valid sensor readings")
    return sum(float(r.temperature) for r in readings) / float(len(readings))


def decide(avg_temp: float, target: float, threshold: float) -> Decision:
    """Hysteresis band around target: strictly outside the band acts, inside holds."""
    diff = avg_temp - target

    if diff < -threshold:
        action = ActionKind.HEAT
        reason = f"Avg temp {avg_temp:.1f}°F is {abs(diff):.1f}° below target"
    elif diff > threshold:
        action = ActionKind.COOL
        reason = f"Avg temp {avg_temp:.1f}°F is {diff:.1f}° above target"
    else:
        action = ActionKind.MAINTAIN
        reason = f"Avg temp {avg_temp:.1f}°F is within {threshold}° of target"

    logger.info(
        "decide: avg=%.1f target=%.1f thr=%.1f → HEAT_if<%.1f COOL_if>%.1f",
        avg_temp, target, threshold, target - threshold, target + threshold,
    )
    return Decision(action, reason, avg_temp, target, threshold)


def forced_heat_setpoint(device_temp: float) -> float:
    return max(device_temp + FORCE_OFFSET_F, FORCE_HEAT_FLOOR_F)


def forced_cool_setpoint(device_temp: float) -> float:
    return min(device_temp - FORCE_OFFSET_F, FORCE_COOL_CEILING_F)


def needs_heat_forcing(setpoint_heat: Optional[float], device_temp: float) -> bool:
    # Unknown setpoint (e.g. right after a mode switch) counts as not forced
    return setpoint_heat is None or setpoint_heat < device_temp + FORCE_MARGIN_F


def needs_cool_forcing(setpoint_cool: Optional[float], device_temp: float) -> bool:
    return setpoint_cool is None or setpoint_cool > device_temp - FORCE_MARGIN_F
