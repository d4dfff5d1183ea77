"""Temperature conversion used at the sensor/device boundary.

Everything past the adapters works in °F; the cloud APIs speak °C.
"""
from __future__ import annotations

from typing import Optional


def c_to_f(celsius: Optional[float]) -> Optional[float]:
    if celsius is None:
        return None
    return float(celsius) * 9.0 / 5.0 + 32.0


def f_to_c(fahrenheit: Optional[float]) -> Optional[float]:
    if fahrenheit is None:
        return None
    return (float(fahrenheit) - 32.0) * 5.0 / 9.0
