from __future__ import annotations
from datetime import datetime
from typing import Any, Optional, Protocol, runtime_checkable
from .models import Action, DeviceState, Reading


@runtime_checkable
class SensorAdapter(Protocol):
    source: str

    def is_configured(self) -> bool:
        ...

    async def fetch_reading(self) -> Optional[Reading]:
        ...


@runtime_checkable
class DeviceController(Protocol):
    api_id: str

    def is_configured(self) -> bool:
        ...

    async def current_state(self) -> Optional[DeviceState]:
        ...

    async def set_mode(self, mode: str) -> bool:
        ...

    async def set_heat_setpoint(self, temp_f: float) -> bool:
        ...

    async def set_cool_setpoint(self, temp_f: float) -> bool:
        ...

    async def set_fan_timer(self, duration_seconds: int) -> bool:
        ...


@runtime_checkable
class Repository(Protocol):
    async def init(self) -> None:
        ...

    async def save_reading(self, reading: Reading) -> None:
        ...

    async def save_action(self, action: Action) -> None:
        ...

    async def set_state(self, key: str, value: Any) -> None:
        ...

    async def set_state_batch(self, updates: dict[str, Any]) -> None:
        ...

    async def get_state_value(self, key: str) -> Any:
        ...

    async def get_current_state(self) -> dict[str, dict[str, Any]]:
        ...

    async def get_readings(self, limit: int = 50) -> list[Reading]:
        ...

    async def get_readings_since(self, since: datetime) -> list[Reading]:
        ...

    async def get_actions(self, limit: int = 20) -> list[Action]:
        ...

    async def get_actions_since(self, since: datetime) -> list[Action]:
        ...
