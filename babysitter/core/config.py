from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    app_name: str = "Thermostat Babysitter"

    # Mode: "live" talks to the real APIs; "sim" uses in-process sensors and thermostat
    mode: str = Field(default="live")

    # Control
    target_temp: float = 70.0      # °F, overridable at runtime via the state table
    threshold: float = 1.5         # hysteresis band, °F
    fan_always_on: bool = False
    fan_timer_seconds: int = 43200  # 12h, the SDM maximum

    # Polling
    poll_seconds: int = 60
    http_timeout_seconds: float = 10.0

    # Health
    failure_threshold: int = 3
    healthchecks_url: Optional[str] = None

    # OAuth
    token_margin_seconds: int = 300

    # Storage / logs
    sqlite_path: str = Field(default="thermostat.db")
    log_file: str = "thermostat.log"

    # Awair cloud API
    awair_token: Optional[str] = None
    awair_device_type: str = "awair-element"
    awair_device_id: Optional[str] = None
    awair_api_base: str = "https://developer-apis.awair.is/v1"

    # Airthings cloud API
    airthings_client_id: Optional[str] = None
    airthings_client_secret: Optional[str] = None
    airthings_device_id: Optional[str] = None
    airthings_token_url: str = "https://accounts-api.airthings.com/v1/token"
    airthings_api_base: str = "https://ext-api.airthings.com/v1"

    # Google Nest (Smart Device Management)
    nest_project_id: Optional[str] = None
    nest_client_id: Optional[str] = None
    nest_client_secret: Optional[str] = None
    nest_refresh_token: Optional[str] = None
    nest_device_id: Optional[str] = None
    nest_token_url: str = "https://oauth2.googleapis.com/token"
    nest_api_base: str = "https://smartdevicemanagement.googleapis.com/v1"


settings = Settings()
