from __future__ import annotations
from pydantic import BaseModel, Field
from typing import Optional


class TargetRequest(BaseModel):
    target: float = Field(ge=50, le=90)


class FanRequest(BaseModel):
    enabled: bool


class SimSensorRequest(BaseModel):
    temperature: float
    humidity: Optional[float] = Field(default=None, ge=0, le=100)
    noise: Optional[float] = Field(default=None, ge=0)
    enabled: bool = True
