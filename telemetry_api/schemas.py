from __future__ import annotations

from datetime import datetime
from typing import Dict, List, Optional, Union

from pydantic import BaseModel, Field


# Mapa plano campo → valor; los enteros (wind_direction) se mantienen enteros
LastReadingOut = Dict[str, Union[int, float]]


class DeviceStatusOut(BaseModel):
    status: int = Field(..., ge=0, le=1)


class HistoryPoint(BaseModel):
    time: datetime
    value: float


class HistoryStatsOut(BaseModel):
    min: Optional[float] = None
    max: Optional[float] = None
    mean: Optional[float] = None
    last: Optional[float] = None


class HistoryOut(BaseModel):
    series: List[HistoryPoint] = Field(default_factory=list)
    stats: HistoryStatsOut = Field(default_factory=HistoryStatsOut)


class DeviceLivenessOut(BaseModel):
    device_id: str
    state: str
    status: int
    last_seen_at: Optional[datetime] = None
    state_changed_at: datetime


class IngestionStatsOut(BaseModel):
    dispatcher: dict
    buffer: dict
    mqtt: Optional[dict] = None
    devices: List[DeviceLivenessOut] = Field(default_factory=list)
