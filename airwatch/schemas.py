from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class SensorPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    location: Optional[str] = None
    metrics: Dict[str, Optional[float]] = Field(default_factory=dict)
    timestamp: Optional[datetime] = None


class ReadingOut(BaseModel):
    id: str
    timestamp: datetime
    location: str
    metrics: Dict[str, float]


class IngestResponse(BaseModel):
    success: bool = True
    reading: ReadingOut
    alerts: int = 0


class AlertOut(BaseModel):
    reading_ref: str
    metric: str
    value: float
    threshold: float
    severity: str
    timestamp: datetime


class HealthOut(BaseModel):
    category: str
    color: str
    advice: str
    activities: List[str]
    precautions: List[str]


class AQIResponse(BaseModel):
    aqi: int
    pm25: float
    health: HealthOut


class Violation(BaseModel):
    metric: str
    value: float
    threshold: float
    exceeded: str


class ScoreResponse(BaseModel):
    score: int
    status: str
    violations: List[Violation]


class TrendOut(BaseModel):
    slope: float
    direction: str
    changePercent: float
    current: float
    average: float


class SettingsRequest(BaseModel):
    userId: str = Field(min_length=1)
    thresholds: Dict[str, float] = Field(default_factory=dict)


class QueryRequest(BaseModel):
    message: str


class QueryReply(BaseModel):
    success: bool
    response: str
    data: Optional[Any] = None
    error: Optional[str] = None
    timestamp: datetime
