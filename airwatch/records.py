"""
Records produced by the batch analytics jobs and read back by the query
resolver and the analytics routes.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional


@dataclass(frozen=True)
class AnomalyRecord:
    detected_at: datetime
    sensor: str
    value: float
    zscore: float
    mean: float
    std: float
    severity: str
    reading_ref: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "detected_at": self.detected_at.isoformat(),
            "sensor": self.sensor,
            "value": self.value,
            "zscore": self.zscore,
            "mean": self.mean,
            "std": self.std,
            "severity": self.severity,
            "reading_ref": self.reading_ref,
        }


@dataclass(frozen=True)
class ForecastPoint:
    step: int
    pm25: float
    pm10: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"step": self.step, "pm25": self.pm25, "pm10": self.pm10}


@dataclass(frozen=True)
class ForecastRecord:
    generated_at: datetime
    horizon: int
    points: List[ForecastPoint] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "generated_at": self.generated_at.isoformat(),
            "horizon": self.horizon,
            "points": [p.to_dict() for p in self.points],
        }


@dataclass(frozen=True)
class SummaryRecord:
    generated_at: datetime
    count: int
    # metric -> {"avg": .., "min": .., "max": ..}
    metrics: Dict[str, Dict[str, float]] = field(default_factory=dict)

    def stat(self, metric: str, name: str) -> Optional[float]:
        return self.metrics.get(metric, {}).get(name)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "generated_at": self.generated_at.isoformat(),
            "count": self.count,
            "metrics": {k: dict(v) for k, v in self.metrics.items()},
        }
