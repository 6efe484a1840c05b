from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

from airwatch.aqi import round_half_up
from airwatch.config import SCORE_THRESHOLDS
from airwatch.vector import MetricVector

logger = logging.getLogger(__name__)

MAX_PENALTY = 30.0
PENALTY_SCALE = 20.0

# Score status bands, independent of the AQI health categories.
SCORE_BANDS = (
    (80, "Excellent"),
    (60, "Good"),
    (40, "Moderate"),
    (20, "Poor"),
)
NO_DATA_STATUS = "No data"


@dataclass
class ScoreResult:
    score: int
    status: str
    violations: List[Dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {"score": self.score, "status": self.status, "violations": list(self.violations)}


def score_status(score: float) -> str:
    for floor, status in SCORE_BANDS:
        if score >= floor:
            return status
    return "Hazardous"


def compute_score(latest: Optional[MetricVector],
                  thresholds: Mapping[str, float] = SCORE_THRESHOLDS) -> ScoreResult:
    """
    0-100 health score for the most recent reading.

    Every threshold metric is checked; an absent metric counts as 0 here.
    Each breach costs ``min(30, overshoot_ratio * 20)`` points.
    """
    if latest is None:
        return ScoreResult(score=0, status=NO_DATA_STATUS)

    score = 100.0
    violations: List[Dict[str, Any]] = []
    for metric, threshold in thresholds.items():
        value = latest.get(metric) or 0.0
        if value > threshold:
            penalty = min(MAX_PENALTY, (value - threshold) / threshold * PENALTY_SCALE)
            score -= penalty
            violations.append(
                {
                    "metric": metric,
                    "value": value,
                    "threshold": threshold,
                    "exceeded": f"{value - threshold:.2f}",
                }
            )

    final = round_half_up(max(0.0, score))
    logger.debug("Health score %s with %d violations", final, len(violations))
    return ScoreResult(score=final, status=score_status(final), violations=violations)
