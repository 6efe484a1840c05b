from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Mapping, Optional

from airwatch.config import ALERT_THRESHOLDS
from airwatch.vector import MetricVector, utcnow

logger = logging.getLogger(__name__)

ALERT_SEVERITY = "unhealthy"
ALERT_EVENT = "alert"


@dataclass(frozen=True)
class Alert:
    reading_ref: str
    metric: str
    value: float
    threshold: float
    severity: str = ALERT_SEVERITY
    timestamp: datetime = field(default_factory=utcnow)

    @property
    def key(self):
        return (self.reading_ref, self.metric)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "reading_ref": self.reading_ref,
            "metric": self.metric,
            "value": self.value,
            "threshold": self.threshold,
            "severity": self.severity,
            "timestamp": self.timestamp.isoformat(),
        }


def find_breaches(vector: MetricVector,
                  thresholds: Mapping[str, float] = ALERT_THRESHOLDS,
                  *,
                  now: Optional[datetime] = None) -> List[Alert]:
    """
    One ``Alert`` per metric in both ``thresholds`` and the reading whose
    value is strictly above its limit, in threshold-table order.
    """
    created = now or utcnow()
    alerts: List[Alert] = []
    for metric, limit in thresholds.items():
        value = vector.get(metric)
        if value is None:
            continue
        if value > limit:
            alerts.append(
                Alert(
                    reading_ref=vector.reading_id,
                    metric=metric,
                    value=value,
                    threshold=limit,
                    timestamp=created,
                )
            )
    return alerts


class AlertEngine:
    """
    Evaluates new readings against the alerting table and hands every breach
    to ``persist`` and then ``broadcast``.  A reading without breaches causes
    no side effects.
    """

    def __init__(self,
                 persist: Callable[[Alert], Alert],
                 broadcast: Callable[[str, Dict[str, Any]], None],
                 thresholds: Optional[Mapping[str, float]] = None,
                 clock: Callable[[], datetime] = utcnow) -> None:
        self._persist = persist
        self._broadcast = broadcast
        self.thresholds = dict(ALERT_THRESHOLDS if thresholds is None else thresholds)
        self._clock = clock

    def evaluate(self, vector: MetricVector) -> List[Alert]:
        breaches = find_breaches(vector, self.thresholds, now=self._clock())
        logger.debug("Reading %s produced %d breaches", vector.reading_id, len(breaches))
        saved: List[Alert] = []
        for alert in breaches:
            stored = self._persist(alert)
            self._broadcast(ALERT_EVENT, stored.to_dict())
            saved.append(stored)
        if saved:
            logger.info(
                "Raised %d alerts for reading %s at %s: %s",
                len(saved),
                vector.reading_id,
                vector.location,
                ", ".join(a.metric for a in saved),
            )
        return saved
