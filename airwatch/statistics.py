"""
Windowed statistics over reading history: pairwise Pearson correlations and
per-metric linear-regression trends.

The two computations treat missing values differently.  Correlation reads a
missing metric as 0 so every pair is computed over the same samples.  Trend
drops zero and missing values entirely, so a silent sensor is never mistaken
for clean air.
"""

from __future__ import annotations

import logging
import math
from datetime import datetime, timedelta
from typing import Dict, Iterable, List, Optional, Sequence

from airwatch.config import (
    CORRELATION_METRICS,
    DEFAULT_LOOKBACK,
    LOOKBACKS,
    TREND_STABLE_BAND,
)
from airwatch.vector import MetricVector, utcnow

logger = logging.getLogger(__name__)


def resolve_lookback(lookback: Optional[str]) -> timedelta:
    """Map "24h"/"7d"/"30d" to a duration; anything else is treated as 24h."""
    return LOOKBACKS.get((lookback or "").strip().lower(), LOOKBACKS[DEFAULT_LOOKBACK])


def window_start(lookback: Optional[str], now: Optional[datetime] = None) -> datetime:
    return (now or utcnow()) - resolve_lookback(lookback)


def select_window(readings: Iterable[MetricVector],
                  lookback: Optional[str],
                  now: Optional[datetime] = None) -> List[MetricVector]:
    """Readings at or after the lookback start, oldest first."""
    since = window_start(lookback, now)
    return sorted((r for r in readings if r.timestamp >= since), key=lambda r: r.timestamp)


def pearson(x: Sequence[float], y: Sequence[float]) -> float:
    """
    Sum-based Pearson coefficient.  Returns 0.0 for a degenerate
    (zero-variance or empty) series instead of an undefined value.
    """
    n = len(x)
    # A constant series has no spread; the sums below would not cancel exactly.
    if n == 0 or len(set(x)) < 2 or len(set(y)) < 2:
        return 0.0
    sum_x = sum(x)
    sum_y = sum(y)
    sum_xy = sum(a * b for a, b in zip(x, y))
    sum_x2 = sum(a * a for a in x)
    sum_y2 = sum(b * b for b in y)
    spread = (n * sum_x2 - sum_x * sum_x) * (n * sum_y2 - sum_y * sum_y)
    if spread <= 0:
        return 0.0
    r = (n * sum_xy - sum_x * sum_y) / math.sqrt(spread)
    return max(-1.0, min(1.0, r))


def compute_correlations(window: Sequence[MetricVector],
                         metrics: Sequence[str] = CORRELATION_METRICS) -> Dict[str, float]:
    """
    Pearson coefficient for every pair ``i < j`` in ``metrics``, keyed
    ``"metricA-metricB"`` and rounded to 3 decimals.
    """
    columns = {m: [r.get(m) or 0.0 for r in window] for m in metrics}
    result: Dict[str, float] = {}
    for i, first in enumerate(metrics):
        for second in metrics[i + 1:]:
            result[f"{first}-{second}"] = round(pearson(columns[first], columns[second]), 3)
    logger.debug("Correlations over %d readings: %s", len(window), result)
    return result


def _regression_slope(x: Sequence[float], y: Sequence[float]) -> Optional[float]:
    n = len(x)
    if n < 2:
        return None
    sum_x = sum(x)
    sum_y = sum(y)
    sum_xy = sum(a * b for a, b in zip(x, y))
    sum_x2 = sum(a * a for a in x)
    denom = n * sum_x2 - sum_x * sum_x
    if denom == 0:
        return None
    return (n * sum_xy - sum_x * sum_y) / denom


def classify_direction(slope: float) -> str:
    if slope > TREND_STABLE_BAND:
        return "increasing"
    if slope < -TREND_STABLE_BAND:
        return "decreasing"
    return "stable"


def compute_trend(values: Sequence[float]) -> Optional[Dict[str, object]]:
    """
    Fit value against its 0-based index.  ``values`` must already be ordered
    oldest to newest; non-positive entries are dropped first.
    """
    series = [v for v in values if v is not None and v > 0]
    slope = _regression_slope(range(len(series)), series)
    if slope is None:
        return None
    average = sum(series) / len(series)
    return {
        "slope": round(slope, 4),
        "direction": classify_direction(slope),
        "changePercent": round(slope / average * 100, 2),
        "current": round(series[-1], 2),
        "average": round(average, 2),
    }


def compute_trends(window: Sequence[MetricVector],
                   metrics: Optional[Sequence[str]] = None) -> Dict[str, Dict[str, object]]:
    """
    Trend per metric over ``window``.  Metrics with fewer than two positive
    values are left out of the result.
    """
    ordered = sorted(window, key=lambda r: r.timestamp)
    if metrics is None:
        seen: Dict[str, None] = {}
        for reading in ordered:
            for name in reading.metrics:
                seen.setdefault(name, None)
        metrics = list(seen)
    trends: Dict[str, Dict[str, object]] = {}
    for metric in metrics:
        trend = compute_trend([r.get(metric) for r in ordered])
        if trend is not None:
            trends[metric] = trend
    logger.debug("Trends over %d readings for %d metrics", len(ordered), len(trends))
    return trends
