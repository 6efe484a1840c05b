"""
Configuration for the airwatch analytics engine.

Values can be overridden via environment variables so operators can tune
thresholds and windows without changing code.  Numeric overrides that fail to
parse fall back to the defaults below.
"""

from __future__ import annotations

import os
from datetime import timedelta
from typing import Dict, Tuple

# Health-score penalty limits. Tighter than the alerting table.
DEFAULT_SCORE_THRESHOLDS = (
    ("pm25", 35.0),
    ("pm10", 150.0),
    ("co", 9.0),
    ("o3", 100.0),
    ("no2", 100.0),
)

# Alerting limits. Looser than the score table; iteration order is the
# order alerts are emitted in.
DEFAULT_ALERT_THRESHOLDS = (
    ("pm25", 150.0),
    ("pm10", 150.0),
    ("co", 10.0),
    ("o3", 100.0),
    ("no2", 100.0),
)

# PM2.5 AQI bands as (c_hi, i_lo, i_hi); c_lo is the previous row's c_hi.
#    0.0–12.0   µg/m³ ->   0–50 AQI   (Good)
#   12.0–35.4   µg/m³ ->  50–100 AQI  (Moderate)
#   35.4–55.4   µg/m³ -> 100–150 AQI  (Unhealthy for SG)
#   55.4–150.4  µg/m³ -> 150–200 AQI  (Unhealthy)
#  150.4–250.4  µg/m³ -> 200–300 AQI  (Very Unhealthy)
#  250.4–500.4  µg/m³ -> 300–500 AQI  (Hazardous, extrapolated past 500.4)
AQI_BREAKPOINTS = (
    (12.0, 0, 50),
    (35.4, 50, 100),
    (55.4, 100, 150),
    (150.4, 150, 200),
    (250.4, 200, 300),
    (500.4, 300, 500),
)

CORRELATION_METRICS = ("pm25", "pm10", "co", "o3", "no2")

LOOKBACKS = {
    "5m": timedelta(minutes=5),
    "24h": timedelta(hours=24),
    "7d": timedelta(days=7),
    "30d": timedelta(days=30),
}
DEFAULT_LOOKBACK = "24h"

DEFAULT_HISTORY_LIMIT = 2000
DEFAULT_ALERT_RETENTION = 1000
DEFAULT_LOCATION_NAME = "Nairobi"

DEFAULT_TREND_STABLE_BAND = 0.1
DEFAULT_QUERY_TREND_BAND = 5.0
DEFAULT_ACTIVITY_SAFE_AQI = 100.0
DEFAULT_CO_SAFE_PPM = 9.0

DEFAULT_ANOMALY_ZSCORE = 3.0
DEFAULT_ANOMALY_LIMIT = 5
DEFAULT_FORECAST_HORIZON = 6
DEFAULT_ANALYTICS_EVERY = 12


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        return default


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _env_str(name: str, default: str) -> str:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    return value.strip()


def _env_threshold_table(name: str, default: Tuple[Tuple[str, float], ...]) -> Dict[str, float]:
    """
    Parse comma-separated rows such as "pm25=35,pm10=150" into an ordered table.
    """
    raw = os.getenv(name)
    if not raw:
        return dict(default)
    table: Dict[str, float] = {}
    for chunk in raw.replace(";", ",").split(","):
        chunk = chunk.strip()
        if not chunk or "=" not in chunk:
            continue
        metric, _, limit = chunk.partition("=")
        metric = metric.strip().lower()
        if not metric:
            continue
        try:
            parsed = float(limit)
        except ValueError:
            continue
        if parsed > 0:
            table[metric] = parsed
    return table if table else dict(default)


SCORE_THRESHOLDS = _env_threshold_table("AIRWATCH_SCORE_THRESHOLDS", DEFAULT_SCORE_THRESHOLDS)
ALERT_THRESHOLDS = _env_threshold_table("AIRWATCH_ALERT_THRESHOLDS", DEFAULT_ALERT_THRESHOLDS)

HISTORY_LIMIT = max(1, _env_int("AIRWATCH_HISTORY_LIMIT", DEFAULT_HISTORY_LIMIT))
ALERT_RETENTION = max(1, _env_int("AIRWATCH_ALERT_RETENTION", DEFAULT_ALERT_RETENTION))
DEFAULT_LOCATION = _env_str("AIRWATCH_DEFAULT_LOCATION", DEFAULT_LOCATION_NAME)

TREND_STABLE_BAND = _env_float("AIRWATCH_TREND_STABLE_BAND", DEFAULT_TREND_STABLE_BAND)
QUERY_TREND_BAND = _env_float("AIRWATCH_QUERY_TREND_BAND", DEFAULT_QUERY_TREND_BAND)
ACTIVITY_SAFE_AQI = _env_float("AIRWATCH_ACTIVITY_SAFE_AQI", DEFAULT_ACTIVITY_SAFE_AQI)
CO_SAFE_PPM = _env_float("AIRWATCH_CO_SAFE_PPM", DEFAULT_CO_SAFE_PPM)

ANOMALY_ZSCORE = _env_float("AIRWATCH_ANOMALY_ZSCORE", DEFAULT_ANOMALY_ZSCORE)
ANOMALY_LIMIT = _env_int("AIRWATCH_ANOMALY_LIMIT", DEFAULT_ANOMALY_LIMIT)
FORECAST_HORIZON = max(1, _env_int("AIRWATCH_FORECAST_HORIZON", DEFAULT_FORECAST_HORIZON))
# Readings between automatic analytics refreshes; 0 disables.
ANALYTICS_EVERY = max(0, _env_int("AIRWATCH_ANALYTICS_EVERY", DEFAULT_ANALYTICS_EVERY))
