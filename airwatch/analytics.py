"""
Batch analytics over the reading history: statistical summary, z-score
anomalies and a short linear forecast.  Results are saved on the store so
the query resolver and the analytics routes can read the latest ones.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd
from sklearn.linear_model import LinearRegression

from airwatch.config import ANOMALY_ZSCORE, FORECAST_HORIZON
from airwatch.records import AnomalyRecord, ForecastPoint, ForecastRecord, SummaryRecord
from airwatch.vector import MetricVector, utcnow

logger = logging.getLogger(__name__)

ANALYTICS_WINDOW = timedelta(hours=24)


def _frame(readings: Sequence[MetricVector]) -> Tuple[List[MetricVector], pd.DataFrame]:
    """Readings oldest first, with one row per reading and one column per metric."""
    ordered = sorted(readings, key=lambda r: r.timestamp)
    df = pd.DataFrame([dict(r.metrics) for r in ordered], index=range(len(ordered)))
    return ordered, df


def build_summary(readings: Sequence[MetricVector],
                  now: Optional[datetime] = None) -> Optional[SummaryRecord]:
    if not readings:
        return None
    _, df = _frame(readings)
    stats: Dict[str, Dict[str, float]] = {}
    columns = list(df.columns)
    if columns:
        agg = df[columns].agg(["mean", "min", "max"])
        for metric in columns:
            column = agg[metric]
            if pd.isna(column["mean"]):
                continue
            stats[metric] = {
                "avg": round(float(column["mean"]), 2),
                "min": round(float(column["min"]), 2),
                "max": round(float(column["max"]), 2),
            }
    return SummaryRecord(generated_at=now or utcnow(), count=len(df), metrics=stats)


def detect_anomalies(readings: Sequence[MetricVector],
                     z_threshold: float = ANOMALY_ZSCORE,
                     now: Optional[datetime] = None) -> List[AnomalyRecord]:
    """
    Flag every value whose population z-score within its metric reaches
    ``z_threshold``.  Constant or single-sample metrics never flag.
    """
    if not readings:
        return []
    ordered, df = _frame(readings)
    found: List[AnomalyRecord] = []
    for metric in df.columns:
        values = pd.to_numeric(df[metric], errors="coerce").to_numpy(dtype=float)
        present = ~np.isnan(values)
        if present.sum() < 2:
            continue
        mean = float(np.mean(values[present]))
        std = float(np.std(values[present]))
        if std == 0:
            continue
        zscores = (values - mean) / std
        for idx in np.flatnonzero(present & (np.abs(zscores) >= z_threshold)):
            z = float(zscores[idx])
            found.append(
                AnomalyRecord(
                    detected_at=ordered[idx].timestamp,
                    sensor=str(metric),
                    value=float(values[idx]),
                    zscore=round(z, 3),
                    mean=round(mean, 3),
                    std=round(std, 3),
                    severity="high" if abs(z) >= z_threshold + 1 else "medium",
                    reading_ref=ordered[idx].reading_id,
                )
            )
    found.sort(key=lambda a: a.detected_at)
    logger.debug("Detected %d anomalies over %d readings", len(found), len(df))
    return found


def _linear_projection(values: Sequence[float], horizon: int) -> Optional[List[float]]:
    if len(values) < 2:
        return None
    x = np.arange(len(values), dtype=float).reshape(-1, 1)
    model = LinearRegression()
    model.fit(x, np.asarray(values, dtype=float))
    future = np.arange(len(values), len(values) + horizon, dtype=float).reshape(-1, 1)
    return [round(float(v), 2) for v in np.clip(model.predict(future), 0.0, None)]


def build_forecast(readings: Sequence[MetricVector],
                   horizon: int = FORECAST_HORIZON,
                   now: Optional[datetime] = None) -> Optional[ForecastRecord]:
    """Next ``horizon`` PM2.5/PM10 steps from a least-squares line over the window."""
    ordered = sorted(readings, key=lambda r: r.timestamp)
    pm25 = _linear_projection([r.get("pm25") for r in ordered if r.get("pm25") is not None], horizon)
    if pm25 is None:
        return None
    pm10 = _linear_projection([r.get("pm10") for r in ordered if r.get("pm10") is not None], horizon)
    points = [
        ForecastPoint(step=i + 1, pm25=pm25[i], pm10=pm10[i] if pm10 is not None else None)
        for i in range(horizon)
    ]
    return ForecastRecord(generated_at=now or utcnow(), horizon=horizon, points=points)


def refresh_analytics(store, now: Optional[datetime] = None) -> Dict[str, object]:
    """Recompute summary, anomalies and forecast over the last 24 hours and save them."""
    now = now or utcnow()
    window = store.fetch_readings(now - ANALYTICS_WINDOW)
    summary = build_summary(window, now)
    anomalies = detect_anomalies(window, now=now)
    forecast = build_forecast(window, now=now)

    if summary is not None:
        store.save_summary(summary)
    if anomalies:
        store.save_anomalies(anomalies)
    if forecast is not None:
        store.save_forecast(forecast)

    logger.info(
        "Analytics refreshed over %d readings: %d anomalies, forecast=%s",
        len(window),
        len(anomalies),
        forecast is not None,
    )
    return {"summary": summary, "anomalies": anomalies, "forecast": forecast}
