from __future__ import annotations

import logging
from datetime import datetime
from typing import Dict, List

from fastapi import APIRouter, HTTPException, Query, Request

from airwatch.analytics import refresh_analytics
from airwatch.aqi import classify_health, compute_aqi
from airwatch.errors import InvalidInput
from airwatch.schemas import (
    AlertOut,
    AQIResponse,
    IngestResponse,
    QueryReply,
    QueryRequest,
    ScoreResponse,
    SensorPayload,
    SettingsRequest,
    TrendOut,
)
from airwatch.score import compute_score
from airwatch.statistics import compute_correlations, compute_trends, select_window
from airwatch.store import ingest

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")


def _state(request: Request):
    return request.app.state


def _now(request: Request) -> datetime:
    return _state(request).clock()


def _window(request: Request, timeframe: str):
    return select_window(_state(request).store.fetch_readings(), timeframe, _now(request))


@router.post("/sensor-data", response_model=IngestResponse, tags=["readings"])
@router.post("/airdata", response_model=IngestResponse, tags=["readings"])
def ingest_endpoint(payload: SensorPayload, request: Request):
    state = _state(request)
    try:
        vector, alerts = ingest(
            payload.model_dump(exclude_none=True),
            state.store,
            state.broadcaster,
            state.alert_engine,
            now=_now(request),
        )
    except InvalidInput as exc:
        logger.info("Rejected sensor payload: %s", exc)
        raise HTTPException(status_code=400, detail=str(exc))
    return {"success": True, "reading": vector.to_dict(), "alerts": len(alerts)}


@router.get("/sensor-data/latest", tags=["readings"])
@router.get("/airdata/latest", tags=["readings"])
def latest_reading(request: Request):
    latest = _state(request).store.fetch_latest_reading()
    if latest is None:
        raise HTTPException(status_code=404, detail="No data yet")
    return latest.to_dict()


@router.get("/readings", tags=["readings"])
def list_readings(request: Request, timeframe: str = Query("24h", description="5m, 24h, 7d or 30d")):
    return [r.to_dict() for r in _window(request, timeframe)]


@router.get("/alerts", response_model=List[AlertOut], tags=["alerts"])
def list_alerts(request: Request):
    return [a.to_dict() for a in _state(request).store.fetch_alerts()]


@router.get("/analytics/aqi", response_model=AQIResponse, tags=["analytics"])
def current_aqi(request: Request):
    latest = _state(request).store.fetch_latest_reading()
    if latest is None or latest.get("pm25") is None:
        raise HTTPException(status_code=404, detail="No PM2.5 reading yet")
    pm25 = latest.get("pm25")
    aqi = compute_aqi(pm25)
    return {"aqi": aqi, "pm25": pm25, "health": classify_health(aqi).to_dict()}


@router.get("/analytics/score", response_model=ScoreResponse, tags=["analytics"])
def health_score(request: Request):
    return compute_score(_state(request).store.fetch_latest_reading()).to_dict()


@router.get("/analytics/correlations", response_model=Dict[str, float], tags=["analytics"])
def correlations(request: Request, timeframe: str = Query("24h")):
    return compute_correlations(_window(request, timeframe))


@router.get("/analytics/trends", response_model=Dict[str, TrendOut], tags=["analytics"])
def trends(request: Request, timeframe: str = Query("24h")):
    return compute_trends(_window(request, timeframe))


@router.get("/analytics/anomalies", tags=["analytics"])
def anomalies(request: Request, limit: int = Query(50, ge=1, le=500)):
    return [a.to_dict() for a in _state(request).store.fetch_recent_anomalies(limit=limit)]


@router.get("/analytics/summary/latest", tags=["analytics"])
def latest_summary(request: Request):
    summary = _state(request).store.fetch_latest_summary()
    return summary.to_dict() if summary is not None else {}


@router.get("/analytics/forecast/latest", tags=["analytics"])
def latest_forecast(request: Request):
    forecast = _state(request).store.fetch_latest_forecast()
    return forecast.to_dict() if forecast is not None else {}


@router.post("/analytics/refresh", tags=["analytics"])
def refresh(request: Request):
    result = refresh_analytics(_state(request).store, now=_now(request))
    summary = result["summary"]
    return {
        "count": summary.count if summary is not None else 0,
        "anomalies": len(result["anomalies"]),
        "forecast": result["forecast"] is not None,
    }


@router.post("/settings", tags=["settings"])
def save_settings(settings: SettingsRequest, request: Request):
    return _state(request).store.save_settings(settings.userId, settings.thresholds)


@router.get("/settings/{user_id}", tags=["settings"])
def read_settings(user_id: str, request: Request):
    return _state(request).store.get_settings(user_id) or {}


@router.post("/chatbot/query", response_model=QueryReply, tags=["chatbot"])
def chatbot_query(body: QueryRequest, request: Request):
    try:
        result = _state(request).resolver.resolve(body.message)
    except InvalidInput as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    return {
        "success": True,
        "response": result.response_text,
        "data": result.structured_data,
        "error": result.error,
        "timestamp": _now(request),
    }
