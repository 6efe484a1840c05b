"""
Keyword-routed answers to free-text air quality questions.

``INTENTS`` is an ordered list of (name, predicate, handler) entries and the
first predicate that matches the lower-cased question wins.  The order
matters: broad substring checks such as "co" would otherwise shadow more
specific intents like "current".
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional, Tuple

from airwatch.aqi import HealthRecord, classify_health, compute_aqi
from airwatch.config import ACTIVITY_SAFE_AQI, ANOMALY_LIMIT, CO_SAFE_PPM, QUERY_TREND_BAND
from airwatch.errors import InvalidInput, UpstreamUnavailable
from airwatch.vector import MetricVector, utcnow

logger = logging.getLogger(__name__)

RECENT_WINDOW = timedelta(hours=24)

NO_DATA_TEXT = (
    "I don't have any air quality data available yet. "
    "Please check back once sensor data starts coming in."
)
APOLOGY_TEXT = (
    "I encountered an error processing your request. "
    "Please try again or rephrase your question."
)


@dataclass
class QueryResponse:
    response_text: str
    structured_data: Optional[Dict[str, Any]] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"response": self.response_text, "data": self.structured_data, "error": self.error}


@dataclass
class QueryContext:
    """Everything a handler needs, computed once per question."""

    text: str
    latest: MetricVector
    aqi: int
    health: HealthRecord
    now: datetime = field(default_factory=utcnow)


Handler = Callable[[QueryContext, Any], QueryResponse]


@dataclass(frozen=True)
class Intent:
    name: str
    predicate: Callable[[str], bool]
    handler: Handler


def mentions(*keywords: str) -> Callable[[str], bool]:
    def predicate(text: str) -> bool:
        return any(keyword in text for keyword in keywords)

    return predicate


def _pm25(vector: MetricVector) -> float:
    # The AQI calculator expects a concentration; a missing channel reads as 0.
    return vector.get("pm25") or 0.0


def _fmt(value: Optional[float]) -> str:
    return "N/A" if value is None else f"{value:g}"


def _bullets(items) -> str:
    return "\n".join(f"• {item}" for item in items)


def current_conditions(ctx: QueryContext, store) -> QueryResponse:
    latest = ctx.latest
    text = (
        f"Current air quality is {ctx.health.category} (AQI: {ctx.aqi}).\n\n"
        "Measurements:\n"
        f"• PM2.5: {_fmt(latest.get('pm25'))} μg/m³\n"
        f"• PM10: {_fmt(latest.get('pm10'))} μg/m³\n"
        f"• CO: {_fmt(latest.get('co'))} ppm\n"
        f"• Temperature: {_fmt(latest.get('temperature'))}°C\n"
        f"• Humidity: {_fmt(latest.get('humidity'))}%\n\n"
        f"{ctx.health.advice}"
    )
    return QueryResponse(text, {"aqi": ctx.aqi, "reading": latest.to_dict(), "health": ctx.health.to_dict()})


def health_recommendations(ctx: QueryContext, store) -> QueryResponse:
    health = ctx.health
    safe = ctx.aqi <= ACTIVITY_SAFE_AQI
    verdict = (
        "Outdoor activities are fine right now."
        if safe
        else "Outdoor activities are not recommended right now."
    )
    precautions = _bullets(health.precautions) if health.precautions else "• None needed"
    text = (
        f"Air Quality: {health.category} (AQI: {ctx.aqi})\n\n"
        f"{health.advice} {verdict}\n\n"
        f"Recommended activities:\n{_bullets(health.activities)}\n\n"
        f"Precautions:\n{precautions}"
    )
    return QueryResponse(text, {"aqi": ctx.aqi, "safe": safe, "health": health.to_dict()})


def activity_safety(ctx: QueryContext, store) -> QueryResponse:
    health = ctx.health
    safe = ctx.aqi <= ACTIVITY_SAFE_AQI
    if safe:
        text = (
            f"Yes, it's safe for outdoor activities! Current AQI is {ctx.aqi} ({health.category}).\n\n"
            f"{health.advice}"
        )
    else:
        text = (
            f"Not recommended. Current AQI is {ctx.aqi} ({health.category}).\n\n"
            f"{health.advice}\n\nConsider these instead:\n{_bullets(health.activities)}"
        )
    return QueryResponse(text, {"safe": safe, "aqi": ctx.aqi, "health": health.to_dict()})


def pm25_status(value: float) -> str:
    if value <= 12:
        return "excellent"
    if value <= 35.4:
        return "good"
    if value <= 55.4:
        return "moderate"
    return "concerning"


def pm25_report(ctx: QueryContext, store) -> QueryResponse:
    value = _pm25(ctx.latest)
    status = pm25_status(value)
    limits = "This is above recommended levels." if value > 35.4 else "This is within safe limits."
    text = (
        f"PM2.5 level is {_fmt(value)} μg/m³ ({status}).\n\n"
        f"This contributes to an AQI of {ctx.aqi}. {limits}"
    )
    return QueryResponse(text, {"pm25": value, "aqi": ctx.aqi, "status": status})


def comfort_remark(temperature: float) -> str:
    if temperature > 30:
        return "It's quite warm. Stay hydrated!"
    if temperature < 15:
        return "It's cool outside. Dress warmly!"
    return "Temperature is comfortable."


def temperature_report(ctx: QueryContext, store) -> QueryResponse:
    temperature = ctx.latest.get("temperature")
    humidity = ctx.latest.get("humidity")
    if temperature is None:
        text = "No temperature reading is available from the latest sensor update."
    else:
        text = (
            f"Current temperature is {_fmt(temperature)}°C with {_fmt(humidity)}% humidity.\n\n"
            f"{comfort_remark(temperature)}"
        )
    return QueryResponse(text, {"temperature": temperature, "humidity": humidity})


def carbon_monoxide_report(ctx: QueryContext, store) -> QueryResponse:
    co = ctx.latest.get("co")
    if co is None:
        return QueryResponse("No carbon monoxide reading is available from the latest sensor update.",
                             {"co": None, "safe": None})
    safe = co < CO_SAFE_PPM
    verdict = (
        f"This is within safe limits (< {_fmt(CO_SAFE_PPM)} ppm)."
        if safe
        else "This exceeds safe limits! Ensure proper ventilation."
    )
    return QueryResponse(f"Carbon monoxide level is {_fmt(co)} ppm.\n\n{verdict}", {"co": co, "safe": safe})


def aqi_trend(ctx: QueryContext, store) -> QueryResponse:
    window = store.fetch_readings(ctx.now - RECENT_WINDOW, "asc")
    if len(window) < 2:
        return QueryResponse(
            "Not enough historical data to determine trends yet. "
            "Check back after more readings are collected."
        )
    first_aqi = compute_aqi(_pm25(window[0]))
    last_aqi = compute_aqi(_pm25(window[-1]))
    change = last_aqi - first_aqi
    if change > QUERY_TREND_BAND:
        trend, note = "worsening", "Consider reducing outdoor activities."
    elif change < -QUERY_TREND_BAND:
        trend, note = "improving", "Conditions are getting better!"
    else:
        trend, note = "stable", "Conditions are relatively stable."
    text = (
        f"Over the last 24 hours, air quality is {trend}.\n\n"
        f"• 24h ago: AQI {first_aqi}\n"
        f"• Now: AQI {last_aqi}\n"
        f"• Change: {change:+d} points\n\n"
        f"{note}"
    )
    return QueryResponse(text, {"trend": trend, "firstAQI": first_aqi, "lastAQI": last_aqi, "change": change})


def forecast_report(ctx: QueryContext, store) -> QueryResponse:
    try:
        forecast = store.fetch_latest_forecast()
    except UpstreamUnavailable as exc:
        logger.warning("Forecast lookup failed: %s", exc)
        forecast = None
    if forecast is None or not forecast.points:
        return QueryResponse(
            "Forecast data is not available yet. "
            "The model needs more historical data to make predictions."
        )
    point = forecast.points[0]
    pm10 = "N/A" if point.pm10 is None else f"{point.pm10:.1f}"
    predicted_aqi = compute_aqi(point.pm25)
    predicted = classify_health(predicted_aqi)
    text = (
        "Next step forecast:\n\n"
        f"Predicted AQI: {predicted_aqi} ({predicted.category})\n"
        f"• PM2.5: {point.pm25:.1f} μg/m³\n"
        f"• PM10: {pm10} μg/m³\n\n"
        f"{predicted.advice}"
    )
    return QueryResponse(
        text, {"forecast": point.to_dict(), "predictedAQI": predicted_aqi, "health": predicted.to_dict()}
    )


def anomaly_report(ctx: QueryContext, store) -> QueryResponse:
    try:
        anomalies = store.fetch_recent_anomalies(ctx.now - RECENT_WINDOW, ANOMALY_LIMIT)
    except UpstreamUnavailable as exc:
        logger.warning("Anomaly lookup failed: %s", exc)
        return QueryResponse("Anomaly data is not available yet. Check back after the next analytics run.")
    if not anomalies:
        return QueryResponse(
            "No anomalies detected in the last 24 hours. Air quality readings are normal.",
            {"anomalies": []},
        )
    count = len(anomalies)
    lines = [
        f"{i}. {a.sensor}: {a.value:.1f} (severity: {a.severity})\n   {a.detected_at:%Y-%m-%d %H:%M}"
        for i, a in enumerate(anomalies, start=1)
    ]
    noun = "anomalies" if count > 1 else "anomaly"
    text = f"{count} {noun} detected in the last 24 hours:\n\n" + "\n\n".join(lines)
    return QueryResponse(text, {"anomalies": [a.to_dict() for a in anomalies]})


def statistics_report(ctx: QueryContext, store) -> QueryResponse:
    try:
        summary = store.fetch_latest_summary()
    except UpstreamUnavailable as exc:
        logger.warning("Summary lookup failed: %s", exc)
        summary = None
    if summary is None:
        return QueryResponse(
            "Statistical summary is not available yet. Check back after more data is collected."
        )

    def stat(metric: str, name: str) -> str:
        value = summary.stat(metric, name)
        return "N/A" if value is None else f"{value:.1f}"

    text = (
        "Air Quality Statistics:\n\n"
        f"PM2.5:\n• Average: {stat('pm25', 'avg')} μg/m³\n• Min: {stat('pm25', 'min')}\n• Max: {stat('pm25', 'max')}\n\n"
        f"PM10:\n• Average: {stat('pm10', 'avg')} μg/m³\n• Min: {stat('pm10', 'min')}\n• Max: {stat('pm10', 'max')}\n\n"
        f"Temperature: {stat('temperature', 'avg')}°C\n"
        f"Humidity: {stat('humidity', 'avg')}%"
    )
    return QueryResponse(text, summary.to_dict())


def capabilities(ctx: QueryContext, store) -> QueryResponse:
    text = (
        f"I can help you with air quality information! Current AQI is {ctx.aqi} ({ctx.health.category}).\n\n"
        "Ask me about:\n"
        + _bullets(
            (
                "Current conditions",
                "Health recommendations",
                "Outdoor activity safety",
                "Trends and forecasts",
                "Specific pollutants (PM2.5, PM10, CO)",
                "Recent alerts or anomalies",
            )
        )
    )
    return QueryResponse(text, {"aqi": ctx.aqi, "health": ctx.health.to_dict()})


INTENTS: Tuple[Intent, ...] = (
    Intent("current", mentions("current", "now", "today"), current_conditions),
    Intent("health", mentions("safe", "health", "recommend"), health_recommendations),
    Intent("activity", mentions("outdoor", "exercise", "run", "walk"), activity_safety),
    Intent("pm25", mentions("pm2.5", "pm 2.5"), pm25_report),
    Intent("temperature", mentions("temperature", "temp", "hot", "cold"), temperature_report),
    Intent("co", mentions("co", "carbon monoxide"), carbon_monoxide_report),
    Intent("trend", mentions("trend", "getting better", "getting worse"), aqi_trend),
    Intent("forecast", mentions("forecast", "predict", "will it"), forecast_report),
    Intent("anomaly", mentions("alert", "anomaly", "unusual"), anomaly_report),
    Intent("statistics", mentions("average", "statistics", "stats"), statistics_report),
)
DEFAULT_INTENT = Intent("default", lambda text: True, capabilities)


def classify_intent(text: str, intents=INTENTS) -> Intent:
    lowered = text.lower()
    for intent in intents:
        if intent.predicate(lowered):
            return intent
    return DEFAULT_INTENT


class QueryResolver:
    """
    Answers free-text questions from the latest reading and the store's
    history and analytics records.  Never raises except for blank input.
    """

    def __init__(self, store, clock: Callable[[], datetime] = utcnow,
                 intents: Optional[List[Intent]] = None) -> None:
        self.store = store
        self._clock = clock
        self.intents = tuple(INTENTS if intents is None else intents)

    def resolve(self, text: Optional[str]) -> QueryResponse:
        if not isinstance(text, str) or not text.strip():
            raise InvalidInput("query text is required")
        lowered = text.lower()
        try:
            latest = self.store.fetch_latest_reading()
            if latest is None:
                return QueryResponse(NO_DATA_TEXT)
            aqi = compute_aqi(_pm25(latest))
            ctx = QueryContext(text=lowered, latest=latest, aqi=aqi, health=classify_health(aqi), now=self._clock())
            intent = classify_intent(lowered, self.intents)
            logger.debug("Query %r routed to %s intent", text, intent.name)
            return intent.handler(ctx, self.store)
        except Exception as exc:
            logger.exception("Query resolution failed for %r", text)
            return QueryResponse(APOLOGY_TEXT, None, str(exc))
