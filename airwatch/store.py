from __future__ import annotations

import logging
import threading
from collections import OrderedDict, deque
from datetime import datetime
from typing import Any, Callable, Deque, Dict, List, Mapping, Optional, Tuple

from airwatch.alerts import Alert, AlertEngine
from airwatch.analytics import refresh_analytics
from airwatch.config import ALERT_RETENTION, ANALYTICS_EVERY, HISTORY_LIMIT
from airwatch.records import AnomalyRecord, ForecastRecord, SummaryRecord
from airwatch.vector import MetricVector, utcnow

logger = logging.getLogger(__name__)

READING_EVENT = "sensorData"
ANOMALY_RETENTION = 500


class Broadcaster:
    """In-process publish primitive.  Subscriber failures are logged and dropped."""

    def __init__(self) -> None:
        self._subscribers: List[Callable[[str, Dict[str, Any]], None]] = []

    def subscribe(self, callback: Callable[[str, Dict[str, Any]], None]) -> None:
        self._subscribers.append(callback)

    def broadcast(self, event: str, payload: Dict[str, Any]) -> None:
        for callback in list(self._subscribers):
            try:
                callback(event, payload)
            except Exception:
                logger.exception("Subscriber failed on %s event", event)


class ReadingStore:
    """
    Time-ordered reading store backed by a fixed-capacity ring buffer.

    Writes are serialized under a lock; reads copy the buffer under the same
    lock so callers always see a consistent snapshot.

    This in-memory store never fails.  A replacement backed by an external
    database should raise ``UpstreamUnavailable`` from its ``fetch_*`` methods
    when the backend cannot be reached; the query resolver reports those
    records as not available yet and keeps answering.
    """

    def __init__(self, capacity: int = HISTORY_LIMIT, alert_retention: int = ALERT_RETENTION) -> None:
        self.capacity = capacity
        self.alert_retention = alert_retention
        self._lock = threading.Lock()
        self._history: Deque[MetricVector] = deque(maxlen=capacity)
        self._latest: Optional[MetricVector] = None
        self._alerts: Dict[Tuple[str, str], Alert] = OrderedDict()
        self._anomalies: Deque[AnomalyRecord] = deque(maxlen=ANOMALY_RETENTION)
        self._forecast: Optional[ForecastRecord] = None
        self._summary: Optional[SummaryRecord] = None
        self._settings: Dict[str, Dict[str, Any]] = {}
        self._ingested = 0

    def __len__(self) -> int:
        with self._lock:
            return len(self._history)

    def record(self, vector: MetricVector) -> MetricVector:
        with self._lock:
            self._history.append(vector)
            self._latest = vector
            self._ingested += 1
        return vector

    @property
    def ingested(self) -> int:
        return self._ingested

    def fetch_readings(self, since: Optional[datetime] = None, order: str = "asc") -> List[MetricVector]:
        with self._lock:
            snapshot = list(self._history)
        if since is not None:
            snapshot = [r for r in snapshot if r.timestamp >= since]
        snapshot.sort(key=lambda r: r.timestamp, reverse=(order == "desc"))
        return snapshot

    def fetch_latest_reading(self) -> Optional[MetricVector]:
        with self._lock:
            return self._latest

    def persist_alert(self, alert: Alert) -> Alert:
        """
        Append ``alert`` unless one already exists for its (reading, metric).
        The oldest alerts are dropped once ``alert_retention`` is exceeded.
        """
        with self._lock:
            stored = self._alerts.setdefault(alert.key, alert)
            while len(self._alerts) > self.alert_retention:
                self._alerts.popitem(last=False)
            return stored

    def fetch_alerts(self) -> List[Alert]:
        with self._lock:
            alerts = list(self._alerts.values())
        return sorted(alerts, key=lambda a: a.timestamp, reverse=True)

    def save_anomalies(self, anomalies: List[AnomalyRecord]) -> None:
        with self._lock:
            known = {(a.reading_ref, a.sensor) for a in self._anomalies}
            for anomaly in anomalies:
                if (anomaly.reading_ref, anomaly.sensor) not in known:
                    self._anomalies.append(anomaly)

    def fetch_recent_anomalies(self, since: Optional[datetime] = None, limit: int = 50) -> List[AnomalyRecord]:
        with self._lock:
            anomalies = list(self._anomalies)
        if since is not None:
            anomalies = [a for a in anomalies if a.detected_at >= since]
        anomalies.sort(key=lambda a: a.detected_at, reverse=True)
        return anomalies[:limit]

    def save_forecast(self, forecast: ForecastRecord) -> None:
        with self._lock:
            self._forecast = forecast

    def fetch_latest_forecast(self) -> Optional[ForecastRecord]:
        with self._lock:
            return self._forecast

    def save_summary(self, summary: SummaryRecord) -> None:
        with self._lock:
            self._summary = summary

    def fetch_latest_summary(self) -> Optional[SummaryRecord]:
        with self._lock:
            return self._summary

    def save_settings(self, user_id: str, thresholds: Mapping[str, float]) -> Dict[str, Any]:
        entry = {
            "user_id": user_id,
            "thresholds": dict(thresholds),
            "updated_at": utcnow().isoformat(),
        }
        with self._lock:
            self._settings[user_id] = entry
        return dict(entry)

    def get_settings(self, user_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            entry = self._settings.get(user_id)
        return dict(entry) if entry is not None else None


def ingest(payload: Mapping[str, Any],
           store: ReadingStore,
           broadcaster: Broadcaster,
           engine: AlertEngine,
           *,
           now: Optional[datetime] = None) -> Tuple[MetricVector, List[Alert]]:
    """
    Single write path for new readings: normalize, cache as latest, announce,
    then evaluate alerts.  Raises ``InvalidInput`` before any side effect.
    """
    vector = MetricVector.from_mapping(payload, now=now)
    store.record(vector)
    logger.info("Reading %s ingested from %s (%d metrics)", vector.reading_id, vector.location, len(vector.metrics))
    broadcaster.broadcast(READING_EVENT, vector.to_dict())
    alerts = engine.evaluate(vector)

    if ANALYTICS_EVERY and store.ingested % ANALYTICS_EVERY == 0:
        refresh_analytics(store, now=now)
    return vector, alerts
