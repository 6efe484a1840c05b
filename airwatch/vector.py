from __future__ import annotations

import math
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional

from airwatch.config import DEFAULT_LOCATION
from airwatch.errors import InvalidInput


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class MetricVector:
    """
    A single timestamped, location-tagged reading.

    ``metrics`` only holds channels the sensor actually reported; an absent
    channel is simply missing from the mapping, never stored as zero.
    """

    timestamp: datetime
    location: str
    metrics: Mapping[str, float] = field(default_factory=dict)
    reading_id: str = field(default_factory=lambda: uuid.uuid4().hex)

    def __post_init__(self) -> None:
        object.__setattr__(self, "metrics", MappingProxyType(dict(self.metrics)))

    def get(self, metric: str) -> Optional[float]:
        return self.metrics.get(metric)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.reading_id,
            "timestamp": self.timestamp.isoformat(),
            "location": self.location,
            "metrics": dict(self.metrics),
        }

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any], *, now: Optional[datetime] = None) -> "MetricVector":
        """
        Normalize a raw ingest payload ``{"location", "metrics", "timestamp"}``.

        Missing location falls back to the configured default and a missing
        timestamp to ``now``.  Raises ``InvalidInput`` for anything malformed.
        """
        if not isinstance(data, Mapping):
            raise InvalidInput("payload must be a mapping")
        raw_metrics = data.get("metrics")
        if raw_metrics is None:
            raw_metrics = {}
        if not isinstance(raw_metrics, Mapping):
            raise InvalidInput("metrics must be a mapping of name to number")

        metrics: Dict[str, float] = {}
        for name, value in raw_metrics.items():
            number = _to_float(name, value)
            if number is not None:
                metrics[str(name)] = number

        raw_ts = data.get("timestamp")
        timestamp = _parse_timestamp(raw_ts) if raw_ts is not None else (now or utcnow())
        location = data.get("location") or DEFAULT_LOCATION
        kwargs = {}
        if data.get("id"):
            kwargs["reading_id"] = str(data["id"])
        return cls(timestamp=timestamp, location=str(location), metrics=metrics, **kwargs)


def _parse_timestamp(value) -> datetime:
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, (int, float)) and not isinstance(value, bool):
        parsed = datetime.fromtimestamp(value, tz=timezone.utc)
    else:
        text = str(value).strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        parsed = None
        for fmt in (None, "%Y-%m-%d %H:%M:%S", "%Y-%m-%d %H:%M:%S.%f"):
            try:
                parsed = datetime.fromisoformat(text) if fmt is None else datetime.strptime(text, fmt)
                break
            except ValueError:
                continue
        if parsed is None:
            raise InvalidInput(f"invalid timestamp: {value}")
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _to_float(name, value) -> Optional[float]:
    if value is None:
        return None
    if isinstance(value, bool):
        raise InvalidInput(f"metric {name} must be numeric")
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise InvalidInput(f"metric {name} must be numeric") from None
    if math.isnan(number):
        return None
    return number
