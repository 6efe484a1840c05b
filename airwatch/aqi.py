"""
PM2.5 -> AQI conversion and the AQI health categories.

Both functions walk the same ``AQI_BREAKPOINTS`` list so the index bands and
the category bands cannot drift apart.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Dict, Tuple

from airwatch.config import AQI_BREAKPOINTS


@dataclass(frozen=True)
class HealthRecord:
    category: str
    color: str
    advice: str
    activities: Tuple[str, ...] = field(default_factory=tuple)
    precautions: Tuple[str, ...] = field(default_factory=tuple)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "category": self.category,
            "color": self.color,
            "advice": self.advice,
            "activities": list(self.activities),
            "precautions": list(self.precautions),
        }


# One entry per AQI_BREAKPOINTS row, in the same order.
HEALTH_BANDS = (
    HealthRecord(
        "Good",
        "#00e400",
        "Air quality is excellent. Perfect for outdoor activities!",
        ("Running", "Cycling", "Sports", "All outdoor activities"),
        (),
    ),
    HealthRecord(
        "Moderate",
        "#ffff00",
        "Air quality is acceptable for most people.",
        ("Light exercise", "Walking", "Short outdoor activities"),
        ("Unusually sensitive people should consider reducing prolonged outdoor exertion",),
    ),
    HealthRecord(
        "Unhealthy for Sensitive Groups",
        "#ff7e00",
        "Sensitive groups may experience health effects.",
        ("Indoor activities", "Light indoor exercise"),
        (
            "People with respiratory/heart conditions should limit outdoor exertion",
            "Keep rescue inhaler handy if asthmatic",
        ),
    ),
    HealthRecord(
        "Unhealthy",
        "#ff0000",
        "Everyone may begin to experience health effects.",
        ("Indoor activities only",),
        ("Avoid prolonged outdoor activities", "Keep windows closed", "Use air purifiers if available"),
    ),
    HealthRecord(
        "Very Unhealthy",
        "#8f3f97",
        "Health alert: everyone may experience serious effects.",
        ("Stay indoors",),
        (
            "Avoid all outdoor activities",
            "Keep windows/doors closed",
            "Run air purifiers",
            "Wear N95 masks if must go outside",
        ),
    ),
    HealthRecord(
        "Hazardous",
        "#7e0023",
        "Health warnings of emergency conditions.",
        ("Remain indoors",),
        (
            "Emergency conditions",
            "Avoid all outdoor exposure",
            "Seal windows/doors",
            "Consider evacuation if possible",
        ),
    ),
)


def round_half_up(value: float) -> int:
    """Round to the nearest integer with .5 going up.  Float noise below 1e-9 is ignored."""
    return int(math.floor(round(value, 9) + 0.5))


def compute_aqi(pm25: float) -> int:
    """
    Convert a PM2.5 concentration (µg/m³, >= 0) into an EPA-style AQI.

    Concentrations above the last breakpoint keep the last band's slope and
    are not capped at 500.
    """
    c_lo = 0.0
    for c_hi, i_lo, i_hi in AQI_BREAKPOINTS:
        if pm25 <= c_hi:
            break
        c_lo = c_hi
    else:
        # Past the table: reuse the last band.
        c_hi, i_lo, i_hi = AQI_BREAKPOINTS[-1]
        c_lo = AQI_BREAKPOINTS[-2][0]
    ratio = (i_hi - i_lo) / (c_hi - c_lo)
    return round_half_up(ratio * (pm25 - c_lo) + i_lo)


def classify_health(aqi: float) -> HealthRecord:
    for (_, _, i_hi), band in zip(AQI_BREAKPOINTS[:-1], HEALTH_BANDS):
        if aqi <= i_hi:
            return band
    return HEALTH_BANDS[-1]
