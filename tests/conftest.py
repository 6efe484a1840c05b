"""
Shared fixtures: a fixed clock, a fresh store and a reading factory.
"""

from datetime import datetime, timedelta, timezone

import pytest

from airwatch.store import Broadcaster, ReadingStore
from airwatch.vector import MetricVector

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def pytest_configure(config):
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def clock():
    return lambda: NOW


@pytest.fixture
def store():
    return ReadingStore(capacity=100)


@pytest.fixture
def events():
    """Broadcaster plus the list of (event, payload) pairs it delivered."""
    broadcaster = Broadcaster()
    received = []
    broadcaster.subscribe(lambda event, payload: received.append((event, payload)))
    return broadcaster, received


@pytest.fixture
def make_reading():
    def _make(minutes_ago=0, location="Test Lab", **metrics):
        return MetricVector(
            timestamp=NOW - timedelta(minutes=minutes_ago),
            location=location,
            metrics=metrics,
        )

    return _make
