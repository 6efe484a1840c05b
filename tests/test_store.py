from datetime import timedelta

import pytest

from airwatch.alerts import Alert, AlertEngine
from airwatch.errors import InvalidInput
from airwatch.store import READING_EVENT, Broadcaster, ReadingStore, ingest


def test_ring_buffer_evicts_oldest(make_reading):
    store = ReadingStore(capacity=3)
    for i in range(5):
        store.record(make_reading(minutes_ago=10 - i, pm25=i))
    assert len(store) == 3
    assert [r.get("pm25") for r in store.fetch_readings()] == [2, 3, 4]
    assert store.fetch_latest_reading().get("pm25") == 4


def test_alert_retention_evicts_oldest(now):
    store = ReadingStore(capacity=10, alert_retention=3)
    for i in range(5):
        store.persist_alert(Alert(f"r{i}", "pm25", 200 + i, 150, timestamp=now + timedelta(minutes=i)))
    assert [a.reading_ref for a in store.fetch_alerts()] == ["r4", "r3", "r2"]

    # A duplicate of a retained alert neither grows the table nor evicts anything.
    store.persist_alert(Alert("r3", "pm25", 999, 150, timestamp=now))
    assert len(store.fetch_alerts()) == 3
    assert {a.reading_ref for a in store.fetch_alerts()} == {"r2", "r3", "r4"}


def test_fetch_readings_since_and_order(store, make_reading, now):
    store.record(make_reading(minutes_ago=60 * 48, pm25=1))
    store.record(make_reading(minutes_ago=30, pm25=2))
    store.record(make_reading(minutes_ago=5, pm25=3))

    recent = store.fetch_readings(now - timedelta(hours=24))
    assert [r.get("pm25") for r in recent] == [2, 3]
    newest_first = store.fetch_readings(order="desc")
    assert [r.get("pm25") for r in newest_first] == [3, 2, 1]


def test_snapshot_is_a_copy(store, make_reading):
    store.record(make_reading(pm25=1))
    snapshot = store.fetch_readings()
    store.record(make_reading(pm25=2))
    assert len(snapshot) == 1


def test_empty_store(store):
    assert store.fetch_latest_reading() is None
    assert store.fetch_readings() == []
    assert store.fetch_latest_summary() is None
    assert store.fetch_latest_forecast() is None
    assert store.fetch_recent_anomalies() == []


def test_settings_upsert(store):
    assert store.get_settings("u1") is None
    store.save_settings("u1", {"pm25": 20})
    saved = store.save_settings("u1", {"pm25": 25, "co": 5})
    assert saved["thresholds"] == {"pm25": 25, "co": 5}
    assert store.get_settings("u1")["thresholds"] == {"pm25": 25, "co": 5}


def test_broadcaster_survives_failing_subscriber():
    broadcaster = Broadcaster()
    received = []

    def broken(event, payload):
        raise RuntimeError("socket closed")

    broadcaster.subscribe(broken)
    broadcaster.subscribe(lambda event, payload: received.append(event))
    broadcaster.broadcast("alert", {})
    assert received == ["alert"]


def test_ingest_records_broadcasts_and_alerts(store, events, clock, now):
    broadcaster, received = events
    engine = AlertEngine(store.persist_alert, broadcaster.broadcast, clock=clock)

    vector, alerts = ingest(
        {"location": "Site A", "metrics": {"pm25": 200, "co": 4}},
        store,
        broadcaster,
        engine,
        now=now,
    )

    assert store.fetch_latest_reading() is vector
    assert vector.timestamp == now
    assert [a.metric for a in alerts] == ["pm25"]
    assert [event for event, _ in received] == [READING_EVENT, "alert"]


def test_ingest_rejects_malformed_payload_without_side_effects(store, events, clock):
    broadcaster, received = events
    engine = AlertEngine(store.persist_alert, broadcaster.broadcast, clock=clock)
    with pytest.raises(InvalidInput):
        ingest({"metrics": "pm25=3"}, store, broadcaster, engine)
    assert len(store) == 0
    assert received == []
