from unittest.mock import Mock

from airwatch.alerts import ALERT_EVENT, ALERT_SEVERITY, AlertEngine, find_breaches


def _engine(store, broadcaster, clock):
    return AlertEngine(store.persist_alert, broadcaster.broadcast, clock=clock)


def test_breach_produces_single_alert(make_reading, store, events, clock):
    broadcaster, received = events
    reading = make_reading(pm25=200)
    alerts = _engine(store, broadcaster, clock).evaluate(reading)

    assert len(alerts) == 1
    alert = alerts[0]
    assert alert.metric == "pm25"
    assert alert.value == 200
    assert alert.threshold == 150
    assert alert.severity == ALERT_SEVERITY == "unhealthy"
    assert alert.reading_ref == reading.reading_id
    assert store.fetch_alerts() == [alert]
    assert received == [(ALERT_EVENT, alert.to_dict())]


def test_reading_below_limits_has_no_side_effects(make_reading):
    persist = Mock()
    broadcast = Mock()
    alerts = AlertEngine(persist, broadcast).evaluate(make_reading(pm25=100, co=3))
    assert alerts == []
    persist.assert_not_called()
    broadcast.assert_not_called()


def test_value_at_limit_does_not_alert(make_reading):
    assert find_breaches(make_reading(pm25=150, co=10)) == []


def test_alerts_follow_threshold_table_order(make_reading):
    reading = make_reading(no2=400, co=50, pm25=151)
    assert [a.metric for a in find_breaches(reading)] == ["pm25", "co", "no2"]


def test_metrics_outside_table_are_ignored(make_reading):
    assert find_breaches(make_reading(temperature=60, humidity=99)) == []


def test_same_values_on_new_reading_make_new_alert(make_reading, store, events, clock):
    broadcaster, _ = events
    engine = _engine(store, broadcaster, clock)
    engine.evaluate(make_reading(pm25=300))
    engine.evaluate(make_reading(pm25=300))
    assert len(store.fetch_alerts()) == 2


def test_store_keeps_one_alert_per_reading_and_metric(make_reading, store):
    reading = make_reading(pm25=300)
    first = find_breaches(reading)[0]
    again = find_breaches(reading)[0]
    assert store.persist_alert(first) is first
    assert store.persist_alert(again) is first
    assert len(store.fetch_alerts()) == 1


def test_custom_thresholds(make_reading):
    engine = AlertEngine(lambda a: a, lambda e, p: None, thresholds={"co": 5})
    alerts = engine.evaluate(make_reading(co=6, pm25=500))
    assert [a.metric for a in alerts] == ["co"]
