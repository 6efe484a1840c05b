from datetime import timedelta

import pytest

from airwatch.statistics import (
    classify_direction,
    compute_correlations,
    compute_trend,
    compute_trends,
    pearson,
    resolve_lookback,
    select_window,
)


class TestLookback:
    @pytest.mark.parametrize(
        "lookback, expected",
        [
            ("24h", timedelta(hours=24)),
            ("7d", timedelta(days=7)),
            ("30d", timedelta(days=30)),
            ("bogus", timedelta(hours=24)),
            (None, timedelta(hours=24)),
        ],
    )
    def test_resolve_lookback(self, lookback, expected):
        assert resolve_lookback(lookback) == expected

    def test_select_window_drops_old_and_sorts(self, make_reading, now):
        readings = [
            make_reading(minutes_ago=10, pm25=3),
            make_reading(minutes_ago=60 * 30, pm25=1),
            make_reading(minutes_ago=60, pm25=2),
        ]
        window = select_window(readings, "24h", now)
        assert [r.get("pm25") for r in window] == [2, 3]

        week = select_window(readings, "7d", now)
        assert [r.get("pm25") for r in week] == [1, 2, 3]


class TestPearson:
    def test_symmetric(self):
        x = [1.0, 4.0, 2.0, 8.0, 5.0]
        y = [3.0, 1.0, 7.0, 2.0, 6.0]
        assert pearson(x, y) == pytest.approx(pearson(y, x))

    def test_self_correlation_is_one(self):
        x = [2.0, 3.5, 1.0, 9.0]
        assert pearson(x, x) == pytest.approx(1.0)

    def test_inverse_series(self):
        x = [1.0, 2.0, 3.0, 4.0]
        assert pearson(x, [-v for v in x]) == pytest.approx(-1.0)

    def test_constant_series_is_zero(self):
        assert pearson([5.0, 5.0, 5.0], [2.0, 2.0, 2.0]) == 0.0
        assert pearson([0.1, 0.1, 0.1], [1.0, 2.0, 3.0]) == 0.0

    @pytest.mark.parametrize("value", [0.1, 0.3, 1.7, 12.34])
    def test_identical_constant_series_is_zero(self, value):
        # Sums of such values do not cancel exactly in floating point.
        assert pearson([value] * 6, [value] * 6) == 0.0

    def test_constant_gas_channels_in_window(self, make_reading):
        window = [make_reading(minutes_ago=i, pm25=20 + i, co=0.1, o3=0.1, no2=0.3) for i in range(6)]
        result = compute_correlations(window)
        assert result["co-o3"] == 0.0
        assert result["o3-no2"] == 0.0
        assert result["pm25-co"] == 0.0

    def test_empty_series_is_zero(self):
        assert pearson([], []) == 0.0


class TestCorrelations:
    def test_pair_keys_in_fixed_order(self, make_reading):
        window = [make_reading(minutes_ago=i, pm25=i, pm10=2 * i, co=1, o3=i % 2, no2=10 - i) for i in range(5)]
        result = compute_correlations(window)
        assert list(result) == [
            "pm25-pm10",
            "pm25-co",
            "pm25-o3",
            "pm25-no2",
            "pm10-co",
            "pm10-o3",
            "pm10-no2",
            "co-o3",
            "co-no2",
            "o3-no2",
        ]
        assert result["pm25-pm10"] == 1.0
        assert result["pm25-no2"] == -1.0
        assert result["pm25-co"] == 0

    def test_missing_metric_counts_as_zero(self, make_reading):
        window = [
            make_reading(minutes_ago=2, pm25=1, pm10=5),
            make_reading(minutes_ago=1, pm25=2),
            make_reading(minutes_ago=0, pm25=3, pm10=1),
        ]
        # pm10 column is [5, 0, 1]
        expected = round(pearson([1, 2, 3], [5, 0, 1]), 3)
        assert compute_correlations(window)["pm25-pm10"] == expected

    def test_rounded_to_three_places(self, make_reading):
        window = [make_reading(minutes_ago=i, pm25=v, pm10=w) for i, (v, w) in enumerate([(1, 2), (2, 1), (3, 5), (4, 3)])]
        value = compute_correlations(window)["pm25-pm10"]
        assert value == round(value, 3)


class TestTrend:
    @pytest.mark.parametrize(
        "slope, direction",
        [
            (0.0, "stable"),
            (0.1, "stable"),
            (-0.1, "stable"),
            (0.11, "increasing"),
            (-0.11, "decreasing"),
        ],
    )
    def test_direction_bands(self, slope, direction):
        assert classify_direction(slope) == direction

    def test_increasing_series(self):
        trend = compute_trend([10.0, 20.0, 30.0])
        assert trend == {
            "slope": 10.0,
            "direction": "increasing",
            "changePercent": 50.0,
            "current": 30.0,
            "average": 20.0,
        }

    def test_nearly_flat_series_is_stable(self):
        trend = compute_trend([10.0, 10.05, 10.1])
        assert trend["direction"] == "stable"
        assert trend["slope"] == pytest.approx(0.05)

    def test_non_positive_values_are_dropped(self):
        trend = compute_trend([30.0, 0.0, None, 20.0, -4.0, 10.0])
        assert trend["slope"] == -10.0
        assert trend["direction"] == "decreasing"
        assert trend["current"] == 10.0

    def test_too_few_values(self):
        assert compute_trend([0.0, 5.0, None]) is None

    def test_trends_skip_sparse_metrics(self, make_reading):
        window = [
            make_reading(minutes_ago=20, pm25=10, co=0),
            make_reading(minutes_ago=10, pm25=12, co=2),
            make_reading(minutes_ago=0, pm25=14),
        ]
        trends = compute_trends(window)
        assert set(trends) == {"pm25"}
        assert trends["pm25"]["slope"] == 2.0

    def test_trends_sort_oldest_first(self, make_reading):
        window = [
            make_reading(minutes_ago=0, pm25=30),
            make_reading(minutes_ago=20, pm25=10),
            make_reading(minutes_ago=10, pm25=20),
        ]
        assert compute_trends(window, ["pm25"])["pm25"]["direction"] == "increasing"
