import pytest

from airwatch.score import NO_DATA_STATUS, compute_score, score_status


def test_clean_reading_scores_full_marks(make_reading):
    result = compute_score(make_reading(pm25=35, pm10=150, co=9, o3=100, no2=100))
    assert result.score == 100
    assert result.status == "Excellent"
    assert result.violations == []


def test_single_pm25_violation(make_reading):
    result = compute_score(make_reading(pm25=70))
    assert result.score == 80
    assert result.status == "Excellent"
    assert result.violations == [
        {"metric": "pm25", "value": 70, "threshold": 35, "exceeded": "35.00"}
    ]


def test_penalty_is_capped_at_thirty(make_reading):
    result = compute_score(make_reading(pm25=1000))
    assert result.score == 70
    assert result.status == "Good"


def test_score_floors_at_zero(make_reading):
    result = compute_score(make_reading(pm25=1000, pm10=1000, co=100, o3=1000))
    assert result.score == 0
    assert result.status == "Hazardous"
    assert [v["metric"] for v in result.violations] == ["pm25", "pm10", "co", "o3"]


def test_absent_metrics_count_as_zero(make_reading):
    result = compute_score(make_reading(temperature=25))
    assert result.score == 100
    assert result.violations == []


def test_no_reading_is_sentinel_not_error():
    result = compute_score(None)
    assert result.score == 0
    assert result.status == NO_DATA_STATUS
    assert result.violations == []


def test_custom_threshold_table(make_reading):
    result = compute_score(make_reading(co=12), thresholds={"co": 6})
    # min(30, 1.0 * 20) = 20
    assert result.score == 80


@pytest.mark.parametrize(
    "score, status",
    [(100, "Excellent"), (80, "Excellent"), (79, "Good"), (60, "Good"), (40, "Moderate"), (20, "Poor"), (19, "Hazardous")],
)
def test_status_bands(score, status):
    assert score_status(score) == status


@pytest.mark.parametrize(
    "metrics, thresholds, expected",
    [
        # 6.125 / 35 * 20 = 3.5 -> 96.5
        ({"pm25": 41.125}, None, 97),
        # 0.3 / 4 * 20 = 1.5 -> 98.5
        ({"co": 4.3}, {"co": 4}, 99),
    ],
)
def test_half_point_scores_round_up(make_reading, metrics, thresholds, expected):
    reading = make_reading(**metrics)
    result = compute_score(reading) if thresholds is None else compute_score(reading, thresholds=thresholds)
    assert result.score == expected
