from datetime import datetime, timedelta
from types import SimpleNamespace

import pytest

from aetherra.services.aggregator import (
    category_breakdown,
    dashboard_summary,
    emissions_in_window,
    empty_dashboard,
    reduction_percentage,
    sustainability_score,
    total_emissions,
    trend,
)

NOW = datetime(2025, 3, 15, 12, 0, 0)


def calc(type_, emissions, days_ago=0, hours=0):
    return SimpleNamespace(type=type_, emissions=emissions, created_at=NOW - timedelta(days=days_ago, hours=hours))


def goal(status="active", target=100.0, current=50.0, days_left=30, **kwargs):
    return SimpleNamespace(
        id=kwargs.get("id", "g1"),
        title=kwargs.get("title", "Goal"),
        status=status,
        target=target,
        current=current,
        target_type=kwargs.get("target_type", "absolute"),
        baseline=kwargs.get("baseline"),
        deadline=NOW + timedelta(days=days_left),
    )


def test_empty_inputs():
    assert total_emissions([]) == 0
    assert category_breakdown([]) == {}
    assert trend([], now=NOW) == []
    assert emissions_in_window([], NOW - timedelta(days=1), NOW) == 0


def test_total_and_breakdown():
    records = [calc("electricity", 1.5), calc("vehicle", 2.0), calc("electricity", 0.5), calc("supply", 1.0)]
    assert total_emissions(records) == pytest.approx(5.0)
    assert category_breakdown(records) == {
        "electricity": pytest.approx(2.0),
        "vehicle": pytest.approx(2.0),
        "supply_chain": pytest.approx(1.0),
    }


def test_window_is_half_open():
    start, end = NOW - timedelta(days=2), NOW
    records = [
        SimpleNamespace(type="electricity", emissions=1.0, created_at=start),
        SimpleNamespace(type="electricity", emissions=2.0, created_at=end),
        SimpleNamespace(type="electricity", emissions=4.0, created_at=NOW - timedelta(days=1)),
    ]
    assert emissions_in_window(records, start, end) == pytest.approx(5.0)


def test_daily_trend_is_chronological_and_skips_empty_days():
    records = [calc("electricity", 1.0, days_ago=1), calc("vehicle", 2.0, days_ago=3), calc("vehicle", 0.5, days_ago=1)]
    points = trend(records, "day", window_days=7, now=NOW)
    assert [p["date"] for p in points] == ["2025-03-12", "2025-03-14"]
    assert points[1]["emissions"] == pytest.approx(1.5)


def test_trend_excludes_records_outside_window():
    records = [calc("electricity", 1.0, days_ago=30), calc("electricity", 2.0, days_ago=2)]
    points = trend(records, "day", window_days=7, now=NOW)
    assert len(points) == 1


def test_weekly_and_monthly_buckets():
    records = [calc("electricity", 1.0, days_ago=1), calc("electricity", 1.0, days_ago=2), calc("electricity", 3.0, days_ago=20)]
    weekly = trend(records, "week", window_days=30, now=NOW)
    assert weekly[-1] == {"date": "2025-03-10", "emissions": pytest.approx(2.0)}
    monthly = trend(records, "month", window_days=30, now=NOW)
    assert [p["date"] for p in monthly] == ["2025-02-01", "2025-03-01"]


def test_unknown_bucket_raises():
    with pytest.raises(ValueError):
        trend([], "year", now=NOW)


def test_reduction_percentage():
    assert reduction_percentage(5, 0) == 0
    assert reduction_percentage(75, 100) == pytest.approx(25)
    assert reduction_percentage(150, 100) == pytest.approx(-50)


@pytest.mark.parametrize(
    "reduction, completed, expected",
    [(10, 2, 70), (50, 0, 80), (-50, 0, 20), (0, 0, 50), (30, 10, 100), (-30, 0, 20)],
)
def test_sustainability_score(reduction, completed, expected):
    assert sustainability_score(reduction, completed) == pytest.approx(expected)


def test_dashboard_summary_empty_matches_zeroed_shape():
    summary = dashboard_summary([], [], now=NOW)
    for key, value in empty_dashboard().items():
        if key != "sustainability_score":
            assert summary[key] == value
    assert summary["sustainability_score"] == 50


def test_dashboard_summary_windows_and_goals():
    records = [
        calc("electricity", 3.0, days_ago=5),
        calc("vehicle", 1.0, days_ago=10),
        calc("shipping", 8.0, days_ago=45),
        calc("supply_chain", 100.0, days_ago=200),
    ]
    goals = [
        goal("completed", id="done", days_left=10),
        goal("active", id="open", days_left=5),
        goal("cancelled", id="gone"),
    ]
    summary = dashboard_summary(records, goals, now=NOW)

    assert summary["total_emissions"] == pytest.approx(112.0)
    assert summary["monthly_emissions"] == pytest.approx(4.0)
    assert summary["previous_month_emissions"] == pytest.approx(8.0)
    assert summary["reduction_percentage"] == pytest.approx(50.0)
    # 50 + min(50, 30) + 5 for the completed goal
    assert summary["sustainability_score"] == 85
    assert summary["total_calculations"] == 4
    assert summary["recent_calculations_count"] == 2
    assert summary["has_data"] is True
    assert [g["id"] for g in summary["goals_progress"]] == ["open", "done"]
    assert [p["date"] for p in summary["trend_data"]] == ["2025-03-10"]
