from datetime import datetime, timedelta
from types import SimpleNamespace

from aetherra.services.insights import rule_insights

NOW = datetime(2025, 4, 20, 10, 0, 0)


def calc(type_, emissions, days_ago):
    return SimpleNamespace(type=type_, emissions=emissions, created_at=NOW - timedelta(days=days_ago))


def titles(insights):
    return [i["title"] for i in insights]


def test_no_records_no_insights():
    assert rule_insights([], now=NOW) == []


def test_largest_source_and_limited_data():
    insights = rule_insights([calc("electricity", 3.0, 1), calc("vehicle", 1.0, 2)], now=NOW)
    assert insights[0]["title"] == "electricity is your largest emission source"
    assert insights[0]["related_data"]["percentage"] == 75.0
    assert "Multiple high-emission sources detected" in titles(insights)
    assert titles(insights)[-1] == "Limited data for analysis"


def test_single_dominant_source_has_no_spread_insight():
    records = [calc("electricity", 10.0, d) for d in range(1, 6)] + [calc("shipping", 0.5, 1)]
    insights = rule_insights(records, now=NOW)
    assert "Multiple high-emission sources detected" not in titles(insights)
    assert "Limited data for analysis" not in titles(insights)


def test_week_over_week_increase_is_high_above_25_percent():
    records = [calc("vehicle", 2.0, 2), calc("vehicle", 1.0, 10)]
    trend = next(i for i in rule_insights(records, now=NOW) if i["type"] == "trend")
    assert trend["title"] == "Emissions increasing"
    assert trend["impact"] == "high"
    assert trend["related_data"]["change"] == 100.0


def test_week_over_week_decrease_is_medium_between_thresholds():
    records = [calc("vehicle", 0.85, 3), calc("vehicle", 1.0, 9)]
    trend = next(i for i in rule_insights(records, now=NOW) if i["type"] == "trend")
    assert trend["title"] == "Emissions decreasing"
    assert trend["priority"] == "medium"


def test_small_change_is_not_reported():
    records = [calc("vehicle", 1.05, 3), calc("vehicle", 1.0, 9)]
    assert all(i["type"] != "trend" for i in rule_insights(records, now=NOW))


def test_trend_needs_both_weeks():
    records = [calc("vehicle", 1.0, 3), calc("vehicle", 1.0, 30)]
    assert all(i["type"] != "trend" for i in rule_insights(records, now=NOW))
