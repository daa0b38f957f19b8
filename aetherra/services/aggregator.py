"""
Aggregator: dashboard-ready summaries over a user's calculation history.

Every function is read-only over its input and returns zeroed or empty
structures for an empty history. Records are anything exposing ``type``,
``emissions`` and ``created_at`` (ORM rows, snapshots, test doubles).
"""

from collections import defaultdict
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence

from aetherra.services.calculator import normalize_calculation_type
from aetherra.services.goal_progress import goal_progress
from aetherra.utils.time import start_of_day, start_of_month, start_of_week, to_naive_utc, utcnow

MONTH_WINDOW_DAYS = 30
TREND_WINDOW_DAYS = 7
SCORE_BASE = 50.0
SCORE_REDUCTION_CAP = 30.0
SCORE_PER_COMPLETED_GOAL = 5.0

BUCKETS: Dict[str, Callable[[datetime], datetime]] = {
    "day": start_of_day,
    "week": start_of_week,
    "month": start_of_month,
}


def _emissions(record: Any) -> float:
    return float(record.emissions or 0.0)


def total_emissions(records: Iterable[Any]) -> float:
    return sum((_emissions(r) for r in records), 0.0)


def emissions_in_window(records: Iterable[Any], start: datetime, end: datetime) -> float:
    """Sum of emissions created in ``[start, end)``."""
    start, end = to_naive_utc(start), to_naive_utc(end)
    return sum(
        (_emissions(r) for r in records if start <= to_naive_utc(r.created_at) < end),
        0.0,
    )


def category_breakdown(records: Iterable[Any]) -> Dict[str, float]:
    breakdown: Dict[str, float] = defaultdict(float)
    for record in records:
        breakdown[normalize_calculation_type(record.type).value] += _emissions(record)
    return dict(breakdown)


def trend(
    records: Iterable[Any],
    bucket: str = "day",
    window_days: int = TREND_WINDOW_DAYS,
    now: Optional[datetime] = None,
) -> List[Dict[str, Any]]:
    """
    Emissions summed per bucket over the trailing ``window_days``.

    Buckets without records are omitted. Output is ordered oldest first:
    ``[{"date": "2025-01-06", "emissions": 1.25}, ...]``.
    """
    if bucket not in BUCKETS:
        raise ValueError(f"Unknown trend bucket '{bucket}'. Supported: {', '.join(BUCKETS)}")
    truncate = BUCKETS[bucket]
    now = to_naive_utc(now) or utcnow()
    since = now - timedelta(days=window_days)

    sums: Dict[datetime, float] = defaultdict(float)
    for record in records:
        created_at = to_naive_utc(record.created_at)
        if since <= created_at <= now:
            sums[truncate(created_at)] += _emissions(record)

    return [
        {"date": key.date().isoformat(), "emissions": value}
        for key, value in sorted(sums.items())
    ]


def reduction_percentage(current: float, previous: float) -> float:
    if previous > 0:
        return (previous - current) / previous * 100
    return 0.0


def sustainability_score(reduction_pct: float, completed_goals_count: int) -> float:
    score = SCORE_BASE
    if reduction_pct > 0:
        score += min(reduction_pct, SCORE_REDUCTION_CAP)
    else:
        score -= min(abs(reduction_pct), SCORE_REDUCTION_CAP)
    score += SCORE_PER_COMPLETED_GOAL * completed_goals_count
    return min(max(score, 0.0), 100.0)


def empty_dashboard() -> Dict[str, Any]:
    return {
        "total_emissions": 0.0,
        "monthly_emissions": 0.0,
        "previous_month_emissions": 0.0,
        "reduction_percentage": 0.0,
        "sustainability_score": 0,
        "category_breakdown": {},
        "trend_data": [],
        "goals_progress": [],
        "total_calculations": 0,
        "recent_calculations_count": 0,
        "has_data": False,
    }


def dashboard_summary(
    records: Sequence[Any],
    goals: Sequence[Any] = (),
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """Headline metrics for the dashboard; display values rounded to 2 places."""
    now = to_naive_utc(now) or utcnow()
    month_start = now - timedelta(days=MONTH_WINDOW_DAYS)
    previous_start = now - timedelta(days=2 * MONTH_WINDOW_DAYS)

    total = total_emissions(records)
    monthly = emissions_in_window(records, month_start, now + timedelta(microseconds=1))
    previous = emissions_in_window(records, previous_start, month_start)
    reduction = reduction_percentage(monthly, previous)

    tracked_goals = [g for g in goals if g.status in ("active", "completed")]
    completed = sum(1 for g in tracked_goals if g.status == "completed")

    recent_count = sum(1 for r in records if to_naive_utc(r.created_at) >= month_start)

    return {
        "total_emissions": round(total, 2),
        "monthly_emissions": round(monthly, 2),
        "previous_month_emissions": round(previous, 2),
        "reduction_percentage": round(reduction, 2),
        "sustainability_score": round(sustainability_score(reduction, completed)),
        "category_breakdown": {k: round(v, 3) for k, v in category_breakdown(records).items()},
        "trend_data": [
            {"date": point["date"], "emissions": round(point["emissions"], 3)}
            for point in trend(records, "day", TREND_WINDOW_DAYS, now)
        ],
        "goals_progress": [
            {
                "id": goal.id,
                "title": goal.title,
                "progress": round(goal_progress(goal), 2),
                "target": goal.target,
                "current": goal.current,
                "deadline": goal.deadline.isoformat() if goal.deadline else None,
                "status": goal.status,
            }
            for goal in sorted(tracked_goals, key=lambda g: g.deadline)
        ],
        "total_calculations": len(records),
        "recent_calculations_count": recent_count,
        "has_data": len(records) > 0,
    }
