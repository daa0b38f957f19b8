"""
Deterministic observations over a user's recent calculations.

``rule_insights`` is pure. ``generate_insights`` stores new observations,
skipping any title the user already has undismissed.
"""

from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy import case
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from aetherra.core.database import commit_or_raise
from aetherra.core.exceptions import RecordNotFoundError
from aetherra.core.logging import db_logger
from aetherra.models.calculation import Calculation
from aetherra.models.insight import Insight
from aetherra.services.aggregator import category_breakdown, emissions_in_window, total_emissions
from aetherra.utils.time import to_naive_utc, utcnow

INSIGHT_RECORD_LIMIT = 100
TREND_CHANGE_THRESHOLD = 10.0
HIGH_TREND_CHANGE = 25.0
SECOND_SOURCE_SHARE = 0.2
MIN_RECORDS = 5


def rule_insights(records: Sequence[Any], now: Optional[datetime] = None) -> List[Dict[str, Any]]:
    if not records:
        return []
    now = to_naive_utc(now) or utcnow()
    insights: List[Dict[str, Any]] = []

    totals = sorted(category_breakdown(records).items(), key=lambda item: item[1], reverse=True)
    total = total_emissions(records)

    # Largest source
    if totals and total > 0:
        top_category, top_emissions = totals[0]
        share = top_emissions / total * 100
        insights.append({
            "type": "analysis",
            "category": "emissions",
            "title": f"{top_category} is your largest emission source",
            "description": (
                f"{top_category} accounts for {share:.1f}% of your total emissions "
                f"({top_emissions:.2f} tCO2e). Focus reduction strategies here."
            ),
            "impact": "high",
            "priority": "high",
            "actionable": True,
            "related_data": {"category": top_category, "emissions": top_emissions, "percentage": round(share, 1)},
        })

    # Week over week
    week_ago = now - timedelta(days=7)
    two_weeks_ago = now - timedelta(days=14)
    recent_count = sum(1 for r in records if week_ago <= to_naive_utc(r.created_at))
    previous_count = sum(1 for r in records if two_weeks_ago <= to_naive_utc(r.created_at) < week_ago)
    if recent_count and previous_count:
        recent = emissions_in_window(records, week_ago, now + timedelta(microseconds=1))
        previous = emissions_in_window(records, two_weeks_ago, week_ago)
        if previous > 0:
            change = (recent - previous) / previous * 100
            if abs(change) > TREND_CHANGE_THRESHOLD:
                level = "high" if abs(change) > HIGH_TREND_CHANGE else "medium"
                insights.append({
                    "type": "trend",
                    "category": "analysis",
                    "title": "Emissions increasing" if change > 0 else "Emissions decreasing",
                    "description": (
                        f"Your emissions have {'increased' if change > 0 else 'decreased'} by "
                        f"{abs(change):.1f}% in the last week compared to the previous week."
                    ),
                    "impact": level,
                    "priority": level,
                    "actionable": True,
                    "related_data": {"change": round(change, 1), "recent_emissions": recent, "previous_emissions": previous},
                })

    # Spread across categories
    if len(totals) > 1 and totals[1][1] > total * SECOND_SOURCE_SHARE:
        insights.append({
            "type": "recommendation",
            "category": "optimization",
            "title": "Multiple high-emission sources detected",
            "description": (
                "Your emissions are distributed across multiple categories. "
                "Consider a multi-faceted approach to reduction."
            ),
            "impact": "medium",
            "priority": "medium",
            "actionable": True,
        })

    if len(records) < MIN_RECORDS:
        insights.append({
            "type": "info",
            "category": "data_quality",
            "title": "Limited data for analysis",
            "description": "Add more calculations to get personalized insights and track your progress more accurately.",
            "impact": "low",
            "priority": "low",
            "actionable": True,
        })

    return insights


PRIORITY_RANK = {"high": 3, "medium": 2, "low": 1}


async def recent_calculations(db: AsyncSession, user_id: str) -> List[Calculation]:
    result = await db.execute(
        select(Calculation)
        .where(Calculation.user_id == user_id)
        .order_by(Calculation.created_at.desc())
        .limit(INSIGHT_RECORD_LIMIT)
    )
    return list(result.scalars().all())


# ─────────────────────────────────────────────
# 📌 Stored insights
# ─────────────────────────────────────────────
async def generate_insights(db: AsyncSession, user_id: str, now: Optional[datetime] = None) -> List[Insight]:
    """Store this run's observations; returns only the newly created rows."""
    observations = rule_insights(await recent_calculations(db, user_id), now=now)
    if not observations:
        return []

    result = await db.execute(
        select(Insight.title).where(Insight.user_id == user_id, Insight.dismissed.is_(False))
    )
    open_titles = set(result.scalars().all())

    created: List[Insight] = []
    for observation in observations:
        if observation["title"] in open_titles:
            continue
        insight = Insight(user_id=user_id, **observation)
        db.add(insight)
        created.append(insight)
        open_titles.add(observation["title"])

    if created:
        await commit_or_raise(db, "save insights")
        for insight in created:
            await db.refresh(insight)
        db_logger.info(f"Stored {len(created)} new insights for user {user_id}")
    return created


async def list_insights(
    db: AsyncSession,
    user_id: str,
    category: Optional[str] = None,
    include_dismissed: bool = False,
    limit: int = 100,
) -> List[Insight]:
    query = select(Insight).where(Insight.user_id == user_id)
    if category:
        query = query.where(Insight.category == category)
    if not include_dismissed:
        query = query.where(Insight.dismissed.is_(False))
    rank = case(PRIORITY_RANK, value=Insight.priority, else_=0)
    result = await db.execute(query.order_by(rank.desc(), Insight.created_at.desc()).limit(limit))
    return list(result.scalars().all())


async def set_dismissed(
    db: AsyncSession,
    user_id: str,
    insight_id: str,
    dismissed: bool,
    now: Optional[datetime] = None,
) -> Insight:
    result = await db.execute(select(Insight).where(Insight.id == insight_id, Insight.user_id == user_id))
    insight = result.scalar_one_or_none()
    if insight is None:
        raise RecordNotFoundError("Insight", insight_id)

    insight.dismissed = dismissed
    insight.dismissed_at = (to_naive_utc(now) or utcnow()) if dismissed else None
    await commit_or_raise(db, "update insight")
    await db.refresh(insight)
    return insight
