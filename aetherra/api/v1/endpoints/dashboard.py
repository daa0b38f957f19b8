from fastapi import APIRouter, Depends
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from aetherra.core.config import settings
from aetherra.core.database import get_db
from aetherra.core.logging import db_logger
from aetherra.core.security import get_current_user_id
from aetherra.dependencies.cache import get_dashboard_cache
from aetherra.dependencies.rate_limiter import READ, rate_limit
from aetherra.models.calculation import Calculation
from aetherra.models.goal import Goal
from aetherra.schemas.dashboard import DashboardSummary
from aetherra.services.aggregator import dashboard_summary, empty_dashboard

router = APIRouter()


# ─────────────────────────────────────────────
# 📈 Dashboard summary (cached per user)
# ─────────────────────────────────────────────
@router.get("/", response_model=DashboardSummary, dependencies=[Depends(rate_limit(READ))])
async def get_dashboard(
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
    cache=Depends(get_dashboard_cache),
):
    cached = await cache.get(user_id)
    if cached is not None:
        return cached

    try:
        records = (
            await db.execute(
                select(Calculation)
                .where(Calculation.user_id == user_id)
                .order_by(Calculation.created_at.desc())
                .limit(settings.AGGREGATION_RECORD_LIMIT)
            )
        ).scalars().all()
        goals = (
            await db.execute(select(Goal).where(Goal.user_id == user_id))
        ).scalars().all()
    except SQLAlchemyError as e:
        db_logger.error(f"Dashboard data unavailable for user {user_id}: {e}")
        summary = empty_dashboard()
        summary["fallback"] = True
        return summary

    summary = dashboard_summary(records, goals)
    summary["fallback"] = False
    await cache.set(user_id, summary, expire=settings.DASHBOARD_CACHE_TTL_SECONDS)
    return summary
