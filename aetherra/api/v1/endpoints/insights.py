from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional

from aetherra.core.database import get_db
from aetherra.core.security import get_current_user_id
from aetherra.dependencies.rate_limiter import AI, READ, WRITE, rate_limit
from aetherra.schemas.ai_analysis import AIAnalysisOut, InsightOut, InsightUpdate, RuleInsight
from aetherra.services import analysis, insights
from aetherra.services.activity import log_activity
from aetherra.services.ai_engine import get_current_ai_engine

router = APIRouter()


# ─────────────────────────────────────────────
# 🧠 Generate a new sustainability analysis
# ─────────────────────────────────────────────
@router.post("/generate", response_model=AIAnalysisOut, status_code=201, dependencies=[Depends(rate_limit(AI))])
async def generate_insights(
    request: Request,
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    result = await analysis.create_analysis(db, user_id)
    await log_activity(
        db, user_id, "Generated sustainability analysis", "ai_analysis",
        {"analysis_id": result.id, "source": result.source, "engine": result.engine_used}, request,
    )
    return result


# ─────────────────────────────────────────────
# 🔍 Latest analysis / history
# ─────────────────────────────────────────────
@router.get("/latest", response_model=AIAnalysisOut, dependencies=[Depends(rate_limit(READ))])
async def get_latest_analysis(
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    return await analysis.latest_analysis(db, user_id)


@router.get("/history", response_model=List[AIAnalysisOut], dependencies=[Depends(rate_limit(READ))])
async def get_analysis_history(
    limit: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    return await analysis.list_analyses(db, user_id, limit=limit)


# ─────────────────────────────────────────────
# 📐 Rule-based observations
# ─────────────────────────────────────────────
@router.get("/rules", response_model=List[RuleInsight], dependencies=[Depends(rate_limit(READ))])
async def get_rule_insights(
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    return insights.rule_insights(await insights.recent_calculations(db, user_id))


@router.post("/rules", response_model=List[InsightOut], status_code=201, dependencies=[Depends(rate_limit(WRITE))])
async def store_rule_insights(
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    return await insights.generate_insights(db, user_id)


# ─────────────────────────────────────────────
# 📌 Stored insights: list, dismiss
# ─────────────────────────────────────────────
@router.get("/", response_model=List[InsightOut], dependencies=[Depends(rate_limit(READ))])
async def list_stored_insights(
    category: Optional[str] = None,
    dismissed: bool = Query(False, description="Include dismissed insights"),
    limit: int = Query(100, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    return await insights.list_insights(db, user_id, category=category, include_dismissed=dismissed, limit=limit)


@router.put("/{insight_id}", response_model=InsightOut, dependencies=[Depends(rate_limit(WRITE))])
async def update_insight(
    insight_id: str,
    updates: InsightUpdate,
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    return await insights.set_dismissed(db, user_id, insight_id, updates.dismissed)


# ─────────────────────────────────────────────
# ⚙️ Engine configuration
# ─────────────────────────────────────────────
@router.get("/engine")
async def get_engine_info(user_id: str = Depends(get_current_user_id)):
    return await get_current_ai_engine()
