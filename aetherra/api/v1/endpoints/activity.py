from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional

from aetherra.core.database import get_db
from aetherra.core.security import get_current_user_id
from aetherra.dependencies.rate_limiter import READ, rate_limit
from aetherra.schemas.activity import ActivityCategory, ActivityOut
from aetherra.services.activity import list_activities

router = APIRouter()


# ─────────────────────────────────────────────
# 🕓 Activity log (newest first)
# ─────────────────────────────────────────────
@router.get("/", response_model=List[ActivityOut], dependencies=[Depends(rate_limit(READ))])
async def get_activity(
    category: Optional[ActivityCategory] = None,
    limit: int = Query(50, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    return await list_activities(db, user_id, category=category.value if category else None, limit=limit)
