from fastapi import APIRouter, Depends, Query, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from typing import List, Optional

from aetherra.core.database import commit_or_raise, get_db
from aetherra.core.exceptions import RecordNotFoundError
from aetherra.core.security import get_current_user_id
from aetherra.dependencies.rate_limiter import READ, WRITE, rate_limit
from aetherra.models.goal import Goal
from aetherra.schemas.goal import GoalCreate, GoalOut, GoalStatus, GoalUpdate
from aetherra.services.activity import log_activity
from aetherra.services.goal_progress import ACTIVE, apply_transitions, goal_progress, mark_milestones

router = APIRouter()


def to_goal_out(goal: Goal) -> GoalOut:
    out = GoalOut.model_validate(goal)
    return out.model_copy(update={"progress": round(goal_progress(goal), 2)})


async def get_owned_goal(db: AsyncSession, user_id: str, goal_id: str) -> Goal:
    result = await db.execute(select(Goal).where(Goal.id == goal_id, Goal.user_id == user_id))
    goal = result.scalar_one_or_none()
    if goal is None:
        raise RecordNotFoundError("Goal", goal_id)
    return goal


# ─────────────────────────────────────────────
# 📃 List Goals
# ─────────────────────────────────────────────
@router.get("/", response_model=List[GoalOut], dependencies=[Depends(rate_limit(READ))])
async def list_goals(
    status: Optional[GoalStatus] = None,
    limit: int = Query(100, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    query = select(Goal).where(Goal.user_id == user_id)
    if status:
        query = query.where(Goal.status == status.value)
    result = await db.execute(query.order_by(Goal.deadline.asc()).limit(limit))
    return [to_goal_out(goal) for goal in result.scalars().all()]


# ─────────────────────────────────────────────
# 🎯 Create Goal
# ─────────────────────────────────────────────
@router.post("/", response_model=GoalOut, status_code=201, dependencies=[Depends(rate_limit(WRITE))])
async def create_goal(
    data: GoalCreate,
    request: Request,
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    goal = Goal(
        **data.model_dump(mode="json", exclude={"deadline"}),
        deadline=data.deadline,
        user_id=user_id,
        status=ACTIVE,
    )
    apply_transitions(goal)
    mark_milestones(goal)

    db.add(goal)
    await commit_or_raise(db, "save goal")
    await db.refresh(goal)

    await log_activity(db, user_id, f"Created goal '{goal.title}'", "goal", {"goal_id": goal.id}, request)
    return to_goal_out(goal)


# ─────────────────────────────────────────────
# 🔍 Get Goal by ID
# ─────────────────────────────────────────────
@router.get("/{goal_id}", response_model=GoalOut, dependencies=[Depends(rate_limit(READ))])
async def get_goal(
    goal_id: str,
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    return to_goal_out(await get_owned_goal(db, user_id, goal_id))


# ─────────────────────────────────────────────
# ✏️ Update Goal (automatic transitions rerun only while active)
# ─────────────────────────────────────────────
@router.put("/{goal_id}", response_model=GoalOut, dependencies=[Depends(rate_limit(WRITE))])
async def update_goal(
    goal_id: str,
    updates: GoalUpdate,
    request: Request,
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    goal = await get_owned_goal(db, user_id, goal_id)
    previous_status = goal.status

    changes = updates.model_dump(mode="json", exclude_unset=True, exclude={"deadline"})
    for key, value in changes.items():
        setattr(goal, key, value)
    if "deadline" in updates.model_fields_set and updates.deadline is not None:
        goal.deadline = updates.deadline

    apply_transitions(goal)
    mark_milestones(goal)

    await commit_or_raise(db, "update goal")
    await db.refresh(goal)

    details = {"goal_id": goal.id, "fields": sorted(updates.model_fields_set)}
    if goal.status != previous_status:
        details["status"] = {"from": previous_status, "to": goal.status}
    await log_activity(db, user_id, f"Updated goal '{goal.title}'", "goal", details, request)
    return to_goal_out(goal)


# ─────────────────────────────────────────────
# 🗑️ Delete Goal
# ─────────────────────────────────────────────
@router.delete("/{goal_id}", status_code=204, dependencies=[Depends(rate_limit(WRITE))])
async def delete_goal(
    goal_id: str,
    request: Request,
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    goal = await get_owned_goal(db, user_id, goal_id)
    await db.delete(goal)
    await commit_or_raise(db, "delete goal")

    await log_activity(db, user_id, f"Deleted goal '{goal.title}'", "goal", {"goal_id": goal_id}, request)
    return Response(status_code=204)
