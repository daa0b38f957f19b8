from fastapi import APIRouter, Depends, Query, Request, Response
from sqlalchemy import func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from typing import List, Optional
from datetime import datetime

from aetherra.core.database import commit_or_raise, get_db
from aetherra.core.exceptions import RecordNotFoundError
from aetherra.core.security import get_current_user_id
from aetherra.dependencies.rate_limiter import READ, WRITE, rate_limit
from aetherra.models.calculation import Calculation
from aetherra.schemas.calculation import (
    CalculationCreate, CalculationOut, CalculationPreview, CalculationUpdate, CategoryTotal
)
from aetherra.services.activity import log_activity
from aetherra.services.calculator import calculate_emissions, normalize_calculation_type
from aetherra.utils.time import to_naive_utc

router = APIRouter()


async def get_owned_calculation(db: AsyncSession, user_id: str, calculation_id: str) -> Calculation:
    result = await db.execute(
        select(Calculation).where(Calculation.id == calculation_id, Calculation.user_id == user_id)
    )
    calculation = result.scalar_one_or_none()
    if calculation is None:
        raise RecordNotFoundError("Calculation", calculation_id)
    return calculation


# ─────────────────────────────────────────────
# 🧮 Create Calculation
# ─────────────────────────────────────────────
@router.post("/", response_model=CalculationOut, status_code=201, dependencies=[Depends(rate_limit(WRITE))])
async def create_calculation(
    data: CalculationCreate,
    request: Request,
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    emissions = calculate_emissions(data.inputs)
    calculation = Calculation(
        user_id=user_id,
        type=data.inputs.type,
        inputs=data.inputs.model_dump(mode="json"),
        emissions=emissions,
    )
    db.add(calculation)
    await commit_or_raise(db, "save calculation")
    await db.refresh(calculation)

    await log_activity(
        db, user_id, f"Added {calculation.type} calculation", "calculation",
        {"calculation_id": calculation.id, "emissions": emissions}, request,
    )
    return calculation


# ─────────────────────────────────────────────
# 👀 Preview (computed, not persisted)
# ─────────────────────────────────────────────
@router.post("/preview", response_model=CalculationPreview, dependencies=[Depends(rate_limit(READ))])
async def preview_calculation(
    data: CalculationCreate,
    user_id: str = Depends(get_current_user_id),
):
    return CalculationPreview(type=data.inputs.type, emissions=calculate_emissions(data.inputs))


# ─────────────────────────────────────────────
# 📃 List Calculations
# ─────────────────────────────────────────────
@router.get("/", response_model=List[CalculationOut], dependencies=[Depends(rate_limit(READ))])
async def list_calculations(
    calculation_type: Optional[str] = Query(None, alias="type"),
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    limit: int = Query(50, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    query = select(Calculation).where(Calculation.user_id == user_id)
    if calculation_type:
        query = query.where(Calculation.type == normalize_calculation_type(calculation_type).value)
    if start:
        query = query.where(Calculation.created_at >= to_naive_utc(start))
    if end:
        query = query.where(Calculation.created_at < to_naive_utc(end))

    result = await db.execute(query.order_by(Calculation.created_at.desc()).limit(limit))
    return result.scalars().all()


# ─────────────────────────────────────────────
# 📊 Emissions grouped by type
# ─────────────────────────────────────────────
@router.get("/breakdown", response_model=List[CategoryTotal], dependencies=[Depends(rate_limit(READ))])
async def emissions_by_type(
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    result = await db.execute(
        select(Calculation.type, func.sum(Calculation.emissions), func.count(Calculation.id))
        .where(Calculation.user_id == user_id)
        .group_by(Calculation.type)
        .order_by(func.sum(Calculation.emissions).desc())
    )
    return [
        CategoryTotal(type=normalize_calculation_type(row[0]), emissions=float(row[1] or 0.0), count=row[2])
        for row in result.all()
    ]


# ─────────────────────────────────────────────
# 🔍 Get Calculation by ID
# ─────────────────────────────────────────────
@router.get("/{calculation_id}", response_model=CalculationOut, dependencies=[Depends(rate_limit(READ))])
async def get_calculation(
    calculation_id: str,
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    return await get_owned_calculation(db, user_id, calculation_id)


# ─────────────────────────────────────────────
# ✏️ Edit Calculation (inputs replaced, emissions recomputed)
# ─────────────────────────────────────────────
@router.put("/{calculation_id}", response_model=CalculationOut, dependencies=[Depends(rate_limit(WRITE))])
async def update_calculation(
    calculation_id: str,
    updates: CalculationUpdate,
    request: Request,
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    calculation = await get_owned_calculation(db, user_id, calculation_id)

    emissions = calculate_emissions(updates.inputs)
    calculation.type = updates.inputs.type
    calculation.inputs = updates.inputs.model_dump(mode="json")
    calculation.emissions = emissions

    await commit_or_raise(db, "update calculation")
    await db.refresh(calculation)

    await log_activity(
        db, user_id, f"Edited {calculation.type} calculation", "calculation",
        {"calculation_id": calculation.id, "emissions": emissions}, request,
    )
    return calculation


# ─────────────────────────────────────────────
# 🗑️ Delete Calculation
# ─────────────────────────────────────────────
@router.delete("/{calculation_id}", status_code=204, dependencies=[Depends(rate_limit(WRITE))])
async def delete_calculation(
    calculation_id: str,
    request: Request,
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    calculation = await get_owned_calculation(db, user_id, calculation_id)
    await db.delete(calculation)
    await commit_or_raise(db, "delete calculation")

    await log_activity(
        db, user_id, f"Deleted {calculation.type} calculation", "calculation",
        {"calculation_id": calculation_id}, request,
    )
    return Response(status_code=204)
