from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import List, Optional
from enum import Enum
from datetime import datetime

from aetherra.utils.time import to_naive_utc


class GoalCategory(str, Enum):
    energy = "energy"
    transport = "transport"
    waste = "waste"
    supply_chain = "supply_chain"
    general = "general"


class GoalTargetType(str, Enum):
    percentage = "percentage"
    absolute = "absolute"


class GoalStatus(str, Enum):
    active = "active"
    completed = "completed"
    overdue = "overdue"
    cancelled = "cancelled"


class Milestone(BaseModel):
    value: float = Field(..., ge=0)
    reached: bool = False
    reached_at: Optional[datetime] = None


# ─────────────────────────────────────────────
# 🎯 Shared Base Schema
# ─────────────────────────────────────────────
class GoalBase(BaseModel):
    title: str = Field(..., min_length=1, max_length=200, examples=["Cut grid electricity by 25%"])
    description: Optional[str] = None
    category: GoalCategory = Field(..., examples=["energy"])
    target: float = Field(..., ge=0, examples=[25])
    target_type: GoalTargetType = GoalTargetType.percentage
    baseline: Optional[float] = Field(None, ge=0, examples=[1000])
    deadline: datetime

    @field_validator("deadline")
    @classmethod
    def deadline_to_utc(cls, value: datetime) -> datetime:
        return to_naive_utc(value)


# ─────────────────────────────────────────────
# ✅ Create Schema
# ─────────────────────────────────────────────
class GoalCreate(GoalBase):
    current: float = Field(0, ge=0)
    milestones: List[Milestone] = []


# ─────────────────────────────────────────────
# ✏️ Update Schema (manual edits may reset status)
# ─────────────────────────────────────────────
class GoalUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    category: Optional[GoalCategory] = None
    target: Optional[float] = Field(None, ge=0)
    target_type: Optional[GoalTargetType] = None
    baseline: Optional[float] = Field(None, ge=0)
    current: Optional[float] = Field(None, ge=0)
    deadline: Optional[datetime] = None
    status: Optional[GoalStatus] = None
    milestones: Optional[List[Milestone]] = None

    # Omitted means unchanged; an explicit null on a required column is rejected.
    @field_validator(
        "title", "category", "target", "target_type", "current", "deadline", "status", "milestones"
    )
    @classmethod
    def reject_null(cls, value):
        if value is None:
            raise ValueError("cannot be null")
        return value

    @field_validator("deadline")
    @classmethod
    def deadline_to_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return to_naive_utc(value)


# ─────────────────────────────────────────────
# 📤 Response Schema
# ─────────────────────────────────────────────
class GoalOut(GoalBase):
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    current: float
    status: GoalStatus
    progress: float = Field(0, description="Display progress, clamped to [0, 100]")
    milestones: List[Milestone] = []
    created_at: datetime
    updated_at: Optional[datetime] = None
