from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from typing import Any, Dict, List, Optional
from typing_extensions import Annotated
from enum import Enum
from datetime import datetime
import math

from aetherra.services.calculator import normalize_calculation_type
from aetherra.utils.time import to_naive_utc


class ReportType(str, Enum):
    pdf = "pdf"
    csv = "csv"


class SnapshotCalculation(BaseModel):
    id: Optional[str] = None
    type: str
    emissions: float = Field(..., ge=0)
    created_at: Optional[datetime] = None


class DataSnapshot(BaseModel):
    total_emissions: float = Field(0, ge=0)
    by_type: Dict[str, float] = {}
    recent_calcs: List[SnapshotCalculation] = []


class CustomDataSnapshot(DataSnapshot):
    """Caller-supplied snapshot; held to the same rules as a built one."""

    total_emissions: float = Field(0, ge=0, allow_inf_nan=False)
    by_type: Dict[str, Annotated[float, Field(ge=0, allow_inf_nan=False)]] = {}

    @field_validator("by_type")
    @classmethod
    def known_calculation_types(cls, value: Dict[str, float]) -> Dict[str, float]:
        normalized: Dict[str, float] = {}
        for key, amount in value.items():
            name = normalize_calculation_type(key).value
            normalized[name] = normalized.get(name, 0.0) + amount
        return normalized

    @field_validator("recent_calcs")
    @classmethod
    def known_recent_types(cls, value: List[SnapshotCalculation]) -> List[SnapshotCalculation]:
        return [calc.model_copy(update={"type": normalize_calculation_type(calc.type).value}) for calc in value]

    @model_validator(mode="after")
    def total_matches_parts(self) -> "CustomDataSnapshot":
        if self.recent_calcs:
            expected, source = sum(calc.emissions for calc in self.recent_calcs), "recent_calcs"
        else:
            expected, source = sum(self.by_type.values()), "by_type"
        if not math.isclose(self.total_emissions, expected, rel_tol=1e-6, abs_tol=1e-9):
            raise ValueError(f"total_emissions {self.total_emissions} does not match the sum of {source} ({expected})")
        return self


# ─────────────────────────────────────────────
# 🧾 Generate request: empty body builds from recent calculations
# ─────────────────────────────────────────────
class ReportCreate(BaseModel):
    title: Optional[str] = Field(None, max_length=200)
    summary: Optional[str] = None
    type: ReportType = ReportType.pdf
    period_start: Optional[datetime] = None
    period_end: Optional[datetime] = None
    data_snapshot: Optional[CustomDataSnapshot] = None
    ai_insights_snapshot: Optional[Dict[str, Any]] = None

    @field_validator("period_start", "period_end")
    @classmethod
    def period_to_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return to_naive_utc(value)


# ─────────────────────────────────────────────
# 📤 Response Schemas
# ─────────────────────────────────────────────
class ReportOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    title: str
    type: ReportType
    summary: Optional[str] = None
    period_start: Optional[datetime] = None
    period_end: Optional[datetime] = None
    data_snapshot: DataSnapshot
    ai_insights_snapshot: Optional[Dict[str, Any]] = None
    expires_at: datetime
    download_count: int = 0
    created_at: datetime


class ReportListItem(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    title: str
    type: ReportType
    summary: Optional[str] = None
    expires_at: datetime
    download_count: int = 0
    created_at: datetime
