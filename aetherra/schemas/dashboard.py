from pydantic import BaseModel
from typing import Dict, List, Optional


class TrendPoint(BaseModel):
    date: str
    emissions: float


class GoalProgressItem(BaseModel):
    id: str
    title: str
    progress: float
    target: float
    current: float
    deadline: Optional[str] = None
    status: str


class DashboardSummary(BaseModel):
    total_emissions: float
    monthly_emissions: float
    previous_month_emissions: float
    reduction_percentage: float
    sustainability_score: int
    category_breakdown: Dict[str, float]
    trend_data: List[TrendPoint]
    goals_progress: List[GoalProgressItem]
    total_calculations: int
    recent_calculations_count: int
    has_data: bool
    fallback: bool = False
