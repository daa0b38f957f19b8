from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from typing import List, Optional
from enum import Enum
from datetime import datetime


class Impact(str, Enum):
    high = "high"
    medium = "medium"
    low = "low"


class Severity(str, Enum):
    critical = "critical"
    warning = "warning"
    info = "info"


class AnalysisSource(str, Enum):
    ai = "ai"
    fallback = "fallback"
    empty = "empty"


class Recommendation(BaseModel):
    title: str
    description: str
    impact: Impact = Impact.medium
    category: str = "general"


class RiskFlag(BaseModel):
    title: str
    description: str
    severity: Severity = Severity.info


class InnovativeIdea(BaseModel):
    title: str
    description: str
    potential_impact: str = Field("", validation_alias=AliasChoices("potential_impact", "potentialImpact"))


# ─────────────────────────────────────────────
# 🧠 Provider result (also the fallback pool entry shape)
# ─────────────────────────────────────────────
class AnalysisResult(BaseModel):
    summary: str
    recommendations: List[Recommendation] = []
    risk_flags: List[RiskFlag] = Field([], validation_alias=AliasChoices("risk_flags", "riskFlags"))
    innovative_idea: InnovativeIdea = Field(..., validation_alias=AliasChoices("innovative_idea", "innovativeIdea"))

    def snapshot(self) -> dict:
        """Plain dict stored on AIAnalysis rows and report snapshots."""
        return {
            "summary": self.summary,
            "recommendations": [r.model_dump(mode="json") for r in self.recommendations],
            "risk_flags": [f.model_dump(mode="json") for f in self.risk_flags],
            "innovative_idea": self.innovative_idea.model_dump(mode="json"),
        }


# ─────────────────────────────────────────────
# 📤 Output Schema
# ─────────────────────────────────────────────
class AIAnalysisOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    summary: str
    recommendations: List[Recommendation]
    risk_flags: List[RiskFlag]
    innovative_idea: InnovativeIdea
    source: AnalysisSource
    engine_used: Optional[str] = None
    created_at: datetime


class RuleInsight(BaseModel):
    type: str
    category: str
    title: str
    description: str
    impact: Impact
    priority: Impact
    actionable: bool = True
    related_data: Optional[dict] = None


# ─────────────────────────────────────────────
# 📌 Stored rule insights
# ─────────────────────────────────────────────
class InsightOut(RuleInsight):
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    dismissed: bool = False
    dismissed_at: Optional[datetime] = None
    created_at: datetime
    updated_at: Optional[datetime] = None


class InsightUpdate(BaseModel):
    dismissed: bool
