"""
Sustainability analysis: provider-backed, with a static fallback pool.

    total <= 0                       -> fixed "no data" analysis  (source "empty")
    provider answers with valid JSON -> provider analysis          (source "ai")
    anything else                    -> pool entry for the dominant
                                        category                   (source "fallback")
"""

import json
import random
import re
from collections import defaultdict
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from aetherra.core.config import settings
from aetherra.core.database import commit_or_raise
from aetherra.core.exceptions import AIEngineError, RecordNotFoundError
from aetherra.core.logging import ai_logger
from aetherra.models.ai_analysis import AIAnalysis
from aetherra.models.calculation import Calculation
from aetherra.models.goal import Goal
from aetherra.schemas.ai_analysis import AnalysisResult
from aetherra.services.aggregator import category_breakdown, total_emissions, trend
from aetherra.services.ai_engine import query_ai_engine

FALLBACK_POOLS_PATH = Path(__file__).resolve().parent.parent / "data" / "fallback_analyses.json"

CAR_CLASSES = ("bike", "car", "suv")
TRUCK_CLASSES = ("van", "truck")
DEFAULT_POOL = "supply"
POOL_BY_CATEGORY = {
    "electricity": "electricity",
    "vehicle": "vehicle",
    "shipping": "shipping",
}

INJECTION_PATTERNS = [
    re.compile(r"ignore\s+(previous|above|all)\s+(instructions?|prompts?)", re.IGNORECASE),
    re.compile(r"system\s*:", re.IGNORECASE),
]

SYSTEM_PROMPT = (
    "You are a specialized AI for Carbon Management and Sustainability Analysis. "
    "Output strictly in JSON."
)

PROMPT_TEMPLATE = """Act as a Senior Sustainability Consultant for a corporation.
Analyze the following data and provide a strategic analysis.

DATA CONTEXT:
- Total Emissions: {total} tCO2e
- Breakdown by Category: {categories}
- Recent Trends: {trends}
- Active Goals: {goals}

REQUIREMENTS:
1. Executive Summary: concise, professional, highlighting key status.
2. Recommendations: 3 specific, actionable steps.
3. Risk Flags: critical or warning signals (rising trends, missed goals).
4. Innovative Idea: one specific, structural strategy tailored to this emissions profile.

OUTPUT FORMAT:
Strict JSON object with the following structure:
{{
    "summary": "...",
    "recommendations": [
        {{"title": "...", "description": "...", "impact": "high|medium|low", "category": "energy|transport|waste|general|optimization"}}
    ],
    "riskFlags": [
        {{"title": "...", "description": "...", "severity": "critical|warning|info"}}
    ],
    "innovativeIdea": {{"title": "...", "description": "...", "potentialImpact": "..."}}
}}"""

EMPTY_ANALYSIS = {
    "summary": "No emissions data detected. Please use the calculator to generate an initial footprint assessment.",
    "recommendations": [
        {
            "title": "Start Calculation",
            "description": "Input your energy or vehicle usage in the calculator.",
            "impact": "high",
            "category": "general",
        }
    ],
    "risk_flags": [],
    "innovative_idea": {
        "title": "Awaiting Data",
        "description": "Analysis requires baseline data to generate reduction strategies.",
        "potential_impact": "N/A",
    },
}


@dataclass
class GeneratedAnalysis:
    result: AnalysisResult
    source: str
    engine_used: Optional[str] = None


@lru_cache(maxsize=1)
def load_fallback_pools() -> Dict[str, Any]:
    with open(FALLBACK_POOLS_PATH, encoding="utf-8") as f:
        return json.load(f)


def sanitize_for_prompt(value: Any, max_length: int = 500) -> str:
    """Strip injection phrases and code fences from user data, then cap its length."""
    text = value if isinstance(value, str) else json.dumps(value, default=str)
    for pattern in INJECTION_PATTERNS:
        text = pattern.sub("[filtered]", text)
    return text.replace("```", "")[:max_length]


def empty_analysis() -> AnalysisResult:
    return AnalysisResult.model_validate(EMPTY_ANALYSIS)


# ─────────────────────────────────────────────
# Fallback pool selection
# ─────────────────────────────────────────────
def dominant_category(by_category: Dict[str, float]) -> Optional[str]:
    positive = {k: v for k, v in by_category.items() if v > 0}
    if not positive:
        return None
    return max(positive.items(), key=lambda item: item[1])[0]


def dominant_vehicle_class(records: Sequence[Any]) -> Optional[str]:
    """Vehicle class with the largest emissions among vehicle records."""
    sums: Dict[str, float] = defaultdict(float)
    for record in records:
        if record.type != "vehicle":
            continue
        vehicle_class = (record.inputs or {}).get("vehicle_class")
        if vehicle_class:
            sums[vehicle_class] += float(record.emissions or 0.0)
    return dominant_category(sums)


def fallback_pool(by_category: Dict[str, float], vehicle_class: Optional[str] = None) -> List[Dict[str, Any]]:
    pools = load_fallback_pools()
    key = POOL_BY_CATEGORY.get(dominant_category(by_category), DEFAULT_POOL)
    if key == "vehicle":
        sub_pool = "truck" if vehicle_class in TRUCK_CLASSES else "car"
        return pools["vehicle"][sub_pool]
    return pools.get(key) or pools[DEFAULT_POOL]


def fallback_analysis(
    by_category: Dict[str, float],
    vehicle_class: Optional[str] = None,
    rng: Optional[random.Random] = None,
) -> AnalysisResult:
    entry = (rng or random).choice(fallback_pool(by_category, vehicle_class))
    return AnalysisResult.model_validate(entry)


# ─────────────────────────────────────────────
# Provider path
# ─────────────────────────────────────────────
def build_prompt(summary: Dict[str, Any], goals: Sequence[Any]) -> str:
    goal_data = [{"title": g.title, "target": g.target, "status": g.status} for g in goals]
    return PROMPT_TEMPLATE.format(
        total=sanitize_for_prompt(round(summary.get("total", 0.0), 3), 50),
        categories=sanitize_for_prompt(summary.get("by_category", {}), 300),
        trends=sanitize_for_prompt(summary.get("trends", []), 300),
        goals=sanitize_for_prompt(goal_data, 500),
    )


def parse_analysis(text: str) -> AnalysisResult:
    """Parse provider output; raises ValueError when it is empty or not a valid analysis."""
    if not text:
        raise ValueError("Provider returned empty content")
    try:
        return AnalysisResult.model_validate(json.loads(text))
    except (json.JSONDecodeError, ValidationError) as e:
        raise ValueError(f"Provider returned an invalid analysis: {e}") from e


def build_emissions_summary(records: Sequence[Any]) -> Dict[str, Any]:
    return {
        "total": total_emissions(records),
        "by_category": category_breakdown(records),
        "trends": trend(records, "week", window_days=60),
        "vehicle_class": dominant_vehicle_class(records),
    }


async def generate_analysis(
    summary: Dict[str, Any],
    goals: Sequence[Any] = (),
    engine: Optional[str] = None,
    rng: Optional[random.Random] = None,
    user_id: Optional[str] = None,
) -> GeneratedAnalysis:
    by_category = summary.get("by_category", {})
    if summary.get("total", 0.0) <= 0:
        return GeneratedAnalysis(empty_analysis(), "empty")

    engine_name = engine or settings.AI_ENGINE
    try:
        text = await query_ai_engine(
            build_prompt(summary, goals),
            engine=engine_name,
            system_prompt=SYSTEM_PROMPT,
            prompt_type="sustainability_analysis",
            user_id=user_id,
        )
        return GeneratedAnalysis(parse_analysis(text), "ai", engine_name)
    except (AIEngineError, ValueError) as e:
        ai_logger.warning(f"Falling back to static analysis pool: {e}")

    return GeneratedAnalysis(
        fallback_analysis(by_category, summary.get("vehicle_class"), rng),
        "fallback",
    )


# ─────────────────────────────────────────────
# Persistence
# ─────────────────────────────────────────────
async def create_analysis(
    db: AsyncSession,
    user_id: str,
    engine: Optional[str] = None,
    rng: Optional[random.Random] = None,
) -> AIAnalysis:
    records = (
        await db.execute(
            select(Calculation)
            .where(Calculation.user_id == user_id)
            .order_by(Calculation.created_at.desc())
            .limit(settings.AGGREGATION_RECORD_LIMIT)
        )
    ).scalars().all()
    goals = (
        await db.execute(select(Goal).where(Goal.user_id == user_id, Goal.status == "active"))
    ).scalars().all()

    generated = await generate_analysis(
        build_emissions_summary(records), goals, engine=engine, rng=rng, user_id=user_id
    )
    snapshot = generated.result.snapshot()

    analysis = AIAnalysis(
        user_id=user_id,
        summary=snapshot["summary"],
        recommendations=snapshot["recommendations"],
        risk_flags=snapshot["risk_flags"],
        innovative_idea=snapshot["innovative_idea"],
        source=generated.source,
        engine_used=generated.engine_used,
    )
    db.add(analysis)
    await commit_or_raise(db, "save analysis")
    await db.refresh(analysis)
    return analysis


async def latest_analysis(db: AsyncSession, user_id: str) -> AIAnalysis:
    result = await db.execute(
        select(AIAnalysis)
        .where(AIAnalysis.user_id == user_id)
        .order_by(AIAnalysis.created_at.desc())
        .limit(1)
    )
    analysis = result.scalar_one_or_none()
    if analysis is None:
        raise RecordNotFoundError("Analysis")
    return analysis


async def list_analyses(db: AsyncSession, user_id: str, limit: int = 20) -> List[AIAnalysis]:
    result = await db.execute(
        select(AIAnalysis)
        .where(AIAnalysis.user_id == user_id)
        .order_by(AIAnalysis.created_at.desc())
        .limit(limit)
    )
    return list(result.scalars().all())
