"""
Report builder.

A report is a frozen snapshot: totals, per-type breakdown, the recent
calculations it was built from and (optionally) the latest AI commentary.
Nothing in a stored report is ever recomputed from live calculations.
"""

from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy import delete
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from aetherra.core.config import settings
from aetherra.core.database import commit_or_raise
from aetherra.core.exceptions import RecordNotFoundError
from aetherra.core.logging import db_logger
from aetherra.models.ai_analysis import AIAnalysis
from aetherra.models.calculation import Calculation
from aetherra.models.report import Report
from aetherra.schemas.report import ReportCreate
from aetherra.services.aggregator import category_breakdown, total_emissions
from aetherra.utils.time import to_naive_utc, utcnow

CUSTOM_REPORT_SUMMARY = "Custom Report"


def build_snapshot(records: Sequence[Any]) -> Dict[str, Any]:
    """Frozen ``data_snapshot`` for a set of calculation records."""
    recent_calcs = [
        {
            "id": record.id,
            "type": record.type,
            "emissions": float(record.emissions or 0.0),
            "created_at": to_naive_utc(record.created_at).isoformat() if record.created_at else None,
        }
        for record in records
    ]
    return {
        "total_emissions": total_emissions(records),
        "by_type": category_breakdown(records),
        "recent_calcs": recent_calcs,
    }


def top_source(by_type: Dict[str, float]) -> Optional[str]:
    if not by_type:
        return None
    return max(by_type.items(), key=lambda item: item[1])[0]


def build_summary(snapshot: Dict[str, Any]) -> str:
    total = snapshot.get("total_emissions", 0.0)
    return f"Total Emissions: {total:.2f} tCO2e. Top source: {top_source(snapshot.get('by_type', {})) or 'None'}."


def analysis_snapshot(analysis: AIAnalysis) -> Dict[str, Any]:
    return {
        "summary": analysis.summary,
        "recommendations": analysis.recommendations or [],
        "risk_flags": analysis.risk_flags or [],
        "innovative_idea": analysis.innovative_idea or {},
    }


async def latest_analysis_snapshot(db: AsyncSession, user_id: str) -> Optional[Dict[str, Any]]:
    """Most recent analysis for the user, or None when unavailable."""
    try:
        result = await db.execute(
            select(AIAnalysis)
            .where(AIAnalysis.user_id == user_id)
            .order_by(AIAnalysis.created_at.desc())
            .limit(1)
        )
        analysis = result.scalar_one_or_none()
    except SQLAlchemyError as e:
        await db.rollback()
        db_logger.warning(f"Latest AI analysis unavailable for report of user {user_id}: {e}")
        return None
    return analysis_snapshot(analysis) if analysis else None


async def recent_calculations(db: AsyncSession, user_id: str, limit: int) -> List[Calculation]:
    result = await db.execute(
        select(Calculation)
        .where(Calculation.user_id == user_id)
        .order_by(Calculation.created_at.desc())
        .limit(limit)
    )
    return list(result.scalars().all())


# ─────────────────────────────────────────────
# 🧾 Generate
# ─────────────────────────────────────────────
async def generate_report(
    db: AsyncSession,
    user_id: str,
    payload: Optional[ReportCreate] = None,
    now: Optional[datetime] = None,
) -> Report:
    now = to_naive_utc(now) or utcnow()
    payload = payload or ReportCreate()

    if payload.data_snapshot is not None:
        snapshot = payload.data_snapshot.model_dump(mode="json")
        summary = payload.summary or CUSTOM_REPORT_SUMMARY
        period_start = payload.period_start or now
        period_end = payload.period_end or now
    else:
        records = await recent_calculations(db, user_id, settings.REPORT_RECENT_CALCULATIONS)
        snapshot = build_snapshot(records)
        summary = payload.summary or build_summary(snapshot)
        created = [to_naive_utc(r.created_at) for r in records if r.created_at]
        period_start = payload.period_start or (min(created) if created else now)
        period_end = payload.period_end or (max(created) if created else now)

    ai_snapshot = payload.ai_insights_snapshot
    if ai_snapshot is None:
        ai_snapshot = await latest_analysis_snapshot(db, user_id)

    report = Report(
        user_id=user_id,
        title=payload.title or f"Carbon Report - {now:%Y-%m-%d}",
        type=payload.type.value,
        summary=summary,
        period_start=period_start,
        period_end=period_end,
        data_snapshot=snapshot,
        ai_insights_snapshot=ai_snapshot,
        expires_at=now + timedelta(days=settings.REPORT_TTL_DAYS),
        download_count=0,
        created_at=now,
    )
    db.add(report)
    await commit_or_raise(db, "save report")
    await db.refresh(report)

    db_logger.info(f"Report {report.id} generated for user {user_id}, expires {report.expires_at.isoformat()}")
    return report


# ─────────────────────────────────────────────
# 📃 Read / delete (expired reports are invisible)
# ─────────────────────────────────────────────
async def list_reports(
    db: AsyncSession,
    user_id: str,
    limit: int = 100,
    now: Optional[datetime] = None,
) -> List[Report]:
    now = to_naive_utc(now) or utcnow()
    result = await db.execute(
        select(Report)
        .where(Report.user_id == user_id, Report.expires_at > now)
        .order_by(Report.created_at.desc())
        .limit(limit)
    )
    return list(result.scalars().all())


async def get_report(
    db: AsyncSession,
    user_id: str,
    report_id: str,
    now: Optional[datetime] = None,
) -> Report:
    now = to_naive_utc(now) or utcnow()
    result = await db.execute(
        select(Report).where(
            Report.id == report_id,
            Report.user_id == user_id,
            Report.expires_at > now,
        )
    )
    report = result.scalar_one_or_none()
    if report is None:
        raise RecordNotFoundError("Report", report_id)
    return report


async def delete_report(db: AsyncSession, user_id: str, report_id: str) -> None:
    report = await get_report(db, user_id, report_id)
    await db.delete(report)
    await commit_or_raise(db, "delete report")


async def record_download(db: AsyncSession, report: Report) -> Report:
    report.download_count = (report.download_count or 0) + 1
    await commit_or_raise(db, "record report download")
    await db.refresh(report)
    return report


async def purge_expired_reports(db: AsyncSession, now: Optional[datetime] = None) -> int:
    """TTL sweep: delete every report whose expiry has passed."""
    now = to_naive_utc(now) or utcnow()
    result = await db.execute(delete(Report).where(Report.expires_at <= now))
    await commit_or_raise(db, "purge expired reports")
    purged = result.rowcount or 0
    if purged:
        db_logger.info(f"Purged {purged} expired reports")
    return purged
