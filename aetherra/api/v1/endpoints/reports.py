from fastapi import APIRouter, Body, Depends, Query, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional

from aetherra.core.database import get_db
from aetherra.core.security import get_current_user_id
from aetherra.dependencies.rate_limiter import READ, WRITE, rate_limit
from aetherra.schemas.report import ReportCreate, ReportListItem, ReportOut
from aetherra.services import report_builder
from aetherra.services.activity import log_activity
from aetherra.services.pdf_renderer import render_report_pdf

router = APIRouter()


# ─────────────────────────────────────────────
# 🧾 Generate Report (custom snapshot, or the latest calculations)
# ─────────────────────────────────────────────
@router.post("/", response_model=ReportOut, status_code=201, dependencies=[Depends(rate_limit(WRITE))])
async def create_report(
    request: Request,
    payload: Optional[ReportCreate] = Body(None),
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    report = await report_builder.generate_report(db, user_id, payload)
    await log_activity(
        db, user_id, f"Generated report '{report.title}'", "report",
        {"report_id": report.id, "custom": bool(payload and payload.data_snapshot)}, request,
    )
    return report


# ─────────────────────────────────────────────
# 📃 List Reports (unexpired only)
# ─────────────────────────────────────────────
@router.get("/", response_model=List[ReportListItem], dependencies=[Depends(rate_limit(READ))])
async def list_reports(
    limit: int = Query(100, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    return await report_builder.list_reports(db, user_id, limit=limit)


# ─────────────────────────────────────────────
# 🔍 Get Report by ID
# ─────────────────────────────────────────────
@router.get("/{report_id}", response_model=ReportOut, dependencies=[Depends(rate_limit(READ))])
async def get_report(
    report_id: str,
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    return await report_builder.get_report(db, user_id, report_id)


# ─────────────────────────────────────────────
# 📄 Download Report as PDF
# ─────────────────────────────────────────────
@router.get("/{report_id}/pdf", dependencies=[Depends(rate_limit(READ))])
async def download_report_pdf(
    report_id: str,
    request: Request,
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    report = await report_builder.get_report(db, user_id, report_id)
    pdf = render_report_pdf(report)
    report = await report_builder.record_download(db, report)

    await log_activity(
        db, user_id, f"Downloaded report '{report.title}'", "report",
        {"report_id": report.id, "download_count": report.download_count}, request,
    )
    return Response(
        content=pdf,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="aetherra-report-{report.id}.pdf"'},
    )


# ─────────────────────────────────────────────
# 🗑️ Delete Report
# ─────────────────────────────────────────────
@router.delete("/{report_id}", status_code=204, dependencies=[Depends(rate_limit(WRITE))])
async def delete_report(
    report_id: str,
    request: Request,
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    await report_builder.delete_report(db, user_id, report_id)
    await log_activity(db, user_id, "Deleted report", "report", {"report_id": report_id}, request)
    return Response(status_code=204)
