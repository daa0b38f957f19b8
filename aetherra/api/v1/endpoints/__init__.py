from fastapi import APIRouter
from aetherra.api.v1.endpoints import (
    auth, calculations, factors, dashboard, goals, reports, insights, activity
)

router = APIRouter()

router.include_router(auth.router, prefix="/auth", tags=["Authentication"])
router.include_router(calculations.router, prefix="/calculations", tags=["Calculations"])
router.include_router(factors.router, prefix="/factors", tags=["Emission Factors"])
router.include_router(dashboard.router, prefix="/dashboard", tags=["Dashboard"])
router.include_router(goals.router, prefix="/goals", tags=["Goals"])
router.include_router(reports.router, prefix="/reports", tags=["Reports"])
router.include_router(insights.router, prefix="/insights", tags=["Insights"])
router.include_router(activity.router, prefix="/activity", tags=["Activity"])
