# src/modules/reports/reports_controller.py
"""Revenue report routes."""

from typing import Optional
from datetime import date
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from src.common.database.database import get_db_session
from src.common.exceptions import BillingError
from src.common.utils.global_functions import to_http_exception
from src.auth.dependencies import get_current_user
from src.models.models import User

from . import reports_service as service
from .schemas import RevenueReportResponse, ServiceRevenueResponse, DashboardStatsResponse

router = APIRouter(prefix="/reports", tags=["Reports"])


@router.get("/revenue", response_model=RevenueReportResponse)
async def get_revenue_report(
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    hmo_id: Optional[UUID] = Query(None),
    status: Optional[str] = Query(None, description="pending or paid"),
    department: Optional[str] = Query(None, description="consultation, lab, radiology, pharmacy, nursing, other"),
    db: AsyncSession = Depends(get_db_session),
    current_user: User = Depends(get_current_user)
):
    """Cash-basis revenue report."""
    try:
        return await service.revenue_report(db, start_date, end_date, hmo_id, status, department)
    except BillingError as e:
        raise to_http_exception(e)


@router.get("/services/{category}", response_model=ServiceRevenueResponse)
async def get_service_revenue(
    category: str,
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    db: AsyncSession = Depends(get_db_session),
    current_user: User = Depends(get_current_user)
):
    """Revenue for lab, radiology, pharmacy, consultation or nursing services."""
    try:
        return await service.service_revenue(db, category, start_date, end_date)
    except BillingError as e:
        raise to_http_exception(e)


@router.get("/dashboard-stats", response_model=DashboardStatsResponse)
async def get_dashboard_stats(
    db: AsyncSession = Depends(get_db_session),
    current_user: User = Depends(get_current_user)
):
    return await service.dashboard_stats(db)
