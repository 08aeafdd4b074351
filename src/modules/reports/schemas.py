# src/modules/reports/schemas.py
"""Revenue report Pydantic schemas."""

from typing import List
from datetime import date
from decimal import Decimal
from pydantic import BaseModel


# ============================================================================
# REVENUE REPORT
# ============================================================================

class RevenueSummary(BaseModel):
    total_charges: int
    paid_charges: int
    pending_charges: int
    total_billed: Decimal
    recognised_revenue: Decimal
    pending_revenue: Decimal
    pending_hmo_owed: Decimal
    pending_patient_owed: Decimal
    pending_hmo_amount: Decimal
    start_date: date
    end_date: date


class DepartmentRevenue(BaseModel):
    department: str
    count: int
    billed: Decimal
    recognised: Decimal
    pending: Decimal


class ServiceRevenue(BaseModel):
    service_name: str
    category: str
    count: int
    quantity: int
    billed: Decimal
    recognised: Decimal
    paid: Decimal
    pending: Decimal


class RevenueReportResponse(BaseModel):
    summary: RevenueSummary
    by_department: List[DepartmentRevenue]
    by_service: List[ServiceRevenue]


class ServiceRevenueResponse(BaseModel):
    category: str
    start_date: date
    end_date: date
    services: List[ServiceRevenue]
    total_count: int
    total_revenue: Decimal
    total_paid: Decimal
    total_pending: Decimal


# ============================================================================
# DASHBOARD
# ============================================================================

class PeriodCounts(BaseModel):
    today: int
    week: int
    month: int
    total: int


class PeriodRevenue(BaseModel):
    today: Decimal
    week: Decimal
    month: Decimal
    all_time: Decimal


class PendingPayments(BaseModel):
    count: int
    hmo_owed: Decimal
    patient_owed: Decimal
    total: Decimal


class DashboardStatsResponse(BaseModel):
    encounters: PeriodCounts
    revenue: PeriodRevenue
    total_users: int
    total_receipts: int
    total_charges: int
    active_encounters: int
    pending_payments: PendingPayments
    revenue_by_department: List[DepartmentRevenue]
