# src/modules/reports/reports_service.py
"""
Cash-basis revenue reporting.

Revenue is recognised per ledger line:

- paid by any method other than insurance: the full line total
- paid via insurance: the patient portion, plus the HMO portion once the
  encounter's claim is paid and the line existed when it was paid;
  until then the HMO portion is reported as pending HMO amount
- pending: nothing recognised; the line is outstanding, split into what
  the insurer and the patient still owe
- cancelled: ignored
"""

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal
from typing import Dict, List, Optional, Tuple
from uuid import UUID

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from src.common.exceptions import ValidationError
from src.common.utils.global_functions import as_utc, resolve_date_range, to_money, utcnow
from src.models.models import (
    Charge, Claim, Encounter, EncounterCharge, Patient, Receipt, User,
    ChargeCategory, ClaimStatus, EncounterChargeStatus, PaymentMethod, ReceiptStatus,
    CLOSED_ENCOUNTER_STATUSES
)
from .schemas import (
    RevenueReportResponse, RevenueSummary, DepartmentRevenue, ServiceRevenue,
    ServiceRevenueResponse, DashboardStatsResponse, PeriodCounts, PeriodRevenue,
    PendingPayments
)

ZERO = Decimal("0.00")

DEPARTMENTS = {
    "consultation": ChargeCategory.CONSULTATION,
    "lab": ChargeCategory.LAB,
    "radiology": ChargeCategory.RADIOLOGY,
    "pharmacy": ChargeCategory.DRUGS,
    "nursing": ChargeCategory.NURSING,
    "other": ChargeCategory.OTHER,
}


def department_for(category: ChargeCategory) -> str:
    """Report department of a charge category; drugs are reported as pharmacy."""
    if category == ChargeCategory.DRUGS:
        return "pharmacy"
    return category.value


def category_for(department: str) -> ChargeCategory:
    key = department.strip().lower()
    if key == "drugs":
        key = "pharmacy"
    if key not in DEPARTMENTS:
        raise ValidationError(f"Unknown department '{department}'.", {"allowed": sorted(DEPARTMENTS)})
    return DEPARTMENTS[key]


# ============================================================================
# RECOGNITION
# ============================================================================

@dataclass
class Recognition:
    recognised: Decimal = ZERO
    pending_hmo_amount: Decimal = ZERO
    outstanding_hmo: Decimal = ZERO
    outstanding_patient: Decimal = ZERO

    @property
    def outstanding(self) -> Decimal:
        return self.outstanding_hmo + self.outstanding_patient


def recognise_line(
    line: EncounterCharge,
    payment_method: Optional[PaymentMethod],
    claim_status: Optional[ClaimStatus],
    claim_paid_date: Optional[datetime],
) -> Recognition:
    """Apply the cash-basis rules to one ledger line."""
    total = to_money(line.total_amount)
    legacy = line.patient_portion is None or line.hmo_portion is None
    patient_part = total if legacy else to_money(line.patient_portion)
    hmo_part = ZERO if legacy else to_money(line.hmo_portion)

    if line.status == EncounterChargeStatus.CANCELLED:
        return Recognition()

    if line.status == EncounterChargeStatus.PENDING:
        return Recognition(outstanding_hmo=hmo_part, outstanding_patient=patient_part)

    if payment_method != PaymentMethod.INSURANCE:
        return Recognition(recognised=total)

    claim_settled = (
        claim_status == ClaimStatus.PAID
        and claim_paid_date is not None
        and as_utc(line.created_at) <= as_utc(claim_paid_date)
    )
    if claim_settled:
        return Recognition(recognised=patient_part + hmo_part)
    return Recognition(recognised=patient_part, pending_hmo_amount=hmo_part)


@dataclass
class _Bucket:
    count: int = 0
    quantity: int = 0
    billed: Decimal = ZERO
    recognised: Decimal = ZERO
    paid: Decimal = ZERO
    pending: Decimal = ZERO

    def add(self, line: EncounterCharge, result: Recognition) -> None:
        total = to_money(line.total_amount)
        self.count += 1
        self.quantity += line.quantity
        self.billed += total
        self.recognised += result.recognised
        if line.status == EncounterChargeStatus.PAID:
            self.paid += total
        else:
            self.pending += total


async def _load_lines(
    session: AsyncSession,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    hmo_id: Optional[UUID] = None,
    status: Optional[EncounterChargeStatus] = None,
    category: Optional[ChargeCategory] = None,
) -> List[Tuple[EncounterCharge, Recognition]]:
    """Fetch non-cancelled lines with their receipt method and claim state, already recognised."""
    query = (
        select(EncounterCharge, Receipt.payment_method, Claim.status, Claim.paid_date)
        .outerjoin(Receipt, EncounterCharge.receipt_id == Receipt.id)
        .outerjoin(Claim, Claim.encounter_id == EncounterCharge.encounter_id)
        .where(EncounterCharge.status != EncounterChargeStatus.CANCELLED)
    )
    if start is not None:
        query = query.where(EncounterCharge.created_at >= start)
    if end is not None:
        query = query.where(EncounterCharge.created_at <= end)
    if hmo_id is not None:
        query = query.join(Patient, EncounterCharge.patient_id == Patient.id).where(Patient.hmo_id == hmo_id)
    if status is not None:
        query = query.where(EncounterCharge.status == status)
    if category is not None:
        query = query.where(EncounterCharge.item_type == category)

    rows = (await session.execute(query.order_by(EncounterCharge.created_at))).all()
    return [(line, recognise_line(line, method, claim_status, paid_date)) for line, method, claim_status, paid_date in rows]


def _department_rows(buckets: Dict[str, _Bucket]) -> List[DepartmentRevenue]:
    return [
        DepartmentRevenue(department=name, count=b.count, billed=b.billed, recognised=b.recognised, pending=b.pending)
        for name, b in sorted(buckets.items(), key=lambda kv: kv[1].recognised, reverse=True)
    ]


def _service_rows(buckets: Dict[Tuple[str, str], _Bucket]) -> List[ServiceRevenue]:
    return [
        ServiceRevenue(
            service_name=name, category=category, count=b.count, quantity=b.quantity,
            billed=b.billed, recognised=b.recognised, paid=b.paid, pending=b.pending,
        )
        for (name, category), b in sorted(buckets.items(), key=lambda kv: kv[1].recognised, reverse=True)
    ]


# ============================================================================
# REPORTS
# ============================================================================

async def revenue_report(
    session: AsyncSession,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    hmo_id: Optional[UUID] = None,
    status: Optional[str] = None,
    department: Optional[str] = None
) -> RevenueReportResponse:
    """Recognised and outstanding revenue for a date range, by department and by service."""
    start, end = resolve_date_range(start_date, end_date)
    line_status = None
    if status:
        try:
            line_status = EncounterChargeStatus(status)
        except ValueError:
            raise ValidationError(f"Unknown charge status '{status}'.") from None
    category = category_for(department) if department else None

    lines = await _load_lines(session, start, end, hmo_id, line_status, category)

    summary = Recognition()
    paid_count = pending_count = 0
    billed = ZERO
    by_department: Dict[str, _Bucket] = {}
    by_service: Dict[Tuple[str, str], _Bucket] = {}
    for line, result in lines:
        billed += to_money(line.total_amount)
        if line.status == EncounterChargeStatus.PAID:
            paid_count += 1
        else:
            pending_count += 1
        summary.recognised += result.recognised
        summary.pending_hmo_amount += result.pending_hmo_amount
        summary.outstanding_hmo += result.outstanding_hmo
        summary.outstanding_patient += result.outstanding_patient

        dept = department_for(line.item_type)
        by_department.setdefault(dept, _Bucket()).add(line, result)
        by_service.setdefault((line.item_name, dept), _Bucket()).add(line, result)

    return RevenueReportResponse(
        summary=RevenueSummary(
            total_charges=len(lines),
            paid_charges=paid_count,
            pending_charges=pending_count,
            total_billed=billed,
            recognised_revenue=summary.recognised,
            pending_revenue=summary.outstanding,
            pending_hmo_owed=summary.outstanding_hmo,
            pending_patient_owed=summary.outstanding_patient,
            pending_hmo_amount=summary.pending_hmo_amount,
            start_date=start.date(),
            end_date=end.date(),
        ),
        by_department=_department_rows(by_department),
        by_service=_service_rows(by_service),
    )


async def service_revenue(
    session: AsyncSession,
    category: str,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None
) -> ServiceRevenueResponse:
    """Revenue for one department (lab, radiology, pharmacy, ...) grouped by item name."""
    charge_category = category_for(category)
    start, end = resolve_date_range(start_date, end_date)
    lines = await _load_lines(session, start, end, category=charge_category)

    buckets: Dict[Tuple[str, str], _Bucket] = {}
    for line, result in lines:
        buckets.setdefault((line.item_name, department_for(line.item_type)), _Bucket()).add(line, result)
    services = _service_rows(buckets)

    return ServiceRevenueResponse(
        category=department_for(charge_category),
        start_date=start.date(),
        end_date=end.date(),
        services=services,
        total_count=sum(s.count for s in services),
        total_revenue=sum((s.recognised for s in services), ZERO),
        total_paid=sum((s.paid for s in services), ZERO),
        total_pending=sum((s.pending for s in services), ZERO),
    )


async def dashboard_stats(session: AsyncSession, now: Optional[datetime] = None) -> DashboardStatsResponse:
    """Headline counts and recognised revenue for today, this week, this month and all time."""
    now = now or utcnow()
    today = datetime.combine(now.date(), time.min, tzinfo=timezone.utc)
    week = today - timedelta(days=today.weekday())
    month = today.replace(day=1)

    async def count_encounters(since: Optional[datetime] = None) -> int:
        query = select(func.count(Encounter.id))
        if since is not None:
            query = query.where(Encounter.created_at >= since)
        return await session.scalar(query) or 0

    lines = await _load_lines(session)

    revenue = {"today": ZERO, "week": ZERO, "month": ZERO, "all_time": ZERO}
    pending = PendingPayments(count=0, hmo_owed=ZERO, patient_owed=ZERO, total=ZERO)
    by_department: Dict[str, _Bucket] = {}
    for line, result in lines:
        created = as_utc(line.created_at)
        revenue["all_time"] += result.recognised
        if created >= month:
            revenue["month"] += result.recognised
        if created >= week:
            revenue["week"] += result.recognised
        if created >= today:
            revenue["today"] += result.recognised
        if line.status == EncounterChargeStatus.PENDING:
            pending.count += 1
            pending.hmo_owed += result.outstanding_hmo
            pending.patient_owed += result.outstanding_patient
            pending.total += result.outstanding
        by_department.setdefault(department_for(line.item_type), _Bucket()).add(line, result)

    return DashboardStatsResponse(
        encounters=PeriodCounts(
            today=await count_encounters(today),
            week=await count_encounters(week),
            month=await count_encounters(month),
            total=await count_encounters(),
        ),
        revenue=PeriodRevenue(**revenue),
        total_users=await session.scalar(select(func.count(User.id))) or 0,
        total_receipts=await session.scalar(
            select(func.count(Receipt.id)).where(Receipt.status == ReceiptStatus.ACTIVE)
        ) or 0,
        total_charges=await session.scalar(
            select(func.count(Charge.id)).where(Charge.active.is_(True))
        ) or 0,
        active_encounters=await session.scalar(
            select(func.count(Encounter.id)).where(Encounter.encounter_status.not_in(CLOSED_ENCOUNTER_STATUSES))
        ) or 0,
        pending_payments=pending,
        revenue_by_department=_department_rows(by_department),
    )
