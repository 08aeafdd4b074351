# src/modules/claims/claims_service.py
"""
Claim generation and lifecycle.

A claim is a frozen copy of an encounter's billable lines at the moment it
is generated. Later edits to the ledger or the charge master never change
an existing claim.
"""

import logging
from datetime import date
from decimal import Decimal
from typing import Optional, List
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from src.common.config import settings
from src.common.database.database import unit_of_work
from src.common.exceptions import (
    ConflictError, InvalidStateError, NotFoundError, ValidationError
)
from src.common.utils.global_functions import as_utc, resolve_date_range, to_money, utcnow
from src.common.utils.global_messages import GlobalMessages
from src.common.utils.numbering import next_claim_number
from src.models.models import (
    HMO, Claim, ClaimItem, Encounter, EncounterCharge, Patient, INSURED_TIERS,
    ClaimStatus as DBClaimStatus, EncounterChargeStatus
)
from src.modules.charges.pricing import split_portions
from src.modules.charges.schemas import ChargeCategory
from .schemas import (
    ClaimResponse, ClaimItemResponse, ClaimListResponse, ClaimSummaryResponse,
    ClaimStatus, StatusBucket, HMOClaimSummary
)

logger = logging.getLogger(__name__)

# Allowed moves when transitions are enforced
ALLOWED_TRANSITIONS = {
    DBClaimStatus.PENDING: {DBClaimStatus.SUBMITTED, DBClaimStatus.REJECTED},
    DBClaimStatus.SUBMITTED: {DBClaimStatus.APPROVED, DBClaimStatus.REJECTED},
    DBClaimStatus.APPROVED: {DBClaimStatus.PAID, DBClaimStatus.REJECTED},
    DBClaimStatus.REJECTED: {DBClaimStatus.SUBMITTED},
    DBClaimStatus.PAID: {DBClaimStatus.REJECTED},
}


def build_claim_response(claim: Claim) -> ClaimResponse:
    return ClaimResponse(
        id=claim.id,
        claim_number=claim.claim_number,
        patient_id=claim.patient_id,
        hmo_id=claim.hmo_id,
        encounter_id=claim.encounter_id,
        total_claim_amount=claim.total_claim_amount,
        status=ClaimStatus(claim.status.value),
        submitted_date=as_utc(claim.submitted_date),
        approved_date=as_utc(claim.approved_date),
        paid_date=as_utc(claim.paid_date),
        rejection_reason=claim.rejection_reason,
        notes=claim.notes,
        items=[
            ClaimItemResponse(
                position=item.position,
                encounter_charge_id=item.encounter_charge_id,
                charge_id=item.charge_id,
                charge_type=ChargeCategory(item.charge_type.value),
                description=item.description,
                quantity=item.quantity,
                unit_price=item.unit_price,
                total_amount=item.total_amount,
                patient_portion=item.patient_portion,
                hmo_portion=item.hmo_portion,
            )
            for item in claim.items
        ],
        created_at=as_utc(claim.created_at),
    )


async def find_claim_for_encounter(session: AsyncSession, encounter_id: UUID) -> Optional[Claim]:
    result = await session.execute(select(Claim).where(Claim.encounter_id == encounter_id))
    return result.scalar_one_or_none()


async def _get_claim_or_404(session: AsyncSession, claim_id: UUID, lock: bool = False) -> Claim:
    query = select(Claim).where(Claim.id == claim_id)
    if lock:
        query = query.with_for_update()
    claim = (await session.execute(query)).scalar_one_or_none()
    if not claim:
        raise NotFoundError(GlobalMessages.CLAIM_NOT_FOUND, {"claim_id": str(claim_id)})
    return claim


# ============================================================================
# GENERATION
# ============================================================================

async def create_claim(
    session: AsyncSession,
    encounter: Encounter,
    patient: Patient,
    notes: Optional[str] = None
) -> Claim:
    """
    Snapshot the encounter's non-cancelled lines into a new pending claim.

    Runs inside the caller's unit of work; nothing is committed here.
    """
    encounter_id = encounter.id
    if patient.provider not in INSURED_TIERS:
        raise InvalidStateError(
            GlobalMessages.CLAIM_TIER_NOT_INSURED, {"provider": patient.provider.value}
        )
    if patient.hmo_id is None:
        raise InvalidStateError(GlobalMessages.CLAIM_NO_HMO, {"patient_id": str(patient.id)})
    hmo = await session.get(HMO, patient.hmo_id)
    if not hmo:
        raise NotFoundError(GlobalMessages.HMO_NOT_FOUND, {"hmo_id": str(patient.hmo_id)})

    if await find_claim_for_encounter(session, encounter_id) is not None:
        logger.warning("Claim already exists for encounter %s", encounter_id)
        raise ConflictError(GlobalMessages.CLAIM_EXISTS, {"encounter_id": str(encounter_id)})

    result = await session.execute(
        select(EncounterCharge)
        .where(
            EncounterCharge.encounter_id == encounter_id,
            EncounterCharge.status != EncounterChargeStatus.CANCELLED,
        )
        .order_by(EncounterCharge.created_at)
    )
    items: List[ClaimItem] = []
    for position, line in enumerate(result.scalars().all()):
        patient_portion, hmo_portion = line.patient_portion, line.hmo_portion
        if patient_portion is None or hmo_portion is None:
            split = split_portions(line.total_amount, patient.provider, line.item_type)
            patient_portion, hmo_portion = split.patient_portion, split.hmo_portion
        items.append(ClaimItem(
            position=position,
            encounter_charge_id=line.id,
            charge_id=line.charge_id,
            charge_type=line.item_type,
            description=line.item_name,
            quantity=line.quantity,
            unit_price=line.unit_price,
            total_amount=line.total_amount,
            patient_portion=to_money(patient_portion),
            hmo_portion=to_money(hmo_portion),
        ))

    claim = Claim(
        claim_number=await next_claim_number(session),
        patient_id=patient.id,
        hmo_id=hmo.id,
        encounter_id=encounter_id,
        total_claim_amount=to_money(sum((i.hmo_portion for i in items), Decimal("0"))),
        status=DBClaimStatus.PENDING,
        notes=notes,
        items=items,
    )
    session.add(claim)
    try:
        await session.flush()
    except IntegrityError as e:
        # Lost a race with another generator; the session is unusable until rollback
        logger.warning("Concurrent claim generation for encounter %s", encounter_id)
        raise ConflictError(GlobalMessages.CLAIM_EXISTS, {"encounter_id": str(encounter_id)}) from e
    return claim


async def generate_claim(
    session: AsyncSession,
    encounter_id: UUID,
    notes: Optional[str] = None
) -> ClaimResponse:
    """Generate the HMO claim for an encounter."""
    async with unit_of_work(session):
        encounter = await session.get(Encounter, encounter_id)
        if not encounter:
            raise NotFoundError(GlobalMessages.ENCOUNTER_NOT_FOUND, {"encounter_id": str(encounter_id)})
        patient = await session.get(Patient, encounter.patient_id)
        if not patient:
            raise NotFoundError(GlobalMessages.PATIENT_NOT_FOUND, {"patient_id": str(encounter.patient_id)})
        claim = await create_claim(session, encounter, patient, notes)

    logger.info(
        "Claim %s generated for encounter %s: %d items, total %s",
        claim.claim_number, encounter_id, len(claim.items), claim.total_claim_amount
    )
    return build_claim_response(claim)


# ============================================================================
# LIFECYCLE
# ============================================================================

async def set_claim_status(
    session: AsyncSession,
    claim_id: UUID,
    status: ClaimStatus,
    rejection_reason: Optional[str] = None,
    notes: Optional[str] = None,
    strict: Optional[bool] = None
) -> ClaimResponse:
    """
    Move a claim to a new status.

    Submitted, approved and paid dates are stamped the first time the claim
    reaches that status and never overwritten. With strict transitions the
    claim must follow pending -> submitted -> approved -> paid, may be
    rejected from any status (a paid claim can be clawed back), and may be
    resubmitted after rejection.
    """
    if strict is None:
        strict = settings.CLAIM_STRICT_TRANSITIONS
    target = DBClaimStatus(status.value)

    async with unit_of_work(session):
        claim = await _get_claim_or_404(session, claim_id, lock=True)
        current = claim.status

        if target != current:
            if strict and target not in ALLOWED_TRANSITIONS[current]:
                logger.warning("Claim %s: refused %s -> %s", claim.claim_number, current.value, target.value)
                raise InvalidStateError(
                    GlobalMessages.CLAIM_TRANSITION_NOT_ALLOWED.format(current=current.value, target=target.value)
                )
            if target == DBClaimStatus.REJECTED:
                if not rejection_reason or not rejection_reason.strip():
                    raise ValidationError(GlobalMessages.CLAIM_REJECTION_REASON_REQUIRED)
                claim.rejection_reason = rejection_reason.strip()

            now = utcnow()
            if target == DBClaimStatus.SUBMITTED and claim.submitted_date is None:
                claim.submitted_date = now
            elif target == DBClaimStatus.APPROVED and claim.approved_date is None:
                claim.approved_date = now
            elif target == DBClaimStatus.PAID and claim.paid_date is None:
                claim.paid_date = now
            claim.status = target

        if notes is not None:
            claim.notes = notes
        await session.flush()

    if target != current:
        logger.info("Claim %s: %s -> %s", claim.claim_number, current.value, target.value)
    return build_claim_response(claim)


# ============================================================================
# QUERIES
# ============================================================================

async def list_claims(
    session: AsyncSession,
    hmo_id: Optional[UUID] = None,
    status: Optional[ClaimStatus] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None
) -> ClaimListResponse:
    query = select(Claim)
    if hmo_id is not None:
        query = query.where(Claim.hmo_id == hmo_id)
    if status is not None:
        query = query.where(Claim.status == DBClaimStatus(status.value))
    if start_date or end_date:
        start, end = resolve_date_range(start_date, end_date)
        query = query.where(Claim.created_at >= start, Claim.created_at <= end)

    result = await session.execute(query.order_by(Claim.created_at.desc()))
    claims = result.scalars().all()
    return ClaimListResponse(
        claims=[build_claim_response(c) for c in claims],
        total=len(claims),
        total_amount=to_money(sum((c.total_claim_amount for c in claims), Decimal("0"))),
    )


async def get_claim(session: AsyncSession, claim_id: UUID) -> ClaimResponse:
    return build_claim_response(await _get_claim_or_404(session, claim_id))


async def get_claims_by_hmo(session: AsyncSession, hmo_id: UUID) -> ClaimListResponse:
    hmo = await session.get(HMO, hmo_id)
    if not hmo:
        raise NotFoundError(GlobalMessages.HMO_NOT_FOUND, {"hmo_id": str(hmo_id)})
    return await list_claims(session, hmo_id=hmo_id)


async def get_claims_summary(
    session: AsyncSession,
    hmo_id: Optional[UUID] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None
) -> ClaimSummaryResponse:
    """Count and total claims by status and by HMO."""
    query = select(Claim, HMO.name).join(HMO, Claim.hmo_id == HMO.id)
    if hmo_id is not None:
        query = query.where(Claim.hmo_id == hmo_id)
    if start_date or end_date:
        start, end = resolve_date_range(start_date, end_date)
        query = query.where(Claim.created_at >= start, Claim.created_at <= end)
    rows = (await session.execute(query)).all()

    by_status = {s.value: StatusBucket(count=0, amount=Decimal("0.00")) for s in ClaimStatus}
    by_hmo = {}
    total = Decimal("0.00")
    for claim, hmo_name in rows:
        amount = to_money(claim.total_claim_amount)
        total += amount
        bucket = by_status[claim.status.value]
        bucket.count += 1
        bucket.amount += amount
        entry = by_hmo.setdefault(
            claim.hmo_id,
            HMOClaimSummary(hmo_id=claim.hmo_id, hmo_name=hmo_name, count=0, amount=Decimal("0.00")),
        )
        entry.count += 1
        entry.amount += amount

    return ClaimSummaryResponse(
        total_claims=len(rows),
        total_amount=total,
        by_status=by_status,
        by_hmo=sorted(by_hmo.values(), key=lambda e: e.amount, reverse=True),
        start_date=start_date,
        end_date=end_date,
    )
