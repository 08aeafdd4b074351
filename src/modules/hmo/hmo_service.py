# src/modules/hmo/hmo_service.py
"""HMO directory and retainership pool service."""

import logging
from decimal import Decimal
from typing import Optional, Tuple
from uuid import UUID

from sqlalchemy import select, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from src.common.database.database import unit_of_work
from src.common.exceptions import ConflictError, NotFoundError, ValidationError
from src.common.utils.global_functions import as_utc, to_money
from src.common.utils.global_messages import GlobalMessages
from src.models.models import (
    HMO, HMOTransaction, EncounterCharge, Patient,
    EncounterChargeStatus, HMOCategory as DBHMOCategory
)
from .schemas import (
    HMOCreateRequest, HMOUpdateRequest, HMODepositRequest, HMOResponse, HMOListResponse,
    HMOTransactionResponse, HMOBalanceResponse, HMOStatementEntry, HMOStatementResponse,
    HMOCategory, StatementEntryType
)

logger = logging.getLogger(__name__)


def _build_hmo_response(hmo: HMO) -> HMOResponse:
    return HMOResponse(
        id=hmo.id,
        name=hmo.name,
        code=hmo.code,
        category=HMOCategory(hmo.category.value),
        description=hmo.description,
        active=hmo.active,
        contact_person=hmo.contact_person,
        contact_phone=hmo.contact_phone,
        contact_email=hmo.contact_email,
        created_at=as_utc(hmo.created_at),
    )


async def get_hmo_or_404(session: AsyncSession, hmo_id: UUID, lock: bool = False) -> HMO:
    query = select(HMO).where(HMO.id == hmo_id)
    if lock:
        query = query.with_for_update()
    hmo = (await session.execute(query)).scalar_one_or_none()
    if not hmo:
        raise NotFoundError(GlobalMessages.HMO_NOT_FOUND, {"hmo_id": str(hmo_id)})
    return hmo


async def pool_totals(session: AsyncSession, hmo_id: UUID) -> Tuple[Decimal, Decimal]:
    """Return (deposits received, HMO portions of paid lines) for an HMO's patients."""
    deposits = await session.scalar(
        select(func.coalesce(func.sum(HMOTransaction.amount), 0))
        .where(HMOTransaction.hmo_id == hmo_id)
    )
    used = await session.scalar(
        select(func.coalesce(func.sum(EncounterCharge.hmo_portion), 0))
        .join(Patient, EncounterCharge.patient_id == Patient.id)
        .where(
            Patient.hmo_id == hmo_id,
            EncounterCharge.status == EncounterChargeStatus.PAID,
        )
    )
    return to_money(deposits), to_money(used)


async def pool_balance(session: AsyncSession, hmo_id: UUID) -> Decimal:
    deposits, used = await pool_totals(session, hmo_id)
    return deposits - used


# ============================================================================
# DIRECTORY
# ============================================================================

async def create_hmo(session: AsyncSession, request: HMOCreateRequest) -> HMOResponse:
    hmo = HMO(
        name=request.name,
        code=request.code,
        category=DBHMOCategory(request.category.value),
        description=request.description,
        contact_person=request.contact_person,
        contact_phone=request.contact_phone,
        contact_email=request.contact_email,
    )
    async with unit_of_work(session):
        session.add(hmo)
        try:
            await session.flush()
        except IntegrityError as e:
            raise ConflictError(GlobalMessages.HMO_NAME_TAKEN, {"name": request.name}) from e

    logger.info("HMO %s created (%s)", hmo.id, hmo.name)
    return _build_hmo_response(hmo)


async def list_hmos(session: AsyncSession, active: Optional[bool] = None) -> HMOListResponse:
    query = select(HMO)
    if active is not None:
        query = query.where(HMO.active == active)
    result = await session.execute(query.order_by(HMO.name))
    hmos = [_build_hmo_response(h) for h in result.scalars().all()]
    return HMOListResponse(hmos=hmos, total=len(hmos))


async def get_hmo(session: AsyncSession, hmo_id: UUID) -> HMOResponse:
    return _build_hmo_response(await get_hmo_or_404(session, hmo_id))


async def update_hmo(session: AsyncSession, hmo_id: UUID, request: HMOUpdateRequest) -> HMOResponse:
    changes = request.model_dump(exclude_unset=True)
    # name and category are required columns; an explicit null leaves them as they are
    changes = {k: v for k, v in changes.items() if v is not None or k not in ("name", "category")}
    if "category" in changes:
        changes["category"] = DBHMOCategory(changes["category"].value)

    async with unit_of_work(session):
        hmo = await get_hmo_or_404(session, hmo_id, lock=True)
        for field, value in changes.items():
            setattr(hmo, field, value)
        try:
            await session.flush()
        except IntegrityError as e:
            raise ConflictError(GlobalMessages.HMO_NAME_TAKEN, {"name": changes.get("name")}) from e

    logger.info("HMO %s updated: %s", hmo_id, ", ".join(sorted(changes)) or "no changes")
    return _build_hmo_response(hmo)


async def toggle_hmo_status(session: AsyncSession, hmo_id: UUID) -> HMOResponse:
    """Flip an HMO between active and inactive. Its history is kept either way."""
    async with unit_of_work(session):
        hmo = await get_hmo_or_404(session, hmo_id, lock=True)
        hmo.active = not hmo.active
        await session.flush()

    logger.info("HMO %s %s", hmo_id, "activated" if hmo.active else "deactivated")
    return _build_hmo_response(hmo)


# ============================================================================
# RETAINERSHIP POOL
# ============================================================================

async def add_hmo_deposit(
    session: AsyncSession,
    hmo_id: UUID,
    request: HMODepositRequest,
    recorded_by: Optional[UUID] = None
) -> HMOTransactionResponse:
    """Record a deposit into an HMO's retainership pool."""
    amount = to_money(request.amount)
    if amount <= 0:
        raise ValidationError(GlobalMessages.AMOUNT_NOT_POSITIVE)

    async with unit_of_work(session):
        await get_hmo_or_404(session, hmo_id, lock=True)
        transaction = HMOTransaction(
            hmo_id=hmo_id,
            amount=amount,
            description=request.description,
            reference=request.reference,
            recorded_by=recorded_by,
        )
        session.add(transaction)
        await session.flush()

    logger.info("HMO %s deposit %s recorded (ref %s)", hmo_id, amount, request.reference)
    return HMOTransactionResponse(
        id=transaction.id,
        hmo_id=transaction.hmo_id,
        amount=transaction.amount,
        description=transaction.description,
        reference=transaction.reference,
        recorded_by=transaction.recorded_by,
        date=transaction.date,
    )


async def get_hmo_balance(session: AsyncSession, hmo_id: UUID) -> HMOBalanceResponse:
    hmo = await get_hmo_or_404(session, hmo_id)
    deposits, used = await pool_totals(session, hmo_id)
    return HMOBalanceResponse(
        hmo_id=hmo.id,
        hmo_name=hmo.name,
        total_deposits=deposits,
        total_used=used,
        balance=deposits - used,
    )


async def get_hmo_statement(session: AsyncSession, hmo_id: UUID) -> HMOStatementResponse:
    """
    Account statement for an HMO's retainership pool.

    Deposits are credits; the HMO portion of every settled line of the
    HMO's patients is a debit. Totals agree with get_hmo_balance.
    """
    hmo = await get_hmo_or_404(session, hmo_id)

    deposits = (await session.execute(
        select(HMOTransaction).where(HMOTransaction.hmo_id == hmo_id)
    )).scalars().all()
    charges = (await session.execute(
        select(EncounterCharge, Patient.name)
        .join(Patient, EncounterCharge.patient_id == Patient.id)
        .where(
            Patient.hmo_id == hmo_id,
            EncounterCharge.status == EncounterChargeStatus.PAID,
            EncounterCharge.hmo_portion > 0,
        )
    )).all()

    entries = [
        HMOStatementEntry(
            date=as_utc(t.date),
            type=StatementEntryType.CREDIT,
            amount=to_money(t.amount),
            description=t.description or "Deposit",
            reference=t.reference,
        )
        for t in deposits
    ]
    entries.extend(
        HMOStatementEntry(
            date=as_utc(line.created_at),
            type=StatementEntryType.DEBIT,
            amount=to_money(line.hmo_portion),
            description=line.item_name,
            patient_name=patient_name,
        )
        for line, patient_name in charges
    )
    entries.sort(key=lambda e: e.date, reverse=True)

    total_deposits = to_money(sum((t.amount for t in deposits), Decimal("0")))
    total_charges = to_money(sum((line.hmo_portion for line, _ in charges), Decimal("0")))
    return HMOStatementResponse(
        hmo_id=hmo.id,
        hmo_name=hmo.name,
        entries=entries,
        total_deposits=total_deposits,
        total_charges=total_charges,
        balance=total_deposits - total_charges,
    )
