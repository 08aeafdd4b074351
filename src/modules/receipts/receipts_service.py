# src/modules/receipts/receipts_service.py
"""
Payment collection, reversal and department validation of receipts.

Collecting a payment touches the ledger lines, the receipt, the patient's
deposit (or the HMO pool) and the encounter; all of it happens in one unit
of work so a failure at any step leaves nothing behind.
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
    BillingError, ConflictError, InsufficientFundsError, InvalidStateError, NotFoundError, ValidationError
)
from src.common.utils.global_functions import as_utc, resolve_date_range, to_money, utcnow
from src.common.utils.global_messages import GlobalMessages
from src.common.utils.numbering import next_receipt_number
from src.models.models import (
    Claim, Encounter, EncounterCharge, Invoice, Receipt, ReceiptValidation,
    EncounterChargeStatus, EncounterStatus, ProviderTier,
    InvoiceStatus as DBInvoiceStatus, PaymentMethod as DBPaymentMethod, ReceiptStatus as DBReceiptStatus
)
from src.modules.claims import claims_service
from src.modules.deposits.deposits_service import lock_patient
from src.modules.encounter_charges.encounter_charges_service import mark_paid, revert_to_pending
from src.modules.hmo.hmo_service import get_hmo_or_404, pool_balance
from .schemas import (
    ReceiptResponse, ReceiptListResponse, ReceiptValidationResponse,
    ReceiptWithClaimResponse, ReceiptWithClaimListResponse,
    PaymentMethod, ReceiptStatus
)

logger = logging.getLogger(__name__)

# Tiers whose encounter claim may be raised automatically at payment time
AUTO_CLAIM_TIERS = (ProviderTier.NHIA, ProviderTier.KSCHMA)


def build_receipt_response(receipt: Receipt) -> ReceiptResponse:
    return ReceiptResponse(
        id=receipt.id,
        receipt_number=receipt.receipt_number,
        patient_id=receipt.patient_id,
        encounter_id=receipt.encounter_id,
        invoice_id=receipt.invoice_id,
        charge_ids=[UUID(str(c)) for c in receipt.charge_ids or []],
        amount_paid=receipt.amount_paid,
        payment_method=PaymentMethod(receipt.payment_method.value),
        cashier_id=receipt.cashier_id,
        payment_date=as_utc(receipt.payment_date),
        status=ReceiptStatus(receipt.status.value),
        validated=receipt.validated,
        validations=[
            ReceiptValidationResponse(user_id=v.user_id, department=v.department, timestamp=as_utc(v.timestamp))
            for v in receipt.validations
        ],
        reversal_reason=receipt.reversal_reason,
        reversed_at=as_utc(receipt.reversed_at),
        reversed_by=receipt.reversed_by,
    )


async def _lock_lines(session: AsyncSession, line_ids: List[UUID]) -> List[EncounterCharge]:
    result = await session.execute(
        select(EncounterCharge)
        .where(EncounterCharge.id.in_(line_ids))
        .order_by(EncounterCharge.created_at)
        .with_for_update()
    )
    return list(result.scalars().all())


# ============================================================================
# COLLECTION
# ============================================================================

async def collect_for_charges(
    session: AsyncSession,
    encounter_id: UUID,
    charge_ids: List[UUID],
    payment_method: PaymentMethod,
    cashier_id: Optional[UUID] = None
) -> ReceiptResponse:
    """
    Settle pending lines of one encounter and issue a receipt.

    A resend of an already-settled set fails with ConflictError instead of
    charging twice.
    """
    line_ids = list(dict.fromkeys(charge_ids))
    if not line_ids:
        raise NotFoundError(GlobalMessages.NO_CHARGES_FOUND)
    method = DBPaymentMethod(payment_method.value)

    async with unit_of_work(session):
        encounter = await session.get(Encounter, encounter_id)
        if not encounter:
            raise NotFoundError(GlobalMessages.ENCOUNTER_NOT_FOUND, {"encounter_id": str(encounter_id)})

        lines = await _lock_lines(session, line_ids)
        found = {line.id for line in lines}
        missing = [str(i) for i in line_ids if i not in found]
        if missing:
            raise NotFoundError(GlobalMessages.ENCOUNTER_CHARGE_NOT_FOUND, {"charge_ids": missing})

        foreign = [str(l.id) for l in lines if l.encounter_id != encounter.id]
        if foreign:
            raise ValidationError(GlobalMessages.CHARGE_WRONG_ENCOUNTER, {"charge_ids": foreign})

        settled = [str(l.id) for l in lines if l.status != EncounterChargeStatus.PENDING]
        if settled:
            logger.warning("Payment refused for encounter %s: lines already settled %s", encounter.id, settled)
            raise ConflictError(GlobalMessages.CHARGE_ALREADY_SETTLED, {"charge_ids": settled})

        amount_due = to_money(sum((l.total_amount for l in lines), Decimal("0")))
        patient = await lock_patient(session, encounter.patient_id)

        if method == DBPaymentMethod.DEPOSIT:
            balance = to_money(patient.deposit_balance)
            if balance < amount_due:
                logger.warning("Deposit short for patient %s: balance %s, due %s", patient.id, balance, amount_due)
                raise InsufficientFundsError(GlobalMessages.INSUFFICIENT_DEPOSIT, balance, amount_due)
            patient.deposit_balance = balance - amount_due

        elif method == DBPaymentMethod.RETAINERSHIP:
            if patient.provider != ProviderTier.RETAINERSHIP or patient.hmo_id is None:
                raise InvalidStateError(GlobalMessages.NOT_RETAINERSHIP_PATIENT, {"patient_id": str(patient.id)})
            await get_hmo_or_404(session, patient.hmo_id, lock=True)
            available = await pool_balance(session, patient.hmo_id)
            if available < amount_due:
                logger.warning("Retainership pool short for HMO %s: balance %s, due %s", patient.hmo_id, available, amount_due)
                raise InsufficientFundsError(GlobalMessages.INSUFFICIENT_RETAINERSHIP, available, amount_due)

        receipt = Receipt(
            receipt_number=await next_receipt_number(session),
            patient_id=patient.id,
            encounter_id=encounter.id,
            charge_ids=[str(l.id) for l in lines],
            amount_paid=amount_due,
            payment_method=method,
            cashier_id=cashier_id,
            status=DBReceiptStatus.ACTIVE,
            validated=False,
            validations=[],
        )
        session.add(receipt)
        try:
            await session.flush()
        except IntegrityError as e:
            raise ConflictError(GlobalMessages.RECEIPT_NUMBER_EXHAUSTED) from e

        mark_paid(lines, receipt)

        encounter.payment_validated = True
        encounter.receipt_number = receipt.receipt_number
        encounter.encounter_status = EncounterStatus.IN_NURSING

        if (
            settings.AUTO_CLAIM_ON_PAYMENT
            and patient.provider in AUTO_CLAIM_TIERS
            and patient.hmo_id is not None
            and await claims_service.find_claim_for_encounter(session, encounter.id) is None
        ):
            # The payment stands even when the claim cannot be raised
            try:
                async with session.begin_nested():
                    claim = await claims_service.create_claim(session, encounter, patient)
                logger.info("Claim %s raised with payment for encounter %s", claim.claim_number, encounter_id)
            except BillingError as e:
                logger.warning("Automatic claim for encounter %s not raised: %s", encounter_id, e.message)

        await session.flush()

    logger.info(
        "Receipt %s: %s collected by %s for %d lines of encounter %s",
        receipt.receipt_number, receipt.amount_paid, method.value, len(lines), encounter_id
    )
    return build_receipt_response(receipt)


# ============================================================================
# REVERSAL
# ============================================================================

async def reverse_receipt(
    session: AsyncSession,
    receipt_id: UUID,
    reason: str,
    reversed_by: Optional[UUID] = None
) -> ReceiptResponse:
    """
    Void a receipt and undo everything the payment did.

    Deposit payments are credited back, the settled lines return to pending,
    and the encounter loses its payment validation if it was granted by this
    receipt. An invoice settled by the receipt is reopened.
    """
    if not reason or not reason.strip():
        raise ValidationError("A reason is required to reverse a payment.")

    async with unit_of_work(session):
        result = await session.execute(
            select(Receipt).where(Receipt.id == receipt_id).with_for_update()
        )
        receipt = result.scalar_one_or_none()
        if not receipt:
            raise NotFoundError(GlobalMessages.RECEIPT_NOT_FOUND, {"receipt_id": str(receipt_id)})
        if receipt.status == DBReceiptStatus.REVERSED:
            raise InvalidStateError(GlobalMessages.RECEIPT_ALREADY_REVERSED, {"receipt_number": receipt.receipt_number})

        lines = await session.execute(
            select(EncounterCharge).where(EncounterCharge.receipt_id == receipt.id).with_for_update()
        )
        lines = list(lines.scalars().all())

        if receipt.payment_method == DBPaymentMethod.DEPOSIT:
            patient = await lock_patient(session, receipt.patient_id)
            patient.deposit_balance = to_money(patient.deposit_balance) + to_money(receipt.amount_paid)

        revert_to_pending(lines)

        if receipt.encounter_id is not None:
            encounter = await session.get(Encounter, receipt.encounter_id)
            if encounter and encounter.receipt_number == receipt.receipt_number:
                encounter.payment_validated = False
                encounter.receipt_number = None

        if receipt.invoice_id is not None:
            invoice = (await session.execute(
                select(Invoice).where(Invoice.id == receipt.invoice_id).with_for_update()
            )).scalar_one_or_none()
            if invoice and invoice.status == DBInvoiceStatus.PAID:
                invoice.status = DBInvoiceStatus.PENDING
                invoice.paid_at = None

        receipt.status = DBReceiptStatus.REVERSED
        receipt.reversal_reason = reason.strip()
        receipt.reversed_at = utcnow()
        receipt.reversed_by = reversed_by
        await session.flush()

    logger.info(
        "Receipt %s reversed (%s, %d lines): %s",
        receipt.receipt_number, receipt.amount_paid, len(lines), receipt.reversal_reason
    )
    return build_receipt_response(receipt)


# ============================================================================
# VALIDATION
# ============================================================================

async def _get_by_number(session: AsyncSession, receipt_number: str) -> Receipt:
    result = await session.execute(select(Receipt).where(Receipt.receipt_number == receipt_number))
    receipt = result.scalar_one_or_none()
    if not receipt:
        raise NotFoundError(GlobalMessages.RECEIPT_NOT_FOUND, {"receipt_number": receipt_number})
    return receipt


async def validate_receipt(
    session: AsyncSession,
    receipt_number: str,
    department: str,
    user_id: UUID
) -> ReceiptResponse:
    """Record that a department has seen the receipt. Repeat calls by the same user are no-ops."""
    try:
        async with unit_of_work(session):
            receipt = await _get_by_number(session, receipt_number)
            if receipt.status == DBReceiptStatus.REVERSED:
                raise InvalidStateError(GlobalMessages.RECEIPT_ALREADY_REVERSED, {"receipt_number": receipt_number})

            seen = any(v.user_id == user_id and v.department == department for v in receipt.validations)
            if not seen:
                receipt.validations.append(ReceiptValidation(user_id=user_id, department=department))
            receipt.validated = True
            await session.flush()
    except IntegrityError:
        # A concurrent request recorded the same validation first
        logger.info("Validation of %s by %s already recorded", receipt_number, department)
        receipt = await _get_by_number(session, receipt_number)
        await session.refresh(receipt, ["validations"])
        return build_receipt_response(receipt)

    if not seen:
        logger.info("Receipt %s validated by %s (%s)", receipt_number, department, user_id)
    return build_receipt_response(receipt)


# ============================================================================
# QUERIES
# ============================================================================

def _apply_filters(query, patient_id, encounter_id, status, start_date, end_date):
    if patient_id is not None:
        query = query.where(Receipt.patient_id == patient_id)
    if encounter_id is not None:
        query = query.where(Receipt.encounter_id == encounter_id)
    if status is not None:
        query = query.where(Receipt.status == DBReceiptStatus(status.value))
    if start_date or end_date:
        start, end = resolve_date_range(start_date, end_date)
        query = query.where(Receipt.payment_date >= start, Receipt.payment_date <= end)
    return query.order_by(Receipt.payment_date.desc())


async def list_receipts(
    session: AsyncSession,
    patient_id: Optional[UUID] = None,
    encounter_id: Optional[UUID] = None,
    status: Optional[ReceiptStatus] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None
) -> ReceiptListResponse:
    query = _apply_filters(select(Receipt), patient_id, encounter_id, status, start_date, end_date)
    receipts = (await session.execute(query)).scalars().all()
    active = [r for r in receipts if r.status == DBReceiptStatus.ACTIVE]
    return ReceiptListResponse(
        receipts=[build_receipt_response(r) for r in receipts],
        total=len(receipts),
        total_amount=to_money(sum((r.amount_paid for r in active), Decimal("0"))),
    )


async def list_receipts_with_claim_status(
    session: AsyncSession,
    patient_id: Optional[UUID] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None
) -> ReceiptWithClaimListResponse:
    """Receipts joined to the claim raised for the same encounter."""
    query = select(Receipt, Claim).outerjoin(Claim, Claim.encounter_id == Receipt.encounter_id)
    query = _apply_filters(query, patient_id, None, None, start_date, end_date)
    rows = (await session.execute(query)).all()
    items = [
        ReceiptWithClaimResponse(
            receipt=build_receipt_response(receipt),
            claim_id=claim.id if claim else None,
            claim_number=claim.claim_number if claim else None,
            claim_status=claim.status.value if claim else None,
        )
        for receipt, claim in rows
    ]
    return ReceiptWithClaimListResponse(receipts=items, total=len(items))


async def get_receipt(session: AsyncSession, receipt_id: UUID) -> ReceiptResponse:
    result = await session.execute(select(Receipt).where(Receipt.id == receipt_id))
    receipt = result.scalar_one_or_none()
    if not receipt:
        raise NotFoundError(GlobalMessages.RECEIPT_NOT_FOUND, {"receipt_id": str(receipt_id)})
    return build_receipt_response(receipt)


async def get_receipt_by_number(session: AsyncSession, receipt_number: str) -> ReceiptResponse:
    return build_receipt_response(await _get_by_number(session, receipt_number))
