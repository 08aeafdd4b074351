# src/modules/invoices/invoices_service.py
"""
Invoices for fees billed outside the encounter ledger.

Paying an invoice issues a receipt linked to it; reversing the invoice voids
that receipt and refunds a deposit payment once.
"""

import logging
from decimal import Decimal
from typing import Dict, Iterable, List, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from src.common.database.database import unit_of_work
from src.common.exceptions import (
    ConflictError, InsufficientFundsError, InvalidStateError, NotFoundError, ValidationError
)
from src.common.utils.global_functions import as_utc, to_money, utcnow
from src.common.utils.global_messages import GlobalMessages
from src.common.utils.numbering import next_receipt_number
from src.models.models import (
    Invoice, Patient, Receipt,
    ChargeCategory as DBChargeCategory, InvoiceStatus as DBInvoiceStatus,
    PaymentMethod as DBPaymentMethod, ReceiptStatus as DBReceiptStatus
)
from src.modules.charges.schemas import ChargeCategory
from src.modules.deposits.deposits_service import lock_patient
from src.modules.receipts.schemas import PaymentMethod
from .schemas import (
    InvoiceCreateRequest, InvoiceItem, InvoiceResponse, InvoiceListResponse,
    BulkPayResponse, InvoiceStatus
)

logger = logging.getLogger(__name__)

DEFAULT_REVERSAL_REASON = "Administrative Action"


def _build_invoice_response(invoice: Invoice, receipt_number: Optional[str] = None) -> InvoiceResponse:
    return InvoiceResponse(
        id=invoice.id,
        patient_id=invoice.patient_id,
        encounter_id=invoice.encounter_id,
        items=[InvoiceItem(description=i["description"], cost=Decimal(str(i["cost"]))) for i in invoice.items],
        total_amount=invoice.total_amount,
        status=InvoiceStatus(invoice.status.value),
        payment_method=PaymentMethod(invoice.payment_method.value),
        fee_type=ChargeCategory(invoice.fee_type.value),
        department=invoice.department,
        generated_by=invoice.generated_by,
        paid_at=as_utc(invoice.paid_at),
        receipt_number=receipt_number,
        reversal_reason=invoice.reversal_reason,
        reversed_at=as_utc(invoice.reversed_at),
        reversed_by=invoice.reversed_by,
        created_at=as_utc(invoice.created_at),
    )


async def _lock_invoice(session: AsyncSession, invoice_id: UUID) -> Invoice:
    result = await session.execute(select(Invoice).where(Invoice.id == invoice_id).with_for_update())
    invoice = result.scalar_one_or_none()
    if not invoice:
        raise NotFoundError(GlobalMessages.INVOICE_NOT_FOUND, {"invoice_id": str(invoice_id)})
    return invoice


async def _active_receipt_numbers(session: AsyncSession, invoice_ids: Iterable[UUID]) -> Dict[UUID, str]:
    result = await session.execute(
        select(Receipt.invoice_id, Receipt.receipt_number).where(
            Receipt.invoice_id.in_(list(invoice_ids)),
            Receipt.status == DBReceiptStatus.ACTIVE,
        )
    )
    return {invoice_id: number for invoice_id, number in result.all()}


# ============================================================================
# INVOICES
# ============================================================================

async def create_invoice(
    session: AsyncSession,
    request: InvoiceCreateRequest,
    generated_by: Optional[UUID] = None
) -> InvoiceResponse:
    patient = await session.get(Patient, request.patient_id)
    if not patient:
        raise NotFoundError(GlobalMessages.PATIENT_NOT_FOUND, {"patient_id": str(request.patient_id)})

    items = [{"description": i.description, "cost": str(to_money(i.cost))} for i in request.items]
    invoice = Invoice(
        patient_id=request.patient_id,
        encounter_id=request.encounter_id,
        items=items,
        total_amount=to_money(sum((to_money(i.cost) for i in request.items), Decimal("0"))),
        status=DBInvoiceStatus.PENDING,
        payment_method=DBPaymentMethod(request.payment_method.value),
        fee_type=DBChargeCategory(request.fee_type.value),
        department=request.department or "General",
        generated_by=generated_by,
    )
    async with unit_of_work(session):
        session.add(invoice)
        await session.flush()

    logger.info("Invoice %s raised for patient %s: %s", invoice.id, invoice.patient_id, invoice.total_amount)
    return _build_invoice_response(invoice)


async def list_invoices(
    session: AsyncSession,
    patient_id: Optional[UUID] = None,
    status: Optional[InvoiceStatus] = None
) -> InvoiceListResponse:
    query = select(Invoice)
    if patient_id is not None:
        query = query.where(Invoice.patient_id == patient_id)
    if status is not None:
        query = query.where(Invoice.status == DBInvoiceStatus(status.value))
    invoices = (await session.execute(query.order_by(Invoice.created_at.desc()))).scalars().all()
    numbers = await _active_receipt_numbers(session, [i.id for i in invoices]) if invoices else {}
    return InvoiceListResponse(
        invoices=[_build_invoice_response(i, numbers.get(i.id)) for i in invoices],
        total=len(invoices),
    )


async def get_invoice(session: AsyncSession, invoice_id: UUID) -> InvoiceResponse:
    invoice = await session.get(Invoice, invoice_id)
    if not invoice:
        raise NotFoundError(GlobalMessages.INVOICE_NOT_FOUND, {"invoice_id": str(invoice_id)})
    numbers = await _active_receipt_numbers(session, [invoice.id])
    return _build_invoice_response(invoice, numbers.get(invoice.id))


# ============================================================================
# PAYMENT
# ============================================================================

async def pay_invoice(
    session: AsyncSession,
    invoice_id: UUID,
    payment_method: PaymentMethod,
    cashier_id: Optional[UUID] = None
) -> InvoiceResponse:
    """
    Settle a pending invoice and issue a receipt for it.

    Deposit payments debit the patient's wallet under a row lock; a short
    balance fails with InsufficientFundsError and changes nothing.
    """
    method = DBPaymentMethod(payment_method.value)
    if method == DBPaymentMethod.RETAINERSHIP:
        raise ValidationError(GlobalMessages.INVOICE_METHOD_NOT_ALLOWED, {"payment_method": method.value})

    async with unit_of_work(session):
        invoice = await _lock_invoice(session, invoice_id)
        if invoice.status == DBInvoiceStatus.PAID:
            raise ConflictError(GlobalMessages.INVOICE_ALREADY_PAID, {"invoice_id": str(invoice_id)})
        if invoice.status != DBInvoiceStatus.PENDING:
            raise InvalidStateError(
                GlobalMessages.INVOICE_NOT_PENDING,
                {"invoice_id": str(invoice_id), "status": invoice.status.value}
            )

        amount = to_money(invoice.total_amount)
        if method == DBPaymentMethod.DEPOSIT:
            patient = await lock_patient(session, invoice.patient_id)
            balance = to_money(patient.deposit_balance)
            if balance < amount:
                logger.warning("Deposit short for patient %s: balance %s, due %s", patient.id, balance, amount)
                raise InsufficientFundsError(GlobalMessages.INSUFFICIENT_DEPOSIT, balance, amount)
            patient.deposit_balance = balance - amount

        receipt = Receipt(
            receipt_number=await next_receipt_number(session),
            patient_id=invoice.patient_id,
            encounter_id=invoice.encounter_id,
            invoice_id=invoice.id,
            charge_ids=[],
            amount_paid=amount,
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

        invoice.status = DBInvoiceStatus.PAID
        invoice.payment_method = method
        invoice.paid_at = utcnow()
        await session.flush()

    logger.info("Invoice %s paid by %s (%s), receipt %s", invoice_id, method.value, amount, receipt.receipt_number)
    return _build_invoice_response(invoice, receipt.receipt_number)


async def bulk_pay_insurance(session: AsyncSession, invoice_ids: List[UUID]) -> BulkPayResponse:
    """Mark pending invoices as settled by insurance. Others in the list are left alone."""
    ids = list(dict.fromkeys(invoice_ids))
    if not ids:
        raise ValidationError(GlobalMessages.INVOICE_IDS_REQUIRED)

    async with unit_of_work(session):
        invoices = (await session.execute(
            select(Invoice)
            .where(Invoice.id.in_(ids), Invoice.status == DBInvoiceStatus.PENDING)
            .with_for_update()
        )).scalars().all()
        now = utcnow()
        for invoice in invoices:
            invoice.status = DBInvoiceStatus.PAID
            invoice.payment_method = DBPaymentMethod.INSURANCE
            invoice.paid_at = now
        await session.flush()

    logger.info("Bulk insurance settlement: %d of %d invoices updated", len(invoices), len(ids))
    return BulkPayResponse(updated=len(invoices))


# ============================================================================
# REVERSAL
# ============================================================================

async def reverse_invoice(
    session: AsyncSession,
    invoice_id: UUID,
    reason: Optional[str] = None,
    reversed_by: Optional[UUID] = None
) -> InvoiceResponse:
    """
    Reverse an invoice and void the receipt that settled it.

    A deposit payment is credited back to the patient. Receipts already
    reversed on their own were refunded then and are not touched again.
    """
    reason = (reason or "").strip() or DEFAULT_REVERSAL_REASON

    async with unit_of_work(session):
        invoice = await _lock_invoice(session, invoice_id)
        if invoice.status == DBInvoiceStatus.REVERSED:
            raise InvalidStateError(GlobalMessages.INVOICE_ALREADY_REVERSED, {"invoice_id": str(invoice_id)})

        receipts = (await session.execute(
            select(Receipt)
            .where(Receipt.invoice_id == invoice.id, Receipt.status == DBReceiptStatus.ACTIVE)
            .with_for_update()
        )).scalars().all()

        now = utcnow()
        refunded = Decimal("0")
        for receipt in receipts:
            if receipt.payment_method == DBPaymentMethod.DEPOSIT:
                patient = await lock_patient(session, receipt.patient_id)
                patient.deposit_balance = to_money(patient.deposit_balance) + to_money(receipt.amount_paid)
                refunded += to_money(receipt.amount_paid)
            receipt.status = DBReceiptStatus.REVERSED
            receipt.reversal_reason = reason
            receipt.reversed_at = now
            receipt.reversed_by = reversed_by

        invoice.status = DBInvoiceStatus.REVERSED
        invoice.reversal_reason = reason
        invoice.reversed_at = now
        invoice.reversed_by = reversed_by
        await session.flush()

    logger.info(
        "Invoice %s reversed (%d receipts voided, %s refunded to deposit): %s",
        invoice_id, len(receipts), to_money(refunded), reason
    )
    return _build_invoice_response(invoice)
