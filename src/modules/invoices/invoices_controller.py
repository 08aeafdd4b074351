# src/modules/invoices/invoices_controller.py
"""Invoice routes."""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Body, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from src.common.database.database import get_db_session
from src.common.exceptions import BillingError
from src.common.utils.global_functions import to_http_exception
from src.auth.dependencies import get_current_user
from src.models.models import User

from . import invoices_service as service
from .schemas import (
    InvoiceCreateRequest, PayInvoiceRequest, ReverseInvoiceRequest, BulkPayInsuranceRequest,
    InvoiceResponse, InvoiceListResponse, BulkPayResponse, InvoiceStatus
)

router = APIRouter(prefix="/invoices", tags=["Invoices"])


@router.post("", response_model=InvoiceResponse, status_code=201)
async def create_invoice(
    request: InvoiceCreateRequest,
    db: AsyncSession = Depends(get_db_session),
    current_user: User = Depends(get_current_user)
):
    try:
        return await service.create_invoice(db, request, generated_by=current_user.id)
    except BillingError as e:
        raise to_http_exception(e)


@router.get("", response_model=InvoiceListResponse)
async def list_invoices(
    patient_id: Optional[UUID] = Query(None),
    status: Optional[InvoiceStatus] = Query(None),
    db: AsyncSession = Depends(get_db_session),
    current_user: User = Depends(get_current_user)
):
    return await service.list_invoices(db, patient_id, status)


@router.post("/bulk-pay-insurance", response_model=BulkPayResponse)
async def bulk_pay_insurance(
    request: BulkPayInsuranceRequest,
    db: AsyncSession = Depends(get_db_session),
    current_user: User = Depends(get_current_user)
):
    """Mark the pending invoices among those given as paid by insurance."""
    try:
        return await service.bulk_pay_insurance(db, request.invoice_ids)
    except BillingError as e:
        raise to_http_exception(e)


@router.get("/{invoice_id}", response_model=InvoiceResponse)
async def get_invoice(
    invoice_id: UUID,
    db: AsyncSession = Depends(get_db_session),
    current_user: User = Depends(get_current_user)
):
    try:
        return await service.get_invoice(db, invoice_id)
    except BillingError as e:
        raise to_http_exception(e)


@router.put("/{invoice_id}/pay", response_model=InvoiceResponse)
async def pay_invoice(
    invoice_id: UUID,
    request: PayInvoiceRequest,
    db: AsyncSession = Depends(get_db_session),
    current_user: User = Depends(get_current_user)
):
    """Settle an invoice and issue its receipt."""
    try:
        return await service.pay_invoice(db, invoice_id, request.payment_method, current_user.id)
    except BillingError as e:
        raise to_http_exception(e)


@router.put("/{invoice_id}/reverse", response_model=InvoiceResponse)
async def reverse_invoice(
    invoice_id: UUID,
    request: Optional[ReverseInvoiceRequest] = Body(None),
    db: AsyncSession = Depends(get_db_session),
    current_user: User = Depends(get_current_user)
):
    """Reverse an invoice, refunding a deposit payment."""
    try:
        reason = request.reason if request else None
        return await service.reverse_invoice(db, invoice_id, reason, current_user.id)
    except BillingError as e:
        raise to_http_exception(e)
