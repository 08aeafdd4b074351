# src/modules/receipts/receipts_controller.py
"""Receipt and payment routes."""

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

from . import receipts_service as service
from .schemas import (
    CollectPaymentRequest, ReverseReceiptRequest, ValidateReceiptRequest,
    ReceiptResponse, ReceiptListResponse, ReceiptWithClaimListResponse, ReceiptStatus
)

router = APIRouter(prefix="/receipts", tags=["Receipts"])


# ============================================================================
# PAYMENT ENDPOINTS
# ============================================================================

@router.post("/encounter", response_model=ReceiptResponse, status_code=201)
async def collect_payment(
    request: CollectPaymentRequest,
    db: AsyncSession = Depends(get_db_session),
    current_user: User = Depends(get_current_user)
):
    """Collect payment for encounter charges and issue a receipt."""
    try:
        return await service.collect_for_charges(
            db, request.encounter_id, request.charge_ids, request.payment_method, current_user.id
        )
    except BillingError as e:
        raise to_http_exception(e)


@router.post("/validate", response_model=ReceiptResponse)
async def validate_receipt(
    request: ValidateReceiptRequest,
    db: AsyncSession = Depends(get_db_session),
    current_user: User = Depends(get_current_user)
):
    """Confirm a receipt on behalf of a department."""
    try:
        return await service.validate_receipt(db, request.receipt_number, request.department, current_user.id)
    except BillingError as e:
        raise to_http_exception(e)


@router.post("/{receipt_id}/reverse", response_model=ReceiptResponse)
async def reverse_receipt(
    receipt_id: UUID,
    request: ReverseReceiptRequest,
    db: AsyncSession = Depends(get_db_session),
    current_user: User = Depends(get_current_user)
):
    """Reverse a payment."""
    try:
        return await service.reverse_receipt(db, receipt_id, request.reason, current_user.id)
    except BillingError as e:
        raise to_http_exception(e)


# ============================================================================
# QUERY ENDPOINTS (must come before /{receipt_id})
# ============================================================================

@router.get("", response_model=ReceiptListResponse)
async def list_receipts(
    patient_id: Optional[UUID] = Query(None),
    encounter_id: Optional[UUID] = Query(None),
    status: Optional[ReceiptStatus] = Query(None),
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    db: AsyncSession = Depends(get_db_session),
    current_user: User = Depends(get_current_user)
):
    return await service.list_receipts(db, patient_id, encounter_id, status, start_date, end_date)


@router.get("/with-claim-status", response_model=ReceiptWithClaimListResponse)
async def list_receipts_with_claim_status(
    patient_id: Optional[UUID] = Query(None),
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    db: AsyncSession = Depends(get_db_session),
    current_user: User = Depends(get_current_user)
):
    return await service.list_receipts_with_claim_status(db, patient_id, start_date, end_date)


@router.get("/number/{receipt_number}", response_model=ReceiptResponse)
async def get_receipt_by_number(
    receipt_number: str,
    db: AsyncSession = Depends(get_db_session),
    current_user: User = Depends(get_current_user)
):
    try:
        return await service.get_receipt_by_number(db, receipt_number)
    except BillingError as e:
        raise to_http_exception(e)


@router.get("/{receipt_id}", response_model=ReceiptResponse)
async def get_receipt(
    receipt_id: UUID,
    db: AsyncSession = Depends(get_db_session),
    current_user: User = Depends(get_current_user)
):
    try:
        return await service.get_receipt(db, receipt_id)
    except BillingError as e:
        raise to_http_exception(e)
