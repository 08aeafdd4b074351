# src/modules/claims/claims_controller.py
"""Claim routes."""

from typing import Optional
from datetime import date
from uuid import UUID

from fastapi import APIRouter, Body, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from src.common.database.database import get_db_session
from src.common.exceptions import BillingError
from src.common.utils.global_functions import to_http_exception
from src.auth.dependencies import get_current_user
from src.models.models import User

from . import claims_service as service
from .schemas import (
    ClaimGenerateRequest, ClaimStatusUpdateRequest, ClaimResponse,
    ClaimListResponse, ClaimSummaryResponse, ClaimStatus
)

router = APIRouter(prefix="/claims", tags=["Claims"])


@router.post("/generate/{encounter_id}", response_model=ClaimResponse, status_code=201)
async def generate_claim(
    encounter_id: UUID,
    request: Optional[ClaimGenerateRequest] = Body(None),
    db: AsyncSession = Depends(get_db_session),
    current_user: User = Depends(get_current_user)
):
    """Generate the HMO claim for an encounter."""
    try:
        notes = request.notes if request else None
        return await service.generate_claim(db, encounter_id, notes)
    except BillingError as e:
        raise to_http_exception(e)


@router.put("/{claim_id}/status", response_model=ClaimResponse)
async def update_claim_status(
    claim_id: UUID,
    request: ClaimStatusUpdateRequest,
    db: AsyncSession = Depends(get_db_session),
    current_user: User = Depends(get_current_user)
):
    try:
        return await service.set_claim_status(
            db, claim_id, request.status, request.rejection_reason, request.notes
        )
    except BillingError as e:
        raise to_http_exception(e)


@router.get("", response_model=ClaimListResponse)
async def list_claims(
    hmo_id: Optional[UUID] = Query(None),
    status: Optional[ClaimStatus] = Query(None),
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    db: AsyncSession = Depends(get_db_session),
    current_user: User = Depends(get_current_user)
):
    return await service.list_claims(db, hmo_id, status, start_date, end_date)


@router.get("/summary", response_model=ClaimSummaryResponse)
async def get_claims_summary(
    hmo_id: Optional[UUID] = Query(None),
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    db: AsyncSession = Depends(get_db_session),
    current_user: User = Depends(get_current_user)
):
    """Claim counts and totals by status and HMO."""
    return await service.get_claims_summary(db, hmo_id, start_date, end_date)


@router.get("/hmo/{hmo_id}", response_model=ClaimListResponse)
async def get_claims_by_hmo(
    hmo_id: UUID,
    db: AsyncSession = Depends(get_db_session),
    current_user: User = Depends(get_current_user)
):
    try:
        return await service.get_claims_by_hmo(db, hmo_id)
    except BillingError as e:
        raise to_http_exception(e)


@router.get("/{claim_id}", response_model=ClaimResponse)
async def get_claim(
    claim_id: UUID,
    db: AsyncSession = Depends(get_db_session),
    current_user: User = Depends(get_current_user)
):
    try:
        return await service.get_claim(db, claim_id)
    except BillingError as e:
        raise to_http_exception(e)
