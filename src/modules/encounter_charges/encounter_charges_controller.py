# src/modules/encounter_charges/encounter_charges_controller.py
"""Encounter charge ledger routes."""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from src.common.database.database import get_db_session
from src.common.exceptions import BillingError
from src.common.utils.global_functions import to_http_exception
from src.auth.dependencies import get_current_user
from src.models.models import User

from . import encounter_charges_service as service
from .schemas import (
    EncounterChargeCreateRequest, EncounterChargeUpdateRequest,
    EncounterChargeResponse, EncounterChargeListResponse, EncounterChargeActionResponse,
    EncounterChargeStatus
)

router = APIRouter(prefix="/encounter-charges", tags=["Encounter Charges"])


@router.post("", response_model=EncounterChargeResponse, status_code=201)
async def add_charge(
    request: EncounterChargeCreateRequest,
    db: AsyncSession = Depends(get_db_session),
    current_user: User = Depends(get_current_user)
):
    """Add a charge to an encounter."""
    try:
        item = service.to_priced_item(request.charge_id, request.adhoc)
        return await service.add_charge(
            db, request.encounter_id, request.patient_id, item,
            quantity=request.quantity, notes=request.notes, added_by=current_user.id
        )
    except BillingError as e:
        raise to_http_exception(e)


@router.get("/encounter/{encounter_id}", response_model=EncounterChargeListResponse)
async def get_charges_for_encounter(
    encounter_id: UUID,
    db: AsyncSession = Depends(get_db_session),
    current_user: User = Depends(get_current_user)
):
    try:
        return await service.get_charges_for_encounter(db, encounter_id)
    except BillingError as e:
        raise to_http_exception(e)


@router.get("/patient/{patient_id}", response_model=EncounterChargeListResponse)
async def get_charges_for_patient(
    patient_id: UUID,
    status: Optional[EncounterChargeStatus] = Query(None, description="Filter by status"),
    db: AsyncSession = Depends(get_db_session),
    current_user: User = Depends(get_current_user)
):
    try:
        return await service.get_charges_for_patient(db, patient_id, status)
    except BillingError as e:
        raise to_http_exception(e)


@router.get("/{charge_id}", response_model=EncounterChargeResponse)
async def get_encounter_charge(
    charge_id: UUID,
    db: AsyncSession = Depends(get_db_session),
    current_user: User = Depends(get_current_user)
):
    try:
        return await service.get_encounter_charge(db, charge_id)
    except BillingError as e:
        raise to_http_exception(e)


@router.put("/{charge_id}", response_model=EncounterChargeResponse)
async def update_charge(
    charge_id: UUID,
    request: EncounterChargeUpdateRequest,
    db: AsyncSession = Depends(get_db_session),
    current_user: User = Depends(get_current_user)
):
    """Update quantity or notes of a pending charge."""
    try:
        return await service.update_charge(db, charge_id, request.quantity, request.notes)
    except BillingError as e:
        raise to_http_exception(e)


@router.delete("/{charge_id}", response_model=EncounterChargeActionResponse)
async def delete_charge(
    charge_id: UUID,
    db: AsyncSession = Depends(get_db_session),
    current_user: User = Depends(get_current_user)
):
    """Delete a pending charge."""
    try:
        return await service.delete_charge(db, charge_id)
    except BillingError as e:
        raise to_http_exception(e)


@router.post("/{charge_id}/cancel", response_model=EncounterChargeResponse)
async def cancel_charge(
    charge_id: UUID,
    db: AsyncSession = Depends(get_db_session),
    current_user: User = Depends(get_current_user)
):
    """Cancel a pending charge."""
    try:
        return await service.cancel_charge(db, charge_id)
    except BillingError as e:
        raise to_http_exception(e)
