# src/modules/charges/charges_controller.py
"""Charge master controller with API routes."""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from src.common.database.database import get_db_session
from src.common.exceptions import BillingError
from src.common.utils.global_functions import to_http_exception
from src.auth.dependencies import get_current_user
from src.models.models import User

from . import charges_service as service
from .schemas import (
    ChargeCreateRequest, ChargeUpdateRequest, ChargeResponse,
    ChargeListResponse, ChargeActionResponse, ChargeCategory
)

router = APIRouter(prefix="/charges", tags=["Charges"])


@router.post("", response_model=ChargeResponse, status_code=201)
async def create_charge(
    request: ChargeCreateRequest,
    db: AsyncSession = Depends(get_db_session),
    current_user: User = Depends(get_current_user)
):
    """Create a new charge (master data)."""
    try:
        return await service.create_charge(db, request)
    except BillingError as e:
        raise to_http_exception(e)


@router.get("", response_model=ChargeListResponse)
async def list_charges(
    type: Optional[ChargeCategory] = Query(None, description="Filter by category"),
    active: Optional[bool] = Query(None, description="Filter by active flag"),
    db: AsyncSession = Depends(get_db_session),
    current_user: User = Depends(get_current_user)
):
    """Get all charges."""
    return await service.list_charges(db, type, active)


@router.get("/{charge_id}", response_model=ChargeResponse)
async def get_charge(
    charge_id: UUID,
    db: AsyncSession = Depends(get_db_session),
    current_user: User = Depends(get_current_user)
):
    try:
        return await service.get_charge(db, charge_id)
    except BillingError as e:
        raise to_http_exception(e)


@router.put("/{charge_id}", response_model=ChargeResponse)
async def update_charge(
    charge_id: UUID,
    request: ChargeUpdateRequest,
    db: AsyncSession = Depends(get_db_session),
    current_user: User = Depends(get_current_user)
):
    """Update a charge. Existing encounter lines keep the price they were billed at."""
    try:
        return await service.update_charge(db, charge_id, request)
    except BillingError as e:
        raise to_http_exception(e)


@router.delete("/{charge_id}", response_model=ChargeActionResponse)
async def deactivate_charge(
    charge_id: UUID,
    db: AsyncSession = Depends(get_db_session),
    current_user: User = Depends(get_current_user)
):
    """Deactivate a charge."""
    try:
        return await service.deactivate_charge(db, charge_id)
    except BillingError as e:
        raise to_http_exception(e)
