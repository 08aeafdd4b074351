# src/modules/hmo/hmo_controller.py
"""HMO routes."""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from src.common.database.database import get_db_session
from src.common.exceptions import BillingError
from src.common.utils.global_functions import to_http_exception
from src.auth.dependencies import get_current_user
from src.models.models import User

from . import hmo_service as service
from .schemas import (
    HMOCreateRequest, HMOUpdateRequest, HMODepositRequest, HMOResponse, HMOListResponse,
    HMOTransactionResponse, HMOBalanceResponse, HMOStatementResponse
)

router = APIRouter(prefix="/hmos", tags=["HMOs"])


@router.post("", response_model=HMOResponse, status_code=201)
async def create_hmo(
    request: HMOCreateRequest,
    db: AsyncSession = Depends(get_db_session),
    current_user: User = Depends(get_current_user)
):
    try:
        return await service.create_hmo(db, request)
    except BillingError as e:
        raise to_http_exception(e)


@router.get("", response_model=HMOListResponse)
async def list_hmos(
    active: Optional[bool] = Query(None),
    db: AsyncSession = Depends(get_db_session),
    current_user: User = Depends(get_current_user)
):
    return await service.list_hmos(db, active)


@router.get("/{hmo_id}", response_model=HMOResponse)
async def get_hmo(
    hmo_id: UUID,
    db: AsyncSession = Depends(get_db_session),
    current_user: User = Depends(get_current_user)
):
    try:
        return await service.get_hmo(db, hmo_id)
    except BillingError as e:
        raise to_http_exception(e)


@router.put("/{hmo_id}", response_model=HMOResponse)
async def update_hmo(
    hmo_id: UUID,
    request: HMOUpdateRequest,
    db: AsyncSession = Depends(get_db_session),
    current_user: User = Depends(get_current_user)
):
    try:
        return await service.update_hmo(db, hmo_id, request)
    except BillingError as e:
        raise to_http_exception(e)


@router.patch("/{hmo_id}/toggle-status", response_model=HMOResponse)
async def toggle_hmo_status(
    hmo_id: UUID,
    db: AsyncSession = Depends(get_db_session),
    current_user: User = Depends(get_current_user)
):
    """Activate or deactivate an HMO."""
    try:
        return await service.toggle_hmo_status(db, hmo_id)
    except BillingError as e:
        raise to_http_exception(e)


@router.post("/{hmo_id}/deposits", response_model=HMOTransactionResponse, status_code=201)
async def add_hmo_deposit(
    hmo_id: UUID,
    request: HMODepositRequest,
    db: AsyncSession = Depends(get_db_session),
    current_user: User = Depends(get_current_user)
):
    """Record a retainership deposit from an HMO."""
    try:
        return await service.add_hmo_deposit(db, hmo_id, request, recorded_by=current_user.id)
    except BillingError as e:
        raise to_http_exception(e)


@router.get("/{hmo_id}/balance", response_model=HMOBalanceResponse)
async def get_hmo_balance(
    hmo_id: UUID,
    db: AsyncSession = Depends(get_db_session),
    current_user: User = Depends(get_current_user)
):
    try:
        return await service.get_hmo_balance(db, hmo_id)
    except BillingError as e:
        raise to_http_exception(e)


@router.get("/{hmo_id}/statement", response_model=HMOStatementResponse)
async def get_hmo_statement(
    hmo_id: UUID,
    db: AsyncSession = Depends(get_db_session),
    current_user: User = Depends(get_current_user)
):
    """Deposits and settled HMO portions, newest first."""
    try:
        return await service.get_hmo_statement(db, hmo_id)
    except BillingError as e:
        raise to_http_exception(e)
