# src/modules/deposits/deposits_controller.py
"""Patient deposit routes."""

from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from src.common.database.database import get_db_session
from src.common.exceptions import BillingError
from src.common.utils.global_functions import to_http_exception
from src.auth.dependencies import get_current_user
from src.models.models import User

from . import deposits_service as service
from .schemas import DepositRequest, DepositBalanceResponse

router = APIRouter(prefix="/deposits", tags=["Deposits"])


@router.post("/{patient_id}", response_model=DepositBalanceResponse)
async def add_deposit(
    patient_id: UUID,
    request: DepositRequest,
    db: AsyncSession = Depends(get_db_session),
    current_user: User = Depends(get_current_user)
):
    """Add money to a patient's deposit."""
    try:
        return await service.add_deposit(db, patient_id, request.amount, request.reference)
    except BillingError as e:
        raise to_http_exception(e)


@router.get("/{patient_id}", response_model=DepositBalanceResponse)
async def get_deposit_balance(
    patient_id: UUID,
    db: AsyncSession = Depends(get_db_session),
    current_user: User = Depends(get_current_user)
):
    try:
        return await service.get_deposit_balance(db, patient_id)
    except BillingError as e:
        raise to_http_exception(e)
