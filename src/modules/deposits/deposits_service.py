# src/modules/deposits/deposits_service.py
"""Patient deposit wallet."""

import logging
from typing import Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.common.config import settings
from src.common.database.database import unit_of_work
from src.common.exceptions import NotFoundError, ValidationError
from src.common.utils.global_functions import to_money
from src.common.utils.global_messages import GlobalMessages
from src.models.models import Patient
from .schemas import DepositBalanceResponse

logger = logging.getLogger(__name__)


async def lock_patient(session: AsyncSession, patient_id: UUID) -> Patient:
    """Load a patient with a row lock for balance changes."""
    result = await session.execute(
        select(Patient).where(Patient.id == patient_id).with_for_update()
    )
    patient = result.scalar_one_or_none()
    if not patient:
        raise NotFoundError(GlobalMessages.PATIENT_NOT_FOUND, {"patient_id": str(patient_id)})
    return patient


def _build_balance_response(patient: Patient) -> DepositBalanceResponse:
    balance = to_money(patient.deposit_balance)
    threshold = to_money(
        patient.low_deposit_threshold
        if patient.low_deposit_threshold is not None
        else settings.DEFAULT_LOW_DEPOSIT_THRESHOLD
    )
    return DepositBalanceResponse(
        patient_id=patient.id,
        patient_name=patient.name,
        deposit_balance=balance,
        low_deposit_threshold=threshold,
        is_low=balance < threshold,
    )


async def add_deposit(
    session: AsyncSession,
    patient_id: UUID,
    amount,
    reference: Optional[str] = None
) -> DepositBalanceResponse:
    """Credit a patient's deposit balance."""
    amount = to_money(amount)
    if amount <= 0:
        raise ValidationError(GlobalMessages.AMOUNT_NOT_POSITIVE, {"amount": str(amount)})

    async with unit_of_work(session):
        patient = await lock_patient(session, patient_id)
        patient.deposit_balance = to_money(patient.deposit_balance) + amount
        await session.flush()

    logger.info(
        "Deposit %s credited to patient %s (ref %s), balance %s",
        amount, patient_id, reference, patient.deposit_balance
    )
    return _build_balance_response(patient)


async def get_deposit_balance(session: AsyncSession, patient_id: UUID) -> DepositBalanceResponse:
    patient = await session.get(Patient, patient_id)
    if not patient:
        raise NotFoundError(GlobalMessages.PATIENT_NOT_FOUND, {"patient_id": str(patient_id)})
    return _build_balance_response(patient)
