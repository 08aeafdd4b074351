# src/modules/charges/charges_service.py
"""Charge master service. Price edits never reach existing ledger lines."""

import logging
from typing import Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from src.common.database.database import unit_of_work
from src.common.exceptions import ConflictError, NotFoundError
from src.common.utils.global_messages import GlobalMessages
from src.models.models import Charge, ChargeCategory as DBChargeCategory
from .schemas import (
    ChargeCreateRequest, ChargeUpdateRequest, ChargeResponse,
    ChargeListResponse, ChargeActionResponse, ChargeCategory
)

logger = logging.getLogger(__name__)


def _build_charge_response(charge: Charge) -> ChargeResponse:
    return ChargeResponse(
        id=charge.id,
        name=charge.name,
        type=ChargeCategory(charge.type.value),
        base_price=charge.base_price,
        standard_fee=charge.standard_fee,
        retainership_fee=charge.retainership_fee,
        nhia_fee=charge.nhia_fee,
        kschma_fee=charge.kschma_fee,
        department=charge.department,
        description=charge.description,
        code=charge.code,
        active=charge.active,
        created_at=charge.created_at,
    )


async def get_charge_or_404(session: AsyncSession, charge_id: UUID) -> Charge:
    charge = await session.get(Charge, charge_id)
    if not charge:
        raise NotFoundError(GlobalMessages.CHARGE_NOT_FOUND, {"charge_id": str(charge_id)})
    return charge


async def create_charge(
    session: AsyncSession,
    request: ChargeCreateRequest
) -> ChargeResponse:
    """Add a new item to the charge master."""
    charge = Charge(
        name=request.name,
        type=DBChargeCategory(request.type.value),
        base_price=request.base_price,
        standard_fee=request.standard_fee,
        retainership_fee=request.retainership_fee,
        nhia_fee=request.nhia_fee,
        kschma_fee=request.kschma_fee,
        department=request.department,
        description=request.description,
        code=request.code,
    )
    async with unit_of_work(session):
        session.add(charge)
        try:
            await session.flush()
        except IntegrityError as e:
            raise ConflictError(f"Charge code '{request.code}' is already in use.") from e

    logger.info("Charge %s created (%s, base %s)", charge.id, charge.name, charge.base_price)
    return _build_charge_response(charge)


async def list_charges(
    session: AsyncSession,
    category: Optional[ChargeCategory] = None,
    active: Optional[bool] = None
) -> ChargeListResponse:
    """List charge master items, optionally filtered by category and active flag."""
    query = select(Charge)
    if category is not None:
        query = query.where(Charge.type == DBChargeCategory(category.value))
    if active is not None:
        query = query.where(Charge.active == active)
    query = query.order_by(Charge.type, Charge.name)

    result = await session.execute(query)
    charges = [_build_charge_response(c) for c in result.scalars().all()]
    return ChargeListResponse(charges=charges, total=len(charges))


async def get_charge(session: AsyncSession, charge_id: UUID) -> ChargeResponse:
    return _build_charge_response(await get_charge_or_404(session, charge_id))


async def update_charge(
    session: AsyncSession,
    charge_id: UUID,
    request: ChargeUpdateRequest
) -> ChargeResponse:
    """Update the provided fields of a charge master item."""
    async with unit_of_work(session):
        charge = await get_charge_or_404(session, charge_id)
        for key, value in request.model_dump(exclude_none=True).items():
            setattr(charge, key, value)
        await session.flush()

    logger.info("Charge %s updated", charge.id)
    return _build_charge_response(charge)


async def deactivate_charge(session: AsyncSession, charge_id: UUID) -> ChargeActionResponse:
    """Retire a charge. Charges are never hard-deleted."""
    async with unit_of_work(session):
        charge = await get_charge_or_404(session, charge_id)
        charge.active = False

    logger.info("Charge %s deactivated", charge_id)
    return ChargeActionResponse(success=True, message=GlobalMessages.CHARGE_DEACTIVATED)
