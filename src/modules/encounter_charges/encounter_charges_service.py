# src/modules/encounter_charges/encounter_charges_service.py
"""
Encounter charge ledger.

Lines are priced once, when they are added, and keep a snapshot of the item
name and category. Only pending lines can be edited, deleted or cancelled;
paid lines change only through the payment collector.
"""

import logging
from typing import Iterable, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.common.database.database import unit_of_work
from src.common.exceptions import InvalidStateError, NotFoundError, ValidationError
from src.common.utils.global_functions import to_money
from src.common.utils.global_messages import GlobalMessages
from src.models.models import (
    Charge, Encounter, EncounterCharge, Patient, Receipt,
    ChargeCategory as DBChargeCategory, EncounterChargeStatus as DBEncounterChargeStatus
)
from src.modules.charges.pricing import (
    AdhocItem, ChargeRef, FeeSchedule, PricedItem, quote, rescale_split, resolve_price
)
from src.modules.charges.schemas import ChargeCategory
from .schemas import (
    EncounterChargeResponse, EncounterChargeListResponse, EncounterChargeActionResponse,
    EncounterChargeStatus
)

logger = logging.getLogger(__name__)


def build_line_response(line: EncounterCharge) -> EncounterChargeResponse:
    return EncounterChargeResponse(
        id=line.id,
        encounter_id=line.encounter_id,
        patient_id=line.patient_id,
        charge_id=line.charge_id,
        item_name=line.item_name,
        item_type=ChargeCategory(line.item_type.value),
        quantity=line.quantity,
        unit_price=line.unit_price,
        total_amount=line.total_amount,
        patient_portion=line.patient_portion,
        hmo_portion=line.hmo_portion,
        status=EncounterChargeStatus(line.status.value),
        receipt_id=line.receipt_id,
        added_by=line.added_by,
        notes=line.notes,
        created_at=line.created_at,
    )


def _build_list_response(lines) -> EncounterChargeListResponse:
    live = [l for l in lines if l.status != DBEncounterChargeStatus.CANCELLED]
    pending = [l for l in live if l.status == DBEncounterChargeStatus.PENDING]
    return EncounterChargeListResponse(
        charges=[build_line_response(l) for l in lines],
        total=len(lines),
        total_amount=to_money(sum((l.total_amount for l in live), 0)),
        pending_amount=to_money(sum((l.total_amount for l in pending), 0)),
    )


async def _get_line_for_update(session: AsyncSession, line_id: UUID) -> EncounterCharge:
    result = await session.execute(
        select(EncounterCharge).where(EncounterCharge.id == line_id).with_for_update()
    )
    line = result.scalar_one_or_none()
    if not line:
        raise NotFoundError(GlobalMessages.ENCOUNTER_CHARGE_NOT_FOUND, {"charge_id": str(line_id)})
    return line


def _require_pending(line: EncounterCharge, message: str) -> None:
    if line.status != DBEncounterChargeStatus.PENDING:
        logger.warning("Rejected change to %s line %s", line.status.value, line.id)
        raise InvalidStateError(message, {"charge_id": str(line.id), "status": line.status.value})


# ============================================================================
# LEDGER OPERATIONS
# ============================================================================

async def add_charge(
    session: AsyncSession,
    encounter_id: UUID,
    patient_id: UUID,
    item: PricedItem,
    quantity: int = 1,
    notes: Optional[str] = None,
    added_by: Optional[UUID] = None
) -> EncounterChargeResponse:
    """Price an item for the patient's tier and add it to the encounter as a pending line."""
    if quantity < 1:
        raise ValidationError("Quantity must be at least 1.", {"quantity": quantity})

    async with unit_of_work(session):
        encounter = await session.get(Encounter, encounter_id)
        if not encounter:
            raise NotFoundError(GlobalMessages.ENCOUNTER_NOT_FOUND, {"encounter_id": str(encounter_id)})
        patient = await session.get(Patient, patient_id)
        if not patient:
            raise NotFoundError(GlobalMessages.PATIENT_NOT_FOUND, {"patient_id": str(patient_id)})
        if encounter.patient_id != patient.id:
            raise ValidationError(GlobalMessages.ENCOUNTER_PATIENT_MISMATCH)

        if isinstance(item, ChargeRef):
            charge = await session.get(Charge, item.charge_id)
            if not charge:
                raise NotFoundError(GlobalMessages.CHARGE_NOT_FOUND, {"charge_id": str(item.charge_id)})
            if not charge.active:
                raise InvalidStateError(GlobalMessages.CHARGE_INACTIVE, {"charge_id": str(charge.id)})
            price = resolve_price(FeeSchedule.from_charge(charge), patient.provider, charge.type, quantity)
            charge_id, name, category = charge.id, charge.name, charge.type
        elif isinstance(item, AdhocItem):
            if to_money(item.unit_price) < 0:
                raise ValidationError("Unit price cannot be negative.")
            price = quote(item.unit_price, quantity, patient.provider, item.category)
            charge_id, name, category = None, item.name, item.category
        else:
            raise ValidationError("Unsupported item type.")

        line = EncounterCharge(
            encounter_id=encounter.id,
            patient_id=patient.id,
            charge_id=charge_id,
            item_name=name,
            item_type=category,
            quantity=quantity,
            unit_price=price.unit_price,
            total_amount=price.total_amount,
            patient_portion=price.patient_portion,
            hmo_portion=price.hmo_portion,
            status=DBEncounterChargeStatus.PENDING,
            added_by=added_by,
            notes=notes,
        )
        session.add(line)
        await session.flush()

    logger.info(
        "Added %s x%d to encounter %s: total %s (patient %s, hmo %s)",
        line.item_name, line.quantity, line.encounter_id,
        line.total_amount, line.patient_portion, line.hmo_portion
    )
    return build_line_response(line)


async def update_charge(
    session: AsyncSession,
    line_id: UUID,
    quantity: Optional[int] = None,
    notes: Optional[str] = None
) -> EncounterChargeResponse:
    """
    Change the quantity or notes of a pending line.

    The total is recomputed from the stored unit price and the stored split
    is carried over proportionally; tier rules are not re-run.
    """
    if quantity is not None and quantity < 1:
        raise ValidationError("Quantity must be at least 1.", {"quantity": quantity})

    async with unit_of_work(session):
        line = await _get_line_for_update(session, line_id)
        _require_pending(line, GlobalMessages.CHARGE_PROCESSED_UPDATE)

        if quantity is not None and quantity != line.quantity:
            new_total = to_money(to_money(line.unit_price) * quantity)
            # Legacy rows without a stored split stay that way
            if line.patient_portion is not None and line.hmo_portion is not None:
                split = rescale_split(line.patient_portion, line.hmo_portion, line.total_amount, new_total)
                line.patient_portion = split.patient_portion
                line.hmo_portion = split.hmo_portion
            line.quantity = quantity
            line.total_amount = new_total
        if notes is not None:
            line.notes = notes
        await session.flush()

    logger.info("Updated line %s: qty %d, total %s", line.id, line.quantity, line.total_amount)
    return build_line_response(line)


async def delete_charge(session: AsyncSession, line_id: UUID) -> EncounterChargeActionResponse:
    """Remove a pending line."""
    async with unit_of_work(session):
        line = await _get_line_for_update(session, line_id)
        _require_pending(line, GlobalMessages.CHARGE_PROCESSED_DELETE)
        await session.delete(line)

    logger.info("Deleted line %s from encounter %s", line_id, line.encounter_id)
    return EncounterChargeActionResponse(success=True, message=GlobalMessages.CHARGE_REMOVED)


async def cancel_charge(session: AsyncSession, line_id: UUID) -> EncounterChargeResponse:
    """Cancel a pending line but keep it on the ledger."""
    async with unit_of_work(session):
        line = await _get_line_for_update(session, line_id)
        _require_pending(line, GlobalMessages.CHARGE_PROCESSED_CANCEL)
        line.status = DBEncounterChargeStatus.CANCELLED
        await session.flush()

    logger.info("Cancelled line %s (%s)", line.id, line.total_amount)
    return build_line_response(line)


def mark_paid(lines: Iterable[EncounterCharge], receipt: Receipt) -> None:
    """Settle lines against a receipt. Callers own the unit of work."""
    for line in lines:
        line.status = DBEncounterChargeStatus.PAID
        line.receipt_id = receipt.id


def revert_to_pending(lines: Iterable[EncounterCharge]) -> None:
    """Undo mark_paid for a reversed receipt. Callers own the unit of work."""
    for line in lines:
        line.status = DBEncounterChargeStatus.PENDING
        line.receipt_id = None


# ============================================================================
# QUERIES
# ============================================================================

async def get_encounter_charge(session: AsyncSession, line_id: UUID) -> EncounterChargeResponse:
    line = await session.get(EncounterCharge, line_id)
    if not line:
        raise NotFoundError(GlobalMessages.ENCOUNTER_CHARGE_NOT_FOUND, {"charge_id": str(line_id)})
    return build_line_response(line)


async def get_charges_for_encounter(
    session: AsyncSession,
    encounter_id: UUID
) -> EncounterChargeListResponse:
    encounter = await session.get(Encounter, encounter_id)
    if not encounter:
        raise NotFoundError(GlobalMessages.ENCOUNTER_NOT_FOUND, {"encounter_id": str(encounter_id)})

    result = await session.execute(
        select(EncounterCharge)
        .where(EncounterCharge.encounter_id == encounter_id)
        .order_by(EncounterCharge.created_at)
    )
    return _build_list_response(result.scalars().all())


async def get_charges_for_patient(
    session: AsyncSession,
    patient_id: UUID,
    status: Optional[EncounterChargeStatus] = None
) -> EncounterChargeListResponse:
    patient = await session.get(Patient, patient_id)
    if not patient:
        raise NotFoundError(GlobalMessages.PATIENT_NOT_FOUND, {"patient_id": str(patient_id)})

    query = select(EncounterCharge).where(EncounterCharge.patient_id == patient_id)
    if status is not None:
        query = query.where(EncounterCharge.status == DBEncounterChargeStatus(status.value))
    result = await session.execute(query.order_by(EncounterCharge.created_at.desc()))
    return _build_list_response(result.scalars().all())


def to_priced_item(charge_id: Optional[UUID], adhoc) -> PricedItem:
    """Turn the request's charge_id / adhoc pair into a priced item."""
    if charge_id is not None:
        return ChargeRef(charge_id=charge_id)
    return AdhocItem(
        name=adhoc.name,
        category=DBChargeCategory(adhoc.category.value),
        unit_price=adhoc.unit_price,
    )
