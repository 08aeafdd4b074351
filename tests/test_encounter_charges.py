from decimal import Decimal

import pytest
from sqlalchemy import select

from src.common.exceptions import InvalidStateError, NotFoundError, ValidationError
from src.models.models import (
    ChargeCategory, EncounterCharge, ProviderTier
)
from src.modules.charges import charges_service
from src.modules.charges.pricing import AdhocItem, ChargeRef
from src.modules.charges.schemas import ChargeUpdateRequest
from src.modules.encounter_charges import encounter_charges_service as service
from src.modules.encounter_charges.schemas import EncounterChargeStatus
from src.modules.receipts import receipts_service
from src.modules.receipts.schemas import PaymentMethod


async def test_add_charge_prices_for_patient_tier(session, factory):
    hmo = await factory.hmo()
    patient = await factory.patient(ProviderTier.NHIA, hmo)
    encounter = await factory.encounter(patient)
    drug = await factory.charge(ChargeCategory.DRUGS, base="25", nhia="20", name="Amoxicillin")

    line = await service.add_charge(session, encounter.id, patient.id, ChargeRef(drug.id), quantity=3)

    assert line.item_name == "Amoxicillin"
    assert line.item_type.value == "drugs"
    assert line.unit_price == Decimal("20.00")
    assert line.total_amount == Decimal("60.00")
    assert line.patient_portion == Decimal("6.00")
    assert line.hmo_portion == Decimal("54.00")
    assert line.status.value == "pending"


async def test_master_price_change_does_not_touch_existing_lines(session, factory):
    patient = await factory.patient()
    encounter = await factory.encounter(patient)
    charge = await factory.charge(base="50", name="Consultation")
    line = await factory.line(encounter, charge)

    await charges_service.update_charge(
        session, charge.id, ChargeUpdateRequest(base_price=Decimal("80"), name="Consultation (new)")
    )
    stored = await service.get_encounter_charge(session, line.id)

    assert stored.unit_price == Decimal("50.00")
    assert stored.item_name == "Consultation"


async def test_adhoc_item_uses_its_own_price(session, factory):
    patient = await factory.patient(ProviderTier.KSCHMA, await factory.hmo())
    encounter = await factory.encounter(patient)

    line = await service.add_charge(
        session, encounter.id, patient.id,
        AdhocItem(name="Special dressing", category=ChargeCategory.NURSING, unit_price=Decimal("12.50")),
        quantity=2,
    )

    assert line.charge_id is None
    assert line.total_amount == Decimal("25.00")
    assert line.patient_portion == Decimal("0.00")
    assert line.hmo_portion == Decimal("25.00")


async def test_inactive_charge_rejected(session, factory):
    patient = await factory.patient()
    encounter = await factory.encounter(patient)
    charge = await factory.charge(active=False)

    with pytest.raises(InvalidStateError):
        await service.add_charge(session, encounter.id, patient.id, ChargeRef(charge.id))


async def test_encounter_must_belong_to_patient(session, factory):
    patient = await factory.patient()
    other = await factory.patient()
    encounter = await factory.encounter(other)
    charge = await factory.charge()

    with pytest.raises(ValidationError):
        await service.add_charge(session, encounter.id, patient.id, ChargeRef(charge.id))


async def test_unknown_charge_not_found(session, factory):
    patient = await factory.patient()
    encounter = await factory.encounter(patient)

    with pytest.raises(NotFoundError):
        await service.add_charge(session, encounter.id, patient.id, ChargeRef(patient.id))


async def test_update_quantity_carries_split_over(session, factory):
    patient = await factory.patient(ProviderTier.NHIA, await factory.hmo())
    encounter = await factory.encounter(patient)
    drug = await factory.charge(ChargeCategory.DRUGS, nhia="20")
    line = await factory.line(encounter, drug, quantity=3)

    updated = await service.update_charge(session, line.id, quantity=5, notes="two more")

    assert updated.quantity == 5
    assert updated.total_amount == Decimal("100.00")
    assert updated.patient_portion == Decimal("10.00")
    assert updated.hmo_portion == Decimal("90.00")
    assert updated.notes == "two more"


async def test_paid_line_is_immutable(session, factory):
    patient = await factory.patient()
    encounter = await factory.encounter(patient)
    line = await factory.line(encounter, await factory.charge())
    line_id = line.id
    await receipts_service.collect_for_charges(session, encounter.id, [line_id], PaymentMethod.CASH)

    # Each refusal rolls back the session, so only the id is reused
    with pytest.raises(InvalidStateError):
        await service.update_charge(session, line_id, quantity=2)
    with pytest.raises(InvalidStateError):
        await service.delete_charge(session, line_id)
    with pytest.raises(InvalidStateError):
        await service.cancel_charge(session, line_id)


async def test_delete_pending_line(session, factory):
    patient = await factory.patient()
    encounter = await factory.encounter(patient)
    line = await factory.line(encounter, await factory.charge())

    result = await service.delete_charge(session, line.id)

    assert result.success
    remaining = await session.execute(select(EncounterCharge).where(EncounterCharge.encounter_id == encounter.id))
    assert remaining.scalars().all() == []


async def test_cancel_keeps_line_for_audit(session, factory):
    patient = await factory.patient()
    encounter = await factory.encounter(patient)
    first = await factory.line(encounter, await factory.charge(base="30"))
    await factory.line(encounter, await factory.charge(base="20"))

    cancelled = await service.cancel_charge(session, first.id)
    listing = await service.get_charges_for_encounter(session, encounter.id)

    assert cancelled.status.value == "cancelled"
    assert listing.total == 2
    assert listing.total_amount == Decimal("20.00")
    assert listing.pending_amount == Decimal("20.00")
    with pytest.raises(InvalidStateError):
        await service.cancel_charge(session, first.id)


async def test_patient_listing_filters_by_status(session, factory):
    patient = await factory.patient()
    encounter = await factory.encounter(patient)
    paid = await factory.line(encounter, await factory.charge())
    await factory.line(encounter, await factory.charge())
    await receipts_service.collect_for_charges(session, encounter.id, [paid.id], PaymentMethod.CASH)

    pending = await service.get_charges_for_patient(session, patient.id, EncounterChargeStatus.PENDING)

    assert pending.total == 1
    assert pending.charges[0].status == EncounterChargeStatus.PENDING
