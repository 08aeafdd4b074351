from decimal import Decimal

import pytest

from src.common.exceptions import ConflictError, NotFoundError
from src.models.models import HMOCategory, ProviderTier
from src.modules.hmo import hmo_service as service
from src.modules.hmo.schemas import (
    HMOCategory as SchemaHMOCategory, HMODepositRequest, HMOUpdateRequest, StatementEntryType
)
from src.modules.receipts import receipts_service
from src.modules.receipts.schemas import PaymentMethod


async def test_get_hmo(session, factory):
    hmo = await factory.hmo(HMOCategory.NHIA)
    patient = await factory.patient()

    found = await service.get_hmo(session, hmo.id)

    assert found.name == hmo.name
    assert found.category == SchemaHMOCategory.NHIA
    assert found.active is True
    with pytest.raises(NotFoundError):
        await service.get_hmo(session, patient.id)


async def test_update_changes_only_sent_fields(session, factory):
    hmo = await factory.hmo()
    await service.update_hmo(session, hmo.id, HMOUpdateRequest(contact_phone="08030000000"))

    updated = await service.update_hmo(
        session, hmo.id, HMOUpdateRequest(name="Avon Health", category=SchemaHMOCategory.RETAINERSHIP)
    )

    assert updated.name == "Avon Health"
    assert updated.category == SchemaHMOCategory.RETAINERSHIP
    assert updated.contact_phone == "08030000000"


async def test_update_to_taken_name_conflicts(session, factory):
    taken = await factory.hmo()
    hmo = await factory.hmo()
    taken_name, hmo_id, original_name = taken.name, hmo.id, hmo.name

    with pytest.raises(ConflictError):
        await service.update_hmo(session, hmo_id, HMOUpdateRequest(name=taken_name))

    assert (await service.get_hmo(session, hmo_id)).name == original_name


async def test_toggle_status(session, factory):
    hmo = await factory.hmo()

    off = await service.toggle_hmo_status(session, hmo.id)
    active_only = await service.list_hmos(session, active=True)
    on = await service.toggle_hmo_status(session, hmo.id)

    assert off.active is False
    assert hmo.id not in [h.id for h in active_only.hmos]
    assert on.active is True


async def test_statement_lists_deposits_and_settled_hmo_portions(session, factory):
    hmo = await factory.hmo(HMOCategory.RETAINERSHIP, deposit="1000")
    patient = await factory.patient(ProviderTier.RETAINERSHIP, hmo)
    encounter = await factory.encounter(patient)
    settled = await factory.line(encounter, await factory.charge(retainership="40", name="X-ray chest"))
    await factory.line(encounter, await factory.charge(retainership="75"))
    await receipts_service.collect_for_charges(session, encounter.id, [settled.id], PaymentMethod.RETAINERSHIP)
    await service.add_hmo_deposit(
        session, hmo.id, HMODepositRequest(amount=Decimal("500"), description="Q2 retainer", reference="TRF-88")
    )

    statement = await service.get_hmo_statement(session, hmo.id)
    balance = await service.get_hmo_balance(session, hmo.id)

    credits = [e for e in statement.entries if e.type == StatementEntryType.CREDIT]
    debits = [e for e in statement.entries if e.type == StatementEntryType.DEBIT]
    assert sorted(e.amount for e in credits) == [Decimal("500.00"), Decimal("1000.00")]
    assert [(e.amount, e.description, e.patient_name) for e in debits] == [
        (Decimal("40.00"), "X-ray chest", patient.name)
    ]
    dates = [e.date for e in statement.entries]
    assert dates == sorted(dates, reverse=True)
    assert statement.total_deposits == Decimal("1500.00")
    assert statement.total_charges == Decimal("40.00")
    assert statement.balance == balance.balance == Decimal("1460.00")
