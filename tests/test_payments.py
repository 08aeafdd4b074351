import re
from decimal import Decimal

import pytest
from sqlalchemy import func, select

from src.common.config import settings
from src.common.exceptions import (
    ConflictError, InsufficientFundsError, InvalidStateError, NotFoundError, ValidationError
)
from src.models.models import (
    ChargeCategory, Claim, EncounterChargeStatus, EncounterStatus, HMOCategory,
    ProviderTier, Receipt
)
from src.modules.claims import claims_service
from src.modules.deposits import deposits_service
from src.modules.hmo import hmo_service
from src.modules.receipts import receipts_service as service
from src.modules.receipts.schemas import PaymentMethod


async def test_cash_collection_settles_lines_and_advances_encounter(session, factory):
    cashier = await factory.user()
    patient = await factory.patient()
    encounter = await factory.encounter(patient)
    first = await factory.line(encounter, await factory.charge(base="50"), quantity=2)
    second = await factory.line(encounter, await factory.charge(base="35.50"))

    receipt = await service.collect_for_charges(
        session, encounter.id, [first.id, second.id], PaymentMethod.CASH, cashier.id
    )

    assert re.fullmatch(r"RCP-\d{6}-\d{4}", receipt.receipt_number)
    assert receipt.amount_paid == Decimal("135.50")
    assert set(receipt.charge_ids) == {first.id, second.id}
    assert receipt.validated is False
    assert receipt.cashier_id == cashier.id
    for line in (first, second):
        assert line.status == EncounterChargeStatus.PAID
        assert line.receipt_id == receipt.id
    assert encounter.payment_validated is True
    assert encounter.receipt_number == receipt.receipt_number
    assert encounter.encounter_status == EncounterStatus.IN_NURSING


async def test_resending_a_settled_set_is_a_conflict(session, factory):
    patient = await factory.patient()
    encounter = await factory.encounter(patient)
    line = await factory.line(encounter, await factory.charge())
    encounter_id, line_id = encounter.id, line.id
    await service.collect_for_charges(session, encounter_id, [line_id], PaymentMethod.CASH)

    with pytest.raises(ConflictError):
        await service.collect_for_charges(session, encounter_id, [line_id], PaymentMethod.CASH)

    count = await session.scalar(select(func.count(Receipt.id)))
    assert count == 1


async def test_charges_must_exist_and_belong_to_encounter(session, factory):
    patient = await factory.patient()
    encounter = await factory.encounter(patient)
    other_encounter = await factory.encounter(patient)
    foreign = await factory.line(other_encounter, await factory.charge())
    encounter_id, foreign_id, missing_id = encounter.id, foreign.id, patient.id

    with pytest.raises(NotFoundError):
        await service.collect_for_charges(session, encounter_id, [], PaymentMethod.CASH)
    with pytest.raises(NotFoundError):
        await service.collect_for_charges(session, encounter_id, [missing_id], PaymentMethod.CASH)
    with pytest.raises(ValidationError):
        await service.collect_for_charges(session, encounter_id, [foreign_id], PaymentMethod.CASH)


async def test_short_deposit_fails_without_side_effects(session, factory):
    patient = await factory.patient(deposit="50")
    encounter = await factory.encounter(patient)
    line = await factory.line(encounter, await factory.charge(base="100"))
    encounter_id, line_id = encounter.id, line.id

    with pytest.raises(InsufficientFundsError) as excinfo:
        await service.collect_for_charges(session, encounter_id, [line_id], PaymentMethod.DEPOSIT)

    assert excinfo.value.balance == Decimal("50.00")
    assert excinfo.value.required == Decimal("100.00")
    await session.refresh(patient)
    await session.refresh(line)
    await session.refresh(encounter)
    assert patient.deposit_balance == Decimal("50.00")
    assert line.status == EncounterChargeStatus.PENDING
    assert encounter.payment_validated is False
    assert await session.scalar(select(func.count(Receipt.id))) == 0


async def test_deposit_collect_and_reverse_round_trip(session, factory):
    user = await factory.user()
    patient = await factory.patient(deposit="500")
    encounter = await factory.encounter(patient)
    line = await factory.line(encounter, await factory.charge(base="120.25"))

    receipt = await service.collect_for_charges(session, encounter.id, [line.id], PaymentMethod.DEPOSIT)
    assert patient.deposit_balance == Decimal("379.75")

    reversed_receipt = await service.reverse_receipt(session, receipt.id, "Wrong patient billed", user.id)

    assert patient.deposit_balance == Decimal("500.00")
    assert reversed_receipt.status.value == "reversed"
    assert reversed_receipt.reversal_reason == "Wrong patient billed"
    assert reversed_receipt.reversed_by == user.id
    assert reversed_receipt.reversed_at is not None
    assert line.status == EncounterChargeStatus.PENDING
    assert line.receipt_id is None
    assert encounter.payment_validated is False
    assert encounter.receipt_number is None


async def test_reversing_twice_is_refused(session, factory):
    patient = await factory.patient()
    encounter = await factory.encounter(patient)
    line = await factory.line(encounter, await factory.charge())
    receipt = await service.collect_for_charges(session, encounter.id, [line.id], PaymentMethod.CARD)
    await service.reverse_receipt(session, receipt.id, "Duplicate")

    with pytest.raises(InvalidStateError):
        await service.reverse_receipt(session, receipt.id, "Duplicate again")


async def test_reversed_lines_can_be_collected_again(session, factory):
    patient = await factory.patient()
    encounter = await factory.encounter(patient)
    line = await factory.line(encounter, await factory.charge(base="40"))
    first = await service.collect_for_charges(session, encounter.id, [line.id], PaymentMethod.CASH)
    await service.reverse_receipt(session, first.id, "Card declined later")

    second = await service.collect_for_charges(session, encounter.id, [line.id], PaymentMethod.CARD)

    assert second.receipt_number != first.receipt_number
    assert line.receipt_id == second.id
    assert encounter.receipt_number == second.receipt_number


async def test_validation_is_idempotent_per_user_and_department(session, factory):
    nurse = await factory.user()
    pharmacist = await factory.user()
    patient = await factory.patient()
    encounter = await factory.encounter(patient)
    line = await factory.line(encounter, await factory.charge())
    receipt = await service.collect_for_charges(session, encounter.id, [line.id], PaymentMethod.CASH)

    await service.validate_receipt(session, receipt.receipt_number, "nursing", nurse.id)
    again = await service.validate_receipt(session, receipt.receipt_number, "nursing", nurse.id)
    assert again.validated is True
    assert len(again.validations) == 1

    both = await service.validate_receipt(session, receipt.receipt_number, "pharmacy", pharmacist.id)
    assert len(both.validations) == 2


async def test_validation_errors(session, factory):
    user = await factory.user()
    patient = await factory.patient()
    encounter = await factory.encounter(patient)
    line = await factory.line(encounter, await factory.charge())
    receipt = await service.collect_for_charges(session, encounter.id, [line.id], PaymentMethod.CASH)
    await service.reverse_receipt(session, receipt.id, "Refunded")
    user_id = user.id

    with pytest.raises(NotFoundError):
        await service.validate_receipt(session, "RCP-000000-0000", "lab", user_id)
    with pytest.raises(InvalidStateError):
        await service.validate_receipt(session, receipt.receipt_number, "lab", user_id)


async def test_retainership_payment_draws_on_hmo_pool(session, factory):
    hmo = await factory.hmo(HMOCategory.RETAINERSHIP, deposit="1000")
    patient = await factory.patient(ProviderTier.RETAINERSHIP, hmo)
    encounter = await factory.encounter(patient)
    line = await factory.line(encounter, await factory.charge(retainership="40", base="60"))

    receipt = await service.collect_for_charges(session, encounter.id, [line.id], PaymentMethod.RETAINERSHIP)
    balance = await hmo_service.get_hmo_balance(session, hmo.id)

    assert receipt.amount_paid == Decimal("40.00")
    assert balance.total_deposits == Decimal("1000.00")
    assert balance.total_used == Decimal("40.00")
    assert balance.balance == Decimal("960.00")


async def test_retainership_pool_must_cover_amount(session, factory):
    hmo = await factory.hmo(HMOCategory.RETAINERSHIP, deposit="10")
    patient = await factory.patient(ProviderTier.RETAINERSHIP, hmo)
    encounter = await factory.encounter(patient)
    line = await factory.line(encounter, await factory.charge(retainership="40"))

    with pytest.raises(InsufficientFundsError):
        await service.collect_for_charges(session, encounter.id, [line.id], PaymentMethod.RETAINERSHIP)


async def test_retainership_method_needs_retainership_patient(session, factory):
    patient = await factory.patient(ProviderTier.NHIA, await factory.hmo())
    encounter = await factory.encounter(patient)
    line = await factory.line(encounter, await factory.charge())

    with pytest.raises(InvalidStateError):
        await service.collect_for_charges(session, encounter.id, [line.id], PaymentMethod.RETAINERSHIP)


async def test_auto_claim_on_payment(session, factory, monkeypatch):
    monkeypatch.setattr(settings, "AUTO_CLAIM_ON_PAYMENT", True)
    patient = await factory.patient(ProviderTier.NHIA, await factory.hmo(HMOCategory.NHIA))
    encounter = await factory.encounter(patient)
    line = await factory.line(encounter, await factory.charge(ChargeCategory.DRUGS, nhia="20"), quantity=3)

    await service.collect_for_charges(session, encounter.id, [line.id], PaymentMethod.INSURANCE)

    claim = (await session.execute(select(Claim).where(Claim.encounter_id == encounter.id))).scalar_one()
    assert claim.total_claim_amount == Decimal("54.00")
    assert len(claim.items) == 1


async def test_receipts_with_claim_status(session, factory):
    patient = await factory.patient()
    encounter = await factory.encounter(patient)
    line = await factory.line(encounter, await factory.charge())
    receipt = await service.collect_for_charges(session, encounter.id, [line.id], PaymentMethod.CASH)

    listing = await service.list_receipts_with_claim_status(session, patient_id=patient.id)
    by_number = await service.get_receipt_by_number(session, receipt.receipt_number)

    assert listing.total == 1
    assert listing.receipts[0].claim_status is None
    assert by_number.id == receipt.id


async def test_deposit_top_up_and_low_balance_flag(session, factory):
    patient = await factory.patient(deposit="1000")

    before = await deposits_service.get_deposit_balance(session, patient.id)
    after = await deposits_service.add_deposit(session, patient.id, Decimal("4500"))

    assert before.is_low is True
    assert after.deposit_balance == Decimal("5500.00")
    assert after.is_low is False
    with pytest.raises(ValidationError):
        await deposits_service.add_deposit(session, patient.id, Decimal("0"))


async def test_failed_auto_claim_keeps_the_payment(session, factory, monkeypatch):
    monkeypatch.setattr(settings, "AUTO_CLAIM_ON_PAYMENT", True)
    patient = await factory.patient(ProviderTier.KSCHMA, await factory.hmo(HMOCategory.STATE_SCHEME))
    encounter = await factory.encounter(patient)
    line = await factory.line(encounter, await factory.charge(kschma="80"))
    encounter_id, line_id = encounter.id, line.id
    await claims_service.generate_claim(session, encounter_id)

    # Another cashier's request raised the claim after this one checked for it
    async def not_seen_yet(session, encounter_id):
        return None

    monkeypatch.setattr(claims_service, "find_claim_for_encounter", not_seen_yet)

    receipt = await service.collect_for_charges(session, encounter_id, [line_id], PaymentMethod.INSURANCE)

    assert receipt.amount_paid == Decimal("80.00")
    stored = await service.get_receipt(session, receipt.id)
    assert stored.status.value == "active"
    assert await session.scalar(select(func.count(Claim.id))) == 1
    assert await session.scalar(select(func.count(Receipt.id))) == 1
