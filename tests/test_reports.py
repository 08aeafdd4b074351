from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from src.common.exceptions import ValidationError
from src.models.models import (
    ChargeCategory, Claim, EncounterCharge, EncounterChargeStatus, HMOCategory,
    PaymentMethod as DBPaymentMethod, ClaimStatus as DBClaimStatus, ProviderTier
)
from src.modules.claims import claims_service
from src.modules.claims.schemas import ClaimStatus
from src.modules.encounter_charges import encounter_charges_service
from src.modules.receipts import receipts_service
from src.modules.receipts.schemas import PaymentMethod
from src.modules.reports import reports_service as service

NOON = datetime(2025, 3, 10, 12, 0, tzinfo=timezone.utc)


def _line(status, total="60", patient="6", hmo="54", created_at=NOON):
    return EncounterCharge(
        item_name="Amoxicillin",
        item_type=ChargeCategory.DRUGS,
        quantity=1,
        unit_price=Decimal(total),
        total_amount=Decimal(total),
        patient_portion=Decimal(patient) if patient is not None else None,
        hmo_portion=Decimal(hmo) if hmo is not None else None,
        status=status,
        created_at=created_at,
    )


# ============================================================================
# RECOGNITION RULES
# ============================================================================

def test_cash_paid_line_recognised_in_full():
    result = service.recognise_line(_line(EncounterChargeStatus.PAID), DBPaymentMethod.CASH, None, None)
    assert result.recognised == Decimal("60.00")
    assert result.pending_hmo_amount == Decimal("0.00")


def test_pending_line_is_outstanding_only():
    result = service.recognise_line(_line(EncounterChargeStatus.PENDING), None, None, None)
    assert result.recognised == Decimal("0.00")
    assert result.outstanding_hmo == Decimal("54.00")
    assert result.outstanding_patient == Decimal("6.00")
    assert result.outstanding == Decimal("60.00")


def test_insurance_line_waits_for_claim_payment():
    line = _line(EncounterChargeStatus.PAID)

    unpaid = service.recognise_line(line, DBPaymentMethod.INSURANCE, DBClaimStatus.APPROVED, None)
    paid = service.recognise_line(line, DBPaymentMethod.INSURANCE, DBClaimStatus.PAID, NOON + timedelta(days=3))
    no_claim = service.recognise_line(line, DBPaymentMethod.INSURANCE, None, None)

    assert unpaid.recognised == Decimal("6.00")
    assert unpaid.pending_hmo_amount == Decimal("54.00")
    assert paid.recognised == Decimal("60.00")
    assert paid.pending_hmo_amount == Decimal("0.00")
    assert no_claim.recognised == Decimal("6.00")


def test_line_added_after_claim_payment_keeps_hmo_portion_pending():
    line = _line(EncounterChargeStatus.PAID)
    result = service.recognise_line(line, DBPaymentMethod.INSURANCE, DBClaimStatus.PAID, NOON - timedelta(days=1))

    assert result.recognised == Decimal("6.00")
    assert result.pending_hmo_amount == Decimal("54.00")


def test_naive_timestamps_compare_as_utc():
    line = _line(EncounterChargeStatus.PAID, created_at=NOON.replace(tzinfo=None))
    result = service.recognise_line(line, DBPaymentMethod.INSURANCE, DBClaimStatus.PAID, NOON)
    assert result.recognised == Decimal("60.00")


def test_legacy_line_without_split_counts_as_patient_owed():
    result = service.recognise_line(
        _line(EncounterChargeStatus.PENDING, patient=None, hmo=None), None, None, None
    )
    assert result.outstanding_patient == Decimal("60.00")
    assert result.outstanding_hmo == Decimal("0.00")


def test_cancelled_line_recognises_nothing():
    result = service.recognise_line(_line(EncounterChargeStatus.CANCELLED), DBPaymentMethod.CASH, None, None)
    assert result == service.Recognition()


@pytest.mark.parametrize("name,expected", [
    ("pharmacy", ChargeCategory.DRUGS),
    ("Drugs", ChargeCategory.DRUGS),
    (" LAB ", ChargeCategory.LAB),
    ("radiology", ChargeCategory.RADIOLOGY),
])
def test_department_names(name, expected):
    assert service.category_for(name) == expected


def test_unknown_department_rejected():
    with pytest.raises(ValidationError):
        service.category_for("cardiology")
    assert service.department_for(ChargeCategory.DRUGS) == "pharmacy"


# ============================================================================
# REPORTS
# ============================================================================

async def _nhia_encounter(factory):
    hmo = await factory.hmo(HMOCategory.NHIA)
    patient = await factory.patient(ProviderTier.NHIA, hmo)
    return hmo, patient, await factory.encounter(patient)


async def test_revenue_report_mixes_cash_and_pending(session, factory):
    patient = await factory.patient()
    encounter = await factory.encounter(patient)
    consult = await factory.line(encounter, await factory.charge(base="50", name="Consultation"))
    await factory.line(encounter, await factory.charge(ChargeCategory.LAB, base="30", name="FBC"))
    cancelled = await factory.line(encounter, await factory.charge(base="999"))
    await encounter_charges_service.cancel_charge(session, cancelled.id)
    await receipts_service.collect_for_charges(session, encounter.id, [consult.id], PaymentMethod.CASH)

    report = await service.revenue_report(session)

    assert report.summary.total_charges == 2
    assert report.summary.paid_charges == 1
    assert report.summary.pending_charges == 1
    assert report.summary.total_billed == Decimal("80.00")
    assert report.summary.recognised_revenue == Decimal("50.00")
    assert report.summary.pending_revenue == Decimal("30.00")
    assert report.summary.pending_patient_owed == Decimal("30.00")
    assert [d.department for d in report.by_department] == ["consultation", "lab"]


async def test_claim_payment_releases_hmo_portion(session, factory):
    _, _, encounter = await _nhia_encounter(factory)
    line = await factory.line(encounter, await factory.charge(ChargeCategory.DRUGS, nhia="20"), quantity=3)
    await receipts_service.collect_for_charges(session, encounter.id, [line.id], PaymentMethod.INSURANCE)
    claim = await claims_service.generate_claim(session, encounter.id)

    before = await service.revenue_report(session)
    await claims_service.set_claim_status(session, claim.id, ClaimStatus.PAID, strict=False)
    after = await service.revenue_report(session)

    assert before.summary.recognised_revenue == Decimal("6.00")
    assert before.summary.pending_hmo_amount == Decimal("54.00")
    assert after.summary.recognised_revenue == Decimal("60.00")
    assert after.summary.pending_hmo_amount == Decimal("0.00")
    assert after.by_department[0].department == "pharmacy"


async def test_claim_paid_before_line_was_added(session, factory):
    _, _, encounter = await _nhia_encounter(factory)
    line = await factory.line(encounter, await factory.charge(ChargeCategory.DRUGS, nhia="20"), quantity=3)
    await receipts_service.collect_for_charges(session, encounter.id, [line.id], PaymentMethod.INSURANCE)
    response = await claims_service.generate_claim(session, encounter.id)
    await claims_service.set_claim_status(session, response.id, ClaimStatus.PAID, strict=False)

    claim = await session.get(Claim, response.id)
    claim.paid_date = line.created_at - timedelta(days=1)
    await session.commit()

    report = await service.revenue_report(session)

    assert report.summary.recognised_revenue == Decimal("6.00")
    assert report.summary.pending_hmo_amount == Decimal("54.00")


async def test_report_filters(session, factory):
    hmo, _, insured = await _nhia_encounter(factory)
    walk_in = await factory.encounter(await factory.patient())
    await factory.line(insured, await factory.charge(ChargeCategory.LAB, nhia="35"))
    await factory.line(walk_in, await factory.charge(ChargeCategory.RADIOLOGY, base="200"))
    old = await factory.line(walk_in, await factory.charge(base="75"))
    old.created_at = datetime(2020, 1, 15, 9, 0, tzinfo=timezone.utc)
    await session.commit()

    by_hmo = await service.revenue_report(session, hmo_id=hmo.id)
    radiology = await service.revenue_report(session, department="radiology")
    recent = await service.revenue_report(session, start_date=datetime(2021, 1, 1).date())
    in_2020 = await service.revenue_report(
        session, start_date=datetime(2020, 1, 1).date(), end_date=datetime(2020, 12, 31).date()
    )

    assert by_hmo.summary.total_charges == 1
    assert by_hmo.summary.pending_hmo_owed == Decimal("35.00")
    assert radiology.summary.total_billed == Decimal("200.00")
    assert recent.summary.total_charges == 2
    assert in_2020.summary.total_billed == Decimal("75.00")
    with pytest.raises(ValidationError):
        await service.revenue_report(session, status="refunded")


async def test_service_revenue_groups_by_item(session, factory):
    patient = await factory.patient()
    encounter = await factory.encounter(patient)
    fbc = await factory.charge(ChargeCategory.LAB, base="30", name="FBC")
    paid = await factory.line(encounter, fbc, quantity=2)
    await factory.line(encounter, fbc)
    await factory.line(encounter, await factory.charge(ChargeCategory.LAB, base="15", name="Malaria RDT"))
    await receipts_service.collect_for_charges(session, encounter.id, [paid.id], PaymentMethod.CARD)

    report = await service.service_revenue(session, "lab")

    assert report.category == "lab"
    assert report.total_count == 3
    assert report.total_revenue == Decimal("60.00")
    assert report.total_paid == Decimal("60.00")
    assert report.total_pending == Decimal("45.00")
    fbc_row = report.services[0]
    assert fbc_row.service_name == "FBC"
    assert fbc_row.count == 2
    assert fbc_row.quantity == 3
    with pytest.raises(ValidationError):
        await service.service_revenue(session, "cardiology")


async def test_dashboard_stats(session, factory):
    await factory.user()
    patient = await factory.patient()
    encounter = await factory.encounter(patient)
    paid = await factory.line(encounter, await factory.charge(base="40"))
    await factory.line(encounter, await factory.charge(base="25"))
    await receipts_service.collect_for_charges(session, encounter.id, [paid.id], PaymentMethod.CASH)

    stats = await service.dashboard_stats(session)

    assert stats.encounters.total == 1
    assert stats.encounters.today == 1
    assert stats.revenue.today == Decimal("40.00")
    assert stats.revenue.all_time == Decimal("40.00")
    assert stats.total_users == 1
    assert stats.total_receipts == 1
    assert stats.total_charges == 2
    assert stats.active_encounters == 1
    assert stats.pending_payments.count == 1
    assert stats.pending_payments.patient_owed == Decimal("25.00")
