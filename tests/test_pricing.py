from decimal import Decimal

import pytest

from src.models.models import ChargeCategory, ProviderTier
from src.modules.charges.pricing import (
    FeeSchedule, quote, rescale_split, resolve_price, split_portions
)


def fees(standard="0", retainership="0", nhia="0", kschma="0", base="0"):
    return FeeSchedule(
        standard_fee=Decimal(standard),
        retainership_fee=Decimal(retainership),
        nhia_fee=Decimal(nhia),
        kschma_fee=Decimal(kschma),
        base_price=Decimal(base),
    )


def test_zero_tier_fee_falls_back_to_base_price():
    price = resolve_price(fees(standard="0", base="50"), ProviderTier.STANDARD, ChargeCategory.CONSULTATION, 2)

    assert price.unit_price == Decimal("50.00")
    assert price.total_amount == Decimal("100.00")
    assert price.patient_portion == Decimal("100.00")
    assert price.hmo_portion == Decimal("0.00")


def test_nhia_drugs_patient_pays_ten_percent():
    price = resolve_price(fees(nhia="20", base="25"), ProviderTier.NHIA, ChargeCategory.DRUGS, 3)

    assert price.unit_price == Decimal("20.00")
    assert price.total_amount == Decimal("60.00")
    assert price.patient_portion == Decimal("6.00")
    assert price.hmo_portion == Decimal("54.00")


def test_retainership_hmo_covers_everything():
    price = resolve_price(fees(retainership="40", base="60"), ProviderTier.RETAINERSHIP, ChargeCategory.CONSULTATION)

    assert price.unit_price == Decimal("40.00")
    assert price.total_amount == Decimal("40.00")
    assert price.patient_portion == Decimal("0.00")
    assert price.hmo_portion == Decimal("40.00")


def test_retainership_covers_drugs_too():
    split = split_portions(Decimal("80"), ProviderTier.RETAINERSHIP, ChargeCategory.DRUGS)
    assert split.patient_portion == Decimal("0.00")
    assert split.hmo_portion == Decimal("80.00")


@pytest.mark.parametrize("category", [
    ChargeCategory.CONSULTATION, ChargeCategory.LAB, ChargeCategory.RADIOLOGY,
    ChargeCategory.NURSING, ChargeCategory.OTHER,
])
def test_kschma_non_drug_lines_fully_covered(category):
    split = split_portions(Decimal("120"), ProviderTier.KSCHMA, category)
    assert split.patient_portion == Decimal("0.00")
    assert split.hmo_portion == Decimal("120.00")


def test_each_tier_uses_its_own_fee():
    schedule = fees(standard="10", retainership="20", nhia="30", kschma="40", base="99")
    assert schedule.fee_for(ProviderTier.STANDARD) == Decimal("10.00")
    assert schedule.fee_for(ProviderTier.RETAINERSHIP) == Decimal("20.00")
    assert schedule.fee_for(ProviderTier.NHIA) == Decimal("30.00")
    assert schedule.fee_for(ProviderTier.KSCHMA) == Decimal("40.00")


def test_copay_rounds_half_up():
    split = split_portions(Decimal("10.05"), ProviderTier.NHIA, ChargeCategory.DRUGS)
    assert split.patient_portion == Decimal("1.01")
    assert split.hmo_portion == Decimal("9.04")


def test_adhoc_price_uses_same_split_rules():
    price = quote(Decimal("15.50"), 2, ProviderTier.KSCHMA, ChargeCategory.DRUGS)
    assert price.total_amount == Decimal("31.00")
    assert price.patient_portion == Decimal("3.10")
    assert price.hmo_portion == Decimal("27.90")


@pytest.mark.parametrize("tier", list(ProviderTier))
@pytest.mark.parametrize("category", list(ChargeCategory))
@pytest.mark.parametrize("unit_price,quantity", [("0.01", 1), ("33.33", 3), ("1999.99", 7), ("0", 4)])
def test_portions_always_sum_to_total(tier, category, unit_price, quantity):
    price = quote(Decimal(unit_price), quantity, tier, category)
    assert price.patient_portion + price.hmo_portion == price.total_amount
    assert price.patient_portion >= 0
    assert price.hmo_portion >= 0


def test_rescale_keeps_ratio_and_sum():
    split = rescale_split(Decimal("6.00"), Decimal("54.00"), Decimal("60.00"), Decimal("100.00"))
    assert split.patient_portion == Decimal("10.00")
    assert split.hmo_portion == Decimal("90.00")


def test_rescale_from_zero_total():
    split = rescale_split(Decimal("0"), Decimal("0"), Decimal("0"), Decimal("30"))
    assert split.patient_portion == Decimal("30.00")
    assert split.hmo_portion == Decimal("0.00")
