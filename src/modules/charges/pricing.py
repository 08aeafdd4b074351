# src/modules/charges/pricing.py
"""
Tier pricing and patient/HMO cost split.

Given a fee schedule and a patient's provider tier, resolves the unit fee
and divides the line total between the patient and the insurer:

- Standard: patient pays everything
- Retainership: HMO covers everything, drugs included
- NHIA / KSCHMA: patient co-pays 10% on drugs, HMO covers the rest;
  HMO covers 100% of every other category

The HMO portion is always derived as total minus patient portion, so the
two portions sum to the total exactly.
"""

from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Union
from uuid import UUID

from src.common.utils.global_functions import CENT, to_money
from src.models.models import Charge, ChargeCategory, ProviderTier

ZERO = Decimal("0.00")
DRUG_COPAY_RATE = Decimal("0.10")

COPAY_TIERS = (ProviderTier.NHIA, ProviderTier.KSCHMA)


@dataclass(frozen=True)
class FeeSchedule:
    standard_fee: Decimal
    retainership_fee: Decimal
    nhia_fee: Decimal
    kschma_fee: Decimal
    base_price: Decimal

    @classmethod
    def from_charge(cls, charge: Charge) -> "FeeSchedule":
        return cls(
            standard_fee=to_money(charge.standard_fee),
            retainership_fee=to_money(charge.retainership_fee),
            nhia_fee=to_money(charge.nhia_fee),
            kschma_fee=to_money(charge.kschma_fee),
            base_price=to_money(charge.base_price),
        )

    def fee_for(self, tier: ProviderTier) -> Decimal:
        """Fee for the tier, falling back to the base price when it is zero."""
        fee = {
            ProviderTier.STANDARD: self.standard_fee,
            ProviderTier.RETAINERSHIP: self.retainership_fee,
            ProviderTier.NHIA: self.nhia_fee,
            ProviderTier.KSCHMA: self.kschma_fee,
        }[tier]
        if fee == ZERO:
            return self.base_price
        return fee


@dataclass(frozen=True)
class PortionSplit:
    patient_portion: Decimal
    hmo_portion: Decimal


@dataclass(frozen=True)
class PriceQuote:
    unit_price: Decimal
    total_amount: Decimal
    patient_portion: Decimal
    hmo_portion: Decimal


@dataclass(frozen=True)
class ChargeRef:
    """A line priced from the charge master."""
    charge_id: UUID


@dataclass(frozen=True)
class AdhocItem:
    """A line with no master charge; name, category and price are given directly."""
    name: str
    category: ChargeCategory
    unit_price: Decimal


PricedItem = Union[ChargeRef, AdhocItem]


def split_portions(
    total_amount: Decimal,
    tier: ProviderTier,
    category: ChargeCategory,
) -> PortionSplit:
    """Divide a line total between patient and HMO for the given tier."""
    total = to_money(total_amount)

    if tier == ProviderTier.RETAINERSHIP:
        patient = ZERO
    elif tier in COPAY_TIERS:
        if category == ChargeCategory.DRUGS:
            patient = (total * DRUG_COPAY_RATE).quantize(CENT, rounding=ROUND_HALF_UP)
        else:
            patient = ZERO
    else:
        patient = total

    return PortionSplit(patient_portion=patient, hmo_portion=total - patient)


def quote(
    unit_price: Decimal,
    quantity: int,
    tier: ProviderTier,
    category: ChargeCategory,
) -> PriceQuote:
    """Price `quantity` units at `unit_price` and split the total."""
    unit = to_money(unit_price)
    total = to_money(unit * quantity)
    split = split_portions(total, tier, category)
    return PriceQuote(
        unit_price=unit,
        total_amount=total,
        patient_portion=split.patient_portion,
        hmo_portion=split.hmo_portion,
    )


def resolve_price(
    fees: FeeSchedule,
    tier: ProviderTier,
    category: ChargeCategory,
    quantity: int = 1,
) -> PriceQuote:
    """Resolve a master charge's tier fee and quote it."""
    return quote(fees.fee_for(tier), quantity, tier, category)


def rescale_split(
    patient_portion: Decimal,
    hmo_portion: Decimal,
    old_total: Decimal,
    new_total: Decimal,
) -> PortionSplit:
    """
    Carry a stored split over to a new total without consulting tier rules.

    The patient share keeps its stored ratio of the old total; the HMO share
    is whatever remains.
    """
    new_total = to_money(new_total)
    old_total = to_money(old_total)
    patient_portion = to_money(patient_portion)

    if old_total == ZERO:
        patient = new_total if to_money(hmo_portion) == ZERO else ZERO
    else:
        patient = (patient_portion * new_total / old_total).quantize(CENT, rounding=ROUND_HALF_UP)

    return PortionSplit(patient_portion=patient, hmo_portion=new_total - patient)
