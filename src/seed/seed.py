"""
Database seed script for the billing service
Populates database with a charge master, HMOs, patients and billed encounters
"""

import asyncio
import random
from decimal import Decimal

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.models.models import (
    User, UserRole, HMO, HMOCategory, HMOTransaction, Patient, ProviderTier,
    Encounter, EncounterType, Charge, ChargeCategory
)
from src.common.database.database import async_session, engine
from src.modules.charges.pricing import ChargeRef
from src.modules.claims import claims_service
from src.modules.encounter_charges import encounter_charges_service
from src.modules.receipts import receipts_service
from src.modules.receipts.schemas import PaymentMethod

CHARGE_MASTER = [
    # name, category, department, base, standard, retainership, nhia, kschma
    ("General Consultation", ChargeCategory.CONSULTATION, "Outpatient", "5000", "5000", "4500", "4000", "4000"),
    ("Specialist Consultation", ChargeCategory.CONSULTATION, "Outpatient", "10000", "10000", "9000", "0", "8000"),
    ("Full Blood Count", ChargeCategory.LAB, "Laboratory", "3500", "3500", "3000", "2500", "2500"),
    ("Malaria Parasite Test", ChargeCategory.LAB, "Laboratory", "1500", "0", "1500", "1200", "1200"),
    ("Chest X-Ray", ChargeCategory.RADIOLOGY, "Radiology", "8000", "8000", "7500", "6000", "6500"),
    ("Abdominal Ultrasound", ChargeCategory.RADIOLOGY, "Radiology", "12000", "12000", "11000", "10000", "10000"),
    ("Paracetamol 500mg (x10)", ChargeCategory.DRUGS, "Pharmacy", "500", "500", "450", "400", "400"),
    ("Amoxicillin 500mg (x21)", ChargeCategory.DRUGS, "Pharmacy", "2500", "2500", "2200", "2000", "2000"),
    ("Wound Dressing", ChargeCategory.NURSING, "Nursing", "2000", "2000", "1800", "1500", "1500"),
    ("Medical Report", ChargeCategory.OTHER, "Records", "3000", "3000", "3000", "3000", "3000"),
]

HMOS = [
    ("Hygeia HMO", "HYG", HMOCategory.PRIVATE),
    ("National Health Insurance Authority", "NHIA", HMOCategory.NHIA),
    ("Kano State Contributory Healthcare", "KSCHMA", HMOCategory.STATE_SCHEME),
    ("Corporate Retainership Pool", "CRP", HMOCategory.RETAINERSHIP),
]


class DatabaseSeeder:
    def __init__(self):
        self.cashier_id = None
        self.hmo_ids = {}
        self.charge_ids = []
        self.patients = []
        self.encounter_ids = []

    async def clear_database(self, session: AsyncSession):
        """Clear all tables in reverse order of dependencies"""
        print("🗑️  Clearing existing data...")

        tables_to_clear = [
            "claim_items",
            "claims",
            "receipt_validations",
            "encounter_charges",
            "receipts",
            "invoices",
            "encounters",
            "patients",
            "hmo_transactions",
            "hmos",
            "charges",
            "number_sequences",
            "users",
        ]

        for table in tables_to_clear:
            await session.execute(text(f"TRUNCATE TABLE {table} CASCADE"))
        await session.commit()
        print("✅ Database cleared successfully")

    async def seed_users(self, session: AsyncSession):
        print("👥 Seeding users...")
        staff = [
            ("admin@hospital.test", "Amina Bello", UserRole.ADMIN),
            ("cashier@hospital.test", "Chinedu Okafor", UserRole.CASHIER),
            ("doctor@hospital.test", "Dr. Fatima Yusuf", UserRole.DOCTOR),
            ("nurse@hospital.test", "Grace Adeyemi", UserRole.NURSE),
            ("pharmacy@hospital.test", "Ibrahim Musa", UserRole.PHARMACIST),
        ]
        for email, name, role in staff:
            user = User(email=email, name=name, role=role)
            session.add(user)
            await session.flush()
            if role == UserRole.CASHIER:
                self.cashier_id = user.id
        await session.commit()
        print(f"✅ Created {len(staff)} users")

    async def seed_hmos(self, session: AsyncSession):
        print("🏥 Seeding HMOs...")
        for name, code, category in HMOS:
            hmo = HMO(name=name, code=code, category=category)
            session.add(hmo)
            await session.flush()
            self.hmo_ids[category] = hmo.id

        # Opening retainership deposit
        session.add(HMOTransaction(
            hmo_id=self.hmo_ids[HMOCategory.RETAINERSHIP],
            amount=Decimal("500000"),
            description="Opening retainership deposit",
            reference="SEED-0001",
        ))
        await session.commit()
        print(f"✅ Created {len(HMOS)} HMOs")

    async def seed_charges(self, session: AsyncSession):
        print("💊 Seeding charge master...")
        for name, category, department, base, standard, retainership, nhia, kschma in CHARGE_MASTER:
            charge = Charge(
                name=name,
                type=category,
                department=department,
                base_price=Decimal(base),
                standard_fee=Decimal(standard),
                retainership_fee=Decimal(retainership),
                nhia_fee=Decimal(nhia),
                kschma_fee=Decimal(kschma),
            )
            session.add(charge)
            await session.flush()
            self.charge_ids.append(charge.id)
        await session.commit()
        print(f"✅ Created {len(self.charge_ids)} charges")

    async def seed_patients(self, session: AsyncSession):
        print("🧑 Seeding patients...")
        tiers = [
            (ProviderTier.STANDARD, None),
            (ProviderTier.RETAINERSHIP, HMOCategory.RETAINERSHIP),
            (ProviderTier.NHIA, HMOCategory.NHIA),
            (ProviderTier.KSCHMA, HMOCategory.STATE_SCHEME),
        ]
        for i in range(12):
            tier, hmo_category = tiers[i % len(tiers)]
            patient = Patient(
                mrn=f"MRN-{1000 + i}",
                name=f"Patient {i + 1}",
                provider=tier,
                hmo_id=self.hmo_ids.get(hmo_category),
                insurance_number=f"INS-{5000 + i}" if hmo_category else None,
                deposit_balance=Decimal(random.choice(["0", "20000", "50000"])),
            )
            session.add(patient)
            await session.flush()
            self.patients.append(patient)
        await session.commit()
        print(f"✅ Created {len(self.patients)} patients")

    async def seed_encounters(self, session: AsyncSession):
        """Bill each patient an encounter; settle most of them and claim the insured ones."""
        print("🩺 Seeding billed encounters...")
        claims = 0
        for patient in self.patients:
            encounter = Encounter(patient_id=patient.id, encounter_type=EncounterType.OUTPATIENT)
            session.add(encounter)
            await session.commit()
            self.encounter_ids.append(encounter.id)

            line_ids = []
            for charge_id in random.sample(self.charge_ids, 3):
                line = await encounter_charges_service.add_charge(
                    session, encounter.id, patient.id, ChargeRef(charge_id=charge_id),
                    quantity=random.randint(1, 2), added_by=self.cashier_id
                )
                line_ids.append(line.id)

            if random.random() < 0.8:
                method = {
                    ProviderTier.STANDARD: PaymentMethod.CASH,
                    ProviderTier.RETAINERSHIP: PaymentMethod.RETAINERSHIP,
                }.get(patient.provider, PaymentMethod.INSURANCE)
                await receipts_service.collect_for_charges(
                    session, encounter.id, line_ids, method, self.cashier_id
                )

            if patient.provider != ProviderTier.STANDARD:
                await claims_service.generate_claim(session, encounter.id)
                claims += 1

        print(f"✅ Created {len(self.encounter_ids)} encounters and {claims} claims")

    async def run_all(self, session: AsyncSession):
        """Run the full seeding pipeline in order."""
        await self.clear_database(session)
        await self.seed_users(session)
        await self.seed_hmos(session)
        await self.seed_charges(session)
        await self.seed_patients(session)
        await self.seed_encounters(session)
        print("🎉 Seeding complete!")

# --- Runner ---
async def main():
    seeder = DatabaseSeeder()

    async with async_session() as session:
        try:
            await seeder.run_all(session)
        except Exception as exc:
            print("❌ Error during seeding:", exc)
            await session.rollback()
            raise
        finally:
            await engine.dispose()

if __name__ == "__main__":
    asyncio.run(main())
