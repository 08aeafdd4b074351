import os

# Settings are read at import time; point them at a throwaway database first
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["JWT_SECRET"] = "test-secret"

import itertools
from decimal import Decimal

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from src.models.models import (
    Base, User, UserRole, HMO, HMOCategory, HMOTransaction, Patient, ProviderTier,
    Encounter, Charge, ChargeCategory, EncounterCharge
)
from src.modules.charges.pricing import ChargeRef
from src.modules.encounter_charges import encounter_charges_service

_counter = itertools.count(1)


@pytest_asyncio.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def session(engine):
    maker = sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with maker() as session:
        yield session


class Factory:
    """Builds committed rows for tests."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def _save(self, obj):
        self.session.add(obj)
        await self.session.commit()
        return obj

    async def user(self, role=UserRole.CASHIER) -> User:
        n = next(_counter)
        return await self._save(User(email=f"user{n}@hospital.test", name=f"User {n}", role=role))

    async def hmo(self, category=HMOCategory.PRIVATE, deposit=None) -> HMO:
        hmo = await self._save(HMO(name=f"HMO {next(_counter)}", category=category))
        if deposit is not None:
            await self._save(HMOTransaction(hmo_id=hmo.id, amount=Decimal(deposit)))
        return hmo

    async def patient(self, provider=ProviderTier.STANDARD, hmo=None, deposit="0") -> Patient:
        n = next(_counter)
        return await self._save(Patient(
            mrn=f"MRN-{n}",
            name=f"Patient {n}",
            provider=provider,
            hmo_id=hmo.id if hmo else None,
            deposit_balance=Decimal(deposit),
        ))

    async def encounter(self, patient) -> Encounter:
        return await self._save(Encounter(patient_id=patient.id))

    async def charge(
        self,
        category=ChargeCategory.CONSULTATION,
        base="50",
        standard="0",
        retainership="0",
        nhia="0",
        kschma="0",
        active=True,
        name=None,
    ) -> Charge:
        return await self._save(Charge(
            name=name or f"Service {next(_counter)}",
            type=category,
            department="General",
            base_price=Decimal(base),
            standard_fee=Decimal(standard),
            retainership_fee=Decimal(retainership),
            nhia_fee=Decimal(nhia),
            kschma_fee=Decimal(kschma),
            active=active,
        ))

    async def line(self, encounter, charge, quantity=1) -> EncounterCharge:
        """Add a ledger line through the service and return the stored row."""
        response = await encounter_charges_service.add_charge(
            self.session, encounter.id, encounter.patient_id, ChargeRef(charge_id=charge.id), quantity
        )
        return await self.session.get(EncounterCharge, response.id)


@pytest.fixture
def factory(session):
    return Factory(session)
