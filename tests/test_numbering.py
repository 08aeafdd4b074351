from sqlalchemy import insert, select

from src.common.utils import numbering
from src.common.utils.global_functions import utcnow
from src.models.models import HMOCategory, NumberSequence, ProviderTier
from src.modules.claims import claims_service


async def test_counter_starts_at_one_and_advances(session):
    assert await numbering.next_sequence_value(session, "claim-1999") == 1
    assert await numbering.next_sequence_value(session, "claim-1999") == 2
    assert await numbering.next_sequence_value(session, "claim-2000") == 1


async def test_first_use_tolerates_row_created_concurrently(session, factory, monkeypatch):
    patient = await factory.patient(ProviderTier.NHIA, await factory.hmo(HMOCategory.NHIA))
    encounter_id = (await factory.encounter(patient)).id
    name = f"claim-{utcnow().year}"
    real_increment = numbering._increment
    calls = []

    # Another generator creates the year's counter between our update and our insert
    async def increment_after_other_writer(session, counter):
        calls.append(counter)
        if len(calls) == 1:
            await session.execute(insert(NumberSequence.__table__).values(name=counter, value=4))
            return None
        return await real_increment(session, counter)

    monkeypatch.setattr(numbering, "_increment", increment_after_other_writer)

    claim = await claims_service.generate_claim(session, encounter_id)

    assert claim.claim_number.endswith("-0005")
    stored = await session.scalar(select(NumberSequence.value).where(NumberSequence.name == name))
    assert stored == 5
