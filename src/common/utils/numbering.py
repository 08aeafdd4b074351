# src/common/utils/numbering.py
"""Collision-free document numbers for claims and receipts."""

import secrets
import time
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.dialects.postgresql import insert as postgresql_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

from src.common.config import settings
from src.common.exceptions import ConflictError
from src.common.utils.global_functions import utcnow
from src.common.utils.global_messages import GlobalMessages
from src.models.models import NumberSequence, Receipt


def _create_counter(session: AsyncSession, name: str):
    """INSERT of a zeroed counter that does nothing when the row already exists."""
    table = NumberSequence.__table__
    dialect = session.get_bind().dialect.name
    if dialect == "postgresql":
        stmt = postgresql_insert(table)
    elif dialect == "sqlite":
        stmt = sqlite_insert(table)
    else:
        raise NotImplementedError(f"Number sequences are not supported on {dialect}")
    return stmt.values(name=name, value=0).on_conflict_do_nothing(index_elements=[table.c.name])


async def _increment(session: AsyncSession, name: str) -> Optional[int]:
    table = NumberSequence.__table__
    result = await session.execute(
        update(table)
        .where(table.c.name == name)
        .values(value=table.c.value + 1)
        .returning(table.c.value)
    )
    return result.scalar_one_or_none()


async def next_sequence_value(session: AsyncSession, name: str) -> int:
    """
    Advance the named counter and return its new value.

    The increment is a single UPDATE ... RETURNING, so two transactions can
    never read the same value. On first use of a name the row is created
    with an insert that skips an existing row, so a concurrent first use
    falls through to the same increment instead of failing.
    """
    value = await _increment(session, name)
    if value is not None:
        return value

    await session.execute(_create_counter(session, name))
    return await _increment(session, name)


async def next_claim_number(session: AsyncSession) -> str:
    """Allocate CLM-{year}-{NNNN} from the year-scoped claim counter."""
    year = utcnow().year
    value = await next_sequence_value(session, f"claim-{year}")
    return f"{settings.CLAIM_NUMBER_PREFIX}-{year}-{value:04d}"


def _candidate_receipt_number() -> str:
    millis = str(int(time.time() * 1000))[-6:]
    suffix = 1000 + secrets.randbelow(9000)
    return f"{settings.RECEIPT_NUMBER_PREFIX}-{millis}-{suffix}"


async def next_receipt_number(session: AsyncSession) -> str:
    """
    Pick a receipt number not already taken.

    Candidates are checked against existing receipts and redrawn on a hit;
    the unique constraint on receipts.receipt_number still guards the insert.
    """
    for _ in range(settings.RECEIPT_NUMBER_ATTEMPTS):
        candidate = _candidate_receipt_number()
        taken = await session.scalar(
            select(Receipt.id).where(Receipt.receipt_number == candidate)
        )
        if taken is None:
            return candidate
    raise ConflictError(GlobalMessages.RECEIPT_NUMBER_EXHAUSTED)
