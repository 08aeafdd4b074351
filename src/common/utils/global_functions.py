# common/utils/global_functions.py
from datetime import date, datetime, time, timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional, Tuple

from fastapi import HTTPException

from src.common.exceptions import BillingError

CENT = Decimal("0.01")


def to_money(value) -> Decimal:
    """Coerce a number to a two-decimal Decimal."""
    if value is None:
        return Decimal("0.00")
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def to_http_exception(error: BillingError) -> HTTPException:
    """Translate a service error into the HTTPException a route raises."""
    detail = {"message": error.message}
    if error.context:
        detail.update(error.context)
    return HTTPException(status_code=error.status_code, detail=detail)


def resolve_date_range(
    start_date: Optional[date],
    end_date: Optional[date],
) -> Tuple[datetime, datetime]:
    """
    Turn optional report dates into an inclusive UTC datetime window.

    A missing start means the epoch, a missing end means today; the end
    date is stretched to the last microsecond of its day.
    """
    start = datetime.combine(start_date, time.min, tzinfo=timezone.utc) if start_date else datetime(1970, 1, 1, tzinfo=timezone.utc)
    end_day = end_date or utcnow().date()
    end = datetime.combine(end_day, time.max, tzinfo=timezone.utc)
    return start, end


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to naive timestamps; SQLite hands them back without tzinfo."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value
