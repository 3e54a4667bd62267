from datetime import date, datetime, time, timedelta, timezone
from typing import Tuple


def utcnow() -> datetime:
    """Server-side 'now' as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def day_bounds(day: date) -> Tuple[datetime, datetime]:
    """
    Return the half-open UTC range [start, end) covering a calendar day.

    Used by list endpoints that filter records by the day they happened on.
    """
    start = datetime.combine(day, time.min, tzinfo=timezone.utc)
    return start, start + timedelta(days=1)
