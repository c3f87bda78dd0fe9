"""
Time helpers shared by the ledger and membership services.

All business timestamps are naive UTC so that values read back from SQLite
and PostgreSQL compare the same way.
"""
from datetime import datetime, timedelta, timezone
from typing import Optional


def utcnow() -> datetime:
    """Current time as naive UTC."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def as_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Normalize an aware datetime to naive UTC; naive values pass through."""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def first_of_next_month(now: Optional[datetime] = None) -> datetime:
    """First instant (00:00:00) of the calendar month after ``now``."""
    now = as_naive_utc(now) or utcnow()
    if now.month == 12:
        return datetime(now.year + 1, 1, 1)
    return datetime(now.year, now.month + 1, 1)


def add_days(now: datetime, days: int) -> datetime:
    return now + timedelta(days=days)
