"""
Time helpers.

Timestamps are stored as naive UTC datetimes so that PostgreSQL
``timestamp without time zone`` and SQLite behave the same way.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional


def utcnow() -> datetime:
    """Current UTC time as a naive datetime."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Convert an aware datetime to naive UTC; naive values are assumed UTC."""
    if value is None:
        return None
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def days_ago(days: int, now: Optional[datetime] = None) -> datetime:
    return (now or utcnow()) - timedelta(days=days)


def start_of_day(value: datetime) -> datetime:
    return value.replace(hour=0, minute=0, second=0, microsecond=0)


def start_of_week(value: datetime) -> datetime:
    """Monday 00:00 of the ISO week containing ``value``."""
    return start_of_day(value) - timedelta(days=value.weekday())


def start_of_month(value: datetime) -> datetime:
    return start_of_day(value).replace(day=1)
