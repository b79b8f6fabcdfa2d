"""Time helpers shared by the rule evaluators.

The store keeps naive UTC datetimes, so every threshold is computed in naive UTC.
"""

import math
from datetime import datetime, timedelta, timezone


def utcnow() -> datetime:
    """Current time as naive UTC."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def start_of_day(value: datetime) -> datetime:
    return value.replace(hour=0, minute=0, second=0, microsecond=0)


def whole_days_between(earlier: datetime, later: datetime) -> int:
    """Number of whole days elapsed from ``earlier`` to ``later`` (floor)."""
    return math.floor((later - earlier) / timedelta(days=1))


def days_until(target: datetime, now: datetime) -> int:
    """Days remaining until ``target``, rounded up."""
    return math.ceil((target - now) / timedelta(days=1))
