"""UTC day helpers for day-scoped keys and expiries."""

from datetime import datetime, timedelta, timezone
from typing import Optional


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def day_key(now: Optional[datetime] = None) -> str:
    """Return the UTC date of ``now`` as ``YYYY-MM-DD``."""
    now = now or utc_now()
    return now.astimezone(timezone.utc).date().isoformat()


def next_midnight(now: Optional[datetime] = None) -> datetime:
    now = (now or utc_now()).astimezone(timezone.utc)
    return datetime(now.year, now.month, now.day, tzinfo=timezone.utc) + timedelta(days=1)


def seconds_until_midnight(now: Optional[datetime] = None) -> int:
    """Whole seconds left until the next UTC midnight (at least 1)."""
    now = now or utc_now()
    return max(1, int((next_midnight(now) - now).total_seconds()))
