"""
UTC helpers.

All persisted timestamps are UTC. SQLite hands back naive datetimes, so every
comparison against ``utc_now()`` goes through ``ensure_utc`` first.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to naive datetimes and convert aware ones to UTC."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def days_from_now(days: int, *, now: Optional[datetime] = None) -> datetime:
    return (now or utc_now()) + timedelta(days=days)


def is_past(dt: Optional[datetime], *, now: Optional[datetime] = None) -> bool:
    """True when ``dt`` is set and lies strictly before ``now``."""
    if dt is None:
        return False
    current = now or utc_now()
    return ensure_utc(dt) < current
