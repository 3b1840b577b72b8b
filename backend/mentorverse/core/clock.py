# backend/mentorverse/core/clock.py

from datetime import datetime, timezone
from typing import Optional


class SystemClock:
    """Source of "now" for the scheduler. Tests swap in a frozen clock."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


def ensure_aware_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """
    Naive datetimes are taken to be UTC; aware ones are converted to UTC.
    """
    if dt is None:
        return dt
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)
