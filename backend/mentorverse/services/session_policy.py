# backend/mentorverse/services/session_policy.py
"""
Pure scheduling rules: time arithmetic, overlap, refund tiers and the
eligibility checks for cancel / reschedule / status changes.

Nothing here touches the store or the clock; callers pass `now` in.
"""

from datetime import datetime, timedelta
from typing import Dict, Tuple, Union

from mentorverse.core import constants as C
from mentorverse.models.session import SessionStatus

StatusLike = Union[SessionStatus, str]

# Statuses that occupy the owner's calendar for conflict checks.
CALENDAR_BLOCKING_STATUSES: Tuple[SessionStatus, ...] = (
    SessionStatus.SCHEDULED,
    SessionStatus.CONFIRMED,
    SessionStatus.IN_PROGRESS,
    SessionStatus.RESCHEDULED,
)

CANCELLABLE_STATUSES: Tuple[SessionStatus, ...] = (SessionStatus.SCHEDULED,)

RESCHEDULABLE_STATUSES: Tuple[SessionStatus, ...] = (
    SessionStatus.SCHEDULED,
    SessionStatus.CONFIRMED,
    SessionStatus.RESCHEDULED,
)

# Workflow moves made through the status endpoint. cancelled/rescheduled
# are only reachable through their own operations.
ALLOWED_TRANSITIONS: Dict[SessionStatus, Tuple[SessionStatus, ...]] = {
    SessionStatus.SCHEDULED: (SessionStatus.CONFIRMED, SessionStatus.IN_PROGRESS, SessionStatus.NO_SHOW),
    SessionStatus.RESCHEDULED: (SessionStatus.CONFIRMED, SessionStatus.IN_PROGRESS, SessionStatus.NO_SHOW),
    SessionStatus.CONFIRMED: (SessionStatus.IN_PROGRESS, SessionStatus.NO_SHOW),
    SessionStatus.IN_PROGRESS: (SessionStatus.COMPLETED,),
}


def _as_status(status: StatusLike) -> SessionStatus:
    return status if isinstance(status, SessionStatus) else SessionStatus(status)


def scheduled_end_for(start: datetime, duration_minutes: int) -> datetime:
    return start + timedelta(minutes=duration_minutes)


def hours_until_start(now: datetime, start: datetime) -> float:
    """Negative once the session has started."""
    return (start - now).total_seconds() / 3600.0


def intervals_overlap(a_start: datetime, a_end: datetime, b_start: datetime, b_end: datetime) -> bool:
    """
    Half-open [start, end) overlap. Back-to-back intervals
    (a_end == b_start) do not overlap.
    """
    return a_start < b_end and a_end > b_start


def compute_refund(amount: float, hours: float) -> float:
    if hours < C.CANCELLATION_NOTICE_HOURS:
        return 0.0
    if hours < C.FULL_REFUND_NOTICE_HOURS:
        return round(amount * C.PARTIAL_REFUND_RATE, 2)
    return round(amount, 2)


def can_cancel(status: StatusLike, hours: float) -> bool:
    return _as_status(status) in CANCELLABLE_STATUSES and hours >= C.CANCELLATION_NOTICE_HOURS


def can_reschedule(status: StatusLike, hours: float, reschedule_count: int) -> bool:
    return (
        _as_status(status) in RESCHEDULABLE_STATUSES
        and hours >= C.RESCHEDULE_NOTICE_HOURS
        and reschedule_count < C.MAX_RESCHEDULES
    )


def can_transition(current: StatusLike, target: StatusLike) -> bool:
    return _as_status(target) in ALLOWED_TRANSITIONS.get(_as_status(current), ())


def is_calendar_blocking(status: StatusLike) -> bool:
    return _as_status(status) in CALENDAR_BLOCKING_STATUSES
