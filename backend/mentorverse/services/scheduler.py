# backend/mentorverse/services/scheduler.py
"""
Session lifecycle: booking with conflict detection, cancellation with
refund tiers, bounded rescheduling, workflow status changes and feedback.

Every operation re-reads the session through the store, runs all
validation / policy / conflict checks, and only then writes. A failed check
leaves the stored document untouched.

Concurrency: the conflict query and the insert are separate round-trips,
so two overlapping bookings racing for the same owner can both land
(last writer wins). This is accepted; nothing here pretends the pair is
atomic.

Cancel, reschedule and status changes are guarded: the update only
matches while the status (and, for reschedules, the reschedule count) is
still what the checks saw. The losing request of a race gets PolicyError
and bumps no counters.
"""

import logging
import math
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from mentorverse.core import constants as C
from mentorverse.core.clock import SystemClock, ensure_aware_utc
from mentorverse.core.exceptions import (
    ConflictError,
    NotFoundError,
    PolicyError,
    StoreError,
    ValidationError,
)
from mentorverse.models.session import (
    PartyRole,
    PaymentStatus,
    SessionFeedback,
    SessionInDB,
    SessionStatus,
)
from mentorverse.schemas.session import SessionDetails, SessionListFilters
from mentorverse.services import session_policy as policy

logger = logging.getLogger(__name__)


def _conflict_summary(session: SessionInDB) -> Dict[str, Any]:
    return {
        "id": session.id,
        "title": session.title,
        "scheduled_start": session.scheduled_start.isoformat(),
        "scheduled_end": session.scheduled_end.isoformat(),
    }


class SessionScheduler:
    def __init__(self, sessions, profiles=None, clock=None):
        self.sessions = sessions
        self.profiles = profiles
        self.clock = clock or SystemClock()

    # ------------------------------------------------------------------
    # booking
    # ------------------------------------------------------------------

    async def book_session(
        self,
        owner_id: str,
        counterparty_id: str,
        scheduled_start: datetime,
        duration_minutes: int,
        details: SessionDetails,
    ) -> SessionInDB:
        now = self.clock.now()
        start = ensure_aware_utc(scheduled_start)

        errors: List[Dict[str, str]] = []
        if not counterparty_id:
            errors.append({"field": "counterparty_id", "message": "Counterparty ID is required"})
        elif counterparty_id == owner_id:
            errors.append({"field": "counterparty_id", "message": "Cannot book a session with yourself"})
        if start is None or start <= now:
            errors.append({"field": "scheduled_start", "message": "Scheduled start time must be in the future"})
        if not C.MIN_DURATION_MINUTES <= duration_minutes <= C.MAX_DURATION_MINUTES:
            errors.append({
                "field": "duration_minutes",
                "message": f"Duration must be between {C.MIN_DURATION_MINUTES} and {C.MAX_DURATION_MINUTES} minutes",
            })
        if errors:
            raise ValidationError(errors=errors)

        end = policy.scheduled_end_for(start, duration_minutes)
        await self._raise_on_conflicts(owner_id, start, end, "Time slot conflicts with existing session")

        doc = {
            "owner_id": owner_id,
            "counterparty_id": counterparty_id,
            "counterparty_name": details.counterparty_name,
            "counterparty_email": str(details.counterparty_email).lower() if details.counterparty_email else None,
            "title": details.title,
            "description": details.description,
            "scheduled_start": start,
            "scheduled_end": end,
            "duration_minutes": duration_minutes,
            "timezone": details.timezone or "UTC",
            "actual_start": None,
            "actual_end": None,
            "status": SessionStatus.SCHEDULED.value,
            "session_type": details.session_type.value,
            "category": details.category.value,
            "topics": details.topics,
            "goals": details.goals,
            "payment": {
                "amount": details.amount,
                "currency": details.currency.value,
                "status": PaymentStatus.PENDING.value,
                "refunded_at": None,
            },
            "cancellation": None,
            "rescheduling": {"reschedule_count": 0},
            "feedback": None,
            "created_at": now,
            "updated_at": now,
        }
        session = await self.sessions.insert(doc)
        logger.info(
            "Session %s booked by %s with %s at %s (%d min)",
            session.id, owner_id, counterparty_id, start.isoformat(), duration_minutes,
        )

        await self._bump_counter(PartyRole.MENTEE, owner_id, "total_sessions", session.id)
        return session

    # ------------------------------------------------------------------
    # cancellation
    # ------------------------------------------------------------------

    async def cancel_session(
        self,
        session_id: str,
        requested_by: str,
        reason: Optional[str] = None,
    ) -> Tuple[SessionInDB, float]:
        session = await self._get_participant_session(session_id, requested_by)
        now = self.clock.now()
        hours = policy.hours_until_start(now, session.scheduled_start)

        if not policy.can_cancel(session.status, hours):
            if SessionStatus(session.status) not in policy.CANCELLABLE_STATUSES:
                raise PolicyError(f"Session cannot be cancelled while it is {session.status}")
            raise PolicyError(
                "Session cannot be cancelled. Must be cancelled at least "
                f"{C.CANCELLATION_NOTICE_HOURS} hours in advance."
            )

        refund = policy.compute_refund(session.payment.amount, hours)
        role = session.role_of(requested_by)

        payment = session.payment.model_dump()
        if refund > 0:
            payment["status"] = PaymentStatus.REFUNDED.value
            payment["refunded_at"] = now

        patch = {
            "status": SessionStatus.CANCELLED.value,
            "cancellation": {
                "cancelled_by": requested_by,
                "cancelled_by_role": role.value,
                "cancelled_at": now,
                "reason": reason or f"Cancelled by {role.value}",
                "refund_amount": refund,
            },
            "payment": payment,
            "updated_at": now,
        }
        updated = await self._write(session.id, patch, expected={"status": session.status})
        logger.info("Session %s cancelled by %s, refund %.2f", session.id, requested_by, refund)

        await self._bump_counter(PartyRole.MENTEE, session.owner_id, "cancelled_sessions", session.id)
        return updated, refund

    # ------------------------------------------------------------------
    # rescheduling
    # ------------------------------------------------------------------

    async def reschedule_session(
        self,
        session_id: str,
        requested_by: str,
        new_scheduled_start: datetime,
        reason: Optional[str] = None,
    ) -> SessionInDB:
        session = await self._get_participant_session(session_id, requested_by)
        now = self.clock.now()
        hours = policy.hours_until_start(now, session.scheduled_start)
        count = session.rescheduling.reschedule_count

        if not policy.can_reschedule(session.status, hours, count):
            if count >= C.MAX_RESCHEDULES:
                raise PolicyError(f"Session has already been rescheduled {C.MAX_RESCHEDULES} times")
            if SessionStatus(session.status) not in policy.RESCHEDULABLE_STATUSES:
                raise PolicyError(f"Session cannot be rescheduled while it is {session.status}")
            raise PolicyError(
                "Session cannot be rescheduled. Must be rescheduled at least "
                f"{C.RESCHEDULE_NOTICE_HOURS} hours in advance."
            )

        new_start = ensure_aware_utc(new_scheduled_start)
        if new_start is None or new_start <= now:
            raise ValidationError.for_field(
                "new_scheduled_start", "New scheduled start time must be in the future"
            )

        # duration is preserved across reschedules
        new_end = policy.scheduled_end_for(new_start, session.duration_minutes)
        await self._raise_on_conflicts(
            session.owner_id, new_start, new_end,
            "New time slot conflicts with existing session",
            exclude_id=session.id,
        )

        role = session.role_of(requested_by)
        patch = {
            "scheduled_start": new_start,
            "scheduled_end": new_end,
            "status": SessionStatus.RESCHEDULED.value,
            "rescheduling": {
                "rescheduled_by": requested_by,
                "rescheduled_at": now,
                "previous_scheduled_start": session.scheduled_start,
                "previous_scheduled_end": session.scheduled_end,
                "reason": reason or f"Rescheduled by {role.value}",
                "reschedule_count": count + 1,
            },
            "updated_at": now,
        }
        updated = await self._write(session.id, patch, expected={
            "status": session.status,
            "rescheduling.reschedule_count": count,
        })
        logger.info(
            "Session %s rescheduled by %s to %s (%d/%d)",
            session.id, requested_by, new_start.isoformat(), count + 1, C.MAX_RESCHEDULES,
        )
        return updated

    # ------------------------------------------------------------------
    # workflow status / feedback
    # ------------------------------------------------------------------

    async def update_status(self, session_id: str, requested_by: str, new_status) -> SessionInDB:
        session = await self._get_participant_session(session_id, requested_by)
        target = SessionStatus(new_status)

        if not policy.can_transition(session.status, target):
            raise PolicyError(f"Cannot change session status from {session.status} to {target.value}")

        now = self.clock.now()
        patch: Dict[str, Any] = {"status": target.value, "updated_at": now}
        if target == SessionStatus.IN_PROGRESS and session.actual_start is None:
            patch["actual_start"] = now
        if target == SessionStatus.COMPLETED and session.actual_end is None:
            patch["actual_end"] = now

        updated = await self._write(session.id, patch, expected={"status": session.status})
        logger.info("Session %s status %s -> %s by %s", session.id, session.status, target.value, requested_by)

        if target == SessionStatus.COMPLETED:
            await self._bump_counter(PartyRole.MENTEE, session.owner_id, "completed_sessions", session.id)
            await self._bump_counter(PartyRole.MENTOR, session.counterparty_id, "completed_sessions", session.id)
        return updated

    async def add_feedback(
        self,
        session_id: str,
        requested_by: str,
        rating: int,
        review: Optional[str] = None,
        skills_improved: Optional[List[str]] = None,
        goals_achieved: Optional[List[str]] = None,
        would_recommend: Optional[bool] = None,
    ) -> SessionFeedback:
        if not 1 <= rating <= 5:
            raise ValidationError.for_field("rating", "Rating must be between 1 and 5")

        session = await self._get_participant_session(session_id, requested_by)
        if session.status != SessionStatus.COMPLETED:
            raise PolicyError("Feedback can only be added to completed sessions")

        now = self.clock.now()
        feedback = (session.feedback or SessionFeedback()).model_dump()
        role = session.role_of(requested_by)

        if role == PartyRole.MENTEE:
            feedback["mentee_rating"] = rating
            if review is not None:
                feedback["mentee_review"] = review
            if skills_improved is not None:
                feedback["skills_improved"] = skills_improved
            if goals_achieved is not None:
                feedback["goals_achieved"] = goals_achieved
            if would_recommend is not None:
                feedback["would_recommend"] = would_recommend
        else:
            feedback["mentor_rating"] = rating
            if review is not None:
                feedback["mentor_review"] = review
        feedback["submitted_at"] = now

        updated = await self._write(session.id, {"feedback": feedback, "updated_at": now})

        # the mentee's rating is about the mentor, and the other way round
        if role == PartyRole.MENTEE:
            await self._refresh_rating(PartyRole.MENTOR, "counterparty_id", session.counterparty_id, "mentee")
        else:
            await self._refresh_rating(PartyRole.MENTEE, "owner_id", session.owner_id, "mentor")
        return updated.feedback

    # ------------------------------------------------------------------
    # reads
    # ------------------------------------------------------------------

    async def get_session(self, session_id: str, user_id: str) -> SessionInDB:
        return await self._get_participant_session(session_id, user_id)

    async def list_sessions(
        self,
        user_id: str,
        *,
        status=None,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        counterparty_id: Optional[str] = None,
        session_type=None,
        search: Optional[str] = None,
        sort_by: str = "scheduled_start",
        sort_order: str = "desc",
        page: int = 1,
        limit: int = C.DEFAULT_PAGE_SIZE,
    ) -> Dict[str, Any]:
        errors: List[Dict[str, str]] = []
        if page < 1:
            errors.append({"field": "page", "message": "page must be >= 1"})
        if not 1 <= limit <= C.MAX_PAGE_SIZE:
            errors.append({"field": "limit", "message": f"limit must be between 1 and {C.MAX_PAGE_SIZE}"})
        if sort_by not in C.SORTABLE_FIELDS:
            errors.append({"field": "sort_by", "message": f"sort_by must be one of {', '.join(C.SORTABLE_FIELDS)}"})
        if sort_order not in ("asc", "desc"):
            errors.append({"field": "sort_order", "message": "sort_order must be 'asc' or 'desc'"})

        start_date = ensure_aware_utc(start_date)
        end_date = ensure_aware_utc(end_date)
        if start_date is not None and end_date is not None and start_date > end_date:
            errors.append({"field": "start_date", "message": "start_date must not be after end_date"})
        if errors:
            raise ValidationError("Invalid filter", errors=errors)

        filters = SessionListFilters(
            status=status,
            counterparty_id=(counterparty_id or "").strip() or None,
            session_type=session_type,
            start_date=start_date,
            end_date=end_date,
            search=(search or "").strip() or None,
            sort_by=sort_by,
            sort_order=sort_order,
        )
        items, total = await self.sessions.list_for_participant(
            user_id, filters, skip=(page - 1) * limit, limit=limit
        )
        return {
            "items": items,
            "pagination": {
                "page": page,
                "limit": limit,
                "total": total,
                "pages": math.ceil(total / limit) if total else 0,
            },
            "filters": filters,
        }

    async def upcoming_sessions(self, user_id: str, limit: int = C.DEFAULT_PAGE_SIZE) -> List[SessionInDB]:
        return await self.sessions.upcoming(user_id, self.clock.now(), limit)

    async def past_sessions(self, user_id: str, limit: int = C.DEFAULT_PAGE_SIZE) -> List[SessionInDB]:
        return await self.sessions.past(user_id, limit)

    # ------------------------------------------------------------------
    # helpers
    # ------------------------------------------------------------------

    async def _get_participant_session(self, session_id: str, user_id: str) -> SessionInDB:
        session = await self.sessions.get(session_id)
        # a session someone else owns is reported exactly like a missing one
        if session is None or not session.is_participant(user_id):
            raise NotFoundError("Session not found")
        return session

    async def _raise_on_conflicts(
        self,
        owner_id: str,
        start: datetime,
        end: datetime,
        message: str,
        exclude_id: Optional[str] = None,
    ) -> None:
        conflicts = await self.sessions.find_conflicts(owner_id, start, end, exclude_id=exclude_id)
        if conflicts:
            logger.info("Rejected window %s-%s for %s: %d conflict(s)", start, end, owner_id, len(conflicts))
            raise ConflictError(message, conflicting_sessions=[_conflict_summary(s) for s in conflicts])

    async def _write(
        self,
        session_id: str,
        patch: Dict[str, Any],
        expected: Optional[Dict[str, Any]] = None,
    ) -> SessionInDB:
        """
        `expected` holds the fields the checks were run against. If a
        concurrent request changed them, this request loses and writes nothing.
        """
        updated = await self.sessions.update_by_id(session_id, patch, expected=expected)
        if updated is None and expected:
            raise PolicyError("Session was changed by another request. Reload it and try again.")
        if updated is None:
            raise NotFoundError("Session not found")
        return updated

    async def _bump_counter(self, role: PartyRole, user_id: str, field: str, session_id: str) -> None:
        """Best-effort: the session write already happened and stays."""
        if self.profiles is None:
            return
        try:
            await self.profiles.increment(role, user_id, field)
        except StoreError:
            logger.exception(
                "Profile counter %s for %s %s not updated after session %s was committed",
                field, role.value, user_id, session_id,
            )

    async def _refresh_rating(self, role: PartyRole, party_field: str, user_id: str, side: str) -> None:
        if self.profiles is None:
            return
        try:
            average, reviews = await self.sessions.rating_stats(party_field, user_id, side)
            await self.profiles.set_rating_stats(role, user_id, average, reviews)
        except StoreError:
            logger.exception("Rating statistics for %s %s not refreshed", role.value, user_id)
