import asyncio
import logging
from datetime import timedelta

import pytest

from conftest import MENTEE_ID, MENTOR_ID, NOW, OTHER_ID
from mentorverse.core.exceptions import ConflictError, NotFoundError, PolicyError, ValidationError
from mentorverse.models.session import PartyRole, SessionStatus
from mentorverse.schemas.session import SessionDetails


def _details(**overrides) -> SessionDetails:
    data = {
        "title": "System design review",
        "description": "Walk through the caching layer of my side project.",
        "counterparty_name": "Max Mentor",
        "counterparty_email": "Max.Mentor@Example.com",
        "amount": 100.0,
        "topics": ["caching", " ", "redis"],
    }
    data.update(overrides)
    return SessionDetails(**data)


async def _book(scheduler, hours_ahead=72, duration=60, owner=MENTEE_ID, counterparty=MENTOR_ID, **details):
    return await scheduler.book_session(
        owner_id=owner,
        counterparty_id=counterparty,
        scheduled_start=NOW + timedelta(hours=hours_ahead),
        duration_minutes=duration,
        details=_details(**details),
    )


# --- booking ---

async def test_book_session_success(scheduler, profile_store):
    session = await _book(scheduler)

    assert session.status == SessionStatus.SCHEDULED
    assert session.scheduled_end - session.scheduled_start == timedelta(minutes=60)
    assert session.payment.status == "pending"
    assert session.rescheduling.reschedule_count == 0
    assert session.counterparty_email == "max.mentor@example.com"
    assert session.topics == ["caching", "redis"]
    assert profile_store.counter(PartyRole.MENTEE, MENTEE_ID, "total_sessions") == 1


async def test_overlapping_booking_is_rejected(scheduler, session_store):
    first = await _book(scheduler)

    with pytest.raises(ConflictError) as exc:
        await _book(scheduler, hours_ahead=72.5)

    assert [c["id"] for c in exc.value.conflicting_sessions] == [first.id]
    assert exc.value.details["conflicting_sessions"][0]["title"] == first.title
    assert len(session_store.docs) == 1


async def test_back_to_back_bookings_are_allowed(scheduler):
    await _book(scheduler, hours_ahead=72, duration=60)
    second = await _book(scheduler, hours_ahead=73, duration=30)
    assert second.status == SessionStatus.SCHEDULED


async def test_conflicts_are_scoped_to_the_owner(scheduler):
    await _book(scheduler)
    other = await _book(scheduler, owner=OTHER_ID)
    assert other.owner_id == OTHER_ID


async def test_cancelled_session_frees_the_slot(scheduler):
    first = await _book(scheduler)
    await scheduler.cancel_session(first.id, MENTEE_ID)

    again = await _book(scheduler)
    assert again.id != first.id


async def test_booking_validation_collects_all_field_errors(scheduler, session_store):
    with pytest.raises(ValidationError) as exc:
        await scheduler.book_session(
            owner_id=MENTEE_ID,
            counterparty_id=MENTEE_ID,
            scheduled_start=NOW - timedelta(hours=1),
            duration_minutes=10,
            details=_details(),
        )

    fields = {e["field"] for e in exc.value.errors}
    assert fields == {"counterparty_id", "scheduled_start", "duration_minutes"}
    assert session_store.writes == 0


@pytest.mark.parametrize("duration", [15, 480])
async def test_duration_bounds_are_inclusive(scheduler, duration):
    session = await _book(scheduler, duration=duration)
    assert session.duration_minutes == duration


async def test_naive_start_is_treated_as_utc(scheduler):
    session = await scheduler.book_session(
        owner_id=MENTEE_ID,
        counterparty_id=MENTOR_ID,
        scheduled_start=(NOW + timedelta(days=3)).replace(tzinfo=None),
        duration_minutes=45,
        details=_details(),
    )
    assert session.scheduled_start == NOW + timedelta(days=3)


async def test_counter_failure_does_not_undo_booking(scheduler, profile_store, session_store, caplog):
    profile_store.fail = True

    with caplog.at_level(logging.ERROR, logger="mentorverse.services.scheduler"):
        session = await _book(scheduler)

    assert session.id in session_store.docs
    assert any(session.id in r.getMessage() for r in caplog.records)


# --- cancellation ---

async def test_cancel_with_partial_refund(scheduler, clock, profile_store):
    session = await _book(scheduler, hours_ahead=72)
    clock.advance(hours=42)  # 30h before start

    updated, refund = await scheduler.cancel_session(session.id, MENTEE_ID)

    assert refund == 50.0
    assert updated.status == SessionStatus.CANCELLED
    assert updated.payment.status == "refunded"
    assert updated.payment.refunded_at == clock.now()
    assert updated.cancellation.refund_amount == 50.0
    assert updated.cancellation.cancelled_by == MENTEE_ID
    assert updated.cancellation.reason == "Cancelled by mentee"
    assert profile_store.counter(PartyRole.MENTEE, MENTEE_ID, "cancelled_sessions") == 1


async def test_cancel_with_full_refund_by_mentor(scheduler):
    session = await _book(scheduler, hours_ahead=72)

    updated, refund = await scheduler.cancel_session(session.id, MENTOR_ID, "Travelling")

    assert refund == 100.0
    assert updated.cancellation.cancelled_by_role == "mentor"
    assert updated.cancellation.reason == "Travelling"


async def test_free_session_cancel_keeps_payment_pending(scheduler):
    session = await _book(scheduler, amount=0)
    updated, refund = await scheduler.cancel_session(session.id, MENTEE_ID)
    assert refund == 0
    assert updated.payment.status == "pending"


async def test_late_cancel_is_rejected_without_changes(scheduler, clock, session_store):
    session = await _book(scheduler, hours_ahead=72)
    clock.advance(hours=62)  # 10h before start
    writes = session_store.writes

    with pytest.raises(PolicyError, match="24 hours"):
        await scheduler.cancel_session(session.id, MENTEE_ID)

    assert session_store.writes == writes
    assert (await scheduler.get_session(session.id, MENTEE_ID)).status == SessionStatus.SCHEDULED


async def test_cannot_cancel_twice(scheduler):
    session = await _book(scheduler)
    await scheduler.cancel_session(session.id, MENTEE_ID)
    with pytest.raises(PolicyError):
        await scheduler.cancel_session(session.id, MENTEE_ID)


async def test_cannot_cancel_confirmed_session(scheduler):
    session = await _book(scheduler)
    await scheduler.update_status(session.id, MENTOR_ID, "confirmed")
    with pytest.raises(PolicyError, match="confirmed"):
        await scheduler.cancel_session(session.id, MENTEE_ID)


async def test_outsider_sees_not_found(scheduler):
    session = await _book(scheduler)
    with pytest.raises(NotFoundError):
        await scheduler.cancel_session(session.id, OTHER_ID)
    with pytest.raises(NotFoundError):
        await scheduler.get_session(session.id, OTHER_ID)


async def test_malformed_id_is_a_validation_error(scheduler):
    with pytest.raises(ValidationError):
        await scheduler.get_session("not-an-object-id", MENTEE_ID)


# --- rescheduling ---

async def test_reschedule_three_times_then_policy_error(scheduler, session_store):
    session = await _book(scheduler, hours_ahead=100)

    for i in range(1, 4):
        session = await scheduler.reschedule_session(
            session.id, MENTEE_ID, NOW + timedelta(hours=100 + 24 * i)
        )
        assert session.status == SessionStatus.RESCHEDULED
        assert session.rescheduling.reschedule_count == i

    writes = session_store.writes
    with pytest.raises(PolicyError, match="3 times"):
        await scheduler.reschedule_session(session.id, MENTEE_ID, NOW + timedelta(days=30))

    assert session_store.writes == writes
    unchanged = await scheduler.get_session(session.id, MENTEE_ID)
    assert unchanged.scheduled_start == NOW + timedelta(hours=172)


async def test_reschedule_archives_previous_window_and_keeps_duration(scheduler):
    session = await _book(scheduler, hours_ahead=72, duration=90)

    moved = await scheduler.reschedule_session(
        session.id, MENTOR_ID, NOW + timedelta(hours=96), reason="Clash with standup"
    )

    assert moved.rescheduling.previous_scheduled_start == session.scheduled_start
    assert moved.rescheduling.previous_scheduled_end == session.scheduled_end
    assert moved.rescheduling.rescheduled_by == MENTOR_ID
    assert moved.rescheduling.reason == "Clash with standup"
    assert moved.scheduled_end - moved.scheduled_start == timedelta(minutes=90)


async def test_reschedule_needs_48_hours_notice(scheduler, clock):
    session = await _book(scheduler, hours_ahead=72)
    clock.advance(hours=30)  # 42h before start
    with pytest.raises(PolicyError, match="48 hours"):
        await scheduler.reschedule_session(session.id, MENTEE_ID, NOW + timedelta(days=10))


async def test_reschedule_into_the_past_is_a_validation_error(scheduler):
    session = await _book(scheduler, hours_ahead=72)
    with pytest.raises(ValidationError) as exc:
        await scheduler.reschedule_session(session.id, MENTEE_ID, NOW - timedelta(hours=1))
    assert exc.value.errors[0]["field"] == "new_scheduled_start"


async def test_reschedule_may_overlap_its_own_old_window(scheduler):
    session = await _book(scheduler, hours_ahead=72, duration=60)
    moved = await scheduler.reschedule_session(session.id, MENTEE_ID, NOW + timedelta(hours=72, minutes=30))
    assert moved.scheduled_start == NOW + timedelta(hours=72, minutes=30)


async def test_reschedule_onto_another_session_conflicts(scheduler):
    first = await _book(scheduler, hours_ahead=72)
    second = await _book(scheduler, hours_ahead=96)

    with pytest.raises(ConflictError) as exc:
        await scheduler.reschedule_session(second.id, MENTEE_ID, NOW + timedelta(hours=72, minutes=15))
    assert exc.value.conflicting_sessions[0]["id"] == first.id


async def test_cancelled_session_cannot_be_rescheduled(scheduler):
    session = await _book(scheduler)
    await scheduler.cancel_session(session.id, MENTEE_ID)
    with pytest.raises(PolicyError):
        await scheduler.reschedule_session(session.id, MENTEE_ID, NOW + timedelta(days=7))


# --- status workflow & feedback ---

async def test_status_workflow_stamps_actual_times(scheduler, clock, profile_store):
    session = await _book(scheduler)
    await scheduler.update_status(session.id, MENTOR_ID, "confirmed")

    clock.advance(hours=72)
    started = await scheduler.update_status(session.id, MENTOR_ID, SessionStatus.IN_PROGRESS)
    assert started.actual_start == clock.now()

    clock.advance(minutes=55)
    done = await scheduler.update_status(session.id, MENTEE_ID, "completed")
    assert done.status == SessionStatus.COMPLETED
    assert done.actual_end == clock.now()
    assert profile_store.counter(PartyRole.MENTEE, MENTEE_ID, "completed_sessions") == 1
    assert profile_store.counter(PartyRole.MENTOR, MENTOR_ID, "completed_sessions") == 1


async def test_invalid_transition_is_rejected(scheduler):
    session = await _book(scheduler)
    with pytest.raises(PolicyError):
        await scheduler.update_status(session.id, MENTOR_ID, "completed")
    with pytest.raises(PolicyError):
        await scheduler.update_status(session.id, MENTOR_ID, "cancelled")


async def _completed(scheduler):
    session = await _book(scheduler)
    await scheduler.update_status(session.id, MENTOR_ID, "in-progress")
    return await scheduler.update_status(session.id, MENTOR_ID, "completed")


async def test_feedback_requires_completed_session(scheduler):
    session = await _book(scheduler)
    with pytest.raises(PolicyError):
        await scheduler.add_feedback(session.id, MENTEE_ID, rating=5)


async def test_feedback_rating_bounds(scheduler):
    session = await _completed(scheduler)
    with pytest.raises(ValidationError):
        await scheduler.add_feedback(session.id, MENTEE_ID, rating=6)


async def test_feedback_from_both_sides_updates_profiles(scheduler, profile_store):
    session = await _completed(scheduler)

    fb = await scheduler.add_feedback(
        session.id, MENTEE_ID, rating=4, review="Very helpful", skills_improved=["caching"], would_recommend=True
    )
    assert fb.mentee_rating == 4
    assert fb.skills_improved == ["caching"]

    fb = await scheduler.add_feedback(session.id, MENTOR_ID, rating=5)
    assert fb.mentor_rating == 5
    assert fb.mentee_rating == 4

    mentor = await profile_store.get(PartyRole.MENTOR, MENTOR_ID)
    assert mentor.average_rating == 4.0
    assert mentor.total_reviews == 1
    mentee = await profile_store.get(PartyRole.MENTEE, MENTEE_ID)
    assert mentee.average_rating == 5.0
    assert mentee.total_reviews == 0


# --- reads ---

async def test_reads_are_idempotent(scheduler, session_store):
    session = await _book(scheduler)
    writes = session_store.writes

    first = await scheduler.get_session(session.id, MENTOR_ID)
    second = await scheduler.get_session(session.id, MENTOR_ID)

    assert first == second
    assert session_store.writes == writes


async def test_list_sessions_filters_and_paginates(scheduler):
    await _book(scheduler, hours_ahead=72, title="Resume review")
    await _book(scheduler, hours_ahead=96, title="Mock interview prep")
    cancelled = await _book(scheduler, hours_ahead=120, title="Career chat")
    await scheduler.cancel_session(cancelled.id, MENTEE_ID)

    page = await scheduler.list_sessions(MENTOR_ID, sort_order="asc", limit=2)
    assert page["pagination"] == {"page": 1, "limit": 2, "total": 3, "pages": 2}
    assert [s.title for s in page["items"]] == ["Resume review", "Mock interview prep"]

    only_cancelled = await scheduler.list_sessions(MENTEE_ID, status=SessionStatus.CANCELLED)
    assert [s.id for s in only_cancelled["items"]] == [cancelled.id]

    found = await scheduler.list_sessions(MENTEE_ID, search="MOCK")
    assert [s.title for s in found["items"]] == ["Mock interview prep"]

    assert (await scheduler.list_sessions(OTHER_ID))["pagination"]["total"] == 0


async def test_list_sessions_rejects_bad_filters(scheduler):
    with pytest.raises(ValidationError) as exc:
        await scheduler.list_sessions(
            MENTEE_ID,
            page=0,
            limit=500,
            sort_by="title",
            start_date=NOW + timedelta(days=2),
            end_date=NOW,
        )
    assert {e["field"] for e in exc.value.errors} == {"page", "limit", "sort_by", "start_date"}


async def test_upcoming_and_past(scheduler):
    soon = await _book(scheduler, hours_ahead=72)
    later = await _book(scheduler, hours_ahead=200)
    gone = await _book(scheduler, hours_ahead=300)
    await scheduler.cancel_session(gone.id, MENTEE_ID)

    upcoming = await scheduler.upcoming_sessions(MENTEE_ID)
    assert [s.id for s in upcoming] == [soon.id, later.id]

    past = await scheduler.past_sessions(MENTOR_ID)
    assert [s.id for s in past] == [gone.id]


# --- concurrent writers ---

async def test_cancel_racing_reschedule_keeps_one_outcome(scheduler, session_store):
    session = await _book(scheduler, hours_ahead=100)
    session_store.yield_on_get = True

    cancelled, rescheduled = await asyncio.gather(
        scheduler.cancel_session(session.id, MENTEE_ID),
        scheduler.reschedule_session(session.id, MENTOR_ID, NOW + timedelta(hours=300)),
        return_exceptions=True,
    )

    assert cancelled[1] == 100.0
    assert isinstance(rescheduled, PolicyError)
    final = await scheduler.get_session(session.id, MENTEE_ID)
    assert final.status == SessionStatus.CANCELLED
    assert final.scheduled_start == NOW + timedelta(hours=100)
    assert final.rescheduling.reschedule_count == 0


async def test_double_cancel_refunds_and_counts_once(scheduler, session_store, profile_store):
    session = await _book(scheduler, hours_ahead=100)
    session_store.yield_on_get = True

    results = await asyncio.gather(
        scheduler.cancel_session(session.id, MENTEE_ID),
        scheduler.cancel_session(session.id, MENTOR_ID),
        return_exceptions=True,
    )

    assert sum(isinstance(r, PolicyError) for r in results) == 1
    assert profile_store.counter(PartyRole.MENTEE, MENTEE_ID, "cancelled_sessions") == 1


async def test_concurrent_reschedules_cannot_exceed_the_cap(scheduler, session_store):
    session = await _book(scheduler, hours_ahead=100)
    for i in range(1, 3):
        await scheduler.reschedule_session(session.id, MENTEE_ID, NOW + timedelta(hours=100 + 24 * i))
    session_store.yield_on_get = True

    results = await asyncio.gather(
        scheduler.reschedule_session(session.id, MENTEE_ID, NOW + timedelta(days=20)),
        scheduler.reschedule_session(session.id, MENTOR_ID, NOW + timedelta(days=25)),
        return_exceptions=True,
    )

    assert sum(isinstance(r, PolicyError) for r in results) == 1
    final = await scheduler.get_session(session.id, MENTEE_ID)
    assert final.rescheduling.reschedule_count == 3
