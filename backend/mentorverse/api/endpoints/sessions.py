# backend/mentorverse/api/endpoints/sessions.py

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status

from mentorverse.api.deps import get_current_user_id, get_scheduler
from mentorverse.core import constants as C
from mentorverse.models.session import SessionStatus, SessionType
from mentorverse.schemas.session import (
    FeedbackCreate,
    FeedbackResponse,
    Pagination,
    SessionCancelRequest,
    SessionCancelResponse,
    SessionCreate,
    SessionPage,
    SessionRead,
    SessionRescheduleRequest,
    SessionStatusUpdate,
)
from mentorverse.services.scheduler import SessionScheduler

router = APIRouter(prefix="/sessions", tags=["Sessions"])


def _to_read(session) -> SessionRead:
    return SessionRead.model_validate(session)


# CREATE (book)
@router.post("", response_model=SessionRead, status_code=status.HTTP_201_CREATED)
async def book_session(
    payload: SessionCreate,
    user_id: str = Depends(get_current_user_id),
    scheduler: SessionScheduler = Depends(get_scheduler),
):
    session = await scheduler.book_session(
        owner_id=user_id,
        counterparty_id=payload.counterparty_id,
        scheduled_start=payload.scheduled_start,
        duration_minutes=payload.duration_minutes,
        details=payload.details(),
    )
    return _to_read(session)


# READ ALL (filters + pagination)
@router.get("", response_model=SessionPage)
async def list_sessions(
    status_filter: Optional[SessionStatus] = Query(None, alias="status"),
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    counterparty_id: Optional[str] = None,
    session_type: Optional[SessionType] = None,
    search: Optional[str] = None,
    sort_by: str = "scheduled_start",
    sort_order: str = "desc",
    page: int = 1,
    limit: int = C.DEFAULT_PAGE_SIZE,
    user_id: str = Depends(get_current_user_id),
    scheduler: SessionScheduler = Depends(get_scheduler),
):
    result = await scheduler.list_sessions(
        user_id,
        status=status_filter,
        start_date=start_date,
        end_date=end_date,
        counterparty_id=counterparty_id,
        session_type=session_type,
        search=search,
        sort_by=sort_by,
        sort_order=sort_order,
        page=page,
        limit=limit,
    )
    return SessionPage(
        items=[_to_read(s) for s in result["items"]],
        pagination=Pagination(**result["pagination"]),
        filters=result["filters"],
    )


@router.get("/upcoming", response_model=List[SessionRead])
async def read_upcoming_sessions(
    limit: int = Query(C.DEFAULT_PAGE_SIZE, ge=1, le=C.MAX_PAGE_SIZE),
    user_id: str = Depends(get_current_user_id),
    scheduler: SessionScheduler = Depends(get_scheduler),
):
    return [_to_read(s) for s in await scheduler.upcoming_sessions(user_id, limit)]


@router.get("/past", response_model=List[SessionRead])
async def read_past_sessions(
    limit: int = Query(C.DEFAULT_PAGE_SIZE, ge=1, le=C.MAX_PAGE_SIZE),
    user_id: str = Depends(get_current_user_id),
    scheduler: SessionScheduler = Depends(get_scheduler),
):
    return [_to_read(s) for s in await scheduler.past_sessions(user_id, limit)]


# READ ONE
@router.get("/{session_id}", response_model=SessionRead)
async def read_session(
    session_id: str,
    user_id: str = Depends(get_current_user_id),
    scheduler: SessionScheduler = Depends(get_scheduler),
):
    return _to_read(await scheduler.get_session(session_id, user_id))


@router.post("/{session_id}/cancel", response_model=SessionCancelResponse)
async def cancel_session(
    session_id: str,
    payload: Optional[SessionCancelRequest] = None,
    user_id: str = Depends(get_current_user_id),
    scheduler: SessionScheduler = Depends(get_scheduler),
):
    reason = payload.reason if payload else None
    session, refund = await scheduler.cancel_session(session_id, user_id, reason)
    return SessionCancelResponse(session=_to_read(session), refund_amount=refund)


@router.post("/{session_id}/reschedule", response_model=SessionRead)
async def reschedule_session(
    session_id: str,
    payload: SessionRescheduleRequest,
    user_id: str = Depends(get_current_user_id),
    scheduler: SessionScheduler = Depends(get_scheduler),
):
    session = await scheduler.reschedule_session(
        session_id, user_id, payload.new_scheduled_start, payload.reason
    )
    return _to_read(session)


@router.patch("/{session_id}/status", response_model=SessionRead)
async def update_session_status(
    session_id: str,
    payload: SessionStatusUpdate,
    user_id: str = Depends(get_current_user_id),
    scheduler: SessionScheduler = Depends(get_scheduler),
):
    return _to_read(await scheduler.update_status(session_id, user_id, payload.status))


@router.post("/{session_id}/feedback", response_model=FeedbackResponse)
async def add_session_feedback(
    session_id: str,
    payload: FeedbackCreate,
    user_id: str = Depends(get_current_user_id),
    scheduler: SessionScheduler = Depends(get_scheduler),
):
    feedback = await scheduler.add_feedback(
        session_id,
        user_id,
        rating=payload.rating,
        review=payload.review,
        skills_improved=payload.skills_improved,
        goals_achieved=payload.goals_achieved,
        would_recommend=payload.would_recommend,
    )
    return FeedbackResponse(feedback=feedback)
