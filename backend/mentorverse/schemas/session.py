# backend/mentorverse/schemas/session.py

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from mentorverse.core import constants as C
from mentorverse.models.session import (
    Cancellation,
    Currency,
    Payment,
    Rescheduling,
    SessionCategory,
    SessionFeedback,
    SessionStatus,
    SessionType,
)


def strip_and_reject_blank(v: str, field_name: str) -> str:
    if v is None:
        return v
    if not isinstance(v, str):
        return v
    stripped = v.strip()
    if stripped == "":
        raise ValueError(f"{field_name} must not be blank")
    return stripped


def _clean_str_list(values: Optional[List[str]]) -> List[str]:
    """Drops blank entries from free-form tag lists (topics, goals, ...)."""
    if not values:
        return []
    return [s.strip() for s in values if isinstance(s, str) and s.strip()]


# --- Request schemas ---

class SessionDetails(BaseModel):
    """
    Descriptive part of a booking. Everything the scheduler does not need
    to decide on conflicts, but still has to validate and store.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    title: str = Field(..., min_length=C.TITLE_MIN_LENGTH, max_length=C.TITLE_MAX_LENGTH)
    description: str = Field(..., min_length=C.DESCRIPTION_MIN_LENGTH, max_length=C.DESCRIPTION_MAX_LENGTH)
    counterparty_name: Optional[str] = Field(None, min_length=2, max_length=100)
    counterparty_email: Optional[EmailStr] = None
    amount: float = Field(0.0, ge=0)
    currency: Currency = Currency.USD
    session_type: SessionType = SessionType.ONE_ON_ONE
    category: SessionCategory = SessionCategory.GENERAL
    topics: List[str] = Field(default_factory=list)
    goals: List[str] = Field(default_factory=list)
    timezone: str = "UTC"

    @field_validator("topics", "goals")
    @classmethod
    def clean_lists(cls, v):
        return _clean_str_list(v)


class SessionCreate(SessionDetails):
    """
    [Request] POST /sessions
    The booking party (owner) comes from the bearer token, not the body.
    """
    counterparty_id: str
    scheduled_start: datetime
    duration_minutes: int = Field(..., ge=C.MIN_DURATION_MINUTES, le=C.MAX_DURATION_MINUTES)

    @field_validator("counterparty_id")
    @classmethod
    def validate_counterparty_id(cls, v: str) -> str:
        return strip_and_reject_blank(v, "counterparty_id")

    def details(self) -> SessionDetails:
        return SessionDetails(**self.model_dump(include=set(SessionDetails.model_fields)))


class SessionCancelRequest(BaseModel):
    """[Request] POST /sessions/{session_id}/cancel"""
    model_config = ConfigDict(str_strip_whitespace=True)

    reason: Optional[str] = Field(None, max_length=C.REASON_MAX_LENGTH)


class SessionRescheduleRequest(BaseModel):
    """[Request] POST /sessions/{session_id}/reschedule"""
    model_config = ConfigDict(str_strip_whitespace=True)

    new_scheduled_start: datetime
    reason: Optional[str] = Field(None, max_length=C.REASON_MAX_LENGTH)


class SessionStatusUpdate(BaseModel):
    """[Request] PATCH /sessions/{session_id}/status"""
    status: SessionStatus


class FeedbackCreate(BaseModel):
    """
    [Request] POST /sessions/{session_id}/feedback
    The caller's side of the session decides whether this is the mentee's
    or the mentor's feedback.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    rating: int = Field(..., ge=1, le=5)
    review: Optional[str] = Field(None, max_length=C.REVIEW_MAX_LENGTH)
    skills_improved: Optional[List[str]] = None
    goals_achieved: Optional[List[str]] = None
    would_recommend: Optional[bool] = None


# --- Response schemas ---

class SessionRead(BaseModel):
    id: str
    owner_id: str
    counterparty_id: str
    counterparty_name: Optional[str] = None
    counterparty_email: Optional[str] = None
    title: str
    description: str
    scheduled_start: datetime
    scheduled_end: datetime
    duration_minutes: int
    timezone: str
    actual_start: Optional[datetime] = None
    actual_end: Optional[datetime] = None
    status: SessionStatus
    session_type: SessionType
    category: SessionCategory
    topics: List[str]
    goals: List[str]
    payment: Payment
    cancellation: Optional[Cancellation] = None
    rescheduling: Rescheduling
    feedback: Optional[SessionFeedback] = None
    created_at: datetime
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class SessionCancelResponse(BaseModel):
    message: str = "Session cancelled successfully"
    session: SessionRead
    refund_amount: float


class FeedbackResponse(BaseModel):
    message: str = "Feedback added successfully"
    feedback: SessionFeedback


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    pages: int


class SessionListFilters(BaseModel):
    """Echoed back with every page so the client can render active filters."""
    status: Optional[SessionStatus] = None
    counterparty_id: Optional[str] = None
    session_type: Optional[SessionType] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    search: Optional[str] = None
    sort_by: str = "scheduled_start"
    sort_order: str = "desc"

    model_config = ConfigDict(use_enum_values=True)


class SessionPage(BaseModel):
    items: List[SessionRead]
    pagination: Pagination
    filters: SessionListFilters
