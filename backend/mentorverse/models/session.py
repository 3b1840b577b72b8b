# backend/mentorverse/models/session.py

from datetime import datetime
from enum import Enum
from typing import List, Optional

from bson import ObjectId
from pydantic import BaseModel, ConfigDict, Field, field_validator


class SessionStatus(str, Enum):
    SCHEDULED = "scheduled"
    CONFIRMED = "confirmed"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no-show"
    RESCHEDULED = "rescheduled"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    REFUNDED = "refunded"
    FAILED = "failed"


class Currency(str, Enum):
    USD = "USD"
    EUR = "EUR"
    GBP = "GBP"
    INR = "INR"
    CAD = "CAD"
    AUD = "AUD"


class SessionType(str, Enum):
    ONE_ON_ONE = "one-on-one"
    GROUP = "group"
    WORKSHOP = "workshop"
    CODE_REVIEW = "code-review"
    CAREER_GUIDANCE = "career-guidance"
    MOCK_INTERVIEW = "mock-interview"


class SessionCategory(str, Enum):
    TECHNICAL = "technical"
    CAREER = "career"
    PERSONAL_DEVELOPMENT = "personal-development"
    INTERVIEW_PREP = "interview-prep"
    PROJECT_REVIEW = "project-review"
    GENERAL = "general"


class PartyRole(str, Enum):
    """The booking party is always the mentee, the counterparty the mentor."""
    MENTEE = "mentee"
    MENTOR = "mentor"


class Payment(BaseModel):
    amount: float = Field(0.0, ge=0)
    currency: Currency = Currency.USD
    status: PaymentStatus = PaymentStatus.PENDING
    refunded_at: Optional[datetime] = None

    model_config = ConfigDict(use_enum_values=True)


class Cancellation(BaseModel):
    cancelled_by: str
    cancelled_by_role: PartyRole
    cancelled_at: datetime
    reason: str
    refund_amount: float = 0.0

    model_config = ConfigDict(use_enum_values=True)


class Rescheduling(BaseModel):
    rescheduled_by: Optional[str] = None
    rescheduled_at: Optional[datetime] = None
    previous_scheduled_start: Optional[datetime] = None
    previous_scheduled_end: Optional[datetime] = None
    reason: Optional[str] = None
    reschedule_count: int = 0


class SessionFeedback(BaseModel):
    # mentee_* is written by the booking party, mentor_* by the counterparty
    mentee_rating: Optional[int] = Field(None, ge=1, le=5)
    mentee_review: Optional[str] = None
    mentor_rating: Optional[int] = Field(None, ge=1, le=5)
    mentor_review: Optional[str] = None
    skills_improved: List[str] = Field(default_factory=list)
    goals_achieved: List[str] = Field(default_factory=list)
    would_recommend: Optional[bool] = None
    submitted_at: Optional[datetime] = None


class SessionInDB(BaseModel):
    """
    A document of the 'sessions' collection.
    Sessions are never deleted; cancellation is a status change.
    """
    id: str = Field(..., alias="_id")
    owner_id: str
    counterparty_id: str
    counterparty_name: Optional[str] = None
    counterparty_email: Optional[str] = None

    title: str
    description: str

    scheduled_start: datetime
    scheduled_end: datetime
    duration_minutes: int
    timezone: str = "UTC"
    actual_start: Optional[datetime] = None
    actual_end: Optional[datetime] = None

    status: SessionStatus = SessionStatus.SCHEDULED
    session_type: SessionType = SessionType.ONE_ON_ONE
    category: SessionCategory = SessionCategory.GENERAL
    topics: List[str] = Field(default_factory=list)
    goals: List[str] = Field(default_factory=list)

    payment: Payment = Field(default_factory=Payment)
    cancellation: Optional[Cancellation] = None
    rescheduling: Rescheduling = Field(default_factory=Rescheduling)
    feedback: Optional[SessionFeedback] = None

    created_at: datetime
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(
        populate_by_name=True,
        from_attributes=True,
        use_enum_values=True,
    )

    @field_validator("id", mode="before")
    @classmethod
    def stringify_object_id(cls, v):
        if isinstance(v, ObjectId):
            return str(v)
        return v

    def is_participant(self, user_id: str) -> bool:
        return user_id in (self.owner_id, self.counterparty_id)

    def role_of(self, user_id: str) -> PartyRole:
        return PartyRole.MENTEE if user_id == self.owner_id else PartyRole.MENTOR
