# backend/mentorverse/models/profile.py

from datetime import datetime
from typing import Dict, List, Optional

from bson import ObjectId
from pydantic import BaseModel, ConfigDict, Field, field_validator

from mentorverse.models.session import PartyRole


class ProfileInDB(BaseModel):
    """
    A document of the 'profiles' collection.
    Mentor and mentee profiles share the collection and differ by `role`;
    only the fields the scheduler keeps up to date are modelled here.
    """
    id: str = Field(..., alias="_id")
    user_id: str
    role: PartyRole

    total_sessions: int = 0
    completed_sessions: int = 0
    cancelled_sessions: int = 0
    average_rating: Optional[float] = None
    total_reviews: int = 0

    # mentors only: "YYYY-MM-DD" -> ["9:00 AM", ...]
    availability: Dict[str, List[str]] = Field(default_factory=dict)

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
