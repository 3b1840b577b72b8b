# backend/mentorverse/schemas/doubt.py

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from mentorverse.models.doubt import MessageRole


def _strip_to_none(v):
    if v is None:
        return None
    if not isinstance(v, str):
        return v
    s = v.strip()
    return s or None


class DoubtCreate(BaseModel):
    """[Request] POST /doubts"""
    model_config = ConfigDict(str_strip_whitespace=True)

    title: str = Field(..., min_length=1, max_length=200)
    description: str = Field(..., min_length=1, max_length=5000)
    image_url: Optional[str] = None
    # display name; defaults to the token's name claim
    author_name: Optional[str] = Field(None, max_length=100)

    @field_validator("image_url", "author_name", mode="before")
    @classmethod
    def blank_to_none(cls, v):
        return _strip_to_none(v)


class DoubtMessageCreate(BaseModel):
    """[Request] POST /doubts/{doubt_id}/messages"""
    model_config = ConfigDict(str_strip_whitespace=True)

    text: str = Field(..., min_length=1, max_length=5000)
    role: MessageRole = MessageRole.USER
    author_name: Optional[str] = Field(None, max_length=100)

    @field_validator("author_name", mode="before")
    @classmethod
    def blank_to_none(cls, v):
        return _strip_to_none(v)


class DoubtMessageRead(BaseModel):
    author_id: Optional[str] = None
    author_name: str
    role: MessageRole
    text: str
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class DoubtRead(BaseModel):
    id: str
    title: str
    description: str
    author_id: str
    author_name: str
    participants: int
    image_url: Optional[str] = None
    messages: List[DoubtMessageRead]
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
