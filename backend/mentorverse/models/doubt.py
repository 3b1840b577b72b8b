# backend/mentorverse/models/doubt.py

from datetime import datetime
from enum import Enum
from typing import List, Optional

from bson import ObjectId
from pydantic import BaseModel, ConfigDict, Field, field_validator


class MessageRole(str, Enum):
    USER = "user"
    MODEL = "model"
    OTHER = "other"


class DoubtMessage(BaseModel):
    author_id: Optional[str] = None
    author_name: str
    role: MessageRole = MessageRole.USER
    text: str
    created_at: datetime

    model_config = ConfigDict(use_enum_values=True)


class DoubtInDB(BaseModel):
    """
    A document of the 'doubts' collection: a question thread any user can join.
    """
    id: str = Field(..., alias="_id")
    title: str
    description: str
    author_id: str
    author_name: str
    participants: int = Field(1, ge=1)
    image_url: Optional[str] = None
    messages: List[DoubtMessage] = Field(default_factory=list)
    created_at: datetime

    model_config = ConfigDict(populate_by_name=True, from_attributes=True)

    @field_validator("id", mode="before")
    @classmethod
    def stringify_object_id(cls, v):
        if isinstance(v, ObjectId):
            return str(v)
        return v
