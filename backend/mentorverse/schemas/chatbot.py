# backend/mentorverse/schemas/chatbot.py

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from mentorverse.schemas.session import strip_and_reject_blank


class ChatMessage(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    # "user" is the mentee; anything else is rendered as the assistant
    role: str
    text: str

    @field_validator("role")
    @classmethod
    def validate_role(cls, v: str) -> str:
        return strip_and_reject_blank(v, "role")

    @field_validator("text")
    @classmethod
    def validate_text(cls, v: str) -> str:
        return strip_and_reject_blank(v, "text")


class ChatRequest(BaseModel):
    """[Request] POST /chatbot"""
    messages: List[ChatMessage] = Field(..., min_length=1)


class ChatReply(BaseModel):
    reply: str


class AssistantStatus(BaseModel):
    configured: bool
    model: Optional[str] = None
