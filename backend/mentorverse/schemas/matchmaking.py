# backend/mentorverse/schemas/matchmaking.py

from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from mentorverse.schemas.session import strip_and_reject_blank


class MenteeMatchProfile(BaseModel):
    """
    The answers from the smart-match form. Each field is free text;
    entries may be separated by commas, '&', '/', newlines or "and".
    """
    current_skills: str
    desired_skills: str
    career_goals: str
    industry_interests: str

    @field_validator("current_skills", "desired_skills", "career_goals", "industry_interests")
    @classmethod
    def not_blank(cls, v: str, info) -> str:
        return strip_and_reject_blank(v, info.field_name)


class MentorCandidate(BaseModel):
    # unknown keys (id, avatar, rating, ...) are passed through to the response
    model_config = ConfigDict(extra="allow")

    name: str
    title: str
    company: str
    expertise: List[str] = Field(default_factory=list)
    availability: Dict[str, List[str]] = Field(default_factory=dict)
    bio: Optional[str] = None

    @field_validator("name", "title", "company")
    @classmethod
    def not_blank(cls, v: str, info) -> str:
        return strip_and_reject_blank(v, info.field_name)


class MatchRequest(BaseModel):
    """[Request] POST /matchmaking"""
    profile: MenteeMatchProfile
    mentors: List[MentorCandidate] = Field(..., min_length=1)


class MatchedMentor(MentorCandidate):
    match_reasoning: str


class MatchResponse(BaseModel):
    """[Response] at most four mentors, best match first"""
    mentors: List[MatchedMentor]
