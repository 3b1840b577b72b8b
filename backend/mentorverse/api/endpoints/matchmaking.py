# backend/mentorverse/api/endpoints/matchmaking.py

from fastapi import APIRouter

from mentorverse.schemas.matchmaking import MatchRequest, MatchResponse
from mentorverse.services.matchmaking import rank_mentors

router = APIRouter(prefix="/matchmaking", tags=["Matchmaking"])


@router.post("", response_model=MatchResponse)
async def match_mentors(payload: MatchRequest):
    """
    [Request] the mentee's smart-match answers + the mentors to rank
    [Response] up to 4 mentors, each with a short explanation of the match
    """
    return MatchResponse(mentors=rank_mentors(payload.profile, payload.mentors))
