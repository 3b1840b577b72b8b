# backend/mentorverse/api/endpoints/mentors.py

from typing import Dict, List

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from mentorverse.api.deps import get_clock, get_current_user_id, get_profile_store
from mentorverse.core.clock import SystemClock
from mentorverse.crud.profiles import ProfileStore
from mentorverse.models.session import PartyRole
from mentorverse.utils.availability import generate_default_availability

router = APIRouter(prefix="/mentors", tags=["Mentors"])


class AvailabilityRead(BaseModel):
    mentor_id: str
    availability: Dict[str, List[str]]
    # True when no schedule was published and placeholder slots were produced
    generated: bool


@router.get("/{mentor_id}/availability", response_model=AvailabilityRead)
async def read_mentor_availability(
    mentor_id: str,
    _user_id: str = Depends(get_current_user_id),
    profiles: ProfileStore = Depends(get_profile_store),
    clock: SystemClock = Depends(get_clock),
):
    profile = await profiles.get(PartyRole.MENTOR, mentor_id)
    if profile is not None and profile.availability:
        return AvailabilityRead(mentor_id=mentor_id, availability=profile.availability, generated=False)

    availability = generate_default_availability(mentor_id, clock.now().date())
    return AvailabilityRead(mentor_id=mentor_id, availability=availability, generated=True)
