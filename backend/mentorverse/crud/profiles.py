# backend/mentorverse/crud/profiles.py

import logging
from datetime import datetime, timezone
from typing import Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ASCENDING
from pymongo.errors import PyMongoError

from mentorverse.core.exceptions import StoreError
from mentorverse.models.profile import ProfileInDB
from mentorverse.models.session import PartyRole

logger = logging.getLogger(__name__)

COUNTER_FIELDS = ("total_sessions", "completed_sessions", "cancelled_sessions")


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _role_value(role) -> str:
    return role.value if isinstance(role, PartyRole) else str(role)


class ProfileStore:
    """
    Mentor and mentee profiles, one collection tagged by role.
    Only the running statistics the scheduler maintains are written here;
    the profile editor lives elsewhere.
    """

    def __init__(self, db: AsyncIOMotorDatabase):
        self.col = db["profiles"]

    async def ensure_indexes(self) -> None:
        try:
            await self.col.create_index([("role", ASCENDING), ("user_id", ASCENDING)], unique=True)
        except PyMongoError as e:
            logger.error("Profile store failed to create indexes: %s", e)
            raise StoreError("Failed to create profile indexes") from e

    async def get(self, role: PartyRole, user_id: str) -> Optional[ProfileInDB]:
        try:
            doc = await self.col.find_one({"role": _role_value(role), "user_id": user_id})
        except PyMongoError as e:
            logger.error("Profile store failed to load %s/%s: %s", _role_value(role), user_id, e)
            raise StoreError("Failed to load profile") from e
        return ProfileInDB(**doc) if doc else None

    async def increment(self, role: PartyRole, user_id: str, field: str, amount: int = 1) -> None:
        if field not in COUNTER_FIELDS:
            raise ValueError(f"Unknown profile counter: {field}")
        try:
            await self.col.update_one(
                {"role": _role_value(role), "user_id": user_id},
                {"$inc": {field: amount}, "$set": {"updated_at": _now()}},
                upsert=True,
            )
        except PyMongoError as e:
            logger.error("Profile store failed to increment %s for %s: %s", field, user_id, e)
            raise StoreError(f"Failed to update {field}") from e

    async def set_rating_stats(
        self,
        role: PartyRole,
        user_id: str,
        average_rating: Optional[float],
        total_reviews: int,
    ) -> None:
        try:
            await self.col.update_one(
                {"role": _role_value(role), "user_id": user_id},
                {"$set": {
                    "average_rating": average_rating,
                    "total_reviews": total_reviews,
                    "updated_at": _now(),
                }},
                upsert=True,
            )
        except PyMongoError as e:
            logger.error("Profile store failed to update ratings for %s: %s", user_id, e)
            raise StoreError("Failed to update rating statistics") from e
