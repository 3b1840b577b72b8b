# backend/mentorverse/crud/sessions.py

import logging
import re
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from bson import ObjectId
from bson.errors import InvalidId
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING, ReturnDocument
from pymongo.errors import PyMongoError

from mentorverse.core.exceptions import StoreError, ValidationError
from mentorverse.models.session import SessionInDB, SessionStatus
from mentorverse.schemas.session import SessionListFilters
from mentorverse.services.session_policy import CALENDAR_BLOCKING_STATUSES

logger = logging.getLogger(__name__)

UPCOMING_STATUSES = [
    SessionStatus.SCHEDULED.value,
    SessionStatus.CONFIRMED.value,
    SessionStatus.RESCHEDULED.value,
]
PAST_STATUSES = [
    SessionStatus.COMPLETED.value,
    SessionStatus.CANCELLED.value,
    SessionStatus.NO_SHOW.value,
]


@contextmanager
def _store_errors(action: str):
    """PyMongoError -> StoreError. The driver message stays in the server log."""
    try:
        yield
    except PyMongoError as e:
        logger.error("Session store failed to %s: %s", action, e)
        raise StoreError(f"Failed to {action}") from e


def _safe_object_id(session_id: str) -> ObjectId:
    if isinstance(session_id, ObjectId):
        return session_id
    try:
        return ObjectId(session_id.strip() if isinstance(session_id, str) else session_id)
    except (InvalidId, TypeError):
        raise ValidationError.for_field("session_id", "Invalid session_id")


def serialize_session(doc: Dict[str, Any]) -> SessionInDB:
    """
    Mongo document(dict) -> SessionInDB
    """
    return SessionInDB(**doc)


# --- query builders ---

def participant_query(user_id: str) -> Dict[str, Any]:
    return {"$or": [{"owner_id": user_id}, {"counterparty_id": user_id}]}


def update_filter(session_id: str, expected: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    query: Dict[str, Any] = {"_id": _safe_object_id(session_id)}
    if expected:
        query.update(expected)
    return query


def conflict_query(
    owner_id: str,
    start: datetime,
    end: datetime,
    exclude_id: Optional[str] = None,
) -> Dict[str, Any]:
    """
    The owner's calendar-blocking sessions whose [start, end) intersects
    the window. Strict bounds: a session ending at `start` is not a conflict.
    """
    query: Dict[str, Any] = {
        "owner_id": owner_id,
        "status": {"$in": [s.value for s in CALENDAR_BLOCKING_STATUSES]},
        "scheduled_start": {"$lt": end},
        "scheduled_end": {"$gt": start},
    }
    if exclude_id is not None:
        query["_id"] = {"$ne": _safe_object_id(exclude_id)}
    return query


def list_query(user_id: str, filters: SessionListFilters) -> Dict[str, Any]:
    clauses: List[Dict[str, Any]] = [participant_query(user_id)]

    if filters.status:
        clauses.append({"status": filters.status})
    if filters.counterparty_id:
        clauses.append({"counterparty_id": filters.counterparty_id})
    if filters.session_type:
        clauses.append({"session_type": filters.session_type})

    if filters.start_date is not None or filters.end_date is not None:
        window = {}
        if filters.start_date is not None:
            window["$gte"] = filters.start_date
        if filters.end_date is not None:
            window["$lte"] = filters.end_date
        clauses.append({"scheduled_start": window})

    if filters.search:
        pattern = {"$regex": re.escape(filters.search), "$options": "i"}
        clauses.append({"$or": [
            {"title": pattern},
            {"description": pattern},
            {"counterparty_name": pattern},
        ]})

    return clauses[0] if len(clauses) == 1 else {"$and": clauses}


def upcoming_query(user_id: str, now: datetime) -> Dict[str, Any]:
    return {
        **participant_query(user_id),
        "scheduled_start": {"$gte": now},
        "status": {"$in": UPCOMING_STATUSES},
    }


def past_query(user_id: str) -> Dict[str, Any]:
    return {**participant_query(user_id), "status": {"$in": PAST_STATUSES}}


def rating_query(party_field: str, user_id: str, side: str) -> Dict[str, Any]:
    return {party_field: user_id, f"feedback.{side}_rating": {"$exists": True, "$ne": None}}


def summarize_ratings(docs: List[Dict[str, Any]], side: str) -> Tuple[Optional[float], int]:
    """
    (average rating rounded to 2 places or None, number of written reviews)
    """
    ratings = [d["feedback"][f"{side}_rating"] for d in docs]
    reviews = [d for d in docs if d["feedback"].get(f"{side}_review")]
    if not ratings:
        return None, 0
    return round(sum(ratings) / len(ratings), 2), len(reviews)


class SessionStore:
    """
    The 'sessions' collection. This is the single source of truth: the
    scheduler re-reads through here on every call and keeps nothing.
    """

    def __init__(self, db: AsyncIOMotorDatabase):
        self.col = db["sessions"]

    async def ensure_indexes(self) -> None:
        with _store_errors("create session indexes"):
            await self.col.create_index([("owner_id", ASCENDING), ("scheduled_start", ASCENDING)])
            await self.col.create_index([("counterparty_id", ASCENDING), ("scheduled_start", ASCENDING)])
            await self.col.create_index([("status", ASCENDING)])

    # READ ONE
    async def get(self, session_id: str) -> Optional[SessionInDB]:
        oid = _safe_object_id(session_id)
        with _store_errors("load session"):
            doc = await self.col.find_one({"_id": oid})
        return serialize_session(doc) if doc else None

    # CREATE
    async def insert(self, doc: Dict[str, Any]) -> SessionInDB:
        with _store_errors("create session"):
            result = await self.col.insert_one(doc)
            created = await self.col.find_one({"_id": result.inserted_id})
        if not created:
            raise StoreError("Failed to create session")
        return serialize_session(created)

    # UPDATE
    async def update_by_id(
        self,
        session_id: str,
        patch: Dict[str, Any],
        expected: Optional[Dict[str, Any]] = None,
    ) -> Optional[SessionInDB]:
        """
        $set the given top-level fields and return the document after the write.
        `expected` pins fields to the values the caller read; when another
        request changed them first nothing is written and None comes back.
        """
        query = update_filter(session_id, expected)
        with _store_errors("update session"):
            updated = await self.col.find_one_and_update(
                query,
                {"$set": patch},
                return_document=ReturnDocument.AFTER,
            )
        return serialize_session(updated) if updated else None

    async def find_conflicts(
        self,
        owner_id: str,
        start: datetime,
        end: datetime,
        exclude_id: Optional[str] = None,
    ) -> List[SessionInDB]:
        query = conflict_query(owner_id, start, end, exclude_id)
        with _store_errors("check session conflicts"):
            cursor = self.col.find(query).sort("scheduled_start", ASCENDING)
            docs = await cursor.to_list(length=None)
        return [serialize_session(d) for d in docs]

    # READ MANY
    async def list_for_participant(
        self,
        user_id: str,
        filters: SessionListFilters,
        skip: int,
        limit: int,
    ) -> Tuple[List[SessionInDB], int]:
        query = list_query(user_id, filters)
        direction = ASCENDING if filters.sort_order == "asc" else DESCENDING

        with _store_errors("list sessions"):
            cursor = self.col.find(query).sort(filters.sort_by, direction).skip(skip).limit(limit)
            docs = await cursor.to_list(length=limit)
            total = await self.col.count_documents(query)
        return [serialize_session(d) for d in docs], total

    async def upcoming(self, user_id: str, now: datetime, limit: int) -> List[SessionInDB]:
        with _store_errors("list upcoming sessions"):
            cursor = self.col.find(upcoming_query(user_id, now)).sort("scheduled_start", ASCENDING).limit(limit)
            docs = await cursor.to_list(length=limit)
        return [serialize_session(d) for d in docs]

    async def past(self, user_id: str, limit: int) -> List[SessionInDB]:
        with _store_errors("list past sessions"):
            cursor = self.col.find(past_query(user_id)).sort("scheduled_start", DESCENDING).limit(limit)
            docs = await cursor.to_list(length=limit)
        return [serialize_session(d) for d in docs]

    async def rating_stats(self, party_field: str, user_id: str, side: str) -> Tuple[Optional[float], int]:
        """
        Average of `feedback.<side>_rating` over sessions where `party_field`
        is `user_id`, plus how many of them carry a written review.
        """
        projection = {f"feedback.{side}_rating": 1, f"feedback.{side}_review": 1}
        with _store_errors("aggregate ratings"):
            cursor = self.col.find(rating_query(party_field, user_id, side), projection)
            docs = await cursor.to_list(length=None)
        return summarize_ratings(docs, side)
