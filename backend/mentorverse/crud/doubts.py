# backend/mentorverse/crud/doubts.py

import logging
from datetime import datetime, timezone
from typing import List, Optional

from bson import ObjectId
from bson.errors import InvalidId
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import DESCENDING, ReturnDocument
from pymongo.errors import PyMongoError

from mentorverse.core.exceptions import NotFoundError, StoreError, ValidationError
from mentorverse.models.doubt import DoubtInDB
from mentorverse.schemas.doubt import DoubtCreate, DoubtMessageCreate

logger = logging.getLogger(__name__)


def _safe_object_id(doubt_id: str) -> ObjectId:
    try:
        return ObjectId(doubt_id)
    except (InvalidId, TypeError):
        raise ValidationError.for_field("doubt_id", "Invalid doubt_id")


def _now() -> datetime:
    return datetime.now(timezone.utc)


def is_new_participant(doubt: DoubtInDB, user_id: str) -> bool:
    seen = {doubt.author_id} | {m.author_id for m in doubt.messages if m.author_id}
    return user_id not in seen


class DoubtStore:
    def __init__(self, db: AsyncIOMotorDatabase):
        self.col = db["doubts"]

    # READ ALL (newest first)
    async def list(self, limit: int = 50) -> List[DoubtInDB]:
        safe_limit = max(1, min(limit, 200))
        try:
            cursor = self.col.find({}).sort("created_at", DESCENDING).limit(safe_limit)
            docs = await cursor.to_list(length=safe_limit)
        except PyMongoError as e:
            logger.error("Doubt store failed to list doubts: %s", e)
            raise StoreError("Failed to list doubts") from e
        return [DoubtInDB(**d) for d in docs]

    # READ ONE
    async def get(self, doubt_id: str) -> Optional[DoubtInDB]:
        oid = _safe_object_id(doubt_id)
        try:
            doc = await self.col.find_one({"_id": oid})
        except PyMongoError as e:
            logger.error("Doubt store failed to load %s: %s", doubt_id, e)
            raise StoreError("Failed to load doubt") from e
        return DoubtInDB(**doc) if doc else None

    # CREATE
    async def create(self, author_id: str, author_name: str, data: DoubtCreate) -> DoubtInDB:
        doc = {
            "title": data.title,
            "description": data.description,
            "image_url": data.image_url,
            "author_id": author_id,
            "author_name": author_name,
            "participants": 1,
            "messages": [],
            "created_at": _now(),
        }
        try:
            res = await self.col.insert_one(doc)
            saved = await self.col.find_one({"_id": res.inserted_id})
        except PyMongoError as e:
            logger.error("Doubt store failed to create doubt: %s", e)
            raise StoreError("Failed to create doubt") from e
        if not saved:
            raise StoreError("Failed to create doubt")
        return DoubtInDB(**saved)

    # UPDATE (append a reply)
    async def add_message(
        self,
        doubt_id: str,
        author_id: str,
        author_name: str,
        data: DoubtMessageCreate,
    ) -> DoubtInDB:
        """
        Appends a message. The first message from a user who is neither the
        author nor an earlier replier bumps `participants`.
        """
        doubt = await self.get(doubt_id)
        if doubt is None:
            raise NotFoundError("Doubt not found")

        update = {
            "$push": {"messages": {
                "author_id": author_id,
                "author_name": author_name,
                "role": data.role.value,
                "text": data.text,
                "created_at": _now(),
            }},
        }
        if is_new_participant(doubt, author_id):
            update["$inc"] = {"participants": 1}

        try:
            updated = await self.col.find_one_and_update(
                {"_id": _safe_object_id(doubt_id)},
                update,
                return_document=ReturnDocument.AFTER,
            )
        except PyMongoError as e:
            logger.error("Doubt store failed to append to %s: %s", doubt_id, e)
            raise StoreError("Failed to add message") from e
        if updated is None:
            raise NotFoundError("Doubt not found")
        return DoubtInDB(**updated)
