# backend/mentorverse/db/mongo.py

import logging
from typing import Optional

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase

from mentorverse.core.config import Settings

logger = logging.getLogger(__name__)


class MongoHandle:
    """
    One client, one database. Built at startup, kept on `app.state.mongo`
    and handed to the stores through dependencies.
    """

    def __init__(self, uri: str, db_name: str, timeout_ms: int = 5000):
        self.uri = uri
        self.db_name = db_name
        self.timeout_ms = timeout_ms
        self.client: Optional[AsyncIOMotorClient] = None
        self._db: Optional[AsyncIOMotorDatabase] = None

    def connect(self) -> None:
        # tz_aware: datetimes come back as UTC-aware, same as we write them
        self.client = AsyncIOMotorClient(
            self.uri,
            tz_aware=True,
            serverSelectionTimeoutMS=self.timeout_ms,
        )
        self._db = self.client[self.db_name]
        logger.info("MongoDB client created for database '%s'", self.db_name)

    @property
    def db(self) -> AsyncIOMotorDatabase:
        if self._db is None:
            raise RuntimeError("MongoDB not initialized. Did you call connect_to_mongo()?")
        return self._db

    async def ping(self) -> None:
        await self.db.command("ping")

    def close(self) -> None:
        if self.client is not None:
            self.client.close()
            logger.info("MongoDB connection closed")
        self.client = None
        self._db = None


async def connect_to_mongo(settings: Settings) -> MongoHandle:
    handle = MongoHandle(settings.MONGO_URI, settings.MONGO_DB_NAME, settings.MONGO_TIMEOUT_MS)
    handle.connect()
    return handle


async def close_mongo_connection(handle: Optional[MongoHandle]) -> None:
    if handle is not None:
        handle.close()
