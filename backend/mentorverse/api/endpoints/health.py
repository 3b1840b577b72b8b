# backend/mentorverse/api/endpoints/health.py

import logging

from fastapi import APIRouter, Depends
from pymongo.errors import PyMongoError

from mentorverse.api.deps import get_mongo
from mentorverse.core.config import settings
from mentorverse.db.mongo import MongoHandle

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])


@router.get("/health")
async def health_check(mongo: MongoHandle = Depends(get_mongo)):
    """
    Liveness plus a MongoDB ping, for load balancers and monitoring.
    """
    mongo_ok = False
    mongo_error = None

    try:
        await mongo.ping()
        mongo_ok = True
    except (PyMongoError, RuntimeError) as e:
        logger.warning("Health check: MongoDB ping failed: %s", e)
        mongo_error = str(e)

    return {
        "status": "ok" if mongo_ok else "degraded",
        "mongo": mongo_ok,
        # raw driver errors stay out of production responses
        "mongo_error": None if settings.is_production else mongo_error,
    }
