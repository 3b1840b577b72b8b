# backend/tests/conftest.py
"""
In-memory stand-ins for the Mongo stores plus a frozen clock.

The fakes implement the same async methods the scheduler and routers call
on the real stores, with the same filtering rules, so the services run
unmodified against them.
"""

import asyncio
import copy
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

import pytest
from bson import ObjectId
from fastapi.testclient import TestClient

from mentorverse.api import deps
from mentorverse.core.exceptions import NotFoundError, StoreError
from mentorverse.core.security import create_access_token
from mentorverse.crud import doubts as doubts_crud
from mentorverse.crud import sessions as sessions_crud
from mentorverse.main import app as fastapi_app
from mentorverse.models.doubt import DoubtInDB
from mentorverse.models.profile import ProfileInDB
from mentorverse.models.session import SessionInDB
from mentorverse.services import session_policy as policy
from mentorverse.services.assistant import MentorAssistant
from mentorverse.services.scheduler import SessionScheduler

# A Monday morning, so availability tests see a predictable week
NOW = datetime(2025, 3, 3, 9, 0, tzinfo=timezone.utc)

MENTEE_ID = "mentee-1"
MENTOR_ID = "mentor-1"
OTHER_ID = "stranger-1"


class FrozenClock:
    def __init__(self, now: datetime = NOW):
        self.current = now

    def now(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> None:
        self.current = self.current + timedelta(**kwargs)


def _matches(doc: Dict[str, Any], expected: Optional[Dict[str, Any]]) -> bool:
    """Equality on (possibly dotted) keys, like a Mongo filter."""
    for key, value in (expected or {}).items():
        current: Any = doc
        for part in key.split("."):
            current = current.get(part) if isinstance(current, dict) else None
        if current != value:
            return False
    return True


class FakeSessionStore:
    def __init__(self):
        self.docs: Dict[str, Dict[str, Any]] = {}
        self.writes = 0
        # lets concurrent requests interleave between their read and their write
        self.yield_on_get = False

    def _load(self, doc: Dict[str, Any]) -> SessionInDB:
        return SessionInDB(**copy.deepcopy(doc))

    async def ensure_indexes(self) -> None:
        return None

    async def get(self, session_id: str) -> Optional[SessionInDB]:
        oid = sessions_crud._safe_object_id(session_id)
        doc = self.docs.get(str(oid))
        session = self._load(doc) if doc else None
        if self.yield_on_get:
            await asyncio.sleep(0)
        return session

    async def insert(self, doc: Dict[str, Any]) -> SessionInDB:
        stored = copy.deepcopy(doc)
        stored["_id"] = str(ObjectId())
        self.docs[stored["_id"]] = stored
        self.writes += 1
        return self._load(stored)

    async def update_by_id(self, session_id, patch, expected=None) -> Optional[SessionInDB]:
        doc = self.docs.get(str(session_id))
        if doc is None or not _matches(doc, expected):
            return None
        doc.update(copy.deepcopy(patch))
        self.writes += 1
        return self._load(doc)

    async def find_conflicts(self, owner_id, start, end, exclude_id=None) -> List[SessionInDB]:
        found = []
        for doc in self.docs.values():
            if doc["owner_id"] != owner_id or doc["_id"] == exclude_id:
                continue
            if not policy.is_calendar_blocking(doc["status"]):
                continue
            if policy.intervals_overlap(doc["scheduled_start"], doc["scheduled_end"], start, end):
                found.append(self._load(doc))
        return sorted(found, key=lambda s: s.scheduled_start)

    def _participant_docs(self, user_id: str) -> List[Dict[str, Any]]:
        return [d for d in self.docs.values() if user_id in (d["owner_id"], d["counterparty_id"])]

    async def list_for_participant(self, user_id, filters, skip, limit):
        docs = self._participant_docs(user_id)
        if filters.status:
            docs = [d for d in docs if d["status"] == filters.status]
        if filters.counterparty_id:
            docs = [d for d in docs if d["counterparty_id"] == filters.counterparty_id]
        if filters.session_type:
            docs = [d for d in docs if d["session_type"] == filters.session_type]
        if filters.start_date is not None:
            docs = [d for d in docs if d["scheduled_start"] >= filters.start_date]
        if filters.end_date is not None:
            docs = [d for d in docs if d["scheduled_start"] <= filters.end_date]
        if filters.search:
            needle = filters.search.lower()
            docs = [
                d for d in docs
                if any(needle in (d.get(k) or "").lower() for k in ("title", "description", "counterparty_name"))
            ]
        docs.sort(key=lambda d: d[filters.sort_by], reverse=filters.sort_order == "desc")
        return [self._load(d) for d in docs[skip:skip + limit]], len(docs)

    async def upcoming(self, user_id, now, limit):
        docs = [
            d for d in self._participant_docs(user_id)
            if d["scheduled_start"] >= now and d["status"] in sessions_crud.UPCOMING_STATUSES
        ]
        docs.sort(key=lambda d: d["scheduled_start"])
        return [self._load(d) for d in docs[:limit]]

    async def past(self, user_id, limit):
        docs = [d for d in self._participant_docs(user_id) if d["status"] in sessions_crud.PAST_STATUSES]
        docs.sort(key=lambda d: d["scheduled_start"], reverse=True)
        return [self._load(d) for d in docs[:limit]]

    async def rating_stats(self, party_field, user_id, side):
        ratings, reviews = [], 0
        for d in self.docs.values():
            fb = d.get("feedback") or {}
            if d[party_field] != user_id or fb.get(f"{side}_rating") is None:
                continue
            ratings.append(fb[f"{side}_rating"])
            if fb.get(f"{side}_review"):
                reviews += 1
        if not ratings:
            return None, 0
        return round(sum(ratings) / len(ratings), 2), reviews


class FakeProfileStore:
    def __init__(self):
        self.profiles: Dict[tuple, Dict[str, Any]] = {}
        self.fail = False

    def _key(self, role, user_id):
        return (getattr(role, "value", role), user_id)

    def _profile(self, role, user_id) -> Dict[str, Any]:
        key = self._key(role, user_id)
        if key not in self.profiles:
            self.profiles[key] = {"_id": str(ObjectId()), "role": key[0], "user_id": user_id}
        return self.profiles[key]

    def seed(self, role, user_id, **fields) -> None:
        self._profile(role, user_id).update(fields)

    async def ensure_indexes(self) -> None:
        return None

    async def get(self, role, user_id) -> Optional[ProfileInDB]:
        doc = self.profiles.get(self._key(role, user_id))
        return ProfileInDB(**doc) if doc else None

    async def increment(self, role, user_id, field, amount=1) -> None:
        if self.fail:
            raise StoreError(f"Failed to update {field}")
        profile = self._profile(role, user_id)
        profile[field] = profile.get(field, 0) + amount

    async def set_rating_stats(self, role, user_id, average_rating, total_reviews) -> None:
        if self.fail:
            raise StoreError("Failed to update rating statistics")
        self._profile(role, user_id).update(average_rating=average_rating, total_reviews=total_reviews)

    def counter(self, role, user_id, field) -> int:
        return self.profiles.get(self._key(role, user_id), {}).get(field, 0)


class FakeDoubtStore:
    def __init__(self, clock: FrozenClock):
        self.docs: Dict[str, Dict[str, Any]] = {}
        self.clock = clock

    async def list(self, limit=50):
        docs = sorted(self.docs.values(), key=lambda d: d["created_at"], reverse=True)
        return [DoubtInDB(**copy.deepcopy(d)) for d in docs[:limit]]

    async def get(self, doubt_id):
        oid = doubts_crud._safe_object_id(doubt_id)
        doc = self.docs.get(str(oid))
        return DoubtInDB(**copy.deepcopy(doc)) if doc else None

    async def create(self, author_id, author_name, data):
        doc = {
            "_id": str(ObjectId()),
            "title": data.title,
            "description": data.description,
            "image_url": data.image_url,
            "author_id": author_id,
            "author_name": author_name,
            "participants": 1,
            "messages": [],
            "created_at": self.clock.now(),
        }
        self.clock.advance(seconds=1)
        self.docs[doc["_id"]] = doc
        return DoubtInDB(**copy.deepcopy(doc))

    async def add_message(self, doubt_id, author_id, author_name, data):
        doubt = await self.get(doubt_id)
        if doubt is None:
            raise NotFoundError("Doubt not found")
        doc = self.docs[doubt.id]
        if doubts_crud.is_new_participant(doubt, author_id):
            doc["participants"] += 1
        doc["messages"].append({
            "author_id": author_id,
            "author_name": author_name,
            "role": data.role.value,
            "text": data.text,
            "created_at": self.clock.now(),
        })
        return DoubtInDB(**copy.deepcopy(doc))


class FakeMongo:
    def __init__(self, healthy: bool = True):
        self.healthy = healthy

    async def ping(self) -> None:
        if not self.healthy:
            raise RuntimeError("MongoDB not initialized. Did you call connect_to_mongo()?")


# --- fixtures ---

@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture
def session_store() -> FakeSessionStore:
    return FakeSessionStore()


@pytest.fixture
def profile_store() -> FakeProfileStore:
    return FakeProfileStore()


@pytest.fixture
def doubt_store(clock) -> FakeDoubtStore:
    return FakeDoubtStore(clock)


@pytest.fixture
def scheduler(session_store, profile_store, clock) -> SessionScheduler:
    return SessionScheduler(session_store, profile_store, clock)


@pytest.fixture
def mongo() -> FakeMongo:
    return FakeMongo()


@pytest.fixture
def app(session_store, profile_store, doubt_store, clock, mongo):
    fastapi_app.dependency_overrides[deps.get_session_store] = lambda: session_store
    fastapi_app.dependency_overrides[deps.get_profile_store] = lambda: profile_store
    fastapi_app.dependency_overrides[deps.get_doubt_store] = lambda: doubt_store
    fastapi_app.dependency_overrides[deps.get_clock] = lambda: clock
    fastapi_app.dependency_overrides[deps.get_mongo] = lambda: mongo
    fastapi_app.dependency_overrides[deps.get_assistant] = lambda: MentorAssistant(None, "gemini-test")
    yield fastapi_app
    fastapi_app.dependency_overrides.clear()


@pytest.fixture
def client(app) -> TestClient:
    # no context manager: the lifespan (real Mongo) is never started
    return TestClient(app)


def auth_headers(user_id: str, name: Optional[str] = None) -> Dict[str, str]:
    claims = {"name": name} if name else None
    return {"Authorization": f"Bearer {create_access_token(user_id, claims)}"}


@pytest.fixture
def mentee_headers() -> Dict[str, str]:
    return auth_headers(MENTEE_ID, "Mia Mentee")


@pytest.fixture
def mentor_headers() -> Dict[str, str]:
    return auth_headers(MENTOR_ID, "Max Mentor")


@pytest.fixture
def stranger_headers() -> Dict[str, str]:
    return auth_headers(OTHER_ID)
