from fastapi import Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError

from mentorverse.core.clock import SystemClock
from mentorverse.core.config import settings
from mentorverse.core.security import decode_access_token
from mentorverse.crud.doubts import DoubtStore
from mentorverse.crud.profiles import ProfileStore
from mentorverse.crud.sessions import SessionStore
from mentorverse.db.mongo import MongoHandle
from mentorverse.services.assistant import MentorAssistant
from mentorverse.services.scheduler import SessionScheduler

# Tokens are issued by the identity service; this only shows the input box in the docs
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/login")

_credentials_exception = HTTPException(
    status_code=status.HTTP_401_UNAUTHORIZED,
    detail="Could not validate credentials",
    headers={"WWW-Authenticate": "Bearer"},
)


async def get_token_payload(token: str = Depends(oauth2_scheme)) -> dict:
    try:
        return decode_access_token(token)
    except JWTError:
        raise _credentials_exception


async def get_current_user_id(payload: dict = Depends(get_token_payload)) -> str:
    """
    Validates the JWT and returns the user id (sub).
    """
    user_id = payload.get("sub")
    if not user_id:
        raise _credentials_exception
    return user_id


async def get_current_user_name(payload: dict = Depends(get_token_payload)) -> str:
    return payload.get("name") or payload.get("sub") or "Anonymous"


# --- persistence ---

def get_mongo(request: Request) -> MongoHandle:
    return request.app.state.mongo


def get_session_store(mongo: MongoHandle = Depends(get_mongo)) -> SessionStore:
    return SessionStore(mongo.db)


def get_profile_store(mongo: MongoHandle = Depends(get_mongo)) -> ProfileStore:
    return ProfileStore(mongo.db)


def get_doubt_store(mongo: MongoHandle = Depends(get_mongo)) -> DoubtStore:
    return DoubtStore(mongo.db)


# --- services ---

def get_clock() -> SystemClock:
    return SystemClock()


def get_scheduler(
    sessions: SessionStore = Depends(get_session_store),
    profiles: ProfileStore = Depends(get_profile_store),
    clock: SystemClock = Depends(get_clock),
) -> SessionScheduler:
    return SessionScheduler(sessions, profiles, clock)


def get_assistant(request: Request) -> MentorAssistant:
    assistant = getattr(request.app.state, "assistant", None)
    if assistant is None:
        assistant = MentorAssistant(settings.GEMINI_API_KEY, settings.GEMINI_MODEL)
        request.app.state.assistant = assistant
    return assistant
