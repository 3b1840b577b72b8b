# main.py
import logging
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from mentorverse.api.endpoints import chatbot, doubts, health, matchmaking, mentors, sessions
from mentorverse.core.config import settings
from mentorverse.core.exceptions import DomainError, StoreError
from mentorverse.crud.profiles import ProfileStore
from mentorverse.crud.sessions import SessionStore
from mentorverse.db.mongo import close_mongo_connection, connect_to_mongo

load_dotenv()

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


# DB connection lifecycle
@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    app.state.mongo = await connect_to_mongo(settings)
    try:
        await SessionStore(app.state.mongo.db).ensure_indexes()
        await ProfileStore(app.state.mongo.db).ensure_indexes()
    except StoreError as e:
        # the API still serves; queries just run without the indexes
        logger.error("Index creation failed at startup: %s", e.message)
    logger.info("MentorVerse backend started in %s mode", settings.ENVIRONMENT)
    yield
    # Shutdown
    await close_mongo_connection(app.state.mongo)


app = FastAPI(title="MentorVerse Backend", lifespan=lifespan)

# --- middleware ---

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# --- error handling ---

@app.exception_handler(DomainError)
async def domain_error_handler(request: Request, exc: DomainError):
    http_exc = exc.to_http_exception()
    return JSONResponse(status_code=http_exc.status_code, content={"detail": http_exc.detail})


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = []
    for err in exc.errors():
        # drop the leading "body" / "query" / "path"
        loc = [str(part) for part in err.get("loc", ())[1:]]
        errors.append({"field": ".".join(loc) or "request", "message": err.get("msg", "Invalid value")})
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "detail": {
                "message": "Validation failed",
                "code": "ValidationError",
                "details": {"errors": errors},
            }
        },
    )


@app.get("/")
async def read_root():
    return {"message": "MentorVerse backend is running!"}


app.include_router(sessions.router)
app.include_router(doubts.router)
app.include_router(chatbot.router)
app.include_router(mentors.router)
app.include_router(matchmaking.router)
app.include_router(health.router)
