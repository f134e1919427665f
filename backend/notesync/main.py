# @TASK S0-T0.3 - FastAPI app entrypoint

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from notesync.config import get_settings
from notesync.database import engine
from notesync.services.device_locks import DeviceLockRegistry
from notesync.services.rate_limiter import SlidingWindowRateLimiter, client_ip
from notesync.utils.datetime_utils import utc_now
from notesync.utils.i18n import get_language
from notesync.utils.messages import msg

settings = get_settings()
logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage application lifespan: startup and shutdown events."""
    # Startup: create all database tables if they don't exist
    from notesync.database import Base
    from notesync import models  # noqa: F401 - Import models to register them with Base

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("NoteSync started (rate limit %d req / %ds)", settings.RATE_LIMIT_MAX_REQUESTS, settings.RATE_LIMIT_WINDOW_SECONDS)

    yield
    # Shutdown: dispose the async engine connection pool
    await engine.dispose()


app = FastAPI(
    title="NoteSync",
    description="Offline-first note synchronisation with conflict reporting",
    version="0.1.0",
    lifespan=lifespan,
)

# --- Per-process state (replaceable in tests) ---
app.state.rate_limiter = SlidingWindowRateLimiter(
    max_requests=settings.RATE_LIMIT_MAX_REQUESTS,
    window_seconds=settings.RATE_LIMIT_WINDOW_SECONDS,
)
app.state.device_locks = DeviceLockRegistry()


# --- Rate limiting ---
@app.middleware("http")
async def rate_limit_middleware(request: Request, call_next):
    """Reject callers that exceeded the sliding-window budget with 429."""
    limiter: SlidingWindowRateLimiter = request.app.state.rate_limiter
    ip = client_ip(request)
    decision = limiter.check(ip)
    if not decision.allowed:
        logger.warning("Rate limit exceeded for %s (retry after %ds)", ip, decision.retry_after)
        return JSONResponse(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            content={
                "error": msg("rate_limit.exceeded", get_language(request)),
                "retryAfter": decision.retry_after,
            },
            headers={"Retry-After": str(decision.retry_after)},
        )

    response = await call_next(request)
    response.headers["X-RateLimit-Limit"] = str(limiter.max_requests)
    response.headers["X-RateLimit-Remaining"] = str(decision.remaining)
    return response


# --- CORS Middleware ---
# Registered last, so it is outermost and 429 responses carry CORS headers.
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["Retry-After", "X-RateLimit-Limit", "X-RateLimit-Remaining"],
)


# Body validation failures are client errors; report them as 400 with the
# message the route family uses for malformed input.
_VALIDATION_MESSAGES: tuple[tuple[str, str], ...] = (
    ("/api/sync", "validation.invalid_sync_request"),
    ("/api/notes", "validation.missing_fields"),
    ("/api/share", "share.content_required"),
)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    key = "validation.invalid_request"
    for prefix, message_key in _VALIDATION_MESSAGES:
        if request.url.path.startswith(prefix):
            key = message_key
            break
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"error": msg(key, get_language(request)), "detail": jsonable_encoder(exc.errors())},
    )


# --- Router includes ---
from notesync.api.notes import router as notes_router  # noqa: E402
from notesync.api.share import router as share_router  # noqa: E402
from notesync.api.stats import router as stats_router  # noqa: E402
from notesync.api.sync import router as sync_router  # noqa: E402

app.include_router(notes_router, prefix="/api")
app.include_router(sync_router, prefix="/api")
app.include_router(share_router, prefix="/api")
app.include_router(stats_router, prefix="/api")


@app.get("/api/health", tags=["health"])
async def health_check() -> dict[str, str]:
    """Health check endpoint.

    Returns a simple status response to verify the API is running.
    """
    return {"status": "ok", "timestamp": utc_now().isoformat()}
