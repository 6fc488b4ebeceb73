import hmac
import logging
import traceback
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address
from sqlalchemy.exc import IntegrityError
from starlette.middleware.base import BaseHTTPMiddleware
from seatime.api.routes import router
from seatime.config import settings
from seatime.errors import (
    AlreadyResolved,
    EntryNotConfirmable,
    EntryNotFound,
    NoDataForVessel,
    ProviderTimeout,
    ProviderUnavailable,
    RateLimited,
    SeaTimeError,
    VesselBusy,
    VesselNotActive,
    VesselNotFound,
)

logging.basicConfig(level=settings.LOG_LEVEL)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create tables and, if enabled, run the polling scheduler in-process."""
    from seatime.database import init_db
    from seatime.modules.scheduler import SchedulerLoop

    init_db()
    scheduler = None
    if settings.SCHEDULER_ENABLED:
        scheduler = SchedulerLoop()
        scheduler.start()
    yield
    if scheduler is not None:
        scheduler.stop(timeout=30)


app = FastAPI(
    title="SeaTime Tracker",
    description=(
        "Sea service tracking from AIS movement history. Detected intervals "
        "are candidates for the mariner to confirm, not certified sea time."
    ),
    version="0.1.0",
    lifespan=lifespan,
)

# CORS - origins from settings (supports comma-separated env var)
cors_origins = [o.strip() for o in settings.CORS_ORIGINS.split(",") if o.strip()]
app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# API key authentication middleware
class APIKeyMiddleware(BaseHTTPMiddleware):
    """Simple API key check. If SEATIME_API_KEY is unset, all requests pass."""

    async def dispatch(self, request: Request, call_next):
        if settings.SEATIME_API_KEY is not None:
            # Allow health check and OpenAPI docs without auth
            if request.url.path not in ("/health", "/docs", "/openapi.json", "/redoc"):
                api_key = request.headers.get("X-API-Key")
                if not hmac.compare_digest(api_key or "", settings.SEATIME_API_KEY):
                    return JSONResponse(
                        status_code=401,
                        content={"error": "unauthorized", "detail": "Invalid or missing API key"},
                    )
        return await call_next(request)


app.add_middleware(APIKeyMiddleware)

# Rate limiting
limiter = Limiter(key_func=get_remote_address, default_limits=["60/minute"])
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

app.include_router(router, prefix="/api/v1")


# ── Structured error handlers ─────────────────────────────────────────────────

_STATUS_BY_ERROR: list[tuple[type, int]] = [
    (VesselNotFound, 404),
    (EntryNotFound, 404),
    (VesselNotActive, 409),
    (VesselBusy, 409),
    (AlreadyResolved, 409),
    (EntryNotConfirmable, 422),
    (RateLimited, 429),
    (NoDataForVessel, 404),
    (ProviderTimeout, 504),
    (ProviderUnavailable, 503),
]


@app.exception_handler(SeaTimeError)
async def seatime_error_handler(request: Request, exc: SeaTimeError):
    status_code = next((code for cls, code in _STATUS_BY_ERROR if isinstance(exc, cls)), 400)
    content = {"error": exc.code, "detail": str(exc)}
    headers = None
    if isinstance(exc, RateLimited) and exc.retry_after is not None:
        headers = {"Retry-After": str(int(exc.retry_after))}
        content["retry_after"] = exc.retry_after
    if isinstance(exc, EntryNotConfirmable):
        content["reasons"] = exc.reasons
    if status_code >= 500:
        logger.warning("%s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=status_code, content=content, headers=headers)


@app.exception_handler(ValueError)
async def value_error_handler(request: Request, exc: ValueError):
    return JSONResponse(status_code=422, content={"error": "validation_error", "detail": str(exc)})


@app.exception_handler(IntegrityError)
async def integrity_error_handler(request: Request, exc: IntegrityError):
    return JSONResponse(status_code=409, content={"error": "conflict", "detail": str(exc.orig) if exc.orig else str(exc)})


@app.exception_handler(Exception)
async def general_error_handler(request: Request, exc: Exception):
    logger.error("Unhandled exception on %s %s:\n%s", request.method, request.url.path, traceback.format_exc())
    return JSONResponse(status_code=500, content={"error": "internal_error", "detail": "An unexpected error occurred."})


@app.get("/health")
def health() -> dict:
    return {"status": "ok", "version": "0.1.0"}
