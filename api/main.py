"""
api/main.py -- FastAPI application entry point for authgate.

Run with:  uvicorn asgi:app
           python main.py serve

Middleware stack (outermost to innermost; Starlette wraps the most recently
added middleware around the others):
  1. log_requests          -- one access-log line per request, including 429s
  2. SlowAPIMiddleware     -- enforces per-route rate limits from api.limiter
  3. TrustedHostMiddleware -- rejects requests with unexpected Host headers

Lifespan builds the service graph from Settings on startup and closes the
identity store on shutdown. There are no background tasks.

Error translation happens here and nowhere else: the ServiceError handler
turns every domain error into its status code and fixed plain-text message.
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import PlainTextResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from api.limiter import limiter
from api.models import HealthResponse
from api.routes.auth import router as auth_router
from api.routes.diagnostics import router as diagnostics_router
from api.routes.files import router as files_router
from auth.service import AuthService
from auth.sessions import SessionIssuer
from auth.store import IdentityRepository, InMemoryIdentityStore, SqlIdentityStore
from core.config import Settings, get_settings
from core.errors import ServiceError
from resources.gateway import ResourceGateway

VERSION = "0.1.0"

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("authgate.api")

# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


def build_identity_store(settings: Settings) -> IdentityRepository:
    if settings.identity_backend == "memory":
        return InMemoryIdentityStore()
    return SqlIdentityStore(settings.database_url)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Wire the service graph into app.state.

    One identity store instance backs registration, login, and session
    validation alike.
    """
    settings = get_settings()
    logger.info("authgate starting up")
    app.state.settings = settings
    app.state.identities = build_identity_store(settings)
    logger.info(
        "Identity store initialized (backend=%s, dialect=%s)",
        settings.identity_backend,
        settings.database_dialect if settings.identity_backend == "sql" else "-",
    )
    app.state.sessions = SessionIssuer(app.state.identities, ttl_seconds=settings.session_ttl_seconds)
    app.state.auth_service = AuthService(app.state.identities, app.state.sessions)
    app.state.gateway = ResourceGateway(settings.files_root)
    logger.info(
        "Services ready (session_ttl=%ss, diagnostics_enabled=%s)",
        settings.session_ttl_seconds,
        settings.diagnostics_enabled,
    )

    yield

    app.state.identities.close()
    logger.info("authgate shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="authgate",
    description="Registration, login, sessions, and confined file access.",
    version=VERSION,
    lifespan=lifespan,
    docs_url=None,
    redoc_url=None,
)

# ---------------------------------------------------------------------------
# Middleware stack
# ---------------------------------------------------------------------------

app.add_middleware(
    TrustedHostMiddleware,
    allowed_hosts=get_settings().allowed_hosts,
)

app.add_middleware(SlowAPIMiddleware)

# SlowAPI looks for app.state.limiter by convention.
app.state.limiter = limiter


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    ms = (time.perf_counter() - start) * 1000
    logger.info(
        "%s %s %d %.1fms %s",
        request.method,
        request.url.path,
        response.status_code,
        ms,
        request.client.host if request.client else "unknown",
    )
    return response


# ---------------------------------------------------------------------------
# Router registration
# ---------------------------------------------------------------------------

app.include_router(auth_router, tags=["Auth"])
app.include_router(files_router, tags=["Files"])
app.include_router(diagnostics_router, tags=["Diagnostics"])

# ---------------------------------------------------------------------------
# Exception handlers
# ---------------------------------------------------------------------------


@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError) -> PlainTextResponse:
    """Translate a domain error into its status and fixed public message.

    5xx errors are logged by class name. The chained cause stays out of the
    log line; it can carry filesystem paths or driver messages.
    """
    if exc.status_code >= 500:
        logger.error(
            "%s %s failed: %s (cause: %s)",
            request.method,
            request.url.path,
            type(exc).__name__,
            type(exc.__cause__).__name__ if exc.__cause__ else "none",
        )
    response = PlainTextResponse(exc.message, status_code=exc.status_code)
    if exc.status_code == 401:
        response.headers["Cache-Control"] = "no-store"
    return response


@app.exception_handler(RateLimitExceeded)
def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> PlainTextResponse:
    """Return 429 when a rate limit is exceeded, with Retry-After in seconds.

    Plain def: SlowAPIMiddleware calls this handler directly, without awaiting.
    """
    retry_after = int(getattr(exc, "retry_after", 60))
    response = PlainTextResponse("too many requests", status_code=429)
    response.headers["Retry-After"] = str(retry_after)
    return response


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> PlainTextResponse:
    return PlainTextResponse("invalid request", status_code=400)


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> PlainTextResponse:
    """Catch-all handler for unexpected server errors.

    The traceback goes to the server log only; the client gets a generic body.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return PlainTextResponse("internal error", status_code=500)


# ---------------------------------------------------------------------------
# Health endpoint
# ---------------------------------------------------------------------------


@app.get("/health", tags=["Health"])
def health(request: Request) -> HealthResponse:
    """Return liveness, version, and identity store reachability."""
    database = "ok" if request.app.state.identities.ping() else "error"
    return HealthResponse(version=VERSION, components={"app": "ok", "database": database})
