"""
api/main.py -- FastAPI application entry point for Cinebase.

Run with:      uvicorn asgi:app --reload

Middleware stack (outermost to innermost):
  1. TrustedHostMiddleware -- rejects requests with unexpected Host headers
  2. CORSMiddleware        -- adds CORS headers for allowed browser origins
  3. SlowAPIMiddleware     -- enforces per-route rate limits from api.limiter
  4. log_requests          -- method, path, status, latency per request
  5. attach_request_scope  -- the request identity filter (once per request)

Lifespan opens the three stores and the rating engine on startup and closes
them on shutdown. Stores live on app.state; per-request identity lives on
request.state and nowhere else.

Error mapping:
  Every CinebaseError subclass maps to one status code and the ErrorResponse
  envelope. Auth-related rejections carry only their category code and a
  fixed message. Anything else is logged server-side with a traceback and
  returned as a generic 500.
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from starlette.concurrency import run_in_threadpool
from starlette.middleware.base import BaseHTTPMiddleware

from api.limiter import limiter
from api.models import ErrorDetail, ErrorResponse, HealthResponse
from api.routes.v1.auth import router as auth_router
from api.routes.v1.movies import router as movies_router
from api.routes.v1.ratings import router as ratings_router
from auth.dependencies import resolve_request_scope
from auth.store import IdentityStore
from catalog.store import CatalogStore
from core.config import get_settings
from core.exceptions import (
    AuthFailure,
    CinebaseError,
    ConflictError,
    InsufficientRole,
    NotAuthenticated,
    NotFoundError,
    RegistrationError,
    PasswordTooLong,
    ScoreOutOfRange,
    StaleWriteError,
)
from ratings.engine import RatingEngine
from ratings.store import RatingStore

__version__ = "1.0.0"

_settings = get_settings()

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.DEBUG if _settings.debug else logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("cinebase.api")

# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Open stores on startup, close them on shutdown.

    All three stores share Settings.database_url. The rating engine needs
    both the rating store and the catalog (for movie existence checks).
    """
    logger.info("Cinebase API starting up")
    app.state.identity_store = IdentityStore()
    app.state.catalog = CatalogStore()
    app.state.rating_store = RatingStore()
    app.state.rating_engine = RatingEngine(app.state.rating_store, app.state.catalog)
    logger.info("Stores initialized (identities=%d)", app.state.identity_store.count())

    yield

    app.state.rating_store.close()
    app.state.catalog.close()
    app.state.identity_store.close()
    logger.info("Cinebase API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="Cinebase API",
    description="Movie catalog with member ratings and role-based write access.",
    version=__version__,
    lifespan=lifespan,
)


# ---------------------------------------------------------------------------
# Request identity filter
#
# Runs exactly once per inbound request, before routing. The store lookup is
# blocking I/O, so it goes to the thread pool rather than the event loop.
# Route dependencies read request.state.scope; nothing else stores identity.
# ---------------------------------------------------------------------------


async def attach_request_scope(request: Request, call_next):
    store: IdentityStore = request.app.state.identity_store
    request.state.scope = await run_in_threadpool(
        resolve_request_scope, request.headers.get("Authorization"), store
    )
    return await call_next(request)


# ---------------------------------------------------------------------------
# Request logging middleware
# ---------------------------------------------------------------------------


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
# Middleware stack
#
# Each add_middleware() call wraps everything registered before it, so the
# LAST registration is the outermost layer. Register innermost first:
# identity filter -> logging -> SlowAPI -> CORS -> TrustedHost.
# ---------------------------------------------------------------------------

app.add_middleware(BaseHTTPMiddleware, dispatch=attach_request_scope)
app.add_middleware(BaseHTTPMiddleware, dispatch=log_requests)
app.add_middleware(SlowAPIMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_settings.cors_origins,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE"],
    allow_headers=["Content-Type", "Authorization"],
    max_age=3600,
)

app.add_middleware(
    TrustedHostMiddleware,
    allowed_hosts=_settings.allowed_hosts,
)

# SlowAPI looks for app.state.limiter by convention.
app.state.limiter = limiter


# ---------------------------------------------------------------------------
# Router registration
# ---------------------------------------------------------------------------

app.include_router(auth_router, prefix="/api/v1", tags=["Auth"])
app.include_router(movies_router, prefix="/api/v1", tags=["Movies"])
app.include_router(ratings_router, prefix="/api/v1", tags=["Ratings"])


# ---------------------------------------------------------------------------
# Exception handlers
#
# All handlers return the same ErrorResponse envelope so API clients can parse
# errors uniformly without inspecting status codes to choose a schema.
# ---------------------------------------------------------------------------

_STATUS_BY_ERROR: dict[type[CinebaseError], int] = {
    AuthFailure: 401,
    NotAuthenticated: 401,
    InsufficientRole: 403,
    NotFoundError: 404,
    RegistrationError: 409,
    ConflictError: 409,
    StaleWriteError: 409,
    PasswordTooLong: 422,
    ScoreOutOfRange: 422,
}

# Security boundary: these never echo anything but the fixed default message.
_OPAQUE_ERRORS = (AuthFailure, NotAuthenticated, InsufficientRole)


def _error_response(status_code: int, code: str, message: str, detail: str | None = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=ErrorDetail(code=code, message=message, detail=detail)).model_dump(),
    )


@app.exception_handler(CinebaseError)
async def cinebase_error_handler(request: Request, exc: CinebaseError) -> JSONResponse:
    """Map a categorized domain error to its status code.

    Conflict / not-found are expected business outcomes and are not logged
    as errors.
    """
    status_code = next((s for cls, s in _STATUS_BY_ERROR.items() if isinstance(exc, cls)), 400)
    message = exc.default_message if isinstance(exc, _OPAQUE_ERRORS) else exc.message
    response = _error_response(status_code, exc.code, message)
    if isinstance(exc, NotAuthenticated):
        response.headers["WWW-Authenticate"] = "Bearer"
    logger.debug("%s %s -> %d %s", request.method, request.url.path, status_code, exc.code)
    return response


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Return 429 with a structured error when a rate limit is exceeded."""
    retry_after = int(getattr(exc, "retry_after", 60))
    response = _error_response(429, "rate_limited", "Too many requests.", str(exc))
    response.headers["Retry-After"] = str(retry_after)
    return response


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Return 422 with structured error when request body or query params fail validation."""
    return _error_response(422, "validation_error", "Request validation failed.", str(exc.errors()))


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Return a structured error for all FastAPI/Starlette HTTP exceptions.

    When detail is already a structured dict, use it directly as the error
    field rather than stringifying it.
    """
    if isinstance(exc.detail, dict):
        return JSONResponse(status_code=exc.status_code, content={"error": exc.detail})
    return _error_response(exc.status_code, f"http_{exc.status_code}", str(exc.detail))


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all handler for unexpected server errors.

    The raw exception goes to the server log only. The client receives a
    generic message with no distinguishing detail.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return _error_response(500, "internal_error", "An unexpected error occurred.")


# ---------------------------------------------------------------------------
# Health endpoint
#
# No rate limit and no auth -- load balancers must always reach it.
# ---------------------------------------------------------------------------


@app.get("/api/v1/health", tags=["Health"])
async def health() -> HealthResponse:
    """Return API liveness and current version."""
    return HealthResponse(version=__version__)
