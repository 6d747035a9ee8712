"""
api/main.py -- FastAPI application entry point for SessionGate.

Exposes the token core over HTTP: registration, login, refresh-token
rotation, logout, token validation and profile lookup.

Run with:      python main.py serve
               uvicorn api.main:app --reload

Middleware stack (outermost to innermost; Starlette wraps the last
registration around the earlier ones):
  1. log_requests          -- one log line per request, with the caller's user id
  2. attach_auth           -- optional authentication into request.state.auth
  3. SlowAPIMiddleware     -- enforces per-route rate limits from api.limiter
  4. CORSMiddleware        -- adds CORS headers for allowed browser origins
  5. TrustedHostMiddleware -- rejects requests with unexpected Host headers

Lifespan handles startup (engine, stores, AuthService, janitor task) and
shutdown (cancel janitor task, dispose engine) symmetrically.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.limiter import limiter
from api.models import ErrorDetail, ErrorResponse, HealthResponse
from api.routes.v1.auth import router as auth_router
from auth.errors import AuthError
from auth.janitor import run_periodically
from auth.service import AuthService
from auth.store import RefreshTokenStore, UserStore, create_store_engine
from core.config import TokenConfig, get_settings

API_VERSION = "0.1.0"

settings = get_settings()

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("sessiongate.api")


# ---------------------------------------------------------------------------
# Lifespan -- modern startup / shutdown pattern (replaces @app.on_event)
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage application-level resources across the full server lifetime.

    Pattern: asynccontextmanager lifespan. Everything before yield runs on
    startup; everything after yield runs on shutdown.

    Startup order matters:
      1. Engine first -- both stores share it, so the refresh-token rotation
         transaction and the user lookups see the same database.
      2. AuthService second -- it builds the codec, gate and janitor.
      3. Janitor task last -- references the service's janitor.
    """
    logger.info("SessionGate API starting up")
    engine = create_store_engine(settings.database_url)
    app.state.user_store = UserStore(engine=engine)
    app.state.token_store = RefreshTokenStore(engine=engine)
    app.state.auth_service = AuthService(
        app.state.user_store,
        app.state.token_store,
        TokenConfig.from_settings(settings),
        reveal_login_failure_reason=settings.reveal_login_failure_reason,
    )
    app.state.gate = app.state.auth_service.gate
    logger.info("Auth initialized (users present=%s)", app.state.user_store.has_users())

    app.state.janitor_task = None
    if settings.token_cleanup_interval_hours > 0:
        interval = settings.token_cleanup_interval_hours * 3600
        app.state.janitor_task = asyncio.create_task(run_periodically(app.state.auth_service.janitor, interval))
        logger.info("Refresh-token janitor scheduled every %dh", settings.token_cleanup_interval_hours)
    else:
        logger.info("Refresh-token janitor disabled (TOKEN_CLEANUP_INTERVAL_HOURS=0)")

    yield

    if app.state.janitor_task is not None:
        app.state.janitor_task.cancel()
    engine.dispose()
    logger.info("SessionGate API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="SessionGate API",
    description="Token-based authentication: JWT access tokens, rotating refresh tokens, role checks.",
    version=API_VERSION,
    lifespan=lifespan,
)

# ---------------------------------------------------------------------------
# Middleware stack
#
# Each add_middleware() / @app.middleware registration wraps everything
# registered before it. See the module docstring for the resulting order.
# ---------------------------------------------------------------------------

app.add_middleware(
    TrustedHostMiddleware,
    allowed_hosts=settings.allowed_hosts,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_methods=["GET", "POST"],
    allow_headers=["Content-Type", "Authorization"],
    max_age=3600,
)

app.add_middleware(SlowAPIMiddleware)

# Attach the shared limiter to app.state so SlowAPIMiddleware can locate it.
# SlowAPI looks for app.state.limiter by convention.
app.state.limiter = limiter


# ---------------------------------------------------------------------------
# Optional authentication middleware
#
# Resolves the Bearer token (if any) once per request and stores the result in
# request.state.auth. Bad or missing tokens leave None; the dependencies in
# auth/dependencies.py re-run the gate to produce the specific 401.
# ---------------------------------------------------------------------------


@app.middleware("http")
async def attach_auth(request: Request, call_next):
    gate = getattr(request.app.state, "gate", None)
    request.state.auth = gate.try_authenticate(request.headers.get("Authorization")) if gate else None
    return await call_next(request)


# ---------------------------------------------------------------------------
# Request logging middleware
#
# Pattern: Interceptor / Chain of Responsibility. Registered after attach_auth,
# so it wraps it and can read request.state.auth once the response is ready.
# ---------------------------------------------------------------------------


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    ms = (time.perf_counter() - start) * 1000
    context = getattr(request.state, "auth", None)
    logger.info(
        "%s %s %d %.1fms %s user_id=%s",
        request.method,
        request.url.path,
        response.status_code,
        ms,
        request.client.host if request.client else "unknown",
        context.user_id if context is not None else "-",
    )
    return response


# ---------------------------------------------------------------------------
# Router registration
# ---------------------------------------------------------------------------

app.include_router(auth_router, prefix="/api/v1", tags=["Auth"])


# ---------------------------------------------------------------------------
# Exception handlers
#
# All handlers return the same ErrorResponse envelope so API clients can parse
# errors uniformly without inspecting status codes to choose a schema.
# ---------------------------------------------------------------------------


@app.exception_handler(AuthError)
async def auth_error_handler(request: Request, exc: AuthError) -> JSONResponse:
    """Map a typed AuthError to its status code and stable error code.

    401 responses carry WWW-Authenticate: Bearer. Store and signing-key
    failures are server-side problems and are logged at error level; the
    client sees only the generic message.
    """
    if exc.status_code >= 500:
        logger.error("%s on %s %s", exc.__class__.__name__, request.method, request.url.path)
    response = JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(error=ErrorDetail(code=exc.code, message=exc.message)).model_dump(),
    )
    if exc.status_code == 401:
        response.headers["WWW-Authenticate"] = "Bearer"
    return response


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Return 429 with a structured error when a rate limit is exceeded.

    Retry-After tells clients exactly how many seconds to wait before retrying.
    slowapi stores this on the exception as exc.retry_after (int seconds).
    """
    retry_after = int(getattr(exc, "retry_after", 60))
    response = JSONResponse(
        status_code=429,
        content=ErrorResponse(
            error=ErrorDetail(
                code="rate_limited",
                message="Too many requests.",
                detail=str(exc),
            )
        ).model_dump(),
    )
    response.headers["Retry-After"] = str(retry_after)
    return response


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Return 422 with structured error when request body or query params fail validation."""
    return JSONResponse(
        status_code=422,
        content=ErrorResponse(
            error=ErrorDetail(
                code="validation_error",
                message="Request validation failed.",
                detail=str(exc.errors()),
            )
        ).model_dump(),
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Return a structured error for all FastAPI/Starlette HTTP exceptions.

    Registered on Starlette's base class: the router raises that one (not
    FastAPI's subclass) for unknown paths and wrong methods.
    """
    if isinstance(exc.detail, dict):
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.detail},
        )
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(
            error=ErrorDetail(
                code=f"http_{exc.status_code}",
                message=str(exc.detail),
            )
        ).model_dump(),
    )


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all handler for unexpected server errors.

    Security note: the raw exception is written to the log only, never to the
    response body. The client receives only a generic message.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content=ErrorResponse(
            error=ErrorDetail(
                code="internal_error",
                message="An unexpected error occurred.",
            )
        ).model_dump(),
    )


# ---------------------------------------------------------------------------
# Health endpoint
#
# Defined directly in main.py (not in a router) so it is always reachable
# regardless of router registration state. No rate limit applied -- health
# checks from load balancers and monitoring systems must not be throttled.
# ---------------------------------------------------------------------------


@app.get("/api/v1/health", include_in_schema=True, tags=["Health"])
def health(request: Request) -> HealthResponse:
    """Return API liveness, version, and whether the database answers."""
    database = "ok" if request.app.state.user_store.ping() else "error"
    return HealthResponse(
        status="healthy" if database == "ok" else "degraded",
        version=API_VERSION,
        components={"app": "ok", "database": database},
    )
