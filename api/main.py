"""
api/main.py -- FastAPI application entry point for LedgerAPI.

Run with:      uvicorn asgi:app --reload

Request pipeline (outermost to innermost). Each stage either passes the
request on unchanged or answers it itself:
  1. log_requests       -- logs method, path, status, latency. Never rejects.
  2. CORSMiddleware     -- answers CORS preflights, adds CORS headers. Never
                           rejects a simple request.
  3. SlowAPIMiddleware  -- enforces per-route rate limits from api.limiter.
                           Over the limit: 429 + Retry-After, handler not run.
  4. get_current_account_id (route dependency, protected routes only) --
                           no/invalid/expired bearer token: 401 +
                           WWW-Authenticate, handler not run. Otherwise the
                           handler receives the token's account id.

Lifespan builds every collaborator once from core.config.Settings and puts it
on app.state. Nothing below api/ reads configuration on its own.
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from sqlalchemy import text

from api.limiter import limiter
from api.models import ErrorDetail, ErrorResponse, HealthResponse
from api.routes.v1.accounts import router as accounts_router
from api.routes.v1.auth import configure_login_rate_limit
from api.routes.v1.auth import router as auth_router
from api.routes.v1.records import router as records_router
from auth.errors import InternalFailure, InvalidCredentials, Unauthorized
from auth.passwords import PasswordHasher
from auth.service import Authenticator
from auth.store import AccountStore
from auth.tokens import TokenService
from core.config import Settings, get_settings
from ledger.store import RecordStore

VERSION = "0.1.0"

_settings = get_settings()

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=_settings.log_level.upper(),
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("ledgerapi.api")


# ---------------------------------------------------------------------------
# Wiring
# ---------------------------------------------------------------------------


def configure_state(app: FastAPI, settings: Settings, account_store: AccountStore, record_store: RecordStore) -> None:
    """Attach the stores and the auth core to app.state.

    Split out of lifespan so tests can wire in-memory stores the same way
    production does. TokenService raises if the secret is empty, so a process
    that got past this call can sign and verify tokens.
    """
    hasher = PasswordHasher(rounds=settings.bcrypt_rounds)
    tokens = TokenService(settings.secret_key, ttl_seconds=settings.token_expire_seconds)
    app.state.settings = settings
    app.state.account_store = account_store
    app.state.record_store = record_store
    app.state.hasher = hasher
    app.state.authenticator = Authenticator(account_store, hasher, tokens)
    configure_login_rate_limit(settings.login_rate_limit)


# ---------------------------------------------------------------------------
# Lifespan -- modern startup / shutdown pattern (replaces @app.on_event)
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Open the stores and build the auth core; dispose the engines on shutdown."""
    logger.info("LedgerAPI starting up")
    configure_state(
        app,
        _settings,
        AccountStore(_settings.database_url),
        RecordStore(_settings.database_url),
    )
    logger.info(
        "Auth initialized (bcrypt_rounds=%d, token_ttl=%ds)",
        _settings.bcrypt_rounds,
        _settings.token_expire_seconds,
    )

    yield

    app.state.account_store.close()
    app.state.record_store.close()
    logger.info("LedgerAPI shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="LedgerAPI",
    description="Accounts and income/expense records, scoped by bearer token.",
    version=VERSION,
    lifespan=lifespan,
)

# ---------------------------------------------------------------------------
# Middleware stack
#
# Starlette wraps each newly added middleware around the ones already added,
# so registration below runs innermost first: SlowAPI, then CORS, then the
# request logger (decorated further down) ends up outermost.
# ---------------------------------------------------------------------------

app.add_middleware(SlowAPIMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_settings.cors_origins,
    allow_methods=["GET", "POST", "PUT", "DELETE"],
    allow_headers=["Content-Type", "Authorization"],
    max_age=3600,
)

# Attach the shared limiter to app.state so SlowAPIMiddleware can locate it.
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

app.include_router(auth_router, prefix="/api/v1", tags=["Auth"])
app.include_router(accounts_router, prefix="/api/v1", tags=["Accounts"])
app.include_router(records_router, prefix="/api/v1", tags=["Records"])


# ---------------------------------------------------------------------------
# Exception handlers
#
# All handlers return the same ErrorResponse envelope so API clients can parse
# errors uniformly without inspecting status codes to choose a schema.
# ---------------------------------------------------------------------------


def _error(status_code: int, code: str, message: str, detail: str | None = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=ErrorDetail(code=code, message=message, detail=detail)).model_dump(
            exclude_none=True
        ),
    )


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Return 429 with a structured error when a rate limit is exceeded."""
    retry_after = int(getattr(exc, "retry_after", 60))
    response = _error(429, "rate_limited", "Too many requests.", str(exc.detail))
    response.headers["Retry-After"] = str(retry_after)
    return response


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Return 422 with structured error when request body or query params fail validation."""
    return _error(422, "validation_error", "Request validation failed.", str(exc.errors()))


@app.exception_handler(InvalidCredentials)
async def invalid_credentials_handler(request: Request, exc: InvalidCredentials) -> JSONResponse:
    return _error(401, "bad_credentials", "Invalid email or password.")


@app.exception_handler(Unauthorized)
async def unauthorized_handler(request: Request, exc: Unauthorized) -> JSONResponse:
    """Any token failure. exc.reason stays in the logs, never in the body."""
    response = _error(401, "unauthorized", "Authentication required.")
    response.headers["WWW-Authenticate"] = "Bearer"
    return response


@app.exception_handler(InternalFailure)
async def internal_failure_handler(request: Request, exc: InternalFailure) -> JSONResponse:
    """Hashing or signing failed. Full detail to the log, nothing to the client."""
    logger.exception("Auth internal failure on %s %s", request.method, request.url.path)
    return _error(500, "internal_error", "An unexpected error occurred.")


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Return a structured error for all FastAPI/Starlette HTTP exceptions.

    Route handlers raise HTTPException with a dict detail ({"code", "message"}).
    When detail is already a structured dict, use it directly as the error
    field rather than stringifying it -- str(dict) produces a Python repr,
    not JSON. Headers (e.g. WWW-Authenticate on 401) are carried over.
    """
    if isinstance(exc.detail, dict):
        response = JSONResponse(status_code=exc.status_code, content={"error": exc.detail})
    else:
        response = _error(exc.status_code, f"http_{exc.status_code}", str(exc.detail))
    if exc.headers:
        response.headers.update(exc.headers)
    return response


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all handler for unexpected server errors.

    The raw exception goes to the log only, never to the response body.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return _error(500, "internal_error", "An unexpected error occurred.")


# ---------------------------------------------------------------------------
# Health endpoint
#
# Defined directly in main.py (not in a router) so it is always reachable
# regardless of router registration state. No rate limit applied -- health
# checks from load balancers and monitoring systems must not be throttled.
# ---------------------------------------------------------------------------


@app.get("/api/v1/health", tags=["Health"])
def health(request: Request) -> HealthResponse:
    """Return API liveness, version, and whether the database answers."""
    database = "ok"
    try:
        with request.app.state.account_store.engine.connect() as conn:
            conn.execute(text("SELECT 1"))
    except Exception:
        logger.exception("Health check: database unreachable")
        database = "error"
    return HealthResponse(
        status="healthy" if database == "ok" else "degraded",
        version=VERSION,
        components={"app": "ok", "database": database},
    )
