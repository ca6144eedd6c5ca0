"""
api/main.py -- FastAPI application entry point for SecretKeeper.

Exposes registration/login and the secret-data routes over HTTP for the CLI
client (main.py) and any other HTTP client.

Run with:      secretkeeper run
               uvicorn asgi:app --reload

Middleware stack (outermost to innermost):
  1. TrustedHostMiddleware -- rejects requests with unexpected Host headers
  2. SlowAPIMiddleware     -- enforces per-route rate limits from api.limiter

Lifespan builds the object graph once (settings -> cipher, token issuer,
session store, auth gate, stores) and tears it down symmetrically.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import timedelta

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse, Response
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from api.limiter import limiter
from api.models import ErrorDetail, ErrorResponse, HealthResponse
from api.routes.v1.auth import router as auth_router
from api.routes.v1.secrets import router as secrets_router
from auth.gate import AuthGate
from auth.sessions import InMemorySessionStore
from auth.store import UserStore
from auth.tokens import TokenIssuer
from core.config import get_settings
from core.crypto import FieldCipher
from core.errors import (
    DuplicateUser,
    InvalidCredentials,
    KeeperError,
    NoData,
    NoSuchUser,
    Unauthenticated,
)
from core.version import __version__
from vault.store import VaultStore

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("secretkeeper.api")

_settings = get_settings()

# ---------------------------------------------------------------------------
# Background session purge task
# ---------------------------------------------------------------------------


async def _purge_loop(app: FastAPI, interval_seconds: int) -> None:
    """Drop sessions whose token has expired, every interval_seconds.

    CancelledError from task.cancel() during shutdown propagates out of
    asyncio.sleep and unwinds the coroutine cleanly.
    """
    while True:
        await asyncio.sleep(interval_seconds)
        removed = app.state.sessions.purge_expired(app.state.gate.is_session_expired)
        if removed:
            logger.info("Purged %d expired session(s)", removed)


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Build shared components on startup; release them on shutdown.

    Startup order matters:
      1. Cipher and token issuer -- pure key material, no I/O.
      2. Session store and gate -- gate needs both store and issuer.
      3. Database stores -- vault store needs the cipher.
      4. Purge task last -- references sessions and gate.
    """
    logger.info("SecretKeeper API starting up")
    settings = get_settings()

    cipher = FieldCipher(settings.encryption_key)
    app.state.issuer = TokenIssuer(settings.secret_key, timedelta(seconds=settings.token_expire_seconds))
    app.state.sessions = InMemorySessionStore(max_entries=settings.session_max_entries)
    app.state.gate = AuthGate(app.state.sessions, app.state.issuer)
    app.state.user_store = UserStore(settings.database_url)
    app.state.vault = VaultStore(settings.database_url, cipher)
    logger.info("Stores initialized")
    app.state.purge_task = asyncio.create_task(_purge_loop(app, settings.session_purge_interval_seconds))

    yield

    app.state.purge_task.cancel()
    app.state.vault.close()
    app.state.user_store.close()
    logger.info("SecretKeeper API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="SecretKeeper API",
    description="Encrypted storage for credentials, notes and bank cards.",
    version=__version__,
    lifespan=lifespan,
)

# Register in the order you want the request to encounter them:
# TrustedHost -> SlowAPI.
app.add_middleware(TrustedHostMiddleware, allowed_hosts=_settings.allowed_hosts)
app.add_middleware(SlowAPIMiddleware)

# SlowAPI looks for app.state.limiter by convention.
app.state.limiter = limiter


# ---------------------------------------------------------------------------
# Request logging middleware
#
# Logs method, path, status and latency only. Bodies carry secrets and are
# never logged.
# ---------------------------------------------------------------------------


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
app.include_router(secrets_router, prefix="/api/v1", tags=["Secrets"])


# ---------------------------------------------------------------------------
# Exception handlers
#
# All handlers return the same ErrorResponse envelope so API clients can parse
# errors uniformly. Domain errors from core.errors map to status codes here and
# nowhere else.
# ---------------------------------------------------------------------------


def _error(status_code: int, code: str, message: str, detail: str | None = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=ErrorDetail(code=code, message=message, detail=detail)).model_dump(),
    )


@app.exception_handler(Unauthenticated)
async def unauthenticated_handler(request: Request, exc: Unauthenticated) -> JSONResponse:
    return _error(401, exc.code, str(exc))


@app.exception_handler(DuplicateUser)
async def duplicate_user_handler(request: Request, exc: DuplicateUser) -> JSONResponse:
    return _error(409, exc.code, str(exc))


@app.exception_handler(NoSuchUser)
@app.exception_handler(InvalidCredentials)
async def bad_credentials_handler(request: Request, exc: KeeperError) -> JSONResponse:
    """Both login failures look the same to the client; only the log tells them apart."""
    logger.info("Login failed on %s: %s", request.url.path, exc.code)
    response = _error(401, "bad_credentials", "Invalid login or password.")
    response.headers["Cache-Control"] = "no-store"
    return response


@app.exception_handler(NoData)
async def no_data_handler(request: Request, exc: NoData) -> Response:
    """204 carries no body by definition."""
    return Response(status_code=204)


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Return 429 with a Retry-After header when a rate limit is exceeded."""
    retry_after = int(getattr(exc, "retry_after", 60))
    response = _error(429, "rate_limited", "Too many requests.", str(exc))
    response.headers["Retry-After"] = str(retry_after)
    return response


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Return 422 with structured error when the request body fails validation."""
    return _error(422, "validation_error", "Request validation failed.", str(exc.errors()))


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Return a structured error for all FastAPI/Starlette HTTP exceptions.

    When detail is already a structured dict, use it directly as the error
    field rather than stringifying it.
    """
    if isinstance(exc.detail, dict):
        return JSONResponse(status_code=exc.status_code, content={"error": exc.detail})
    return _error(exc.status_code, f"http_{exc.status_code}", str(exc.detail))


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all handler for unexpected server errors, including DecodeError
    and CipherError on corrupt stored values.

    The raw exception is written to the log only, never to the response body.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return _error(500, "internal_error", "An unexpected error occurred.")


# ---------------------------------------------------------------------------
# Health endpoint
#
# No rate limit and no auth: load balancers must always reach it.
# ---------------------------------------------------------------------------


@app.get("/api/v1/health", include_in_schema=True, tags=["Health"])
async def health(request: Request) -> HealthResponse:
    """Return API liveness, version, and database reachability."""
    db_ok = request.app.state.user_store.ping()
    return HealthResponse(
        version=__version__,
        components={"app": "ok", "database": "ok" if db_ok else "error"},
    )
