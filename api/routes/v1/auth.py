"""
api/routes/v1/auth.py -- Registration and login endpoints.

Routes:
  POST /api/v1/auth/register  -- create a login; issues a session token
  POST /api/v1/auth/login     -- check a login/password; issues a session token

On success both routes:
  - issue a token with the configured expiry (default 1 hour),
  - cache "Bearer <token>" in the session store under the login, replacing
    any earlier session for that login,
  - return the token in the body, the Authorization header, and an httpOnly
    "token" cookie.

Security:
  Both routes are rate-limited per client IP (LOGIN_RATE_LIMIT).
  Unknown login and wrong password return the same 401 body
  ("bad_credentials"); the distinction is only logged.
  Cache-Control: no-store on every response that may carry a token.
  A failed login never touches the session store.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from api.limiter import limiter, login_rate_limit
from api.models import LoginRequest, LoginResponse
from auth.sessions import SessionStore
from auth.store import UserStore
from auth.tokens import TokenIssuer, set_auth_cookie
from core.config import get_settings

logger = logging.getLogger("secretkeeper.api.auth")

# Auth policy:
# - POST /api/v1/auth/register: public -- rate limited
# - POST /api/v1/auth/login:    public -- rate limited
router = APIRouter()


def _start_session(request: Request, login: str) -> JSONResponse:
    """Issue a token for login, cache it, and build the success response."""
    issuer: TokenIssuer = request.app.state.issuer
    sessions: SessionStore = request.app.state.sessions
    settings = get_settings()

    token = issuer.issue_token(login)
    bearer = issuer.bearer_value(token)
    sessions.put(login, bearer)

    resp = JSONResponse(
        status_code=200,
        content=LoginResponse(
            access_token=token,
            token_type="bearer",  # noqa: S106 # nosec B106 -- OAuth token type, not a password
            expires_in=int(issuer.default_ttl.total_seconds()),
            username=login,
        ).model_dump(),
    )
    resp.headers["Authorization"] = bearer
    resp.headers["Cache-Control"] = "no-store"
    set_auth_cookie(resp, token, int(issuer.default_ttl.total_seconds()), secure=settings.secure_cookies)
    return resp


@limiter.limit(login_rate_limit)  # must be ABOVE @router to preserve FastAPI introspection
@router.post("/auth/register", response_model=LoginResponse)
def register(request: Request, body: LoginRequest) -> JSONResponse:
    """Register a new login and start its session.

    DuplicateUser propagates to the exception handler in api/main.py (409).
    """
    user_store: UserStore = request.app.state.user_store
    user_store.register(body.login, body.password)
    resp = _start_session(request, body.login)
    logger.info("User %r was successfully registered", body.login)
    return resp


@limiter.limit(login_rate_limit)
@router.post("/auth/login", response_model=LoginResponse)
def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Authenticate with login and password and start a session.

    NoSuchUser and InvalidCredentials propagate to the exception handler in
    api/main.py, which answers both with the same 401 body.
    """
    user_store: UserStore = request.app.state.user_store
    user_store.login(body.login, body.password)

    resp = _start_session(request, body.login)
    logger.info("User %r was successfully logged in", body.login)
    return resp
