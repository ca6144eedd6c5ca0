"""
auth/tokens.py -- Password hashing and session token issuing/validation.

Security design decisions:
  JWT: python-jose with HS256. Tokens carry the username as the "sub" claim
       and an absolute "exp". TokenIssuer.validate_token() classifies every
       failure so the Auth Gate can log what went wrong while still answering
       a flat 401.

  Passwords: bcrypt directly (no passlib wrapper), default cost factor from
       bcrypt.gensalt() (12 rounds). The _DUMMY_HASH constant enables timing
       equalization in the credential store so response time does not reveal
       whether a login exists.

  Signing key: injected into TokenIssuer at construction (api/main.py passes
       Settings.secret_key). The key is fixed for the process lifetime; there
       is no rotation of signing keys, so every outstanding token dies with a
       key change.

  Expiry: "exp" is written as a fractional NumericDate (RFC 7519 allows
       non-integer values) so sub-second issue times are kept. A datetime
       would be truncated to whole seconds by python-jose. Expiry is checked
       here rather than by python-jose so the boundary is exact: a token is
       valid strictly before exp and invalid at or after it.

Layer rule: no imports from api/ or vault/. Import from core/ is allowed.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timedelta, timezone

import bcrypt
from jose import JWTError, jwt

from auth.models import TokenClaims
from core.errors import ExpiredOrInvalidSignature, MalformedToken, TokenAbsent

logger = logging.getLogger("secretkeeper.auth")

_ALGORITHM = "HS256"
_BEARER_PREFIX = "Bearer"
DEFAULT_TOKEN_TTL = timedelta(hours=1)

# ---------------------------------------------------------------------------
# Password hashing (bcrypt -- direct usage, no passlib wrapper)
# ---------------------------------------------------------------------------


def hash_password(plain: str) -> str:
    """Return a salted bcrypt hash of the given plaintext password.

    bcrypt rejects passwords longer than 72 bytes. LoginRequest in api/models.py
    enforces that limit on the UTF-8 encoded value before it gets here.
    """
    return bcrypt.hashpw(plain.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash.

    bcrypt.checkpw compares in constant time. A structurally invalid stored
    hash raises ValueError, which we report as a mismatch.
    """
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        return False


# Timing equalization dummy hash. Computed once at module load so the first
# login attempt is not measurably slower than later ones.
_DUMMY_HASH: str = hash_password("secretkeeper_timing_dummy")


def burn_dummy_check(plain: str) -> None:
    """Run one bcrypt comparison whose result is discarded."""
    verify_password(plain, _DUMMY_HASH)


# ---------------------------------------------------------------------------
# Token issuing / validation
# ---------------------------------------------------------------------------


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TokenIssuer:
    """Issue and validate HS256 session tokens.

    Holds only immutable configuration, so one instance serves all request
    threads without locking.

    Usage:
        issuer = TokenIssuer(settings.secret_key)
        token = issuer.issue_token("alice")
        claims = issuer.validate_token(token)   # TokenClaims(username="alice", ...)
    """

    def __init__(
        self,
        secret_key: str,
        default_ttl: timedelta = DEFAULT_TOKEN_TTL,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        if not secret_key:
            raise ValueError("secret_key must not be empty")
        self._secret_key = secret_key
        self.default_ttl = default_ttl
        self._clock = clock

    def issue_token(self, username: str, expires_in: timedelta | None = None) -> str:
        """Encode a signed JWT for username that expires after expires_in.

        expires_in defaults to the issuer's default_ttl (1 hour).
        """
        expire = self._clock() + (expires_in if expires_in is not None else self.default_ttl)
        payload = {"sub": username, "exp": expire.timestamp()}
        return jwt.encode(payload, self._secret_key, algorithm=_ALGORITHM)

    def validate_token(self, token: str | None) -> TokenClaims:
        """Verify a token and return its claims.

        Raises:
            TokenAbsent:                token is None or empty.
            MalformedToken:             not a decodable JWT, or sub/exp missing.
            ExpiredOrInvalidSignature:  bad signature, or now >= exp.
        """
        if not token:
            raise TokenAbsent("no token presented")

        try:
            unverified = jwt.get_unverified_claims(token)
        except JWTError as exc:
            raise MalformedToken("token is not a decodable JWT") from exc

        if not isinstance(unverified.get("sub"), str) or not isinstance(unverified.get("exp"), (int, float)):
            raise MalformedToken("token is missing the sub or exp claim")

        try:
            payload = jwt.decode(
                token,
                self._secret_key,
                algorithms=[_ALGORITHM],
                options={"verify_exp": False},
            )
        except JWTError as exc:
            raise ExpiredOrInvalidSignature("token signature is invalid") from exc

        expires_at = datetime.fromtimestamp(payload["exp"], tz=timezone.utc)
        if self._clock() >= expires_at:
            raise ExpiredOrInvalidSignature("token has expired")
        return TokenClaims(username=payload["sub"], expires_at=expires_at)

    def bearer_value(self, token: str) -> str:
        """Format a token the way it is cached in the session store and sent in headers."""
        return f"{_BEARER_PREFIX} {token}"


def parse_bearer(value: str | None) -> str:
    """Extract the token from a "Bearer <token>" value.

    Raises TokenAbsent for an empty value and MalformedToken when the value
    does not split into exactly two space-separated parts.
    """
    if not value:
        raise TokenAbsent("no bearer value")
    parts = value.split(" ")
    if len(parts) != 2 or parts[0] != _BEARER_PREFIX:
        raise MalformedToken("bearer value is not of the form 'Bearer <token>'")
    return parts[1]


# ---------------------------------------------------------------------------
# Cookie helper
# ---------------------------------------------------------------------------


def set_auth_cookie(response, token: str, expire_seconds: int, secure: bool = False) -> None:
    """Write the session token as an httpOnly "token" cookie on the response.

    max_age matches the token expiry so both expire together.
    """
    response.set_cookie(
        "token",
        value=token,
        httponly=True,
        samesite="lax",
        secure=secure,
        max_age=expire_seconds,
    )
