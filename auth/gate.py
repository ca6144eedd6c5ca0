"""
auth/gate.py -- Request-time enforcement for every secret-data operation.

Per request:
    ParseIdentity -> CheckSessionPresent -> ValidateToken -> Forward | Reject

ParseIdentity happens in auth/dependencies.py (it needs the HTTP request).
This module covers the rest and raises Unauthenticated on any rejection.

Identity: the claimed user is the request body's user_name, and the session is
looked up under that name. The token subject is verified but not substituted
for the claimed name. A mismatch between the two is logged as a warning.

The gate never renews or extends a session.

Layer rule: no imports from api/ or vault/.
"""

from __future__ import annotations

import logging

from auth.models import GateDecision
from auth.sessions import SessionStore
from auth.tokens import TokenIssuer, parse_bearer
from core.errors import TokenError, Unauthenticated

logger = logging.getLogger("secretkeeper.auth")


class AuthGate:
    """Decide allow/deny for a claimed user against the session store.

    Usage:
        gate = AuthGate(sessions, issuer)
        decision = gate.authorize("alice")   # raises Unauthenticated on deny
    """

    def __init__(self, sessions: SessionStore, issuer: TokenIssuer) -> None:
        self.sessions = sessions
        self.issuer = issuer

    def authorize(self, claimed_user: str) -> GateDecision:
        bearer_value = self.sessions.get(claimed_user)
        if not bearer_value:
            raise Unauthenticated(f"user {claimed_user!r} is not authorized")

        try:
            claims = self.issuer.validate_token(parse_bearer(bearer_value))
        except TokenError as exc:
            logger.info("Rejected request for %r: %s (%s)", claimed_user, exc.code, exc)
            raise Unauthenticated(f"token problem for user {claimed_user!r}") from exc

        decision = GateDecision(claimed_user=claimed_user, bearer_value=bearer_value, claims=claims)
        if not decision.subject_matches:
            logger.warning(
                "Session for %r holds a token issued to %r",
                claimed_user,
                claims.username,
            )
        return decision

    def is_session_expired(self, bearer_value: str) -> bool:
        """Predicate for SessionStore.purge_expired()."""
        try:
            self.issuer.validate_token(parse_bearer(bearer_value))
        except TokenError:
            return True
        return False
