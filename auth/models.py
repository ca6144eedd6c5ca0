"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). Mirrors the approach
in vault/models.py -- dataclasses own domain shape; stores and routes do the
work.

Layer rule: no imports from api/ or vault/.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass
class RegisteredUser:
    """A login able to authenticate against SecretKeeper.

    Created on registration; never updated; never deleted by any exposed
    operation. login is the primary key in the registered_users table.
    """

    login: str
    password_hash: str  # bcrypt hash, never the plaintext


@dataclass(frozen=True)
class TokenClaims:
    """The verified content of a session token."""

    username: str  # the "sub" claim
    expires_at: datetime  # timezone-aware UTC


@dataclass(frozen=True)
class GateDecision:
    """Outcome of a successful Auth Gate check.

    claimed_user comes from the request body; claims.username from the verified
    token. They are reported separately so callers can see when they differ.
    """

    claimed_user: str
    bearer_value: str
    claims: TokenClaims

    @property
    def subject_matches(self) -> bool:
        return self.claims.username == self.claimed_user
