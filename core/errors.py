"""
core/errors.py -- Error taxonomy shared by the auth, crypto and vault layers.

Every error carries a machine-readable `code`. Nothing in this module knows
about HTTP: api/main.py maps each class to a status code in its exception
handlers, so the same taxonomy is usable from the CLI or a test without a
running server.

None of these errors are retried anywhere. A single failure is surfaced to
the caller immediately.

Layer rule: core/ is the kernel. This module may not import from api/, auth/,
or vault/.
"""

from __future__ import annotations


class KeeperError(Exception):
    """Base class for all classified SecretKeeper errors."""

    code: str = "keeper_error"


# ---------------------------------------------------------------------------
# Authentication
# ---------------------------------------------------------------------------


class Unauthenticated(KeeperError):
    """No session, or the session's token failed validation."""

    code = "unauthenticated"


class DuplicateUser(KeeperError):
    """Registration attempted with a login that is already taken."""

    code = "duplicate_user"


class NoSuchUser(KeeperError):
    """Login attempted for a login that was never registered."""

    code = "no_such_user"


class InvalidCredentials(KeeperError):
    """Login attempted with a password that does not match the stored hash."""

    code = "invalid_credentials"


# ---------------------------------------------------------------------------
# Tokens
# ---------------------------------------------------------------------------


class TokenError(KeeperError):
    code = "token_error"


class TokenAbsent(TokenError):
    code = "token_absent"


class MalformedToken(TokenError):
    """The token (or its bearer wrapper) is not structurally a token."""

    code = "malformed_token"


class ExpiredOrInvalidSignature(TokenError):
    """The token decoded but is past its expiry or its signature is wrong."""

    code = "expired_or_invalid_signature"


# ---------------------------------------------------------------------------
# Field encryption
# ---------------------------------------------------------------------------


class DecodeError(KeeperError):
    """A stored ciphertext token is not valid base64."""

    code = "decode_error"


class CipherError(KeeperError):
    """A ciphertext token decoded but is truncated, tampered or keyed unknown."""

    code = "cipher_error"


# ---------------------------------------------------------------------------
# Storage
# ---------------------------------------------------------------------------


class NoData(KeeperError):
    """A lookup matched zero rows for the requesting user."""

    code = "no_data"
