"""
tests/test_tokens.py -- Unit tests for auth/tokens.py.

Covers:
  - bcrypt hash/verify, including a corrupt stored hash
  - issue/validate round trip and the exact expiry boundary (valid before exp,
    invalid at exp), including issue times with a sub-second fraction
  - classification of absent, malformed and badly signed tokens
  - parse_bearer() shapes
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from jose import jwt

from auth.tokens import TokenIssuer, hash_password, parse_bearer, verify_password
from core.errors import ExpiredOrInvalidSignature, MalformedToken, TokenAbsent, TokenError

# ---------------------------------------------------------------------------
# Passwords
# ---------------------------------------------------------------------------


def test_hash_and_verify_password():
    hashed = hash_password("pw1")
    assert hashed != "pw1"
    assert verify_password("pw1", hashed)
    assert not verify_password("pw2", hashed)


def test_hashes_are_salted():
    assert hash_password("pw1") != hash_password("pw1")


def test_verify_against_corrupt_hash_is_false():
    assert verify_password("pw1", "not-a-bcrypt-hash") is False


# ---------------------------------------------------------------------------
# Issue / validate
# ---------------------------------------------------------------------------


def test_issue_and_validate(issuer, clock):
    claims = issuer.validate_token(issuer.issue_token("alice"))
    assert claims.username == "alice"
    assert claims.expires_at == clock.now + timedelta(hours=1)


def test_custom_expiry(issuer, clock):
    token = issuer.issue_token("alice", expires_in=timedelta(seconds=30))
    clock.advance(seconds=29)
    assert issuer.validate_token(token).username == "alice"
    clock.advance(seconds=1)
    with pytest.raises(ExpiredOrInvalidSignature):
        issuer.validate_token(token)


def test_token_valid_one_second_before_expiry(issuer, clock):
    token = issuer.issue_token("alice")
    clock.advance(minutes=59, seconds=59)
    assert issuer.validate_token(token).username == "alice"


def test_token_invalid_at_exact_expiry(issuer, clock):
    token = issuer.issue_token("alice")
    clock.advance(hours=1)
    with pytest.raises(ExpiredOrInvalidSignature, match="expired"):
        issuer.validate_token(token)


def test_sub_second_issue_time_keeps_exact_expiry(issuer, clock):
    clock.now = datetime(2024, 1, 1, 12, 0, 0, 900_000, tzinfo=timezone.utc)
    token = issuer.issue_token("alice", expires_in=timedelta(seconds=10))

    clock.now = datetime(2024, 1, 1, 12, 0, 10, 400_000, tzinfo=timezone.utc)
    claims = issuer.validate_token(token)
    assert claims.expires_at == datetime(2024, 1, 1, 12, 0, 10, 900_000, tzinfo=timezone.utc)

    clock.now = datetime(2024, 1, 1, 12, 0, 10, 899_999, tzinfo=timezone.utc)
    assert issuer.validate_token(token).username == "alice"

    clock.now = datetime(2024, 1, 1, 12, 0, 10, 900_000, tzinfo=timezone.utc)
    with pytest.raises(ExpiredOrInvalidSignature, match="expired"):
        issuer.validate_token(token)


@pytest.mark.parametrize("token", [None, ""])
def test_absent_token(issuer, token):
    with pytest.raises(TokenAbsent):
        issuer.validate_token(token)


@pytest.mark.parametrize("token", ["garbage", "a.b.c", "Bearer xyz"])
def test_malformed_token(issuer, token):
    with pytest.raises(MalformedToken):
        issuer.validate_token(token)


def test_token_without_sub_is_malformed(issuer, clock):
    exp = clock.now + timedelta(hours=1)
    token = jwt.encode({"exp": exp}, "test-signing-key-0123456789abcdef0123", algorithm="HS256")
    with pytest.raises(MalformedToken, match="sub or exp"):
        issuer.validate_token(token)


def test_token_without_exp_is_malformed(issuer):
    token = jwt.encode({"sub": "alice"}, "test-signing-key-0123456789abcdef0123", algorithm="HS256")
    with pytest.raises(MalformedToken):
        issuer.validate_token(token)


def test_wrong_signing_key_is_rejected(issuer, clock):
    forger = TokenIssuer("some-other-signing-key-0123456789abcdef", clock=clock)
    with pytest.raises(ExpiredOrInvalidSignature, match="signature"):
        issuer.validate_token(forger.issue_token("alice"))


def test_all_token_failures_share_a_base_class(issuer):
    with pytest.raises(TokenError):
        issuer.validate_token("garbage")


def test_empty_secret_key_rejected():
    with pytest.raises(ValueError):
        TokenIssuer("")


def test_bearer_value_round_trips_through_parse_bearer(issuer):
    token = issuer.issue_token("alice")
    assert issuer.bearer_value(token) == f"Bearer {token}"
    assert parse_bearer(issuer.bearer_value(token)) == token


# ---------------------------------------------------------------------------
# parse_bearer
# ---------------------------------------------------------------------------


@pytest.mark.parametrize("value", [None, ""])
def test_parse_bearer_absent(value):
    with pytest.raises(TokenAbsent):
        parse_bearer(value)


@pytest.mark.parametrize("value", ["Bearer", "Bearer a b", "Token abc", "bearer abc", "abc"])
def test_parse_bearer_malformed(value):
    with pytest.raises(MalformedToken):
        parse_bearer(value)
