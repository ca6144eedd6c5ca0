"""
auth/store.py -- Credential store: registered logins and their bcrypt hashes.

Pattern: Repository + Data Mapper (same as vault/store.py).
UserStore is the repository; _row_to_user is the mapper. Route code never
touches SQL directly.

Operations:
  register(login, password) -- DuplicateUser if the login exists
  login(login, password)    -- NoSuchUser / InvalidCredentials, else None

Security:
  All queries use bound parameters. No f-strings in SQL.

  Login uniqueness is the table's primary key, so two concurrent registrations
  of the same login cannot both succeed: the loser gets IntegrityError, which
  is reported as DuplicateUser.

  login() always runs bcrypt, even for unknown logins, so response time does
  not reveal which logins exist. The two failure kinds stay distinct for the
  caller; the HTTP layer decides how much of that to reveal.

Layer rule: no imports from api/ or vault/.
"""

from __future__ import annotations

import logging
from typing import Protocol

from sqlalchemy import Column, MetaData, String, Table, Text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError

from auth.models import RegisteredUser
from auth.tokens import burn_dummy_check, hash_password, verify_password
from core.db import make_engine
from core.errors import DuplicateUser, InvalidCredentials, NoSuchUser

logger = logging.getLogger("secretkeeper.auth")

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_registered_users = Table(
    "registered_users",
    _metadata,
    Column("login", String(255), primary_key=True),
    Column("password", Text, nullable=False),  # bcrypt hash
)


class CredentialStorage(Protocol):
    """What the auth routes need from a credential backend."""

    def register(self, login: str, password: str) -> None: ...

    def login(self, login: str, password: str) -> None: ...


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class UserStore:
    """Repository for RegisteredUser records.

    Usage:
        store = UserStore("sqlite:///secretkeeper.db")
        store.register("alice", "pw1")
        store.login("alice", "pw1")     # returns None
        store.close()
    """

    def __init__(self, db_url: str) -> None:
        self.engine: Engine = make_engine(db_url)
        _metadata.create_all(self.engine)

    def register(self, login: str, password: str) -> None:
        """Hash password and persist a new login.

        Raises DuplicateUser if the login is already registered.
        """
        hashed = hash_password(password)
        try:
            with self.engine.connect() as conn:
                conn.execute(_registered_users.insert().values(login=login, password=hashed))
                conn.commit()
        except IntegrityError as exc:
            raise DuplicateUser(f"login {login!r} is already taken") from exc
        logger.info("Registered new user %r", login)

    def login(self, login: str, password: str) -> None:
        """Check a login/password pair.

        Raises NoSuchUser if the login is not registered and
        InvalidCredentials if the password does not match.
        """
        user = self.get_by_login(login)
        if user is None:
            # Equalize timing -- do NOT return early before running bcrypt
            burn_dummy_check(password)
            raise NoSuchUser(f"no such user {login!r}")
        if not verify_password(password, user.password_hash):
            raise InvalidCredentials(f"wrong password for user {login!r}")

    def get_by_login(self, login: str) -> RegisteredUser | None:
        """Look up a user by exact login (case-sensitive). Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_registered_users.select().where(_registered_users.c.login == login)).fetchone()
        return _row_to_user(row) if row is not None else None

    def ping(self) -> bool:
        """Return True if the database answers a trivial query."""
        try:
            with self.engine.connect() as conn:
                conn.execute(_registered_users.select().limit(1)).fetchall()
        except Exception:
            logger.exception("Credential database ping failed")
            return False
        return True

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_user(row) -> RegisteredUser:
    return RegisteredUser(login=row.login, password_hash=row.password)
