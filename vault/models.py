"""
vault/models.py -- Domain dataclasses for stored secrets.

These are pure data containers with zero logic. Encryption of secret fields
happens in vault/store.py, so instances here always hold plaintext.

Every record belongs to exactly one user_name. All other fields are optional
because the same shape doubles as a lookup filter (e.g. a Card with only
user_name and bank_name set selects all cards from that bank).
"""

from dataclasses import dataclass
from typing import Optional


@dataclass
class Credentials:
    """A login/password pair for some third-party service.

    password is encrypted at rest.
    """

    user_name: str
    login: Optional[str] = None
    password: Optional[str] = None
    metadata: Optional[str] = None


@dataclass
class Note:
    """A free-text note. content is encrypted at rest; title is not."""

    user_name: str
    title: Optional[str] = None
    content: Optional[str] = None
    metadata: Optional[str] = None


@dataclass
class Card:
    """Bank card details. cv and password are encrypted at rest.

    number stays in clear text because it is a lookup key.
    """

    user_name: str
    bank_name: Optional[str] = None
    number: Optional[str] = None
    cv: Optional[str] = None
    password: Optional[str] = None
    metadata: Optional[str] = None
