"""
API request and response models for SecretKeeper REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in vault/models.py, which
own the internal domain representation. Route handlers map between the two.

Every secret-data request body carries user_name: the Auth Gate reads it to
find the caller's session before the route handler runs.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from vault.models import Card, Credentials, Note

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

CARD_NUMBER_PATTERN = r"^\d{16}$"
CARD_CV_PATTERN = r"^\d{3}$"

# bcrypt refuses inputs over 72 bytes. Multibyte characters count per byte.
_MAX_PASSWORD_LENGTH = 64
_MAX_PASSWORD_BYTES = 72


# ---------------------------------------------------------------------------
# Auth
# ---------------------------------------------------------------------------


class LoginRequest(BaseModel):
    """Request body for POST /auth/login and POST /auth/register."""

    login: str = Field(min_length=1, max_length=255)
    password: str = Field(min_length=1, max_length=_MAX_PASSWORD_LENGTH)

    @field_validator("password")
    @classmethod
    def password_fits_bcrypt(cls, v: str) -> str:
        if len(v.encode("utf-8")) > _MAX_PASSWORD_BYTES:
            raise ValueError(f"password must be at most {_MAX_PASSWORD_BYTES} bytes when UTF-8 encoded")
        return v


class LoginResponse(BaseModel):
    """Issued session token. The same value is cached server-side."""

    model_config = ConfigDict(frozen=True)

    access_token: str
    token_type: str = "bearer"
    expires_in: int
    username: str


# ---------------------------------------------------------------------------
# Secret records -- request bodies
#
# The *Query models are filters: only user_name is required.
# ---------------------------------------------------------------------------


class _UserScoped(BaseModel):
    # No str_strip_whitespace here: passwords and note content are stored verbatim.
    user_name: str = Field(min_length=1, max_length=255)


class CredentialsQuery(_UserScoped):
    login: Optional[str] = Field(default=None, max_length=255)


class CredentialsBody(_UserScoped):
    """Request body for save/update credentials. login and password are required."""

    login: str = Field(min_length=1, max_length=255)
    password: str = Field(min_length=1)
    metadata: Optional[str] = None

    def to_domain(self) -> Credentials:
        return Credentials(
            user_name=self.user_name,
            login=self.login,
            password=self.password,
            metadata=self.metadata,
        )


class NoteQuery(_UserScoped):
    title: Optional[str] = Field(default=None, max_length=255)


class NoteBody(_UserScoped):
    """Request body for POST /save/note. title is required, content may be empty."""

    title: str = Field(min_length=1, max_length=255)
    content: Optional[str] = None
    metadata: Optional[str] = None

    def to_domain(self) -> Note:
        return Note(user_name=self.user_name, title=self.title, content=self.content, metadata=self.metadata)


class NoteUpdateBody(NoteBody):
    """Request body for POST /update/note. title and content are both required."""

    content: str


class CardQuery(_UserScoped):
    bank_name: Optional[str] = Field(default=None, max_length=255)
    number: Optional[str] = Field(default=None, pattern=CARD_NUMBER_PATTERN)


class CardBody(_UserScoped):
    """Request body for POST /save/card."""

    bank_name: str = Field(min_length=1, max_length=255)
    number: str = Field(pattern=CARD_NUMBER_PATTERN, description="16-digit card number")
    cv: str = Field(pattern=CARD_CV_PATTERN, description="3-digit card verification code")
    password: str = Field(min_length=1)
    metadata: Optional[str] = None

    def to_domain(self) -> Card:
        return Card(
            user_name=self.user_name,
            bank_name=self.bank_name,
            number=self.number,
            cv=self.cv,
            password=self.password,
            metadata=self.metadata,
        )


# ---------------------------------------------------------------------------
# Secret records -- responses
# ---------------------------------------------------------------------------


class CredentialsRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    user_name: str
    login: str
    password: str
    metadata: Optional[str] = None

    @classmethod
    def from_domain(cls, creds: Credentials) -> "CredentialsRecord":
        return cls(user_name=creds.user_name, login=creds.login, password=creds.password, metadata=creds.metadata)


class NoteRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    user_name: str
    title: str
    content: str
    metadata: Optional[str] = None

    @classmethod
    def from_domain(cls, note: Note) -> "NoteRecord":
        return cls(user_name=note.user_name, title=note.title, content=note.content, metadata=note.metadata)


class CardRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    user_name: str
    bank_name: str
    number: str
    cv: str
    password: str
    metadata: Optional[str] = None

    @classmethod
    def from_domain(cls, card: Card) -> "CardRecord":
        return cls(
            user_name=card.user_name,
            bank_name=card.bank_name,
            number=card.number,
            cv=card.cv,
            password=card.password,
            metadata=card.metadata,
        )


class MessageResponse(BaseModel):
    """Plain acknowledgement for save/update/delete operations."""

    model_config = ConfigDict(frozen=True)

    message: str


# ---------------------------------------------------------------------------
# Errors and health
# ---------------------------------------------------------------------------


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "healthy"
    version: str
    components: dict[str, str] = Field(default_factory=dict)
