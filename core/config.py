"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for SecretKeeper happen here. No module should
call os.getenv() or os.environ.get() directly -- import get_settings() instead.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call. Both the
      server (api/main.py) and the CLI client (main.py) read it.

  BaseSettings (pydantic-settings): Reads values from environment variables
      and an optional .env file automatically. Field names map to env var names
      (e.g. encryption_key -> ENCRYPTION_KEY).

  @model_validator(mode="after"): DEBUG-conditional key handling. Dev mode
      generates missing keys with a warning; production refuses to start.

Security notes:
  SECRET_KEY signs session tokens; ENCRYPTION_KEY is the input key material
  for stored-field encryption. They are separate so that rotating one does not
  force rotating the other. Both must be at least 32 characters.

  In production mode a missing ENCRYPTION_KEY is a hard failure: a generated
  key would make every stored secret unreadable after the next restart.

Layer rule: core/ is the kernel. This module may not import from api/, auth/,
or vault/.
"""

import logging
import secrets
from functools import lru_cache
from pathlib import Path

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("secretkeeper.config")

_MIN_KEY_LENGTH = 32
_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).resolve().parent.parent / 'secretkeeper.db'}"


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file.

    All fields have defaults so Settings() can be instantiated in test
    environments without a real .env file. The model_validator enforces
    production-safety rules at startup.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # Core
    # ------------------------------------------------------------------

    debug: bool = False
    # Empty string is the sentinel for "not configured". The model_validator
    # below either generates a dev key or raises, so callers never see "".
    secret_key: str = ""
    encryption_key: str = ""

    # ------------------------------------------------------------------
    # Storage
    # ------------------------------------------------------------------

    database_url: str = _DEFAULT_DB_URL

    # ------------------------------------------------------------------
    # Server / client addressing
    # ------------------------------------------------------------------

    application_host: str = "127.0.0.1"
    application_port: int = 8080
    allowed_hosts: list[str] = ["localhost", "127.0.0.1", "*.localhost"]

    # ------------------------------------------------------------------
    # Auth
    # ------------------------------------------------------------------

    secure_cookies: bool = False
    token_expire_seconds: int = 3600
    session_max_entries: int = 10_000
    session_purge_interval_seconds: int = 15 * 60

    # ------------------------------------------------------------------
    # Rate limiting
    # ------------------------------------------------------------------

    login_rate_limit: str = "10/minute"

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_keys(self) -> "Settings":
        """Enforce the key policy for SECRET_KEY and ENCRYPTION_KEY.

        Dev mode (DEBUG=true): auto-generate missing keys with a warning.
            Sessions and stored secrets will not survive restart.

        Production mode: refuse to start if either key is missing.

        Both modes: reject keys shorter than 32 characters.
        """
        for field_name in ("secret_key", "encryption_key"):
            env_name = field_name.upper()
            value = getattr(self, field_name)
            if not value:
                if not self.debug:
                    raise ValueError(
                        f"{env_name} is required in production mode. "
                        f"Set {env_name} in your environment or .env file. "
                        "To run in development mode, set DEBUG=true."
                    )
                value = secrets.token_hex(32)
                setattr(self, field_name, value)
                logger.warning("WARNING: Using auto-generated %s. Data tied to it will not persist.", env_name)
            if len(value) < _MIN_KEY_LENGTH:
                raise ValueError(f"{env_name} must be at least {_MIN_KEY_LENGTH} characters.")
        return self


class ClientSettings(BaseSettings):
    """Settings for the CLI client commands.

    Separate from Settings because a client only needs the server address and
    must not require the server's keys.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    application_host: str = "127.0.0.1"
    application_port: int = 8080
    request_timeout_seconds: float = 10.0

    @property
    def server_url(self) -> str:
        return f"http://{self.application_host}:{self.application_port}"


@lru_cache
def get_client_settings() -> ClientSettings:
    return ClientSettings()


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    return Settings()
