"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for authgate happen here. No module should
call os.getenv() or os.environ.get() directly -- import get_settings() instead.
The one exception is core/diagnostics.py, whose whole job is to read a named
variable from the live process environment at request time.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call.

  BaseSettings (pydantic-settings): Reads values from environment variables
      and an optional .env file automatically. Field names map to env var names
      (e.g. secret_key -> SECRET_KEY). database_url also accepts PG_CONN_STR.

  @model_validator(mode="after"): DEBUG-conditional SECRET_KEY policy. Dev
      mode generates a key with a warning, production refuses to start without
      one.

Security notes:
  [M6] SECRET_KEY shorter than 32 chars is rejected outright. Session JWTs
       are HMAC-SHA256 signed with it.

  [M7] In production mode (DEBUG not set or false), a missing SECRET_KEY is a
       hard startup failure.

  The database URL may embed credentials. It is never logged; only the
  dialect name is.

Layer rule: core/ is the kernel. This module may not import from api/, auth/,
or resources/.
"""

import logging
import secrets
from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import AliasChoices, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("authgate.config")


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
        populate_by_name=True,
    )

    # ------------------------------------------------------------------
    # Core
    # ------------------------------------------------------------------

    debug: bool = False
    # Empty string is the sentinel for "not configured". The model_validator
    # below either generates a dev key or raises, so callers never see "".
    secret_key: str = ""
    allowed_hosts: list[str] = ["*"]
    request_timeout_seconds: float = Field(default=5.0, gt=0)

    # ------------------------------------------------------------------
    # Identity store
    # ------------------------------------------------------------------

    database_url: str = Field(
        default="sqlite:///./authgate.db",
        validation_alias=AliasChoices("DATABASE_URL", "PG_CONN_STR", "database_url"),
    )
    identity_backend: Literal["sql", "memory"] = "sql"
    bcrypt_rounds: int = Field(default=12, ge=4, le=31)

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    session_ttl_seconds: int = Field(default=600, gt=0)
    session_cookie_name: str = "session"

    # ------------------------------------------------------------------
    # Registration and rate limiting
    # ------------------------------------------------------------------

    self_registration_enabled: bool = True
    login_rate_limit: str = "10/minute"
    register_rate_limit: str = "10/minute"

    # ------------------------------------------------------------------
    # Resources and diagnostics
    # ------------------------------------------------------------------

    files_root: Path = Path("files")
    diagnostics_enabled: bool = True
    diagnostics_env_var: str = "SECRET_KEY"

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_secret_key(self) -> "Settings":
        """Enforce SECRET_KEY policy [M7].

        Dev mode (DEBUG=true): auto-generate a random key with a warning.
            Sessions will not survive restart -- acceptable for local dev.

        Production mode (DEBUG=false or not set): refuse to start if
            SECRET_KEY is missing.

        Both modes: reject keys shorter than 32 characters [M6].
        """
        if not self.secret_key:
            if self.debug:
                self.secret_key = secrets.token_hex(32)
                logger.warning("Using auto-generated SECRET_KEY. Sessions will not persist across restarts.")
            else:
                raise ValueError(
                    "SECRET_KEY is required in production mode. "
                    "Set SECRET_KEY in your environment or .env file. "
                    "To run in development mode, set DEBUG=true."
                )
        if len(self.secret_key) < 32:
            raise ValueError("SECRET_KEY must be at least 32 characters.")
        return self

    @property
    def database_dialect(self) -> str:
        """Dialect name of database_url, safe to log (no host, user or password)."""
        return self.database_url.split(":", 1)[0].split("+", 1)[0]


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    return Settings()
