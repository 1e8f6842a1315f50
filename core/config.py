"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for Vet1Stop happen here. No module should
call os.getenv() or os.environ.get() directly -- import get_settings() instead.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call.

  BaseSettings (pydantic-settings): Reads values from environment variables
      and an optional .env file automatically. Field names map to env var names
      (e.g. identity_api_key -> IDENTITY_API_KEY). Type coercion and validation
      are built in.

  @model_validator(mode="after"): Runs cross-field validation after all fields
      are resolved from environment.

Layer rule: core/ is the kernel. This module may not import from auth/ or
resources/.
"""

import logging
from datetime import datetime, timezone
from functools import lru_cache

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("vet1stop.config")


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file.

    All fields have defaults so Settings() can be instantiated in test
    environments without a real .env file.
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
    log_level: str = "INFO"

    # ------------------------------------------------------------------
    # Storage (empty string = use the store's default SQLite file)
    # ------------------------------------------------------------------

    resource_db_url: str = ""
    session_db_url: str = ""

    # ------------------------------------------------------------------
    # Identity provider (Identity Toolkit REST API)
    # ------------------------------------------------------------------

    identity_api_key: str = ""
    identity_base_url: str = "https://identitytoolkit.googleapis.com/v1"
    identity_timeout_seconds: float = 10.0

    # ------------------------------------------------------------------
    # Google federated sign-in (optional -- empty means disabled)
    # ------------------------------------------------------------------

    google_client_id: str = ""
    google_client_secret: str = ""
    google_redirect_uri: str = "http://localhost:8765/callback"

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_identity(self) -> "Settings":
        """Reject half-configured Google credentials and flag a missing API key.

        A client ID without its secret (or the reverse) would only fail at the
        token exchange step, after the user has already gone through consent.
        Refuse to start instead.

        A missing IDENTITY_API_KEY is not fatal here: resource lookups work
        without it. The identity client raises when it is actually used.
        """
        if bool(self.google_client_id) != bool(self.google_client_secret):
            raise ValueError("GOOGLE_CLIENT_ID and GOOGLE_CLIENT_SECRET must be set together.")
        if not self.identity_api_key and self.debug:
            logger.warning("IDENTITY_API_KEY is not set. Sign-in commands will be unavailable.")
        return self

    @property
    def google_enabled(self) -> bool:
        return bool(self.google_client_id and self.google_client_secret)


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    Uses lru_cache so Settings() is instantiated exactly once -- at first call.
    All modules should call get_settings() rather than constructing Settings() directly.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    return Settings()


def now_iso() -> str:
    """Current UTC time as an ISO 8601 string. Shared by every store."""
    return datetime.now(timezone.utc).isoformat()
