"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for the enrichment service happen here. No
module should call os.getenv() or os.environ.get() directly -- import
get_settings() instead.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call. This is
      the official FastAPI dependency injection pattern for config.

  BaseSettings (pydantic-settings): Reads values from environment variables
      and an optional .env file automatically. Field names map to env var names
      (e.g. nvd_api_key -> NVD_API_KEY). Type coercion and validation are built in.

Layer rule: core/ is the kernel. This module may not import from api/.
"""

import logging
from functools import lru_cache
from typing import Optional

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("otvuln.config")


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

    # ------------------------------------------------------------------
    # Upstream data sources
    # ------------------------------------------------------------------

    # Optional. With a key NVD allows 50 req/30s instead of 5 req/30s.
    # Free registration at https://nvd.nist.gov/developers/request-an-api-key
    nvd_api_key: Optional[str] = None
    nvd_results_per_page: int = 50
    http_timeout_seconds: float = 10.0

    # ------------------------------------------------------------------
    # Batch enrichment
    # ------------------------------------------------------------------

    max_assets_per_request: int = 20
    # One NVD call per ~6.5s keeps unauthenticated clients under 5 req/30s.
    enrichment_delay_ms: int = 6500

    # ------------------------------------------------------------------
    # Inbound rate limiting (slowapi limit strings)
    # ------------------------------------------------------------------

    batch_rate_limit: str = "5/minute"
    lookup_rate_limit: str = "30/minute"

    # ------------------------------------------------------------------
    # HTTP surface
    # ------------------------------------------------------------------

    allowed_hosts: list[str] = ["localhost", "127.0.0.1", "*.localhost"]
    cors_origins: list[str] = ["http://localhost", "http://localhost:3000", "http://127.0.0.1"]

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_batch_limits(self) -> "Settings":
        """Reject batch settings that would disable the cap or the pacing."""
        if self.max_assets_per_request < 1:
            raise ValueError("MAX_ASSETS_PER_REQUEST must be at least 1.")
        if self.enrichment_delay_ms < 0:
            raise ValueError("ENRICHMENT_DELAY_MS must not be negative.")
        if self.enrichment_delay_ms == 0:
            logger.warning("ENRICHMENT_DELAY_MS is 0 -- batch requests will not be paced against NVD limits.")
        return self

    @property
    def enrichment_delay_seconds(self) -> float:
        return self.enrichment_delay_ms / 1000


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    return Settings()
