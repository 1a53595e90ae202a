"""
Back-office Console - Configuration Management
==============================================
Centralized configuration with environment variable support and validation.

Usage:
    from backoffice.config import settings

    base_url = settings.rpc_base_url
    page_size = settings.default_page_size
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass

logger = logging.getLogger(__name__)


@dataclass
class Settings:
    """Application settings with environment variable overrides."""

    # Remote procedure transport
    rpc_base_url: str = "http://localhost:8084"
    rpc_timeout_seconds: float = 10.0

    # Query cache
    # Successful results younger than this are served without a new call.
    query_stale_seconds: float = 0.0

    # Pagination
    default_page_size: int = 20
    page_size_options: tuple[int, ...] = (10, 20, 50, 100)

    # Circuit breaker for the RPC backend
    circuit_breaker_failure_threshold: int = 5
    circuit_breaker_timeout_seconds: int = 30

    # Routing
    family_param: str = "familyExternalId"

    # Feature flags
    debug_mode: bool = False

    def __post_init__(self):
        """Load overrides from environment variables."""
        self._load_env_overrides()

    def _load_env_overrides(self):
        """Load configuration from environment variables."""
        # Transport
        if base_url := os.environ.get("BACKOFFICE_RPC_URL"):
            self.rpc_base_url = base_url.rstrip("/")
        if timeout := os.environ.get("BACKOFFICE_RPC_TIMEOUT"):
            self.rpc_timeout_seconds = float(timeout)

        # Query cache
        if stale := os.environ.get("BACKOFFICE_QUERY_STALE_SECONDS"):
            self.query_stale_seconds = float(stale)

        # Pagination
        if page_size := os.environ.get("BACKOFFICE_PAGE_SIZE"):
            self.default_page_size = int(page_size)
        if options := os.environ.get("BACKOFFICE_PAGE_SIZE_OPTIONS", "").strip():
            self.page_size_options = tuple(int(o) for o in options.split(",") if o.strip())
        if self.default_page_size <= 0:
            logger.warning(
                "BACKOFFICE_PAGE_SIZE must be positive, got %s - falling back to 20",
                self.default_page_size,
            )
            self.default_page_size = 20

        # Circuit breaker
        if threshold := os.environ.get("BACKOFFICE_CB_FAILURE_THRESHOLD"):
            self.circuit_breaker_failure_threshold = int(threshold)
        if cb_timeout := os.environ.get("BACKOFFICE_CB_TIMEOUT"):
            self.circuit_breaker_timeout_seconds = int(cb_timeout)

        # Feature flags
        if os.environ.get("DEBUG", "").lower() in ("1", "true"):
            self.debug_mode = True

    @property
    def rpc_api_key(self) -> str | None:
        """Get the backend API key from environment (never stored in config)."""
        return os.environ.get("BACKOFFICE_API_KEY")


# Singleton instance
_settings: Settings | None = None


def get_settings() -> Settings:
    """Get the global settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings()
        if _settings.debug_mode:
            logger.info("Settings loaded with debug mode enabled")
    return _settings


def reload_settings() -> Settings:
    """Force reload settings from environment."""
    global _settings
    _settings = Settings()
    return _settings


# Convenience alias
settings = get_settings()
