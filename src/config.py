"""
Configuration settings for the application.
"""

import logging
import os

from dotenv import load_dotenv

load_dotenv()


class Settings:
    """Application settings loaded from environment variables."""

    # Environment
    ENVIRONMENT: str = os.getenv("ENVIRONMENT", "development")

    # Upstream collaborators
    CATALOG_API_URL: str = os.getenv("CATALOG_API_URL", "http://localhost:4000/api")
    PROMOTIONAL_API_URL: str = os.getenv(
        "PROMOTIONAL_API_URL",
        "http://localhost:4000/api",
    )
    PROFILE_API_URL: str | None = os.getenv("PROFILE_API_URL")
    # Must resolve the requester, not this server; device lookup is off when unset.
    IP_GEOLOCATION_URL: str | None = os.getenv("IP_GEOLOCATION_URL")
    HTTP_TIMEOUT_SECONDS: float = float(os.getenv("HTTP_TIMEOUT_SECONDS", "10"))
    CATALOG_MAX_RETRIES: int = int(os.getenv("CATALOG_MAX_RETRIES", "2"))
    CATALOG_RETRY_BASE_DELAY: float = float(
        os.getenv("CATALOG_RETRY_BASE_DELAY", "0.2")
    )

    # Location resolution
    GEOLOCATION_TIMEOUT_SECONDS: float = float(
        os.getenv("GEOLOCATION_TIMEOUT_SECONDS", "5")
    )
    DEFAULT_LATITUDE: float = float(os.getenv("DEFAULT_LATITUDE", "45.5017"))
    DEFAULT_LONGITUDE: float = float(os.getenv("DEFAULT_LONGITUDE", "-73.5673"))

    # Search result cache
    SEARCH_CACHE_BACKEND: str = os.getenv("SEARCH_CACHE_BACKEND", "memory")
    SEARCH_CACHE_TTL_SECONDS: int = int(os.getenv("SEARCH_CACHE_TTL_SECONDS", "300"))
    SEARCH_CACHE_MAX_ENTRIES: int = int(os.getenv("SEARCH_CACHE_MAX_ENTRIES", "500"))
    SEARCH_CACHE_KEY_PREFIX: str = os.getenv("SEARCH_CACHE_KEY_PREFIX", "search:")
    REDIS_URL: str = os.getenv("REDIS_URL", "redis://localhost:6379/0")

    # Ranking
    SPONSORED_LIMIT: int = int(os.getenv("SPONSORED_LIMIT", "5"))
    SPONSORED_BOOST: float = float(os.getenv("SPONSORED_BOOST", "200"))
    SHOWCASE_LIMIT: int = int(os.getenv("SHOWCASE_LIMIT", "6"))
    INCLUDE_UNAVAILABLE: bool = (
        os.getenv("INCLUDE_UNAVAILABLE", "false").lower() == "true"
    )

    @property
    def is_production(self) -> bool:
        """
        Check if running in production environment.
        """
        return self.ENVIRONMENT.lower() == "production"

    @property
    def redis_cache_enabled(self) -> bool:
        """Return True when search results should be memoized in Redis."""
        return self.SEARCH_CACHE_BACKEND.lower() == "redis"

    def __init__(self):
        self.debug = os.getenv("DEBUG", "false").lower() == "true"
        self.log_level = os.getenv("LOG_LEVEL", "INFO")
        logging.basicConfig(level=self.log_level)
        self.logger = logging.getLogger(__name__)

        self.logger.debug(
            f"Config initialized with environment={self.ENVIRONMENT}, "
            f"debug={self.debug}, log_level={self.log_level}"
        )


# Create a global settings instance for import
settings = Settings()
