"""
Configuration settings for the Product Hunt exporter.

Values come from class defaults, then the project-root ``.env`` file, then the
process environment. Use ``get_settings()`` rather than instantiating directly
so every component shares one cached instance.
"""

from functools import lru_cache
from pathlib import Path
from typing import Optional, Union

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from producthunt_exporter.exceptions import ConfigurationError

# Root of the producthunt_exporter package and of the repository
SERVICE_ROOT_DIR = Path(__file__).parent.parent.resolve()
PROJECT_ROOT_DIR = SERVICE_ROOT_DIR.parent


class Settings(BaseSettings):
    # Application settings
    APP_NAME: str = "ProductHuntExporter"
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = False
    API_HOST: str = "0.0.0.0"
    API_PORT: int = 8002
    CORS_ORIGINS: Union[str, list[str]] = "http://localhost:3000"

    # Product Hunt API
    PRODUCT_HUNT_ACCESS_TOKEN: Optional[str] = None
    PRODUCT_HUNT_API_URL: str = "https://api.producthunt.com/v2/api/graphql"
    HTTP_TIMEOUT_SECONDS: float = 30.0

    # Pagination
    PAGE_SIZE: int = Field(default=50, ge=1, le=50, description="Posts per GraphQL page (API max is 50)")
    PREVIEW_PAGE_SIZE: int = 20
    MAX_PAGES: int = Field(default=100, ge=1)

    # Throttling
    MAX_THROTTLE_RETRIES: int = 3
    THROTTLE_DEFAULT_WAIT_SECONDS: int = 60
    BUFFERED_MAX_RETRY_WAIT_SECONDS: int = 30
    BUFFERED_TIMEOUT_SECONDS: float = 300.0

    # Early stop
    EARLY_STOP_ENABLED: bool = True
    EARLY_STOP_STREAK: int = Field(default=2, ge=1)

    # CSV output
    EXPORT_LAYOUT: str = "featured"
    CSV_TIMEZONE: str = "Asia/Tokyo"

    # Logging
    LOG_LEVEL: str = "INFO"
    LOGGING_CONFIG_PATH: str = str(SERVICE_ROOT_DIR / "config" / "logging_config.yaml")

    model_config = SettingsConfigDict(
        env_file=str(PROJECT_ROOT_DIR / ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    def model_post_init(self, __context) -> None:
        """Parse comma-separated strings into lists after model initialization."""
        if isinstance(self.CORS_ORIGINS, str):
            self.CORS_ORIGINS = [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]

    def require_access_token(self) -> str:
        """
        Return the configured access token, stripped of surrounding whitespace.

        Raises:
            ConfigurationError: If no token is configured.
        """
        token = (self.PRODUCT_HUNT_ACCESS_TOKEN or "").strip()
        if not token:
            raise ConfigurationError("Product Hunt access token is not configured")
        return token


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Returns:
        Settings: Configured settings instance
    """
    return Settings()
