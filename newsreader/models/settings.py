"""Settings and configuration management."""

import logging
from typing import Literal, Optional

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Application settings loaded from environment variables or ``.env``."""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False)

    # Key-value store
    kv_rest_api_url: Optional[str] = Field(None, description="Upstash REST URL")
    kv_rest_api_token: Optional[str] = Field(None, description="Upstash REST token")
    redis_url: Optional[str] = Field(None, description="redis:// connection URL")
    store_backend: Literal["auto", "redis", "upstash", "memory"] = Field(
        "auto", description="Which key-value backend to use"
    )
    kv_timeout: float = Field(
        10.0, ge=1.0, le=60.0, description="Key-value request timeout in seconds"
    )

    # Application Settings
    environment: str = Field("production", description="Runtime environment")
    debug: bool = Field(False, description="Debug mode")
    log_level: str = Field("INFO", description="Log level")
    app_version: str = Field("1.0.0", description="Reported application version")

    # Listing
    default_page_size: int = Field(10, ge=1, le=100, description="Default page size")
    max_page_size: int = Field(100, ge=1, le=500, description="Largest page size")
    preview_length: int = Field(
        200, ge=20, le=2000, description="Characters of preview text on cards"
    )

    @property
    def is_development(self) -> bool:
        """Whether debug payloads and debug endpoints are exposed."""
        return self.debug or self.environment.lower() == "development"

    @property
    def has_upstash_credentials(self) -> bool:
        return bool(self.kv_rest_api_url and self.kv_rest_api_token)

    @model_validator(mode="after")
    def check_backend_credentials(self) -> "Settings":
        """Fail early when an explicit backend is missing its credentials."""
        if self.store_backend == "upstash" and not self.has_upstash_credentials:
            raise ValueError(
                "store_backend=upstash requires KV_REST_API_URL and KV_REST_API_TOKEN"
            )
        if self.store_backend == "redis" and not self.redis_url:
            raise ValueError("store_backend=redis requires REDIS_URL")
        if self.default_page_size > self.max_page_size:
            logger.warning(
                f"default_page_size {self.default_page_size} exceeds "
                f"max_page_size {self.max_page_size}; clamping"
            )
            self.default_page_size = self.max_page_size
        return self
