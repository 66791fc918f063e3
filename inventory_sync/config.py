"""
Configuration module for the inventory sync client.

This module provides centralized configuration management using Pydantic settings.
All configuration values can be overridden via environment variables or .env file.
"""

from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Settings for the inventory sync client.

    All settings can be configured via environment variables.
    Settings are validated on instantiation to ensure correct configuration.

    Attributes:
        API_BASE_URL: Base URL of the inventory REST API
        REQUEST_TIMEOUT: Default timeout for HTTP requests in seconds
        ENABLE_HTTP2: Negotiate HTTP/2 on the shared connection pool
        CREDENTIAL_STORE_PATH: JSON file holding the persisted credential
        CREDENTIAL_KEY: Key under which the credential is persisted
        LOW_STOCK_THRESHOLD: Quantity at or below which a product is low on stock
        LOG_LEVEL: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        LOG_JSON: Emit structured JSON logs instead of human-readable lines
        ENABLE_REQUEST_TRACING: Attach X-Request-ID headers to outgoing calls
    """

    API_BASE_URL: str = Field(
        default="http://localhost:5000",
        description="Base URL of the inventory REST API",
    )

    REQUEST_TIMEOUT: float = Field(
        default=10.0,
        gt=0,
        le=30.0,
        description="Default timeout for HTTP requests in seconds",
    )
    ENABLE_HTTP2: bool = Field(
        default=True,
        description="Negotiate HTTP/2 on the shared connection pool",
    )

    # Session persistence
    CREDENTIAL_STORE_PATH: str = Field(
        default=".inventory-sync/session.json",
        description="JSON file holding the persisted credential",
    )
    CREDENTIAL_KEY: str = Field(
        default="token",
        min_length=1,
        description="Key under which the credential is persisted",
    )

    LOW_STOCK_THRESHOLD: int = Field(
        default=5,
        ge=0,
        description="Quantity at or below which a product counts as low stock",
    )

    # Logging configuration
    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Logging level",
    )
    LOG_JSON: bool = Field(
        default=False,
        description="Emit structured JSON logs",
    )
    ENABLE_REQUEST_TRACING: bool = Field(
        default=True,
        description="Attach request IDs to outgoing API calls",
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    @field_validator("API_BASE_URL")
    @classmethod
    def validate_url(cls, value: str) -> str:
        """
        Validate that the API URL is properly formatted.

        Args:
            value: The URL to validate

        Returns:
            The validated URL without trailing slash

        Raises:
            ValueError: If URL is invalid
        """
        if not value:
            raise ValueError("API base URL cannot be empty")

        value = value.rstrip("/")

        if not (value.startswith("http://") or value.startswith("https://")):
            raise ValueError(
                f"API base URL must start with http:// or https://, got: {value}"
            )

        return value


# Global settings instance
settings = Settings()
