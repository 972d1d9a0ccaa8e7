"""
Application configuration for the API client engine.

Loads settings from environment variables (and an optional .env file)
using pydantic-settings.
"""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Engine-wide settings.

    Every field can be overridden through an environment variable of the same name.
    """

    DATABASE_URL: str = Field(
        default="sqlite:///./api_client_engine.db", description="SQLAlchemy database URL"
    )
    LOG_LEVEL: str = Field(default="INFO", description="Log level")
    HOST: str = Field(default="127.0.0.1", description="Bind address for the API server")
    PORT: int = Field(default=8000, description="Port for the API server")

    # Transport defaults
    DEFAULT_TIMEOUT_SECONDS: float = Field(default=30.0, description="Request timeout (seconds)")
    DEFAULT_MAX_REDIRECTS: int = Field(default=5, description="Redirects followed by default")
    MAX_REDIRECTS_LIMIT: int = Field(default=20, description="Upper bound on a request's redirect limit")
    MAX_RESPONSE_BYTES: int = Field(
        default=50 * 1024 * 1024, description="Largest response body accepted (bytes)"
    )
    KEEPALIVE_CONNECTIONS: int = Field(default=20, description="Idle connections kept per client")

    # Variable scopes
    MAX_FOLDER_DEPTH: int = Field(
        default=32, description="Longest folder chain walked when looking for a root collection"
    )

    # Script sandbox
    SCRIPT_TIMEOUT_MS: int = Field(default=5000, description="Script evaluation bound (ms)")

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", case_sensitive=True, extra="ignore"
    )


@lru_cache
def get_settings() -> Settings:
    """Return the process-wide settings instance."""
    return Settings()
