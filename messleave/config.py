"""
Configuration management using Pydantic Settings.
Reads from environment variables.
"""

from pydantic import ConfigDict, Field, field_validator
from pydantic_settings import BaseSettings


def normalize_api_base_url(raw: str) -> str:
    """
    Normalize the backend base URL.

    A bare origin (``https://host``) gets ``/api`` appended; anything that
    already carries a path is only stripped of trailing slashes.
    """
    value = (raw or "/api").strip().rstrip("/")
    if not value:
        return "/api"
    if value.startswith(("http://", "https://")):
        scheme, _, rest = value.partition("://")
        if "/" not in rest:
            return f"{scheme}://{rest}/api"
    return value


class Settings(BaseSettings):
    """Application settings."""

    model_config = ConfigDict(env_file=".env", case_sensitive=False)

    # Backend API
    api_base_url: str = Field(default="http://localhost:5000/api", alias="API_BASE_URL")
    api_auth_token: str | None = Field(default=None, alias="API_AUTH_TOKEN")
    api_timeout_seconds: float = Field(default=30.0, alias="API_TIMEOUT_SECONDS")

    # Session memory controls
    max_sessions: int = Field(default=1000, alias="MAX_SESSIONS")
    session_ttl_seconds: int = Field(default=1800, alias="SESSION_TTL_SECONDS")

    # Application Configuration
    environment: str = Field(default="development", alias="ENVIRONMENT")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # Circuit Breaker Configuration
    circuit_breaker_failure_threshold: int = Field(
        default=5, alias="CIRCUIT_BREAKER_FAILURE_THRESHOLD"
    )
    circuit_breaker_timeout: int = Field(default=60, alias="CIRCUIT_BREAKER_TIMEOUT")

    @field_validator("api_base_url")
    @classmethod
    def _normalize_base_url(cls, value: str) -> str:
        return normalize_api_base_url(value)


# Global settings instance
settings = Settings()
