"""Application configuration."""

import os

from pydantic_settings import BaseSettings, SettingsConfigDict

_ENVIRONMENT = os.getenv("ENVIRONMENT", "local")


class ClientSettings(BaseSettings):
    """Settings for the tracker client loaded from environment variables."""

    api_base_url: str = "http://localhost:8000"
    request_timeout_seconds: float = 10.0
    autosave_debounce_seconds: float = 1.0
    token_check_interval_seconds: float = 60.0
    local_cache_path: str = "~/.macro_tracker/cache.json"
    environment: str = _ENVIRONMENT

    model_config = SettingsConfigDict(
        env_file=(f".env.{_ENVIRONMENT}", ".env"),
        extra="ignore",
    )


class ServerSettings(BaseSettings):
    """Settings for the remote store API loaded from environment variables."""

    supabase_url: str
    supabase_service_key: str
    jwt_secret: str
    token_ttl_days: int = 7
    password_hash_rounds: int = 12
    auth_rate_limit_attempts: int = 5
    auth_rate_limit_window_seconds: int = 300
    allowed_origins: str | None = None
    environment: str = _ENVIRONMENT

    model_config = SettingsConfigDict(
        env_file=(f".env.{_ENVIRONMENT}", ".env"),
        extra="ignore",
    )


def parse_allowed_origins(raw: str | None) -> list[str]:
    """Parse a comma-separated CORS origin list from env."""
    if raw is None:
        return []
    cleaned = raw.strip()
    if cleaned == "*":
        return ["*"]
    return [chunk.strip() for chunk in cleaned.split(",") if chunk.strip()]
