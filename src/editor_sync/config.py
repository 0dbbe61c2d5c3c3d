"""Application configuration."""

import os

from pydantic_settings import BaseSettings, SettingsConfigDict

_ENVIRONMENT = os.getenv("ENVIRONMENT", "local")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    supabase_url: str
    supabase_service_key: str
    api_base_url: str
    api_access_token: str | None = None
    storage_bucket: str = "images"
    local_store_path: str = "tapimagine.localProjects.v1.json"
    sync_delay_seconds: float = 60.0
    history_max_depth: int = 500
    history_throttle_ms: int = 0
    recent_projects_limit: int = 6
    remote_cache_ttl_seconds: int = 300
    http_timeout_seconds: float = 15.0
    log_level: str = "INFO"
    environment: str = _ENVIRONMENT

    model_config = SettingsConfigDict(
        env_file=(f".env.{_ENVIRONMENT}", ".env"),
        extra="ignore",
    )
