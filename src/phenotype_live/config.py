"""Application configuration."""

import os

from pydantic_settings import BaseSettings, SettingsConfigDict

_ENVIRONMENT = os.getenv("ENVIRONMENT", "local")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    supabase_url: str
    supabase_service_key: str
    admin_token: str
    photo_duration_seconds: int = 60
    presence_ttl_seconds: int = 30
    presence_sweep_seconds: float = 5.0
    timer_grace_seconds: int = 1
    authoritative_timer: bool = True
    vote_rate_limit: int = 30
    vote_rate_window_seconds: int = 60
    fanout_queue_size: int = 256
    log_level: str = "INFO"
    environment: str = _ENVIRONMENT

    model_config = SettingsConfigDict(
        env_file=(f".env.{_ENVIRONMENT}", ".env"),
        extra="ignore",
    )
