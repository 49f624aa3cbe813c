"""Application configuration using pydantic-settings."""

from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore", # Allow extra env vars without failing
    )

    # App
    app_name: str = "CrisisSync"
    app_version: str = "0.1.0"
    debug: bool = False
    log_level: str = "INFO"
    backend_port: int = 5000

    # Secret key MUST be provided via environment (e.g. SECRET_KEY in .env)
    secret_key: str
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 60

    # Command officer credential, override in .env
    admin_password: str = "admin123"

    # API
    api_prefix: str = "/api"
    allowed_origins: list[str] = ["http://localhost:3000", "http://localhost:5173"]
    # When False the PUT endpoint trusts the caller (original client-only checks)
    enforce_server_permissions: bool = True

    # Database
    database_url: str = "sqlite+aiosqlite:///./database.sqlite"
    seed_on_startup: bool = True

    # Classifier
    llm_provider: str = "gemini"  # gemini | on-prem
    gemini_api_key: Optional[str] = None
    gemini_model: str = "gemini-2.5-flash"
    onprem_llm_url: str = "http://localhost:11434"
    onprem_llm_model: str = "llama3"
    llm_timeout_seconds: float = 30.0

    # Console client
    client_base_url: str = "http://localhost:5000/api"
    client_timeout_seconds: float = 10.0


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
