"""Application configuration using pydantic-settings."""

from functools import lru_cache
from typing import Optional

from pydantic import model_validator
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
    app_name: str = "Incident Report API"
    app_version: str = "0.1.0"
    environment: str = "development"
    debug: bool = False
    log_level: str = "INFO"
    port: int = 5000

    # Secret key MUST be provided via environment (e.g. SECRET_KEY in .env)
    secret_key: str
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 8 * 60

    # API
    api_prefix: str = "/api"
    # Regular expressions matched against the full Origin header
    allowed_origin_patterns: list[str] = [
        r"^https://[a-zA-Z0-9-]+\.vercel\.app$",
        r"^http://localhost(:\d+)?$",
        r"^http://127\.0\.0\.1(:\d+)?$",
    ]

    # Database
    database_url: str = "sqlite+aiosqlite:///./incident_reports.db"
    db_ssl_mode: str = "disable" # "require" for production
    database_pool_size: int = 5
    database_max_overflow: int = 10
    auto_create_tables: bool = True

    # Blob storage
    storage_backend: str = "memory"  # memory | supabase
    supabase_url: Optional[str] = None
    supabase_service_key: Optional[str] = None
    storage_bucket: str = "incident-attachments"
    storage_public_base_url: str = "http://localhost:5000/storage"
    storage_timeout_seconds: float = 30.0
    signed_url_ttl_seconds: int = 3600

    # Attachment limits
    max_attachment_bytes: int = 10 * 1024 * 1024
    max_attachments_per_incident: int = 10

    # First admin account, seeded only into an empty users table
    bootstrap_admin_username: Optional[str] = None
    bootstrap_admin_password: Optional[str] = None
    bootstrap_admin_department: str = "Administration"

    # Tracing
    tracing_enabled: bool = False

    @model_validator(mode="after")
    def _check_storage(self) -> "Settings":
        if self.storage_backend not in ("memory", "supabase"):
            raise ValueError(f"Unknown storage_backend: {self.storage_backend}")
        if self.storage_backend == "supabase" and not (self.supabase_url and self.supabase_service_key):
            raise ValueError("SUPABASE_URL and SUPABASE_SERVICE_KEY are required for the supabase storage backend")
        return self

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
