"""Application settings using pydantic-settings.

Loads configuration from environment variables with .env file support.
"""

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import AliasChoices, Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,  # Allow both field name and alias
    )

    # Environment
    environment: Literal["development", "staging", "production", "testing"] = "development"
    debug: bool = False
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    # Hosted backend (Supabase). Missing or placeholder values put the
    # persistence layer into local-only mode.
    supabase_url: str = Field(
        default="",
        description="Supabase project URL (https://<ref>.supabase.co)",
        validation_alias=AliasChoices("supabase_url", "vite_supabase_url"),
    )
    supabase_anon_key: SecretStr = Field(
        default=SecretStr(""),
        description="Supabase anon (public) API key",
        validation_alias=AliasChoices("supabase_anon_key", "vite_supabase_anon_key"),
    )
    supabase_service_role_key: SecretStr = Field(
        default=SecretStr(""),
        description="Service role key used by the email hook for auth lookups",
    )
    remote_timeout_seconds: int = Field(default=10, ge=1, le=120)

    # Local cache
    cache_dir: Path = Field(
        default=Path(".nested/cache"),
        description="Directory holding the JSON cache files",
    )

    # Autosave
    autosave_debounce_seconds: float = Field(
        default=0.8,
        ge=0.0,
        le=30.0,
        description="Quiet period before a debounced profile edit is saved",
    )

    # Object storage
    avatar_bucket: str = Field(default="avatars")
    project_icon_bucket: str = Field(default="project-icons")
    avatar_max_bytes: int = Field(default=5 * 1024 * 1024, ge=1)
    project_icon_max_bytes: int = Field(default=2 * 1024 * 1024, ge=1)

    # Email hook
    resend_api_key: SecretStr = Field(
        default=SecretStr(""),
        description="Resend API key for outbound email",
    )
    email_from: str = Field(default="Nested <hi@nested.social>")
    send_email_hook_secret: SecretStr = Field(
        default=SecretStr(""),
        description="Standard Webhooks secret for the auth email hook (v1,whsec_...)",
    )
    email_rate_limit_per_hour: int = Field(
        default=10,
        ge=1,
        description="Default per-recipient sends per hour for each email kind",
    )
    email_rate_limit_overrides: dict[str, int] = Field(
        default_factory=dict,
        description="Per email kind overrides, e.g. {\"auth_recovery\": 5}",
    )
    site_url: str = Field(default="https://nested.social")
    allowed_redirect_patterns: str = Field(
        default="https://nested.social,https://*.nested.social,http://localhost:*,http://127.0.0.1:*",
        description="Comma-separated fnmatch patterns over scheme://host[:port] of safe redirect URLs",
    )

    # API
    api_host: str = Field(default="0.0.0.0")  # noqa: S104
    api_port: int = Field(default=8000, ge=1, le=65535)
    allowed_origins: str = Field(
        default="",
        description="Comma-separated list of allowed CORS origins (empty = auto based on environment)",
    )
    trusted_proxy_count: int = Field(
        default=0,
        ge=0,
        le=10,
        description="Reverse proxies in front of the API; X-Forwarded-For is ignored when 0",
    )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance.

    Uses lru_cache to ensure settings are loaded once and reused.
    """
    return Settings()
