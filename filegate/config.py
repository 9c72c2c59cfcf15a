"""Centralized configuration for FileGate.

Uses Pydantic BaseSettings with environment variable loading and validation.
All FG_* environment variables are validated at import time.
"""

from __future__ import annotations

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = {"env_prefix": "FG_", "case_sensitive": False, "extra": "ignore"}

    # Storage
    storage: str = Field(default="memory", description="Storage backend: memory or sqlite")
    db_path: str = Field(default="filegate.db", description="SQLite database path")

    # Auth
    jwt_secret: str = Field(
        default="fg-dev-secret-do-not-use-in-production",
        min_length=16,
        description="HS256 secret used to verify bearer tokens",
    )

    # Authorization
    policy_file: str | None = Field(
        default=None,
        description="JSON policy document; the built-in file-management policy when unset",
    )
    lookup_timeout_seconds: float = Field(
        default=5.0,
        gt=0,
        description="Upper bound for membership and resource lookups during authorization",
    )

    # Logging
    log_format: str = Field(default="text", description="Log format: text or json")
    log_level: str = Field(default="INFO", description="Python log level")

    # Server
    host: str = Field(default="0.0.0.0", description="Server bind host")  # noqa: S104
    port: int = Field(default=8000, ge=1, le=65535, description="Server bind port")

    # CORS
    cors_origins: str = Field(default="*", description="Comma-separated CORS origins")

    @field_validator("storage")
    @classmethod
    def validate_storage(cls, v: str) -> str:
        v = v.lower()
        if v not in ("memory", "sqlite"):
            msg = f"FG_STORAGE must be 'memory' or 'sqlite', got '{v}'"
            raise ValueError(msg)
        return v

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        v = v.lower()
        if v not in ("text", "json"):
            msg = f"FG_LOG_FORMAT must be 'text' or 'json', got '{v}'"
            raise ValueError(msg)
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        import logging

        v = v.upper()
        if not isinstance(getattr(logging, v, None), int):
            msg = f"FG_LOG_LEVEL must be a valid Python log level, got '{v}'"
            raise ValueError(msg)
        return v

    @property
    def cors_origin_list(self) -> list[str]:
        """Return parsed list of CORS origins."""
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]


# Singleton, validated at import time.
settings = Settings()
