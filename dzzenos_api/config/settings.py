"""Application settings using Pydantic BaseSettings."""

import os
from functools import lru_cache
from typing import List, Optional

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _get_default_data_dir() -> str:
    """Absolute path of the local data directory (next to the package)."""
    package_dir = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
    return os.path.join(os.path.dirname(package_dir), "data")


def _get_default_db_url() -> str:
    return f"sqlite:///{os.path.join(_get_default_data_dir(), 'dzzenos.db')}"


def _get_default_workspace_dir() -> str:
    return os.path.join(_get_default_data_dir(), "workspace")


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Server
    environment: str = Field(default="development")
    # Local-first: bind to loopback unless told otherwise.
    host: str = Field(default="127.0.0.1")
    port: int = Field(default=8787)
    debug: bool = Field(default=False)
    log_level: str = Field(default="INFO")
    log_file: Optional[str] = Field(default=None)
    cors_origins: str = Field(default="http://localhost:5173,http://127.0.0.1:5173")

    # Storage
    database_url: str = Field(default_factory=_get_default_db_url)
    workspace_dir: str = Field(default_factory=_get_default_workspace_dir)
    seed_defaults: bool = Field(default=True)

    # Completion provider (OpenResponses-compatible endpoint)
    openresponses_url: str = Field(default="")
    openresponses_token: str = Field(default="")
    openresponses_model: str = Field(default="openclaw:main")
    provider_timeout_seconds: float = Field(default=120.0)
    # "live" talks to OPENRESPONSES_URL, "mock" answers in-process.
    provider_mode: str = Field(default="live")
    default_agent_id: str = Field(default="")

    # Realtime events
    sse_event_name: str = Field(default="dzzenos")
    sse_heartbeat_seconds: float = Field(default=15.0)
    sse_client_queue_size: int = Field(default=256)

    # Runs
    stuck_minutes_default: int = Field(default=5)
    runs_list_limit: int = Field(default=200)
    run_rate_limit_rpm: int = Field(default=30)
    reap_orphaned_runs: bool = Field(default=True)
    worker_history_size: int = Field(default=500)

    @property
    def cors_origins_list(self) -> List[str]:
        """Parse CORS origins from comma-separated string."""
        if not self.cors_origins:
            return []
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def docs_url(self) -> str | None:
        return None if self.is_production else "/docs"

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        upper = v.upper()
        if upper not in valid_levels:
            raise ValueError(f"Invalid log level: {v}. Must be one of {valid_levels}")
        return upper

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        vv = (v or "").strip().lower()
        if vv not in {"development", "test", "production"}:
            raise ValueError("ENVIRONMENT must be one of: development, test, production")
        return vv

    @field_validator("provider_mode")
    @classmethod
    def validate_provider_mode(cls, v: str) -> str:
        vv = (v or "").strip().lower()
        if vv not in {"live", "mock"}:
            raise ValueError("PROVIDER_MODE must be one of: live, mock")
        return vv

    @model_validator(mode="after")
    def validate_cross_field_constraints(self) -> "Settings":
        if self.sse_heartbeat_seconds <= 0:
            raise ValueError("SSE_HEARTBEAT_SECONDS must be positive")
        if self.sse_client_queue_size < 1:
            raise ValueError("SSE_CLIENT_QUEUE_SIZE must be at least 1")
        if self.stuck_minutes_default < 0:
            raise ValueError("STUCK_MINUTES_DEFAULT must be non-negative")
        return self


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
