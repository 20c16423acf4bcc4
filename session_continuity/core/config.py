"""
Configuration Settings.

This module defines the engine configuration using Pydantic's BaseSettings.
Values are read from environment variables and the ``.env`` file; every
field has an upper-case alias so deployments configure it the same way as
the rest of the stack.

Stores and engines read the flat fields directly. Monitoring settings are
also exposed as a grouped ``logfire`` view built on demand.
"""

from functools import lru_cache
from typing import Optional

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# =====================================================================
# Grouped Configuration Models
# =====================================================================


class LogfireConfig(BaseModel):
    """Pydantic Logfire monitoring configuration."""

    enabled: bool = Field(default=False, alias="LOGFIRE_ENABLED")
    token: Optional[str] = Field(default=None, alias="LOGFIRE_TOKEN")
    service_name: str = Field(default="session-continuity", alias="LOGFIRE_SERVICE_NAME")
    environment: str = Field(default="development", alias="LOGFIRE_ENVIRONMENT")

    model_config = {"populate_by_name": True}


# =====================================================================
# Main Settings Class
# =====================================================================


class Settings(BaseSettings):
    """
    Engine settings model.

    All properties are automatically bound from environment variables and .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=True,
        populate_by_name=True,
    )

    # =====================================================================
    # Database / Logging
    # =====================================================================
    database_url: str = Field(
        default="sqlite+aiosqlite:///./session_continuity.db",
        description="Async SQLAlchemy URL of the continuity store",
        alias="CONTINUITY_DATABASE_URL",
    )
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
        alias="CONTINUITY_LOG_LEVEL",
    )
    log_format: str = Field(
        default="detailed",
        description="Log line format (simple, detailed, json)",
        alias="CONTINUITY_LOG_FORMAT",
    )

    # =====================================================================
    # Event Log
    # =====================================================================
    max_query_limit: int = Field(
        default=1000,
        ge=1,
        description="Hard cap on rows returned by any list or query operation",
        alias="CONTINUITY_MAX_QUERY_LIMIT",
    )
    default_recent_limit: int = Field(
        default=50,
        ge=1,
        description="Default number of events returned by get_recent",
        alias="CONTINUITY_DEFAULT_RECENT_LIMIT",
    )
    max_lineage_depth: int = Field(
        default=1000,
        ge=1,
        description="Maximum parent-chain depth accepted at write time and walked at read time",
        alias="CONTINUITY_MAX_LINEAGE_DEPTH",
    )

    # =====================================================================
    # Checkpoints
    # =====================================================================
    checkpoint_max_bytes: int = Field(
        default=32768,
        ge=256,
        description="Maximum serialized size of a checkpoint work state",
        alias="CONTINUITY_CHECKPOINT_MAX_BYTES",
    )
    checkpoint_retention_days: int = Field(
        default=30,
        ge=0,
        description="Default retention used by checkpoint cleanup",
        alias="CONTINUITY_CHECKPOINT_RETENTION_DAYS",
    )
    context_pressure_threshold: int = Field(
        default=80,
        ge=1,
        le=100,
        description="Context usage percentage that triggers a context_pressure checkpoint",
        alias="CONTINUITY_CONTEXT_PRESSURE_THRESHOLD",
    )

    # =====================================================================
    # Resume
    # =====================================================================
    freshness_window_seconds: int = Field(
        default=120,
        ge=1,
        description="A session whose last heartbeat is within this window is active",
        alias="CONTINUITY_FRESHNESS_WINDOW_SECONDS",
    )
    replay_window: int = Field(
        default=100,
        ge=1,
        le=1000,
        description="Number of recent events folded during reconstruction",
        alias="CONTINUITY_REPLAY_WINDOW",
    )
    command_history_window: int = Field(
        default=20,
        ge=1,
        le=1000,
        description="Number of command log rows used by the raw history fallback",
        alias="CONTINUITY_COMMAND_HISTORY_WINDOW",
    )
    artifact_check_limit: int = Field(
        default=10,
        ge=0,
        description="Maximum number of modified files validated per reconstruction",
        alias="CONTINUITY_ARTIFACT_CHECK_LIMIT",
    )
    git_timeout_seconds: float = Field(
        default=5.0,
        gt=0,
        description="Timeout for git branch verification",
        alias="CONTINUITY_GIT_TIMEOUT_SECONDS",
    )

    # =====================================================================
    # Monitoring
    # =====================================================================
    logfire_enabled: bool = Field(default=False, alias="LOGFIRE_ENABLED")
    logfire_token: Optional[str] = Field(default=None, alias="LOGFIRE_TOKEN")
    logfire_service_name: str = Field(default="session-continuity", alias="LOGFIRE_SERVICE_NAME")
    logfire_environment: str = Field(default="development", alias="LOGFIRE_ENVIRONMENT")

    # =====================================================================
    # Computed Properties (Grouped Configurations)
    # =====================================================================

    @property
    def logfire(self) -> LogfireConfig:
        """Get Logfire configuration."""
        return LogfireConfig.model_validate(self.model_dump(by_alias=True))


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return the process settings, loading them on first use."""
    return Settings()


def reset_settings() -> None:
    """Forget cached settings so the next ``get_settings`` call reloads them."""
    get_settings.cache_clear()
