"""Orchestrator configuration using Pydantic Settings.

This module centralizes runtime configuration for the stack orchestrator.
Values can be provided via environment variables (preferred) or fall back to
the defaults below. A ``Settings`` instance is intended to be retrieved via
``get_settings`` which caches the object for reuse across the process.

Environment variable prefix: ``STACK_ORCHESTRATOR_`` (e.g.
``STACK_ORCHESTRATOR_TIMEOUT``).
"""

from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime orchestrator settings.

    Attributes map directly to environment variables using the
    ``STACK_ORCHESTRATOR_`` prefix (case-insensitive). For example,
    ``interval`` <- ``STACK_ORCHESTRATOR_INTERVAL``.
    """

    log_level: Literal["TRACE", "DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Application log level",
    )
    prod: bool = Field(
        default=False,
        description="Use the production compose file",
    )  # fmt: skip

    # Service locations
    ingestion_url: str = Field(
        default="http://localhost:50281",
        description="Base URL of the ingestion server",
    )  # fmt: skip
    api_url: str = Field(
        default="http://localhost:50280",
        description="Base URL of the media API",
    )  # fmt: skip
    search_url: str = Field(
        default="http://localhost:50292",
        description="Base URL of the search backend",
    )  # fmt: skip

    # Readiness gating
    probe_timeout: float = Field(
        default=5.0,
        gt=0,
        description="Per-request timeout of a single health probe, in seconds",
    )  # fmt: skip
    timeout: float = Field(
        default=300.0,
        gt=0,
        description="Maximum wait per gate, in seconds",
    )  # fmt: skip
    interval: float = Field(
        default=5.0,
        gt=0,
        description="Spacing between readiness polls, in seconds",
    )  # fmt: skip

    # Lifecycle retries
    retry_max_attempts: int = Field(
        default=5,
        ge=1,
        description="Attempts for a lifecycle call failing with a transient network error",
    )  # fmt: skip
    backoff_base: float = Field(
        default=1.0,
        ge=0,
        description="Initial backoff between lifecycle retries, in seconds",
    )  # fmt: skip
    backoff_cap: float = Field(
        default=30.0,
        ge=0,
        description="Upper bound of the lifecycle retry backoff, in seconds",
    )  # fmt: skip
    job_poll_interval: float = Field(
        default=5.0,
        gt=0,
        description="Spacing between remote job status polls, in seconds",
    )  # fmt: skip
    job_timeout: float = Field(
        default=3600.0,
        gt=0,
        description="Maximum wait for a remote ingestion job, in seconds",
    )  # fmt: skip

    @field_validator("log_level", mode="before")
    @classmethod
    def validate_log_level(cls, v: str | None) -> str:
        """Normalize and validate log level."""
        if v is None:
            return "INFO"

        v_upper = str(v).upper()

        allowed = {"TRACE", "DEBUG", "INFO", "WARNING", "ERROR"}
        if v_upper not in allowed:
            raise ValueError(f"Invalid log level: {v}. Must be one of: {', '.join(sorted(allowed))}")

        return v_upper

    @field_validator("ingestion_url", "api_url", "search_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        """Store base URLs without a trailing slash so paths can be appended."""
        return v.rstrip("/")

    @model_validator(mode="after")
    def validate_backoff(self) -> "Settings":
        """Reject a backoff cap lower than its base."""
        if self.backoff_cap < self.backoff_base:
            raise ValueError("backoff_cap must be greater than or equal to backoff_base")
        return self

    model_config = SettingsConfigDict(
        env_prefix="STACK_ORCHESTRATOR_",
        case_sensitive=False,
        extra="ignore",
        env_file=".env",
        env_file_encoding="utf-8",
        validate_assignment=True,
    )


@lru_cache
def get_settings() -> Settings:
    """Return the cached ``Settings`` instance.

    The first invocation reads environment variables / .env file; subsequent
    calls reuse the same object to ensure consistent config.
    """

    return Settings()


__all__ = ["Settings", "get_settings"]
