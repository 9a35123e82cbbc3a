"""Runtime settings for a scheduler replica.

Values come from ``SCHEDULER_*`` environment variables or a ``.env`` file,
e.g. ``SCHEDULER_REDIS_URL=redis://redis:6379/0``.
"""

from __future__ import annotations

import os
import socket
import uuid
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .domain.backoff import (
    DEFAULT_BACKOFF_SECONDS,
    BackoffPolicy,
    ExponentialBackoff,
    FixedBackoff,
)
from .domain.job import DEFAULT_MAX_RETRIES


def default_holder_id() -> str:
    """Lease holder token unique to this process: ``host:pid:random``."""
    return f"{socket.gethostname()}:{os.getpid()}:{uuid.uuid4().hex[:8]}"


class SchedulerSettings(BaseSettings):
    """Settings shared by the dispatcher, execution engine and job service."""

    model_config = SettingsConfigDict(
        env_prefix="SCHEDULER_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Store
    redis_url: str = "redis://localhost:6379/0"
    key_prefix: str = Field(
        default="",
        description="Prefix applied to every key and index, e.g. 'staging:'",
    )

    # Identity
    holder_id: str = Field(default_factory=default_holder_id)

    # Dispatcher
    poll_interval: float = Field(default=1.0, gt=0)
    max_concurrency: int = Field(default=10, ge=1)

    # Leases
    lease_ttl: float = Field(default=300.0, gt=0)
    heartbeat_interval: float | None = Field(default=5.0, gt=0)

    # Retries
    default_max_retries: int = Field(default=DEFAULT_MAX_RETRIES, ge=0)
    backoff: Literal["fixed", "exponential"] = "fixed"
    backoff_seconds: float = Field(default=DEFAULT_BACKOFF_SECONDS, ge=0)
    backoff_max_seconds: float = Field(default=3600.0, ge=0)
    backoff_jitter: bool = False

    # Handlers: modules exposing register(registry), imported at startup
    task_modules: list[str] = Field(default_factory=list)

    # Logging
    log_level: str = "INFO"

    @field_validator("log_level")
    @classmethod
    def _normalize_log_level(cls, v: str) -> str:
        return v.upper()

    def backoff_policy(self) -> BackoffPolicy:
        """Build the retry delay policy described by these settings."""
        if self.backoff == "exponential":
            return ExponentialBackoff(
                base_seconds=self.backoff_seconds,
                max_seconds=self.backoff_max_seconds,
                jitter=self.backoff_jitter,
            )
        return FixedBackoff(seconds=self.backoff_seconds)


__all__ = ["SchedulerSettings", "default_holder_id"]
