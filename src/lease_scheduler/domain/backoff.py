"""Retry delay policies applied after a failed execution."""

from __future__ import annotations

import random
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Protocol, runtime_checkable

DEFAULT_BACKOFF_SECONDS: float = 60.0


@runtime_checkable
class BackoffPolicy(Protocol):
    """Computes how long a failed job waits before it becomes ready again."""

    def delay(self, retry_count: int) -> timedelta:
        """
        Return the delay before the next attempt.

        Args:
            retry_count: Number of failed attempts so far, including the one
                being handled (so the first failure passes ``1``).
        """
        ...


@dataclass(frozen=True)
class FixedBackoff:
    """Constant delay regardless of how many attempts failed."""

    seconds: float = DEFAULT_BACKOFF_SECONDS

    def __post_init__(self) -> None:
        if self.seconds < 0:
            raise ValueError("Backoff seconds must be >= 0")

    def delay(self, retry_count: int) -> timedelta:  # noqa: ARG002
        return timedelta(seconds=self.seconds)


@dataclass(frozen=True)
class ExponentialBackoff:
    """
    ``base * factor ** (retry_count - 1)`` capped at ``max_seconds``.

    With ``jitter`` the delay is drawn uniformly from ``[0, delay]``
    ("full jitter"), which spreads retries of jobs that failed together.
    """

    base_seconds: float = DEFAULT_BACKOFF_SECONDS
    factor: float = 2.0
    max_seconds: float = 3600.0
    jitter: bool = False
    rng: random.Random = field(default_factory=random.Random, compare=False)

    def __post_init__(self) -> None:
        if self.base_seconds < 0 or self.max_seconds < 0:
            raise ValueError("Backoff seconds must be >= 0")
        if self.factor < 1:
            raise ValueError("Backoff factor must be >= 1")

    def delay(self, retry_count: int) -> timedelta:
        exponent = min(max(retry_count - 1, 0), 64)
        try:
            seconds = min(self.max_seconds, self.base_seconds * self.factor**exponent)
        except OverflowError:
            seconds = self.max_seconds
        if self.jitter:
            seconds = self.rng.uniform(0, seconds)
        return timedelta(seconds=seconds)


__all__ = [
    "DEFAULT_BACKOFF_SECONDS",
    "BackoffPolicy",
    "ExponentialBackoff",
    "FixedBackoff",
]
