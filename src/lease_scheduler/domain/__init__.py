from .backoff import (
    DEFAULT_BACKOFF_SECONDS,
    BackoffPolicy,
    ExponentialBackoff,
    FixedBackoff,
)
from .job import DEFAULT_MAX_RETRIES, Job, JobStatus
from .schedule import Schedule, ScheduleKind, next_run, parse_schedule

__all__ = [
    "DEFAULT_BACKOFF_SECONDS",
    "DEFAULT_MAX_RETRIES",
    "BackoffPolicy",
    "ExponentialBackoff",
    "FixedBackoff",
    "Job",
    "JobStatus",
    "Schedule",
    "ScheduleKind",
    "next_run",
    "parse_schedule",
]
