"""lease-scheduler: distributed one-shot and cron job scheduling over Redis.

Replicas share one coordination store; per-job leases make sure only one
replica runs a job at a time, and failed runs are retried with backoff until
``max_retries`` is exhausted.
"""

from __future__ import annotations

from .adapters.memory import InMemoryStore
from .config import SchedulerSettings
from .context import SchedulerContext, load_task_modules
from .dispatcher import Dispatcher
from .domain import (
    BackoffPolicy,
    ExponentialBackoff,
    FixedBackoff,
    Job,
    JobStatus,
    Schedule,
    ScheduleKind,
    next_run,
    parse_schedule,
)
from .engine import ExecutionEngine, ExecutionOutcome
from .exceptions import (
    DomainError,
    HandlerError,
    HandlerNotRegisteredError,
    HandlerRegistrationError,
    InfrastructureError,
    InvalidScheduleError,
    JobNotFoundError,
    JobStateError,
    SchedulerError,
    StoreConnectionError,
    StoreError,
    ValidationError,
)
from .instrumentation import HookRegistry, get_hook_registry, set_hook_registry
from .locking import LeaseManager
from .ports import IKeyValueStore
from .registry import TaskRegistry
from .repository import JobRepository
from .runtime import SchedulerRuntime
from .service import JobService, JobSubmission

__all__ = [
    # Domain
    "BackoffPolicy",
    "ExponentialBackoff",
    "FixedBackoff",
    "Job",
    "JobStatus",
    "Schedule",
    "ScheduleKind",
    "next_run",
    "parse_schedule",
    # Services
    "Dispatcher",
    "ExecutionEngine",
    "ExecutionOutcome",
    "JobRepository",
    "JobService",
    "JobSubmission",
    "LeaseManager",
    "SchedulerContext",
    "SchedulerRuntime",
    "SchedulerSettings",
    "TaskRegistry",
    "load_task_modules",
    # Ports & adapters
    "IKeyValueStore",
    "InMemoryStore",
    # Instrumentation
    "HookRegistry",
    "get_hook_registry",
    "set_hook_registry",
    # Exceptions
    "DomainError",
    "HandlerError",
    "HandlerNotRegisteredError",
    "HandlerRegistrationError",
    "InfrastructureError",
    "InvalidScheduleError",
    "JobNotFoundError",
    "JobStateError",
    "SchedulerError",
    "StoreConnectionError",
    "StoreError",
    "ValidationError",
]
