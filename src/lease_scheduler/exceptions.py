"""Domain and infrastructure exceptions for lease-scheduler."""

from __future__ import annotations


class SchedulerError(Exception):
    """Root exception for the entire lease-scheduler package."""


class ValidationError(SchedulerError):
    """Raised when job creation parameters are invalid.

    Carries structured errors: ``{field: [messages]}``.
    """

    def __init__(self, errors: dict[str, list[str]] | str | None = None) -> None:
        if isinstance(errors, str):
            self.errors: dict[str, list[str]] = {"__root__": [errors]}
        elif errors is None:
            self.errors = {}
        else:
            self.errors = errors
        super().__init__(str(self.errors))


class InvalidScheduleError(ValidationError):
    """Raised when a schedule is neither a cron expression nor a timestamp."""

    def __init__(self, raw: object, reason: str | None = None) -> None:
        self.raw = raw
        self.reason = reason
        msg = f"Invalid schedule format: {raw!r}"
        if reason:
            msg += f" ({reason})"
        super().__init__({"schedule": [msg]})


class DomainError(SchedulerError):
    """Base class for all domain-related errors."""


class JobStateError(DomainError):
    """Raised when a job state machine transition is not allowed.

    E.g. cannot start a job that is not PENDING, cannot complete or fail a
    job that is not RUNNING.
    """


class JobNotFoundError(DomainError):
    """Raised when a job record cannot be found by ID."""

    def __init__(self, job_id: str) -> None:
        self.job_id = job_id
        super().__init__(f"Job with id={job_id!r} not found")


class HandlerError(SchedulerError):
    """Base class for task handler registration and lookup errors."""


class HandlerRegistrationError(HandlerError):
    """Raised when a second handler is registered under an existing task ref."""


class HandlerNotRegisteredError(HandlerError):
    """Raised when a job references a task that has no registered handler."""

    def __init__(self, task_ref: str) -> None:
        self.task_ref = task_ref
        super().__init__(f"No handler registered for task {task_ref!r}")


class InfrastructureError(SchedulerError):
    """Base class for all infrastructure-related errors."""


class StoreError(InfrastructureError):
    """Raised when the coordination store rejects or fails an operation.

    The outcome of the operation is unknown: the write may or may not have
    been applied.
    """


class StoreConnectionError(StoreError):
    """Raised when connectivity to the coordination store fails."""


__all__ = [
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
