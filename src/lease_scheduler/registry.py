"""Task registry — maps stable task references to handler callables.

A job never carries code. Its ``task_ref`` is looked up here at execution
time; unknown references fail the execution like any other task error.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from .exceptions import HandlerNotRegisteredError, HandlerRegistrationError

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from .domain.job import Job

    TaskHandler = Callable[[Job], Awaitable[Any] | Any]

logger = logging.getLogger("lease_scheduler.registry")


class TaskRegistry:
    """Store of task handlers keyed by task reference.

    Handlers receive the running :class:`Job` and may be coroutine functions
    or plain callables.

    **Conflict detection:** registering a different handler under an
    existing reference raises :class:`HandlerRegistrationError`.

    Usage::

        tasks = TaskRegistry()

        @tasks.task("reports.nightly")
        async def nightly_report(job: Job) -> None:
            ...
    """

    def __init__(self) -> None:
        self._handlers: dict[str, TaskHandler] = {}

    # ── Registration ─────────────────────────────────────────────

    def register(self, task_ref: str, handler: TaskHandler) -> None:
        if not task_ref or not task_ref.strip():
            raise HandlerRegistrationError("Task reference must be a non-empty string")
        existing = self._handlers.get(task_ref)
        if existing is not None and existing is not handler:
            msg = (
                f"Duplicate handler for task {task_ref!r}: "
                f"{getattr(existing, '__name__', existing)!r} already registered"
            )
            raise HandlerRegistrationError(msg)
        self._handlers[task_ref] = handler
        logger.debug(
            "Registered task handler %s -> %s",
            task_ref,
            getattr(handler, "__name__", repr(handler)),
        )

    def task(self, task_ref: str) -> Callable[[TaskHandler], TaskHandler]:
        """Decorator form of :meth:`register`."""

        def decorator(handler: TaskHandler) -> TaskHandler:
            self.register(task_ref, handler)
            return handler

        return decorator

    # ── Lookup ───────────────────────────────────────────────────

    def resolve(self, task_ref: str) -> TaskHandler:
        handler = self._handlers.get(task_ref)
        if handler is None:
            raise HandlerNotRegisteredError(task_ref)
        return handler

    def __contains__(self, task_ref: object) -> bool:
        return task_ref in self._handlers

    def task_refs(self) -> list[str]:
        return sorted(self._handlers)

    def clear(self) -> None:
        """Clear all registered handlers (testing utility)."""
        self._handlers.clear()


__all__ = ["TaskRegistry"]
