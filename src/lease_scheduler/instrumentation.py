"""Instrumentation hooks wrapped around scheduler operations.

Operations currently emitted:

- ``job.create``
- ``job.execute.<task_ref>``
- ``lease.recover``
- ``dispatcher.tick``

Hooks (tracing, metrics, audit) register against glob patterns and are
chained in priority order around the operation.
"""

from __future__ import annotations

import fnmatch
from contextvars import ContextVar
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable


@runtime_checkable
class InstrumentationHook(Protocol):
    """Protocol for instrumentation hooks (tracing, metrics, etc.)."""

    async def __call__(
        self,
        operation: str,
        attributes: dict[str, Any],
        next_handler: Callable[[], Awaitable[Any]],
    ) -> Any:
        """Wrap an operation; must await ``next_handler`` exactly once."""
        ...


class HookRegistration:
    """A registered hook with operation filtering and priority."""

    def __init__(
        self,
        hook: InstrumentationHook,
        *,
        priority: int = 0,
        operations: list[str] | None = None,
        enabled: bool = True,
    ) -> None:
        self.hook = hook
        self.priority = priority
        self.operations = operations or []
        self.enabled = enabled

    def matches(self, operation: str) -> bool:
        if not self.enabled:
            return False
        if not self.operations:
            return True
        return any(fnmatch.fnmatch(operation, pattern) for pattern in self.operations)


class HookRegistry:
    """Registry for multiple instrumentation hooks with filtering."""

    def __init__(self) -> None:
        self._registrations: list[HookRegistration] = []

    def register(
        self,
        hook: InstrumentationHook,
        *,
        priority: int = 0,
        operations: list[str] | None = None,
        enabled: bool = True,
    ) -> HookRegistration:
        """Register a hook; lower ``priority`` runs outermost."""
        registration = HookRegistration(
            hook, priority=priority, operations=operations, enabled=enabled
        )
        self._registrations.append(registration)
        self._registrations.sort(key=lambda r: r.priority)
        return registration

    async def execute_all(
        self,
        operation: str,
        attributes: dict[str, Any],
        next_handler: Callable[[], Awaitable[Any]],
    ) -> Any:
        """Run *next_handler* wrapped by every matching hook."""
        matching = [r for r in self._registrations if r.matches(operation)]
        if not matching:
            return await next_handler()

        async def pipeline(index: int = 0) -> Any:
            if index >= len(matching):
                return await next_handler()
            return await matching[index].hook(
                operation, attributes, lambda: pipeline(index + 1)
            )

        return await pipeline()

    def clear(self) -> None:
        self._registrations.clear()


_hook_registry_var: ContextVar[HookRegistry | None] = ContextVar(
    "lease_scheduler_hook_registry", default=None
)


def get_hook_registry() -> HookRegistry:
    """Get the hook registry for the current context.

    Creates a fresh ``HookRegistry`` on first access within each context,
    so tests never leak hooks into one another.
    """
    registry = _hook_registry_var.get()
    if registry is None:
        registry = HookRegistry()
        _hook_registry_var.set(registry)
    return registry


def set_hook_registry(registry: HookRegistry) -> None:
    """Install a custom hook registry in the current context."""
    _hook_registry_var.set(registry)


__all__ = [
    "HookRegistration",
    "HookRegistry",
    "InstrumentationHook",
    "get_hook_registry",
    "set_hook_registry",
]
