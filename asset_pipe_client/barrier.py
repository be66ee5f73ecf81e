"""Readiness barrier over in-flight publish and bundle operations.

The barrier collects the asyncio tasks started by publish and bundle
calls of the current cycle. Waiting on it reports completion, not
success: a failed operation settles like a successful one, and its
failure is logged here and surfaced to whoever awaits its handle.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Generator, Mapping
from typing import Any, Generic, TypeVar

logger = logging.getLogger(__name__)

K = TypeVar("K")


def _log_outcome(task: asyncio.Task[Any]) -> None:
    """Done-callback marking a task's failure as retrieved and logging it."""
    if task.cancelled():
        logger.debug("Operation %s was cancelled", task.get_name())
        return
    exc = task.exception()
    if exc is not None:
        logger.warning("Operation %s failed: %s", task.get_name(), exc)


def _register(operations: set[asyncio.Task[Any]], task: asyncio.Task[Any]) -> None:
    """Add a task to an operation set, dropping operations that already settled."""
    operations.difference_update([t for t in operations if t.done()])
    task.add_done_callback(_log_outcome)
    operations.add(task)


class ReadinessBarrier:
    """Join point over the publish and bundle operations of one cycle."""

    def __init__(self) -> None:
        self.publish_operations: set[asyncio.Task[Any]] = set()
        self.bundle_operations: set[asyncio.Task[Any]] = set()

    def reset(self) -> None:
        """Start a new cycle with empty operation sets."""
        self.publish_operations = set()
        self.bundle_operations = set()

    def add_publish(self, task: asyncio.Task[Any]) -> None:
        _register(self.publish_operations, task)

    def add_bundle(self, task: asyncio.Task[Any]) -> None:
        _register(self.bundle_operations, task)

    @property
    def pending(self) -> bool:
        """Whether any operation of the current cycle is still running."""
        return any(
            not task.done()
            for task in (*self.publish_operations, *self.bundle_operations)
        )

    async def wait(self) -> bool:
        """Wait until every registered operation has settled.

        Safe to call repeatedly and from concurrent callers. Operations
        registered while waiting are waited for as well.

        Returns:
            True once nothing is pending.
        """
        while True:
            tasks = [
                task
                for task in (*self.publish_operations, *self.bundle_operations)
                if not task.done()
            ]
            if not tasks:
                return True
            await asyncio.gather(*tasks, return_exceptions=True)


class OperationHandle(Generic[K]):
    """Awaitable result of a publish or bundle call.

    Awaiting waits for all of the call's operations to settle, then returns
    ``{key: result}`` or raises the first failure. Sibling operations are
    never cancelled by a failure. Not awaiting a handle is fine: the
    operations still run and the barrier tracks them.
    """

    def __init__(self, tasks: Mapping[K, asyncio.Task[Any]] | None = None) -> None:
        self.tasks: dict[K, asyncio.Task[Any]] = dict(tasks or {})

    def done(self) -> bool:
        return all(task.done() for task in self.tasks.values())

    async def _collect(self) -> dict[K, Any]:
        if not self.tasks:
            return {}
        keys = list(self.tasks)
        results = await asyncio.gather(*self.tasks.values(), return_exceptions=True)
        for result in results:
            if isinstance(result, BaseException):
                raise result
        return dict(zip(keys, results))

    def __await__(self) -> Generator[Any, None, dict[K, Any]]:
        return self._collect().__await__()


__all__ = ["OperationHandle", "ReadinessBarrier"]
