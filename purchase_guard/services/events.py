"""
Event Hooks and Background Tasks.

Observers are called synchronously in registration order. A failing
observer is logged and never interrupts the others or the caller.
"""

import asyncio
from collections.abc import Callable, Coroutine
from typing import Any

from structlog import get_logger

logger = get_logger(__name__)


class EventHook:
    """Explicit observer registration list for one notification."""

    def __init__(self, name: str) -> None:
        self.name = name
        self._callbacks: list[Callable[..., Any]] = []

    def subscribe(self, callback: Callable[..., Any]) -> Callable[[], None]:
        """Register an observer and return a function that unsubscribes it."""
        self._callbacks.append(callback)
        return lambda: self.unsubscribe(callback)

    def unsubscribe(self, callback: Callable[..., Any]) -> None:
        """Remove an observer; unknown observers are ignored."""
        if callback in self._callbacks:
            self._callbacks.remove(callback)

    def emit(self, *args: Any) -> None:
        """Notify every observer registered at the time of the call."""
        for callback in list(self._callbacks):
            try:
                callback(*args)
            except Exception:
                logger.exception("event_observer_failed", event_name=self.name)

    def __len__(self) -> int:
        return len(self._callbacks)


class BackgroundTasks:
    """
    Strong references to fire-and-forget tasks.

    Keeps spawned tasks alive until they finish and lets the host (or a
    test) wait until the validator is idle.
    """

    def __init__(self) -> None:
        self._tasks: set[asyncio.Task[Any]] = set()

    def spawn(self, coro: Coroutine[Any, Any, Any], name: str) -> asyncio.Task[Any] | None:
        """
        Schedule a coroutine on the running loop.

        Returns None, and drops the coroutine, when no event loop is running.
        """
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            coro.close()
            logger.error("background_task_not_scheduled", task_name=name, reason="no_running_loop")
            return None
        task = loop.create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        return task

    def _on_done(self, task: asyncio.Task[Any]) -> None:
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error(
                "background_task_failed",
                task_name=task.get_name(),
                error=repr(task.exception()),
            )

    async def wait_idle(self) -> None:
        """Wait for every task, including tasks spawned while waiting."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def cancel_all(self) -> None:
        """Cancel outstanding tasks and wait for them to unwind."""
        for task in list(self._tasks):
            task.cancel()
        await self.wait_idle()

    def __len__(self) -> int:
        return len(self._tasks)
