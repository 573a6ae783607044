"""
Cancellation scopes for in-flight requests.
A screen binds a scope while it is alive; disposing it cancels every request it started.
"""
import asyncio
import logging
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Awaitable, Optional, Set, TypeVar

from shared.error_models import RequestCancelled

logger = logging.getLogger(__name__)

T = TypeVar("T")

_current_scope: ContextVar[Optional["CancellationScope"]] = ContextVar("cancellation_scope", default=None)


class CancellationScope:
    """Tracks request tasks so they can be cancelled together."""

    def __init__(self, name: str = "scope"):
        self.name = name
        self._tasks: Set[asyncio.Task] = set()
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def pending(self) -> int:
        return len(self._tasks)

    @contextmanager
    def bound(self):
        """Bind this scope for requests started inside the block."""
        token = _current_scope.set(self)
        try:
            yield self
        finally:
            _current_scope.reset(token)

    async def run(self, coro: Awaitable[T]) -> T:
        """
        Run a request coroutine as a tracked task.

        Raises:
            RequestCancelled: If the scope is (or becomes) cancelled
        """
        if self._cancelled:
            close = getattr(coro, "close", None)
            if close is not None:
                close()
            raise RequestCancelled(f"Scope '{self.name}' was cancelled")

        task = asyncio.ensure_future(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        try:
            return await task
        except asyncio.CancelledError:
            if self._cancelled:
                raise RequestCancelled(f"Scope '{self.name}' was cancelled") from None
            raise

    def cancel(self) -> int:
        """Cancel all tracked requests. Returns how many were still running."""
        self._cancelled = True
        running = [task for task in self._tasks if not task.done()]
        for task in running:
            task.cancel()
        if running:
            logger.info(f"ℹ️ Cancelled {len(running)} request(s) in scope '{self.name}'")
        return len(running)


def current_scope() -> Optional[CancellationScope]:
    return _current_scope.get()
