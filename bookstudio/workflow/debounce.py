"""Cancelable debounce helper owned by a controller."""

import asyncio
from typing import Optional, Callable, Awaitable, Any


class Debouncer:
    """
    Runs the most recently scheduled coroutine after a quiet period.

    Each schedule() call cancels the pending one. The owner must call
    cancel() on teardown.
    """

    def __init__(self, delay: float):
        self.delay = delay
        self._task: Optional[asyncio.Task] = None

    @property
    def pending(self) -> bool:
        return self._task is not None and not self._task.done()

    def schedule(self, func: Callable[..., Awaitable[Any]], *args, **kwargs) -> asyncio.Task:
        """Cancel any pending call and schedule func(*args, **kwargs) after the delay."""
        self.cancel()
        self._task = asyncio.ensure_future(self._run(func, *args, **kwargs))
        return self._task

    async def _run(self, func, *args, **kwargs):
        await asyncio.sleep(self.delay)
        return await func(*args, **kwargs)

    async def wait(self) -> Any:
        """Wait for the pending call. Returns its result, or None if cancelled or idle."""
        task = self._task
        if task is None:
            return None
        await asyncio.wait([task])
        if task.cancelled():
            return None
        return task.result()

    def cancel(self) -> None:
        if self.pending:
            self._task.cancel()
        self._task = None
