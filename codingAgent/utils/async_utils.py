"""Abort-signal helpers built on asyncio.Event.

Every scheduling and run operation receives one ``asyncio.Event`` shared by the
whole operation tree. Setting it asks every awaiting coroutine to stop.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Any, Awaitable, Callable, Optional, TypeVar

from codingAgent.utils.error_handler import OperationAbortedError

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")


async def race_abort(awaitable: Awaitable[T], signal: Optional[asyncio.Event]) -> T:
    """Await ``awaitable`` unless ``signal`` fires first.

    Raises:
        OperationAbortedError: the signal was set before the awaitable finished.
            The awaitable is cancelled.
    """
    if signal is None:
        return await awaitable
    if signal.is_set():
        if inspect.iscoroutine(awaitable):
            awaitable.close()
        raise OperationAbortedError("Operation aborted")

    work = asyncio.ensure_future(awaitable)
    waiter = asyncio.ensure_future(signal.wait())
    try:
        done, _ = await asyncio.wait({work, waiter}, return_when=asyncio.FIRST_COMPLETED)
    except asyncio.CancelledError:
        work.cancel()
        waiter.cancel()
        raise
    if work in done:
        waiter.cancel()
        return work.result()

    work.cancel()
    try:
        await work
    except (asyncio.CancelledError, Exception):
        pass
    raise OperationAbortedError("Operation aborted")


async def maybe_await(func: Optional[Callable[..., Any]], *args: Any) -> Any:
    """Call a sync or async callback; ``None`` is a no-op."""
    if func is None:
        return None
    result = func(*args)
    if inspect.isawaitable(result):
        return await result
    return result


class AbortScope:
    """Child abort signal linked to a parent signal, with an optional timeout.

    The child ``signal`` fires when the parent fires, when ``timeout`` seconds
    elapse, or when ``abort()`` is called. ``timed_out`` tells the two apart.

    Usage:
        async with AbortScope(parent, timeout=600) as scope:
            await run(scope.signal)
        if scope.timed_out: ...
    """

    def __init__(self, parent: Optional[asyncio.Event] = None, timeout: Optional[float] = None):
        self.parent = parent
        self.timeout = timeout
        self.signal = asyncio.Event()
        self.timed_out = False
        self._tasks: list[asyncio.Task] = []

    @property
    def parent_aborted(self) -> bool:
        return self.parent is not None and self.parent.is_set()

    def abort(self) -> None:
        self.signal.set()

    async def _link_parent(self) -> None:
        await self.parent.wait()
        self.signal.set()

    async def _expire(self) -> None:
        await asyncio.sleep(self.timeout)
        if not self.signal.is_set():
            self.timed_out = True
            LOGGER.info(f"Abort scope timed out after {self.timeout}s")
        self.signal.set()

    async def __aenter__(self) -> "AbortScope":
        if self.parent is not None:
            if self.parent.is_set():
                self.signal.set()
            else:
                self._tasks.append(asyncio.create_task(self._link_parent()))
        if self.timeout is not None:
            self._tasks.append(asyncio.create_task(self._expire()))
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        for task in self._tasks:
            task.cancel()
        for task in self._tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._tasks.clear()
