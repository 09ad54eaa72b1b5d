"""
Async helpers shared by the scheduler, the ticker and the in-memory database.
"""

import asyncio
from typing import Any, Awaitable, Coroutine, List, Set, TypeVar

T = TypeVar("T")


async def gather_with_concurrency(limit: int, *coros: Awaitable[T]) -> List[T]:
    """
    Await ``coros`` with at most ``limit`` running at once.

    Results keep the order the awaitables were given in.

    Example:
        >>> enabled = await gather_with_concurrency(8, *(timer_enabled(u) for u in members))
    """
    gate = asyncio.Semaphore(limit)

    async def gated(coro: Awaitable[T]) -> T:
        async with gate:
            return await coro

    return list(await asyncio.gather(*(gated(c) for c in coros)))


def spawn(coro: Coroutine[Any, Any, Any], pending: Set["asyncio.Task[Any]"]) -> "asyncio.Task[Any]":
    """
    Schedule ``coro`` without awaiting it.

    ``pending`` holds a strong reference until the task finishes, so a
    background fan-out cannot be garbage collected mid-flight and can be
    awaited later (``drain``).
    """
    task = asyncio.get_running_loop().create_task(coro)
    pending.add(task)
    task.add_done_callback(pending.discard)
    return task


async def cancel_tasks(*tasks: "asyncio.Task[Any]") -> None:
    """Cancel ``tasks`` and wait until each has finished unwinding."""
    for task in tasks:
        task.cancel()
    await asyncio.gather(*tasks, return_exceptions=True)
