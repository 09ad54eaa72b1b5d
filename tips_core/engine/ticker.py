"""
Foreground ticker.

Drives the engine's ``tick`` at a fixed interval while a room is
foregrounded.
"""

import asyncio
from typing import Any, Awaitable, Callable, Optional

from tips_core.utils.async_utils import cancel_tasks
from tips_core.utils.logging import get_logger, log_error

logger = get_logger(__name__)


class ForegroundTicker:
    """
    Periodic caller of an async tick function.

    A failing tick is logged and the loop keeps running.

    Example:
        >>> ticker = ForegroundTicker(engine.tick, interval=1.0)
        >>> ticker.start()
        >>> await ticker.stop()
    """

    def __init__(self, tick: Callable[[], Awaitable[Any]], interval: float = 1.0):
        if interval <= 0:
            raise ValueError("interval must be > 0")
        self.tick = tick
        self.interval = interval
        self._task: Optional["asyncio.Task[None]"] = None
        self.tick_count = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Start ticking. Calling start on a running ticker is a no-op."""
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._run())
        logger.debug("ticker_started", interval=self.interval)

    async def stop(self) -> None:
        """Stop ticking and wait for the loop to exit."""
        task, self._task = self._task, None
        if task is not None:
            await cancel_tasks(task)
            logger.debug("ticker_stopped", ticks=self.tick_count)

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            try:
                await self.tick()
            except Exception as e:
                logger.error("tick_failed", **log_error(e, {"component": "ticker"}))
            self.tick_count += 1
