"""Fixed-interval background tasks for the asyncio loop.

A tick that raises is logged and the loop keeps going. ``stop()`` lets
an in-flight tick finish rather than cancelling it mid-write.
"""

import asyncio
import time
from typing import Any, Awaitable, Callable, Optional

from honeyguard.core.exceptions import ConfigurationError
from honeyguard.core.logging import get_logger

logger = get_logger(__name__)


class PeriodicTask:
    """Run an async callback every ``interval`` seconds until stopped.

    Usage:
        task = PeriodicTask("honeypot_flush", 300.0, engine.flush_honeypot)
        task.start()
        ...
        await task.stop()
    """

    def __init__(
        self,
        name: str,
        interval: float,
        callback: Callable[[], Awaitable[Any]],
    ) -> None:
        if interval <= 0:
            raise ConfigurationError(
                f"Interval for {name} must be positive",
                {"task": name, "interval": interval},
            )
        self.name = name
        self.interval = interval
        self.callback = callback
        self.ticks = 0
        self.failures = 0
        self._stop_event = asyncio.Event()
        self._task: Optional[asyncio.Task[None]] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._stop_event.clear()
        self._task = asyncio.create_task(self._run(), name=self.name)

    async def stop(self) -> None:
        """Signal the loop and wait for the current tick to finish."""
        self._stop_event.set()
        if self._task is not None:
            await self._task
            self._task = None

    async def run_once(self) -> None:
        await self._tick()

    async def _run(self) -> None:
        logger.info("periodic_task_started", task=self.name, interval=self.interval)
        while not self._stop_event.is_set():
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=self.interval)
                break
            except asyncio.TimeoutError:
                pass
            await self._tick()
        logger.info("periodic_task_stopped", task=self.name, ticks=self.ticks)

    async def _tick(self) -> None:
        start = time.time()
        try:
            await self.callback()
        except Exception as e:
            self.failures += 1
            logger.error("periodic_task_failed", task=self.name, error=str(e))
            return
        self.ticks += 1
        logger.debug(
            "periodic_task_tick",
            task=self.name,
            tick=self.ticks,
            duration=f"{time.time() - start:.3f}s",
        )
