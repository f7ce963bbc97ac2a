from __future__ import annotations

import asyncio
import logging
from typing import Protocol


class Tickable(Protocol):
    def on_tick(self) -> bool:
        ...


class TickDriver:
    """Calls ``target.on_tick()`` every ``interval`` seconds on the event loop.

    Ticks run one after another on a single task, so they never overlap.
    Stopping simply cancels the task; nothing is rearmed.
    """

    def __init__(self, target: Tickable, interval: float = 1.0, logger: logging.Logger | None = None):
        if interval <= 0:
            raise ValueError("tick interval must be positive")
        self._target = target
        self._interval = interval
        self._logger = logger or logging.getLogger(__name__)
        self._task: asyncio.Task | None = None
        self.ticks = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> asyncio.Task:
        if self.running:
            return self._task
        self._task = asyncio.get_running_loop().create_task(self._run())
        self._logger.info("Tick driver armed (every %.1fs)", self._interval)
        return self._task

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        self._logger.info("Tick driver stopped after %d ticks", self.ticks)

    async def _run(self) -> None:
        loop = asyncio.get_running_loop()
        next_at = loop.time()
        while True:
            # deadlines stay on the grid set when the driver was armed
            next_at += self._interval
            await asyncio.sleep(max(0.0, next_at - loop.time()))
            try:
                self._target.on_tick()
            except Exception:
                self._logger.exception("Tick target raised")
            self.ticks += 1
