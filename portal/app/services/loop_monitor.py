"""Event loop lag monitor used for load shedding.

A background task sleeps for a fixed interval and measures how late it wakes
up. The overshoot is the time the loop spent busy with other work; it is
smoothed into ``current_lag_ms``. Between one and two times the configured
maximum, requests are shed with a probability proportional to the excess;
at twice the maximum or more every request is shed.
"""

import asyncio
import random
import time
from typing import Callable, Optional

from portal.app.core.logging import get_logger

logger = get_logger(__name__)

SMOOTHING_FACTOR = 1 / 3


class LoopLagMonitor:
    """Samples event loop lag in the background."""

    def __init__(
        self,
        max_lag_ms: float = 100.0,
        interval_ms: float = 500.0,
        smoothing: float = SMOOTHING_FACTOR,
        rand: Callable[[], float] = random.random,
    ):
        self.max_lag_ms = max_lag_ms
        self.interval_ms = interval_ms
        self.smoothing = smoothing
        self.current_lag_ms = 0.0
        self._rand = rand
        self._task: Optional[asyncio.Task] = None

    def record(self, lag_ms: float) -> float:
        """Fold one lag sample into the smoothed value and return it."""
        lag_ms = max(0.0, lag_ms)
        self.current_lag_ms = (
            self.smoothing * lag_ms + (1 - self.smoothing) * self.current_lag_ms
        )
        return self.current_lag_ms

    def is_overloaded(self) -> bool:
        """Decide whether the current request should be shed."""
        if self.current_lag_ms <= self.max_lag_ms:
            return False
        excess = (self.current_lag_ms - self.max_lag_ms) / self.max_lag_ms
        return self._rand() < excess

    async def _run(self) -> None:
        interval = self.interval_ms / 1000
        while True:
            started = time.perf_counter()
            await asyncio.sleep(interval)
            elapsed_ms = (time.perf_counter() - started) * 1000
            lag = self.record(elapsed_ms - self.interval_ms)
            if lag > self.max_lag_ms:
                logger.warning(f"Event loop lag {lag:.1f}ms exceeds {self.max_lag_ms:g}ms")

    def start(self) -> None:
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()
