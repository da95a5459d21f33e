"""Process-local admission state.

Everything the abuse controls remember (per-IP connection counts, rate
windows, loop lag) lives in one ``AdmissionState`` created with the app and
started/stopped by its lifespan. Tests build a fresh one per case.
"""

import asyncio
from typing import Optional

from portal.app.core.config import Settings
from portal.app.core.logging import get_logger
from portal.app.middleware.rate_limit import InMemoryRateLimiter
from portal.app.services.connection_tracker import ConnectionTracker
from portal.app.services.loop_monitor import LoopLagMonitor

logger = get_logger(__name__)


class AdmissionState:
    """Owns the connection tracker, rate limiter and loop lag monitor."""

    def __init__(
        self,
        tracker: ConnectionTracker,
        limiter: InMemoryRateLimiter,
        monitor: LoopLagMonitor,
        sweep_interval_seconds: float = 60.0,
    ):
        self.tracker = tracker
        self.limiter = limiter
        self.monitor = monitor
        self.sweep_interval_seconds = sweep_interval_seconds
        self._sweep_task: Optional[asyncio.Task] = None

    @classmethod
    def from_settings(cls, settings: Settings) -> "AdmissionState":
        return cls(
            tracker=ConnectionTracker(
                max_connections_per_ip=settings.max_connections_per_ip,
                max_queue_size=settings.max_queue_size,
                retention_seconds=settings.connection_retention_seconds,
            ),
            limiter=InMemoryRateLimiter(
                requests_per_minute=settings.rate_limit_requests_per_minute,
                window_seconds=settings.rate_limit_window_seconds,
                max_entries=settings.rate_limit_max_entries,
            ),
            monitor=LoopLagMonitor(
                max_lag_ms=settings.max_event_loop_lag_ms,
                interval_ms=settings.lag_check_interval_ms,
            ),
            sweep_interval_seconds=settings.admission_sweep_interval_seconds,
        )

    async def sweep(self) -> dict:
        """Evict expired rate windows and idle connection history."""
        removed = {
            "rate_limit_keys": await self.limiter.cleanup(),
            "connection_ips": self.tracker.sweep(),
        }
        if any(removed.values()):
            logger.debug(f"Admission sweep removed {removed}")
        return removed

    async def _sweep_loop(self) -> None:
        while True:
            await asyncio.sleep(self.sweep_interval_seconds)
            try:
                await self.sweep()
            except Exception:
                logger.exception("Admission sweep failed")

    async def start(self, monitor_loop_lag: bool = True) -> None:
        if monitor_loop_lag:
            self.monitor.start()
        if self._sweep_task is None:
            self._sweep_task = asyncio.create_task(self._sweep_loop())

    async def stop(self) -> None:
        await self.monitor.stop()
        if self._sweep_task is not None:
            self._sweep_task.cancel()
            try:
                await self._sweep_task
            except asyncio.CancelledError:
                pass
            self._sweep_task = None

    def stats(self) -> dict:
        return {
            "connections": self.tracker.stats(),
            "rate_limited_clients": len(self.limiter),
            "event_loop_lag_ms": round(self.monitor.current_lag_ms, 2),
        }
