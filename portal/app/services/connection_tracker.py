"""Per-IP transport connection tracking.

Counts concurrent sockets per remote address and keeps a sliding window of
recent connection timestamps. It knows nothing about HTTP: the server's
protocol hook calls ``open`` when a socket is accepted and ``close`` when it
goes away, and aborts the socket when ``open`` refuses it.
"""

import time
from collections import deque
from typing import Callable, Deque, Dict

from portal.app.core.logging import get_logger

logger = get_logger(__name__)


class ConnectionTracker:
    """Enforces per-IP concurrent connection and connection-rate caps.

    Active counts are dropped as soon as they return to zero, so that map is
    bounded by the number of currently connected addresses. Timestamp history
    outlives the connections so the rate cap also holds for clients that
    connect and disconnect in quick succession; it is pruned on every access
    and idle addresses are removed by ``sweep``.

    All methods run on the event loop thread, so no locking is needed.
    """

    def __init__(
        self,
        max_connections_per_ip: int = 50,
        max_queue_size: int = 400,
        retention_seconds: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.max_connections_per_ip = max_connections_per_ip
        self.max_queue_size = max_queue_size
        self.retention_seconds = retention_seconds
        self._clock = clock
        self._active: Dict[str, int] = {}
        self._history: Dict[str, Deque[float]] = {}
        self.rejected_total = 0

    def _prune(self, ip: str, now: float) -> Deque[float]:
        history = self._history.get(ip)
        if history is None:
            history = deque()
            self._history[ip] = history
        cutoff = now - self.retention_seconds
        # Oldest first, so expired entries are always a prefix.
        while history and history[0] < cutoff:
            history.popleft()
        return history

    def open(self, ip: str) -> bool:
        """Register a new connection from ``ip``.

        The connection is counted even when refused; the caller closes the
        socket and ``close`` is called for it like for any other.

        Returns:
            False when the address is over either cap and the socket must be
            dropped without a response.
        """
        now = self._clock()
        active = self._active.get(ip, 0) + 1
        self._active[ip] = active

        history = self._prune(ip, now)
        history.append(now)

        if active > self.max_connections_per_ip:
            self.rejected_total += 1
            logger.warning(
                f"Connection cap exceeded for {ip} (active={active})",
                extra={"client_ip": ip},
            )
            return False
        if len(history) > self.max_queue_size:
            self.rejected_total += 1
            logger.warning(
                f"Connection rate exceeded for {ip} ({len(history)} in "
                f"{self.retention_seconds:g}s)",
                extra={"client_ip": ip},
            )
            return False
        return True

    def close(self, ip: str) -> None:
        """Unregister a connection from ``ip``. Unknown addresses are ignored."""
        active = self._active.get(ip, 0)
        if active <= 1:
            self._active.pop(ip, None)
            history = self._history.get(ip)
            if history is not None and not self._prune(ip, self._clock()):
                del self._history[ip]
        else:
            self._active[ip] = active - 1

    def sweep(self) -> int:
        """Drop history of addresses with no open connection and no recent activity.

        Returns:
            Number of addresses removed
        """
        now = self._clock()
        idle = [
            ip for ip in list(self._history)
            if ip not in self._active and not self._prune(ip, now)
        ]
        for ip in idle:
            del self._history[ip]
        return len(idle)

    def active_count(self, ip: str) -> int:
        return self._active.get(ip, 0)

    def queue_length(self, ip: str) -> int:
        if ip not in self._history:
            return 0
        return len(self._prune(ip, self._clock()))

    def tracked_ips(self) -> list[str]:
        """Addresses with at least one open connection."""
        return list(self._active)

    def stats(self) -> dict:
        return {
            "connected_ips": len(self._active),
            "active_connections": sum(self._active.values()),
            "history_ips": len(self._history),
            "rejected_total": self.rejected_total,
        }
