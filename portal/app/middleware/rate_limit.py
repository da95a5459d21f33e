"""Rate limiting middleware for the API namespace.

Requests under ``/api/`` are counted per client IP in fixed windows
(one minute by default). Once the ceiling is reached, further requests in the
same window get 429 until the window resets. Static pages and assets are not
counted.
"""

import asyncio
import math
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Callable, Optional

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from portal.app.core.logging import get_logger

logger = get_logger(__name__)

RATE_LIMIT_MESSAGE = "Too many requests from this IP, please try again later."


@dataclass
class RateLimitResult:
    """Result of a rate limit check."""
    allowed: bool
    limit: int
    remaining: int
    reset_after: int  # Seconds until the current window resets
    retry_after: Optional[int] = None


@dataclass
class RateLimitEntry:
    """Per-client window state."""
    requests: int
    window_start: float


class InMemoryRateLimiter:
    """Fixed-window rate limiter keyed by client identity.

    Memory is bounded two ways: an LRU cap on the number of tracked keys, and
    ``cleanup`` which drops every key whose window has expired (run
    periodically by the admission sweep).
    """

    DEFAULT_MAX_ENTRIES = 10000

    def __init__(
        self,
        requests_per_minute: int = 500,
        window_seconds: int = 60,
        max_entries: int = DEFAULT_MAX_ENTRIES,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize rate limiter.

        Args:
            requests_per_minute: Maximum requests per key per window
            window_seconds: Window length in seconds
            max_entries: Maximum number of keys to store (LRU eviction)
            clock: Monotonic time source
        """
        self.requests_per_minute = requests_per_minute
        self.window_seconds = window_seconds
        self._max_entries = max_entries
        self._clock = clock
        self._storage: OrderedDict[str, RateLimitEntry] = OrderedDict()
        self._lock = asyncio.Lock()

    def _enforce_lru_limit(self) -> None:
        """Evict the least recently used keys once the cap is reached."""
        if len(self._storage) >= self._max_entries:
            # Remove oldest 20% of entries
            remove_count = max(1, int(self._max_entries * 0.2))
            for _ in range(min(remove_count, len(self._storage))):
                self._storage.popitem(last=False)

    async def is_allowed(self, key: str) -> RateLimitResult:
        """Count one request for ``key`` and report whether it may proceed."""
        async with self._lock:
            now = self._clock()
            entry = self._storage.get(key)

            if entry is None:
                self._enforce_lru_limit()
            else:
                self._storage.move_to_end(key)

            # Reset window if expired
            if entry is None or now - entry.window_start >= self.window_seconds:
                entry = RateLimitEntry(requests=0, window_start=now)
                self._storage[key] = entry

            limit = self.requests_per_minute
            reset_after = max(
                0, math.ceil(entry.window_start + self.window_seconds - now)
            )

            if entry.requests >= limit:
                return RateLimitResult(
                    allowed=False,
                    limit=limit,
                    remaining=0,
                    reset_after=reset_after,
                    retry_after=max(1, reset_after),
                )

            entry.requests += 1
            return RateLimitResult(
                allowed=True,
                limit=limit,
                remaining=limit - entry.requests,
                reset_after=reset_after,
            )

    async def cleanup(self) -> int:
        """Drop keys whose window has expired.

        Returns:
            Number of keys removed
        """
        async with self._lock:
            now = self._clock()
            expired = [
                key for key, entry in self._storage.items()
                if now - entry.window_start >= self.window_seconds
            ]
            for key in expired:
                del self._storage[key]
            return len(expired)

    def __len__(self) -> int:
        return len(self._storage)


def get_client_ip(request: Request) -> str:
    """Socket-level address of the client; forwarding headers are not trusted."""
    return request.client.host if request.client else "unknown"


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Middleware to enforce per-IP rate limits on the API namespace."""

    def __init__(
        self,
        app,
        limiter: InMemoryRateLimiter,
        path_prefix: str = "/api/",
    ):
        super().__init__(app)
        self.limiter = limiter
        self.path_prefix = path_prefix

    @staticmethod
    def _headers(result: RateLimitResult) -> dict[str, str]:
        return {
            "RateLimit-Limit": str(result.limit),
            "RateLimit-Remaining": str(result.remaining),
            "RateLimit-Reset": str(result.reset_after),
        }

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint
    ) -> Response:
        """Process request with rate limiting."""
        if not request.url.path.startswith(self.path_prefix):
            return await call_next(request)

        client_ip = get_client_ip(request)
        result = await self.limiter.is_allowed(client_ip)

        if not result.allowed:
            logger.info(
                f"Rate limit exceeded for {client_ip}",
                extra={"client_ip": client_ip, "path": request.url.path},
            )
            headers = self._headers(result)
            headers["Retry-After"] = str(result.retry_after)
            return JSONResponse(
                status_code=429,
                content={"error": RATE_LIMIT_MESSAGE},
                headers=headers,
            )

        response = await call_next(request)
        response.headers.update(self._headers(result))
        return response
