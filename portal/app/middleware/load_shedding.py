"""Load shedding middleware.

Rejects requests with 503 while the event loop is saturated, as reported by
the loop lag monitor, before any body is read.
"""

from starlette.responses import JSONResponse
from starlette.types import ASGIApp, Receive, Scope, Send

from portal.app.core.logging import get_logger
from portal.app.services.loop_monitor import LoopLagMonitor

logger = get_logger(__name__)

OVERLOADED_MESSAGE = "Server is too busy. Please try again later."


class LoadSheddingMiddleware:
    """ASGI middleware answering 503 when the loop lag monitor says so."""

    def __init__(self, app: ASGIApp, monitor: LoopLagMonitor):
        self.app = app
        self.monitor = monitor

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http" or not self.monitor.is_overloaded():
            await self.app(scope, receive, send)
            return

        logger.warning(
            f"Shedding request, event loop lag {self.monitor.current_lag_ms:.1f}ms",
            extra={"path": scope.get("path")},
        )
        response = JSONResponse({"error": OVERLOADED_MESSAGE}, status_code=503)
        await response(scope, receive, send)
