"""Request timeout middleware.

Races the downstream app against a wall-clock budget. If the budget runs out
before the response has started, the client gets a single 408 and the
handler task is cancelled. Anything the abandoned handler still tries to send
is dropped by a response-already-sent guard instead of reaching the
transport. Once a response has started the budget no longer applies.
"""

import asyncio

from starlette.responses import JSONResponse
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from portal.app.core.logging import get_logger

logger = get_logger(__name__)

TIMEOUT_MESSAGE = "Request timed out. Please try again."


class ResponseGuard:
    """Wraps ``send`` so writes stop once the request has been timed out."""

    def __init__(self, send: Send, path: str = ""):
        self._send = send
        self.path = path
        self.started = False
        self.timed_out = False
        self.dropped = 0

    async def send(self, message: Message) -> None:
        if self.timed_out:
            self.dropped += 1
            logger.warning(
                f"Dropped {message['type']} from timed out handler",
                extra={"path": self.path},
            )
            return
        if message["type"] == "http.response.start":
            self.started = True
        await self._send(message)


def _consume_result(task: asyncio.Task) -> None:
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.debug(f"Timed out handler finished with {exc!r}")


class RequestTimeoutMiddleware:
    """ASGI middleware answering 408 when a handler exceeds its budget.

    Usage:
        app.add_middleware(RequestTimeoutMiddleware, timeout_seconds=10)
    """

    def __init__(self, app: ASGIApp, timeout_seconds: float = 10.0):
        self.app = app
        self.timeout_seconds = timeout_seconds

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        guard = ResponseGuard(send, path=scope.get("path", ""))
        task = asyncio.ensure_future(self.app(scope, receive, guard.send))

        try:
            done, _ = await asyncio.wait({task}, timeout=self.timeout_seconds)
        except asyncio.CancelledError:
            task.cancel()
            raise

        if task in done:
            # Re-raise handler errors for the outer exception handlers
            task.result()
            return

        if guard.started:
            await task
            return

        # Flip the guard before yielding so no late write can slip through.
        guard.timed_out = True
        task.cancel()
        task.add_done_callback(_consume_result)
        logger.warning(
            f"Request exceeded {self.timeout_seconds:g}s budget",
            extra={"path": guard.path, "method": scope.get("method")},
        )
        response = JSONResponse({"error": TIMEOUT_MESSAGE}, status_code=408)
        await response(scope, receive, send)
