"""Request body size limit middleware.

This middleware limits the size of incoming request bodies before any
handler buffers them. The Content-Length header is checked first; bodies
sent without one (chunked transfer encoding) are counted as they stream in.
"""

from starlette.responses import JSONResponse
from starlette.types import Message, Receive, Scope, Send


class SizeLimitedStream:
    """A receive wrapper that enforces a size limit while the body is read."""

    class SizeExceededError(Exception):
        """Raised when request body exceeds size limit."""

    def __init__(self, receive: Receive, max_size: int):
        """Initialize the size-limited stream.

        Args:
            receive: The ASGI receive callable
            max_size: Maximum number of bytes allowed
        """
        self._receive = receive
        self._max_size = max_size
        self._bytes_read = 0

    async def receive(self) -> Message:
        """Receive and enforce size limit.

        Raises:
            SizeExceededError: If body size exceeds max_size
        """
        message = await self._receive()

        if message["type"] == "http.request":
            self._bytes_read += len(message.get("body", b""))
            if self._bytes_read > self._max_size:
                raise self.SizeExceededError(
                    f"Request body too large. Maximum allowed: {self._max_size} bytes"
                )

        return message


class RequestSizeLimitMiddleware:
    """ASGI middleware to limit request body size.

    Returns HTTP 413 (Payload Too Large) with a JSON error body when the
    limit is exceeded. Other exceptions pass through untouched.

    Usage:
        app.add_middleware(RequestSizeLimitMiddleware, max_body_size=1024)
    """

    def __init__(self, app, max_body_size: int = 1024):
        self.app = app
        self.max_body_size = max_body_size

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        # Fast path: reject on the declared length without reading the body
        content_length = None
        for name, value in scope.get("headers", []):
            if name.lower() == b"content-length":
                content_length = value.decode("latin-1")
                break

        if content_length:
            try:
                if int(content_length) > self.max_body_size:
                    await self._send_413_response(scope, receive, send)
                    return
            except ValueError:
                # Invalid Content-Length, fall back to counting the stream
                pass

        response_started = False

        async def tracking_send(message: Message) -> None:
            nonlocal response_started
            if message["type"] == "http.response.start":
                response_started = True
            await send(message)

        size_limited_receive = SizeLimitedStream(receive, self.max_body_size).receive

        try:
            await self.app(scope, size_limited_receive, tracking_send)
        except SizeLimitedStream.SizeExceededError as exc:
            if response_started:
                raise
            await self._send_413_response(scope, receive, send, detail=str(exc))

    async def _send_413_response(
        self, scope: Scope, receive: Receive, send: Send, detail: str | None = None
    ) -> None:
        if detail is None:
            detail = (
                f"Request body too large. Maximum allowed: {self.max_body_size} bytes"
            )
        response = JSONResponse({"error": detail}, status_code=413)
        await response(scope, receive, send)
