"""Request ID middleware.

Tags each request with an ID (taken from X-Request-ID or generated), exposes
it on ``request.state`` for handlers and error logs, echoes it in the
response headers and writes one access log line per request.
"""

import time
import uuid

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from portal.app.core.logging import get_log_context, get_logger

logger = get_logger(__name__)

MAX_REQUEST_ID_LENGTH = 128


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Middleware to add a request ID to all requests.

    The request ID is:
    1. Extracted from the X-Request-ID header if present and sane
    2. Generated as UUID if not present
    3. Added to request.state for access in endpoints
    4. Returned in the X-Request-ID response header
    """

    def __init__(self, app, header_name: str = "X-Request-ID"):
        super().__init__(app)
        self.header_name = header_name

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint
    ) -> Response:
        request_id = request.headers.get(self.header_name, "")
        if not request_id or len(request_id) > MAX_REQUEST_ID_LENGTH:
            request_id = str(uuid.uuid4())
        request.state.request_id = request_id

        started = time.perf_counter()
        response = await call_next(request)
        duration_ms = round((time.perf_counter() - started) * 1000, 2)

        response.headers[self.header_name] = request_id
        logger.info(
            f"{request.method} {request.url.path} {response.status_code} {duration_ms}ms",
            extra=get_log_context(
                request_id=request_id,
                client_ip=request.client.host if request.client else None,
                method=request.method,
                path=request.url.path,
                status_code=response.status_code,
                duration_ms=duration_ms,
            ),
        )
        return response


def get_request_id(request: Request) -> str:
    """Get request ID from request state."""
    return getattr(request.state, "request_id", "unknown")
