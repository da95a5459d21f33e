"""Security headers middleware.

Adds X-Frame-Options and Content-Security-Policy to every response that
passes through it. Never blocks.
"""

from starlette.datastructures import MutableHeaders
from starlette.types import ASGIApp, Message, Receive, Scope, Send

DEFAULT_CSP = (
    "default-src 'self'; "
    "script-src 'self' 'unsafe-inline'; "
    "style-src 'self' 'unsafe-inline' https://fonts.googleapis.com; "
    "font-src 'self' https://fonts.gstatic.com; "
    "img-src 'self' data: https:; "
    "connect-src 'self'; "
    "frame-src https://*.google.com https://www.google.com"
)

# Also attached by the catch-all 500 handler, which renders outside every
# user middleware.
DEFAULT_SECURITY_HEADERS = {
    "X-Frame-Options": "SAMEORIGIN",
    "Content-Security-Policy": DEFAULT_CSP,
}


class SecurityHeadersMiddleware:
    """ASGI middleware setting framing and content security headers."""

    def __init__(
        self,
        app: ASGIApp,
        frame_options: str = "SAMEORIGIN",
        content_security_policy: str = DEFAULT_CSP,
    ):
        self.app = app
        self.frame_options = frame_options
        self.content_security_policy = content_security_policy

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        async def send_with_headers(message: Message) -> None:
            if message["type"] == "http.response.start":
                message.setdefault("headers", [])
                headers = MutableHeaders(scope=message)
                headers["X-Frame-Options"] = self.frame_options
                headers["Content-Security-Policy"] = self.content_security_policy
            await send(message)

        await self.app(scope, receive, send_with_headers)
