"""Path whitelist middleware.

A strict allow-list: any request whose path matches none of the patterns is
answered with 403 before anything else runs. Routes added later must be
added here as well, or they are unreachable.

Paths that match the asset patterns are only checked for shape; traversal
protection is left to whatever serves the files.
"""

import re
from typing import Iterable, Pattern, Sequence

from starlette.responses import PlainTextResponse
from starlette.types import ASGIApp, Receive, Scope, Send

from portal.app.core.logging import get_logger

logger = get_logger(__name__)

DEFAULT_ALLOWED_PATTERNS: tuple[str, ...] = (
    # HTML pages
    r"^/$",
    r"^/index\.html$",
    r"^/noticias\.html$",
    r"^/eventos\.html$",
    r"^/servicios\.html$",
    r"^/empresas\.html$",
    # API endpoints
    r"^/api/.+$",
    # Allowed asset directories
    r"^/assets/.+\.(css|js|png|jpg|jpeg|gif|svg|woff|woff2|ttf|eot|ico)$",
    r"^/js/.+\.js$",
    r"^/css/.+\.css$",
    r"^/favicon\.ico$",
)


def compile_patterns(patterns: Iterable[str]) -> list[Pattern[str]]:
    return [re.compile(p) for p in patterns]


def is_path_allowed(path: str, patterns: Sequence[Pattern[str]]) -> bool:
    # fullmatch: "$" alone would also accept a trailing newline.
    return any(p.fullmatch(path) for p in patterns)


class PathWhitelistMiddleware:
    """ASGI middleware rejecting every path not on the allow-list.

    Usage:
        app.add_middleware(PathWhitelistMiddleware)
        app.add_middleware(PathWhitelistMiddleware, patterns=[r"^/health$", *DEFAULT_ALLOWED_PATTERNS])
    """

    def __init__(self, app: ASGIApp, patterns: Iterable[str] = DEFAULT_ALLOWED_PATTERNS):
        self.app = app
        self.patterns = compile_patterns(patterns)

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        path = scope.get("path", "")
        if is_path_allowed(path, self.patterns):
            await self.app(scope, receive, send)
            return

        logger.info(f"Blocked non-whitelisted path {path!r}", extra={"path": path})
        response = PlainTextResponse("Access Forbidden", status_code=403)
        await response(scope, receive, send)
