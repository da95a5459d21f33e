"""Middleware package for the portal.

Request gates in pipeline order: security headers (wrapping everything),
path whitelist, load shedding, body size limit, rate limit, request timeout. RequestIdMiddleware
tags and logs every request.
"""

from portal.app.middleware.load_shedding import LoadSheddingMiddleware
from portal.app.middleware.rate_limit import InMemoryRateLimiter, RateLimitMiddleware
from portal.app.middleware.request_id import RequestIdMiddleware, get_request_id
from portal.app.middleware.request_size import RequestSizeLimitMiddleware
from portal.app.middleware.security_headers import DEFAULT_SECURITY_HEADERS, SecurityHeadersMiddleware
from portal.app.middleware.timeout import RequestTimeoutMiddleware
from portal.app.middleware.whitelist import PathWhitelistMiddleware

__all__ = [
    "DEFAULT_SECURITY_HEADERS",
    "InMemoryRateLimiter",
    "LoadSheddingMiddleware",
    "PathWhitelistMiddleware",
    "RateLimitMiddleware",
    "RequestIdMiddleware",
    "RequestSizeLimitMiddleware",
    "RequestTimeoutMiddleware",
    "SecurityHeadersMiddleware",
    "get_request_id",
]
