"""API routers for the portal."""

from portal.app.api.config import router as config_router
from portal.app.api.query import router as query_router
from portal.app.api.site import router as site_router

__all__ = ["config_router", "query_router", "site_router"]
