"""Database package for the portal.

This package provides:
- A pooled query executor over the SQLAlchemy async engine
- FastAPI dependency injection support
"""

from portal.app.db.pool import (
    QueryPool,
    close_query_pool,
    get_async_engine,
    get_query_pool,
)

__all__ = [
    "QueryPool",
    "close_query_pool",
    "get_async_engine",
    "get_query_pool",
]
