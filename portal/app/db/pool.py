"""Pooled query execution over the SQLAlchemy async engine.

The engine owns a QueuePool of asyncpg connections; each call checks a
connection out, runs one statement and returns it, also on error. Rows come
back as plain dicts keyed by column label so handlers can serialize them
directly.
"""

from functools import lru_cache
from typing import Any, Mapping, Optional

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from portal.app.core.config import settings
from portal.app.core.logging import get_logger
from portal.app.exceptions import DatabaseError

logger = get_logger(__name__)

Row = dict[str, Any]


@lru_cache(maxsize=1)
def get_async_engine(database_url: str | None = None) -> AsyncEngine:
    """Get or create the async database engine.

    Cached with lru_cache so the whole process shares one connection pool.

    Args:
        database_url: Optional database URL. Uses settings if not provided.

    Returns:
        AsyncEngine instance
    """
    url = database_url or settings.database_url

    if "sqlite" in url.lower():
        engine = create_async_engine(url, echo=False)
        logger.info("Created SQLite async engine")
        return engine

    engine = create_async_engine(
        url,
        echo=False,
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
        pool_timeout=settings.db_pool_timeout,
        pool_recycle=settings.db_pool_recycle,
        pool_pre_ping=settings.db_pool_pre_ping,
        connect_args={"command_timeout": settings.db_command_timeout},
    )
    logger.info(
        f"Created PostgreSQL async engine (pool_size={settings.db_pool_size}, "
        f"max_overflow={settings.db_max_overflow}, "
        f"pool_timeout={settings.db_pool_timeout}s)"
    )
    return engine


class QueryPool:
    """Executes statements against pooled connections.

    Driver failures are logged with their full cause and re-raised as
    DatabaseError, whose message is safe to show to clients.
    """

    def __init__(self, engine: AsyncEngine):
        self.engine = engine

    async def execute(
        self, sql: str, params: Optional[Mapping[str, Any]] = None
    ) -> list[Row]:
        """Run a parameterized read query and return its rows.

        Args:
            sql: Statement using ``:name`` bind parameters
            params: Values for the bind parameters

        Returns:
            List of rows as dicts, in result order
        """
        try:
            async with self.engine.connect() as conn:
                result = await conn.execute(text(sql), dict(params or {}))
                return [dict(row) for row in result.mappings().all()]
        except (SQLAlchemyError, OSError) as exc:
            logger.error(f"Query failed: {exc}", exc_info=exc)
            raise DatabaseError() from exc

    async def execute_raw(self, sql: str) -> list[Row]:
        """Forward a caller-supplied statement verbatim and commit it.

        The statement goes to the driver untouched (no bind parameter
        parsing). Statements that return no rows yield an empty list.
        """
        try:
            async with self.engine.begin() as conn:
                result = await conn.exec_driver_sql(sql)
                if not result.returns_rows:
                    return []
                return [dict(row) for row in result.mappings().all()]
        except (SQLAlchemyError, OSError) as exc:
            logger.error(f"Raw query failed: {exc}", exc_info=exc)
            raise DatabaseError() from exc

    async def ping(self) -> bool:
        """Return True when a trivial query succeeds."""
        try:
            await self.execute("SELECT 1")
        except DatabaseError:
            return False
        return True

    def status(self) -> dict:
        """Current connection pool counters, for monitoring."""
        pool = self.engine.pool
        counters = {}
        for name in ("size", "checkedin", "checkedout", "overflow"):
            getter = getattr(pool, name, None)
            if callable(getter):
                counters[name] = getter()
        return counters

    async def dispose(self) -> None:
        try:
            await self.engine.dispose()
            logger.debug("Async engine disposed successfully")
        except RuntimeError:
            # Event loop mismatch when the engine was created on another loop
            logger.debug("Engine dispose encountered RuntimeError (event loop mismatch)")


_query_pool: Optional[QueryPool] = None


def get_query_pool() -> QueryPool:
    """FastAPI dependency returning the process-wide query pool.

    Tests replace it through ``app.dependency_overrides[get_query_pool]``.
    """
    global _query_pool
    if _query_pool is None:
        _query_pool = QueryPool(get_async_engine())
    return _query_pool


async def close_query_pool() -> None:
    """Dispose the engine and drop the cached pool.

    Call this on application shutdown to release database connections.
    """
    global _query_pool
    if _query_pool is not None:
        await _query_pool.dispose()
        _query_pool = None
    get_async_engine.cache_clear()
