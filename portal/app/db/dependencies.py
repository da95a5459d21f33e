"""Database dependencies for FastAPI dependency injection.

Usage:
    from portal.app.db.dependencies import PoolDep

    @router.get("/items")
    async def get_items(pool: PoolDep):
        return await pool.execute("SELECT id FROM items")
"""

from typing import Annotated

from fastapi import Depends

from portal.app.db.pool import QueryPool, get_query_pool

# Usage: async def handler(pool: PoolDep)
PoolDep = Annotated[QueryPool, Depends(get_query_pool)]

__all__ = ["PoolDep"]
