"""Generic SQL passthrough endpoint.

UNSAFE: the statement in the request body is sent to the database verbatim,
with no validation beyond "non-empty string". Anyone who can reach it can
read or modify anything the database user can. It is kept only for clients
that still depend on it; disable it with RAW_QUERY_ENABLED=false.
"""

from typing import Any

from fastapi import APIRouter, Request

from portal.app.api.serializers import serialize_rows
from portal.app.core.logging import get_log_context, get_logger
from portal.app.db.dependencies import PoolDep
from portal.app.exceptions import InvalidQueryError
from portal.app.middleware.request_id import get_request_id

router = APIRouter(prefix="/api", tags=["query"])
logger = get_logger(__name__)


@router.post("/query")
async def run_query(request: Request, pool: PoolDep) -> list[dict[str, Any]]:
    """Execute the ``query`` string from the JSON body and return its rows."""
    try:
        payload = await request.json()
    except ValueError:
        raise InvalidQueryError()

    query = payload.get("query") if isinstance(payload, dict) else None
    if not isinstance(query, str) or not query.strip():
        raise InvalidQueryError()

    logger.warning(
        "Executing client-supplied SQL",
        extra=get_log_context(
            request_id=get_request_id(request),
            client_ip=request.client.host if request.client else None,
            query_length=len(query),
        ),
    )
    return serialize_rows(await pool.execute_raw(query))
