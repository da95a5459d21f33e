"""Runtime configuration endpoint consumed by the frontend."""

from fastapi import APIRouter, Request

from portal.app.core.config import settings

router = APIRouter(prefix="/api", tags=["config"])


def _port_from_host(host: str) -> str | None:
    # "[::1]:8060" and "example.com:8060" carry a port, "[::1]" does not.
    if host.endswith("]") or ":" not in host:
        return None
    return host.rsplit(":", 1)[1] or None


@router.get("/config")
async def get_config(request: Request) -> dict[str, str]:
    """Server name, port and API base URL as seen by the caller."""
    host = request.headers.get("host") or f"{settings.server_host}:{settings.port}"
    return {
        "server": request.url.hostname or settings.server_host,
        "port": _port_from_host(host) or str(settings.port),
        "apiUrl": f"{request.url.scheme}://{host}/api",
    }
