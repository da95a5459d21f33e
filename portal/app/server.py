"""uvicorn runner with per-IP connection tracking.

The tracker hooks into the HTTP protocol class rather than the ASGI app so
that refused sockets are dropped before a single byte is parsed. The same
protocol closes sockets whose request headers do not arrive in time, which
the ASGI request timeout cannot see.
"""

import asyncio
import socket
from typing import Optional

import h11
import uvicorn
from uvicorn.protocols.http.h11_impl import H11Protocol
from uvicorn.protocols.utils import get_remote_addr

from portal.app.core.config import Settings
from portal.app.core.logging import get_logger
from portal.app.services.admission import AdmissionState
from portal.app.services.connection_tracker import ConnectionTracker

logger = get_logger(__name__)


def tracked_protocol(
    tracker: Optional[ConnectionTracker],
    headers_timeout: float = 15.0,
) -> type[H11Protocol]:
    """Build an H11Protocol subclass bound to ``tracker`` and a header deadline.

    Args:
        tracker: Per-IP connection tracker, or None to skip connection caps
        headers_timeout: Seconds a client gets to finish sending request
            headers before the socket is closed
    """

    class TrackedH11Protocol(H11Protocol):
        _tracked_ip: Optional[str] = None
        _headers_timer: Optional[asyncio.TimerHandle] = None

        def connection_made(self, transport: asyncio.Transport) -> None:  # type: ignore[override]
            super().connection_made(transport)
            remote = get_remote_addr(transport)
            if tracker is not None and remote is not None:
                self._tracked_ip = remote[0]
                if not tracker.open(self._tracked_ip):
                    # No response: the peer just sees the connection reset.
                    transport.abort()
                    return
            self._arm_headers_timer()

        def data_received(self, data: bytes) -> None:
            if self._headers_timer is None and self._awaiting_headers():
                self._arm_headers_timer()
            super().data_received(data)
            if not self._awaiting_headers():
                self._cancel_headers_timer()

        def connection_lost(self, exc: Optional[Exception]) -> None:
            self._cancel_headers_timer()
            if self._tracked_ip is not None:
                tracker.close(self._tracked_ip)
                self._tracked_ip = None
            super().connection_lost(exc)

        def _awaiting_headers(self) -> bool:
            # h11 stays IDLE on the client side until a full request head is parsed.
            return self.conn.their_state == h11.IDLE

        def _arm_headers_timer(self) -> None:
            self._cancel_headers_timer()
            self._headers_timer = self.loop.call_later(headers_timeout, self._headers_timed_out)

        def _cancel_headers_timer(self) -> None:
            if self._headers_timer is not None:
                self._headers_timer.cancel()
                self._headers_timer = None

        def _headers_timed_out(self) -> None:
            self._headers_timer = None
            if self.transport.is_closing():
                return
            logger.warning(
                f"Closing connection: request headers not received within {headers_timeout:g}s",
                extra={"client_ip": self.client[0] if self.client else None},
            )
            self.transport.close()

    TrackedH11Protocol.tracker = tracker
    TrackedH11Protocol.headers_timeout = headers_timeout
    return TrackedH11Protocol


def access_urls(settings: Settings) -> list[str]:
    """URLs the server can be reached at, for the startup banner."""
    scheme = "https" if settings.tls_enabled else "http"
    if settings.host not in ("0.0.0.0", "::"):
        return [f"{scheme}://{settings.host}:{settings.port}"]

    urls = [f"{scheme}://localhost:{settings.port}"]
    try:
        infos = socket.getaddrinfo(socket.gethostname(), None, socket.AF_INET)
    except OSError:
        return urls
    for address in sorted({info[4][0] for info in infos}):
        if not address.startswith("127."):
            urls.append(f"{scheme}://{address}:{settings.port}")
    return urls


def build_config(settings: Settings, admission: Optional[AdmissionState] = None) -> uvicorn.Config:
    """Assemble the uvicorn config for ``settings``.

    The same ``AdmissionState`` backs the app's middleware and the transport
    hook, so connection and request counters are reported together.
    """
    from portal.app.main import create_app

    admission = admission or AdmissionState.from_settings(settings)
    app = create_app(settings, admission=admission)

    options = {
        "host": settings.host,
        "port": settings.port,
        "log_config": None,
        "log_level": settings.log_level.lower(),
        "proxy_headers": False,
        "timeout_keep_alive": settings.keep_alive_timeout_seconds,
    }
    tracker = admission.tracker if settings.connection_tracking_enabled else None
    options["http"] = tracked_protocol(tracker, headers_timeout=settings.headers_timeout_seconds)
    if settings.tls_enabled:
        options["ssl_keyfile"] = settings.ssl_keyfile
        options["ssl_certfile"] = settings.ssl_certfile

    return uvicorn.Config(app, **options)


def run_server(settings: Settings) -> None:
    """Serve the application until interrupted."""
    config = build_config(settings)
    for url in access_urls(settings):
        logger.info(f"Portal available at {url}")
    if not settings.tls_enabled and (settings.ssl_keyfile or settings.ssl_certfile):
        logger.warning("Both SSL_KEYFILE and SSL_CERTFILE are required for HTTPS; serving plain HTTP")
    uvicorn.Server(config).run()
