"""Command line entry point: ``python -m portal`` or ``portal-server``."""

import argparse
from typing import Optional, Sequence

from portal import __version__
from portal.app.core.config import Settings, settings


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="portal-server",
        description="Serve the portal site API.",
    )
    parser.add_argument("--host", help=f"Interface to bind (default: {settings.host})")
    parser.add_argument("--port", type=int, help=f"Port to listen on (default: {settings.port})")
    parser.add_argument("--ssl-keyfile", help="TLS private key; requires --ssl-certfile")
    parser.add_argument("--ssl-certfile", help="TLS certificate; requires --ssl-keyfile")
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        type=str.upper,
        help=f"Log level (default: {settings.log_level})",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def main(argv: Optional[Sequence[str]] = None) -> None:
    args = build_parser().parse_args(argv)

    overrides = {
        name: value
        for name, value in vars(args).items()
        if value is not None
    }
    # CLI values take priority over the environment and go through the same validators.
    config = Settings(**overrides)

    from portal.app.core.logging import setup_logging
    from portal.app.server import run_server

    setup_logging(config)
    run_server(config)


if __name__ == "__main__":
    main()
