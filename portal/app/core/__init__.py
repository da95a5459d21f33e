"""Core utilities for the portal application."""

from portal.app.core.config import settings
from portal.app.core.logging import get_logger, setup_logging

__all__ = [
    "settings",
    "get_logger",
    "setup_logging",
]
