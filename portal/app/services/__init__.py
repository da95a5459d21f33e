"""Services package for the portal.

This package provides:
- Per-IP transport connection tracking
- Event loop lag monitoring for load shedding
- The admission state object that owns both plus the rate limiter
"""

from portal.app.services.admission import AdmissionState
from portal.app.services.connection_tracker import ConnectionTracker
from portal.app.services.loop_monitor import LoopLagMonitor

__all__ = [
    "AdmissionState",
    "ConnectionTracker",
    "LoopLagMonitor",
]
