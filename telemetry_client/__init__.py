"""Telemetry client: durable request queue and heartbeat-driven dispatch to an
analytics collector."""

from .client import TelemetryClient, create, shutdown
from .core.config import Settings
from .core.exceptions import ClientStateError, TelemetryError

__all__ = [
    "TelemetryClient",
    "Settings",
    "create",
    "shutdown",
    "TelemetryError",
    "ClientStateError",
]

__version__ = "0.1.0"
