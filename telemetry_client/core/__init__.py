from .config import Settings, settings
from .exceptions import ClientStateError, TelemetryError
from .logger import get_logger

__all__ = ["Settings", "settings", "get_logger", "TelemetryError", "ClientStateError"]
