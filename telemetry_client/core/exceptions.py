class TelemetryError(Exception):
    """Base class for errors raised to callers of the telemetry client."""


class ClientStateError(TelemetryError):
    """Lifecycle misuse, e.g. starting a client twice or using it after shutdown."""
