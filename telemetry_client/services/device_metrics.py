import platform
from typing import Any, Callable, Mapping

from telemetry_client.core.logger import get_logger

logger = get_logger("telemetry.device_metrics")

MetricsProvider = Callable[[], dict[str, Any]]


class DeviceMetricsProvider:
    """Metrics snapshot sent with session starts and crash reports."""

    def __init__(self, app_version: str = "0.0", custom: Mapping[str, Any] | None = None):
        self.app_version = app_version
        self.custom = dict(custom or {})

    @property
    def platform_name(self) -> str:
        return platform.system()

    def __call__(self) -> dict[str, Any]:
        snapshot = dict(self.custom)
        snapshot["_app_version"] = self.app_version
        snapshot["_os"] = self.platform_name
        snapshot["_os_version"] = platform.release()
        logger.debug("device_metrics_collected", extra={"metrics": snapshot})
        return snapshot
