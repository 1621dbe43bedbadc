"""Crash and handled-error reporting.

Fatal errors are the one path that writes the store synchronously: the crash
request must be on disk before the process is allowed to exit.
"""

from __future__ import annotations

import sys
import time
import traceback
from types import TracebackType
from typing import Any

from telemetry_client.core.logger import get_logger
from telemetry_client.domain.payloads import Crash, CrashReport
from telemetry_client.infrastructure.storage import FileStore
from telemetry_client.utils.clock import Clock, timestamp

from .device_metrics import DeviceMetricsProvider, MetricsProvider
from .request_queue import RequestQueue

logger = get_logger("telemetry.crash")


def format_error(err: Any) -> str:
    if isinstance(err, BaseException):
        return "".join(traceback.format_exception(type(err), err, err.__traceback__))
    return str(err)


class CrashReporter:
    def __init__(
        self,
        queue: RequestQueue,
        store: FileStore,
        metrics_provider: MetricsProvider | None = None,
        clock: Clock = time.time,
    ):
        self.queue = queue
        self.store = store
        self.metrics_provider = metrics_provider or DeviceMetricsProvider()
        self.clock = clock
        self.start_time = timestamp(clock)
        self.segments: dict[str, Any] | None = None
        self._logs: list[str] = []
        self._previous_hook = None

    @property
    def tracking(self) -> bool:
        return self._previous_hook is not None

    def add_log(self, record: str) -> None:
        self._logs.append(str(record))

    def record_error(
        self, err: Any, nonfatal: bool, segments: dict[str, Any] | None = None
    ) -> bool:
        metrics = self.metrics_provider()
        report = CrashReport(
            os=str(metrics.get("_os", "")),
            os_version=str(metrics.get("_os_version", "")),
            app_version=str(metrics.get("_app_version", "")),
            error=format_error(err),
            run=timestamp(self.clock) - self.start_time,
            nonfatal=nonfatal,
            logs="\n".join(self._logs) if self._logs else None,
            custom=segments if segments is not None else self.segments,
        )
        self._logs = []
        return self.queue.enqueue(Crash(report=report))

    def log_error(self, err: Any, segments: dict[str, Any] | None = None) -> bool:
        return self.record_error(err, nonfatal=True, segments=segments)

    def track_errors(self, segments: dict[str, Any] | None = None) -> None:
        self.segments = segments
        if self._previous_hook is None:
            self._previous_hook = sys.excepthook
            sys.excepthook = self._excepthook

    def untrack_errors(self) -> None:
        if self._previous_hook is not None:
            if sys.excepthook == self._excepthook:
                sys.excepthook = self._previous_hook
            self._previous_hook = None

    def _excepthook(
        self,
        exc_type: type[BaseException],
        exc: BaseException,
        tb: TracebackType | None,
    ) -> None:
        previous = self._previous_hook or sys.__excepthook__
        if issubclass(exc_type, KeyboardInterrupt):
            previous(exc_type, exc, tb)
            return
        try:
            self.record_error(exc, nonfatal=False)
            self.store.flush()
            logger.critical("uncaught_exception", exc_info=(exc_type, exc, tb))
        finally:
            previous(exc_type, exc, tb)
