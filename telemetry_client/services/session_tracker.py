"""Session lifecycle and duration accounting.

Durations are whole seconds. ``pause``/``resume`` freeze the elapsed time since
the last heartbeat and since the current view started, then rebase both clocks
so the paused interval is never counted.
"""

from __future__ import annotations

import time

from telemetry_client.core.logger import get_logger
from telemetry_client.domain.events import VIEW_EVENT_KEY
from telemetry_client.domain.payloads import BeginSession, EndSession, SessionDuration
from telemetry_client.utils.clock import Clock, timestamp

from .device_metrics import DeviceMetricsProvider, MetricsProvider
from .event_batcher import EventBatcher
from .request_queue import RequestQueue

logger = get_logger("telemetry.session")

DEFAULT_EXTEND_AFTER_SECONDS = 60


class SessionTracker:
    def __init__(
        self,
        queue: RequestQueue,
        batcher: EventBatcher,
        metrics_provider: MetricsProvider | None = None,
        clock: Clock = time.time,
        extend_after_seconds: int = DEFAULT_EXTEND_AFTER_SECONDS,
    ):
        self.queue = queue
        self.batcher = batcher
        self.metrics_provider = metrics_provider or DeviceMetricsProvider()
        self.clock = clock
        self.extend_after_seconds = extend_after_seconds

        self.session_started = False
        self.auto_extend = True
        self.track_time = True
        self.last_beat = 0
        self.stored_duration = 0

        self.last_view: str | None = None
        self.last_view_time = 0
        self.last_view_stored_duration = 0

    def _now(self) -> int:
        return timestamp(self.clock)

    def begin(self, no_heartbeat: bool = False) -> bool:
        if self.session_started:
            return False
        self.session_started = True
        # While paused, resume() rebases from here so the pause is not counted.
        self.last_beat = self._now()
        self.stored_duration = 0
        self.auto_extend = not no_heartbeat
        logger.info("session_started", extra={"auto_extend": self.auto_extend})
        return self.queue.enqueue(BeginSession(metrics=self.metrics_provider()))

    def extend(self, seconds: int) -> bool:
        if not self.session_started:
            return False
        logger.debug("session_extended", extra={"seconds": seconds})
        return self.queue.enqueue(SessionDuration(seconds=max(0, int(seconds))))

    def maybe_extend(self) -> bool:
        """Heartbeat hook: report elapsed time once it exceeds the threshold."""
        if not (self.session_started and self.auto_extend and self.track_time):
            return False
        now = self._now()
        elapsed = now - self.last_beat
        if elapsed <= self.extend_after_seconds:
            return False
        self.extend(elapsed)
        self.last_beat = now
        return True

    def end(self, seconds: int | None = None) -> bool:
        if not self.session_started:
            return False
        if seconds is None:
            seconds = self.stored_duration if not self.track_time else self._now() - self.last_beat
        self.report_view_duration()
        self.session_started = False
        self.stored_duration = 0
        logger.info("session_ended", extra={"seconds": seconds})
        return self.queue.enqueue(EndSession(seconds=max(0, int(seconds))))

    def pause(self) -> None:
        if not self.track_time:
            return
        now = self._now()
        self.track_time = False
        self.stored_duration = now - self.last_beat if self.session_started else 0
        self.last_view_stored_duration = now - self.last_view_time if self.last_view else 0
        logger.debug("time_tracking_paused", extra={"stored": self.stored_duration})

    def resume(self) -> None:
        if self.track_time:
            return
        now = self._now()
        self.track_time = True
        self.last_beat = now - self.stored_duration
        self.last_view_time = now - self.last_view_stored_duration
        self.stored_duration = 0
        self.last_view_stored_duration = 0
        logger.debug("time_tracking_resumed")

    def track_view(self, name: str) -> bool:
        if not name:
            logger.warning("view_rejected_missing_name")
            return False
        self.report_view_duration()
        self.last_view = name
        self.last_view_time = self._now()
        self.last_view_stored_duration = 0
        return True

    def _view_elapsed(self) -> int:
        if not self.track_time:
            return self.last_view_stored_duration
        return self._now() - self.last_view_time

    def report_view_duration(self) -> bool:
        """Record the duration of the current view as a view event, if any."""
        if not self.last_view:
            return False
        segment = getattr(self.metrics_provider, "platform_name", None)
        segmentation = {"name": self.last_view}
        if segment:
            segmentation["segment"] = segment
        recorded = self.batcher.record(
            {
                "key": VIEW_EVENT_KEY,
                "dur": self._view_elapsed(),
                "segmentation": segmentation,
            }
        )
        self.last_view = None
        return recorded
