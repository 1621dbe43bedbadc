"""In-memory event buffer folded into bounded ``events`` requests.

Timed events keep their start timestamps in the store so an event started
before a restart can still be ended after it.
"""

from __future__ import annotations

import time
from typing import Any, Mapping

from pydantic import ValidationError

from telemetry_client.constants import StoreKeys
from telemetry_client.core.logger import get_logger
from telemetry_client.domain.events import Event
from telemetry_client.infrastructure.storage import FileStore
from telemetry_client.metrics import EVENTS_RECORDED
from telemetry_client.utils.clock import Clock, hour_and_dow, timestamp

logger = get_logger("telemetry.events")

DEFAULT_BATCH_SIZE = 10

EventInput = Mapping[str, Any] | Event


class EventBatcher:
    def __init__(
        self,
        store: FileStore,
        clock: Clock = time.time,
        batch_size: int = DEFAULT_BATCH_SIZE,
    ):
        self.store = store
        self.clock = clock
        self.batch_size = batch_size
        self._buffer: list[Event] = []
        timed = store.get(StoreKeys.TIMED_EVENTS) or {}
        self._timed: dict[str, int] = dict(timed) if isinstance(timed, dict) else {}

    def __len__(self) -> int:
        return len(self._buffer)

    @property
    def timed_events(self) -> dict[str, int]:
        return dict(self._timed)

    def record(self, event: EventInput) -> bool:
        """Validate, stamp and buffer one event. Invalid input is logged and dropped."""
        data = event.model_dump() if isinstance(event, Event) else dict(event)
        if not data.get("key"):
            logger.warning("event_rejected_missing_key")
            return False
        hour, dow = hour_and_dow(self.clock)
        data.update(timestamp=timestamp(self.clock), hour=hour, dow=dow)
        try:
            stamped = Event.model_validate(data)
        except ValidationError as exc:
            logger.warning(
                "event_rejected_invalid",
                extra={"event_key": str(data.get("key")), "error": str(exc)},
            )
            return False
        self._buffer.append(stamped)
        EVENTS_RECORDED.inc()
        logger.debug("event_recorded", extra={"event_key": stamped.key})
        return True

    def drain(self) -> list[Event]:
        """Take the next batch: everything if it fits, else the oldest ``batch_size``."""
        if len(self._buffer) <= self.batch_size:
            batch, self._buffer = self._buffer, []
        else:
            batch = self._buffer[: self.batch_size]
            del self._buffer[: self.batch_size]
        return batch

    def start(self, key: str) -> bool:
        if not key:
            logger.warning("timed_event_rejected_missing_key")
            return False
        if key in self._timed:
            logger.info("timed_event_already_started", extra={"event_key": key})
            return False
        self._timed[key] = timestamp(self.clock)
        self.store.set(StoreKeys.TIMED_EVENTS, dict(self._timed))
        return True

    def end(self, event: str | EventInput) -> bool:
        """Finish a timed event started with ``start`` and record it with ``dur``."""
        if isinstance(event, str):
            data: dict[str, Any] = {"key": event}
        elif isinstance(event, Event):
            data = event.model_dump(exclude_none=True)
        else:
            data = dict(event)
        key = data.get("key")
        if not key:
            logger.warning("timed_event_rejected_missing_key")
            return False
        if key not in self._timed:
            logger.info("timed_event_not_started", extra={"event_key": key})
            return False
        data["dur"] = timestamp(self.clock) - self._timed.pop(key)
        self.store.set(StoreKeys.TIMED_EVENTS, dict(self._timed))
        return self.record(data)
