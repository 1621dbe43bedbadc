"""Ordered, durable queue of outbound requests.

Every mutation persists the full queue. The request handed to the dispatcher
stays at the head of the persisted state until it is acknowledged, so a crash
mid-delivery replays it on the next start.
"""

from __future__ import annotations

import time
from collections import deque
from typing import Iterator

from pydantic import BaseModel

from telemetry_client.constants import StoreKeys
from telemetry_client.core.logger import get_logger
from telemetry_client.domain.payloads import Payload, Request, encode_payload
from telemetry_client.infrastructure.storage import FileStore
from telemetry_client.metrics import QUEUE_DEPTH, REQUESTS_DROPPED, REQUESTS_ENQUEUED
from telemetry_client.utils.clock import Clock, hour_and_dow, timestamp

from .identity import ClientIdentity

logger = get_logger("telemetry.queue")


class RequestQueue:
    def __init__(
        self,
        store: FileStore,
        identity: ClientIdentity,
        clock: Clock = time.time,
    ):
        self.store = store
        self.identity = identity
        self.clock = clock
        persisted = store.get(StoreKeys.QUEUE) or []
        if not isinstance(persisted, list):
            logger.warning("persisted_queue_invalid", extra={"type": type(persisted).__name__})
            persisted = []
        self._items: deque[Request] = deque(r for r in persisted if isinstance(r, dict))
        self._in_flight: Request | None = None
        if self._items:
            logger.info("queue_restored", extra={"size": len(self._items)})
        QUEUE_DEPTH.set(len(self._items))

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[Request]:
        return iter(list(self._items))

    @property
    def in_flight(self) -> Request | None:
        return self._in_flight

    def enqueue(self, payload: Payload | Request) -> bool:
        """Enrich and append a request. Returns False if it was dropped."""
        if not self.identity.app_key or not self.identity.device_id:
            REQUESTS_DROPPED.inc()
            logger.warning(
                "request_rejected_missing_identity",
                extra={"missing": self.identity.missing_fields()},
            )
            return False

        request = (
            encode_payload(payload) if isinstance(payload, BaseModel) else dict(payload)
        )
        request.update(self.identity.enrichment())
        request["timestamp"] = timestamp(self.clock)
        request["hour"], request["dow"] = hour_and_dow(self.clock)

        self._items.append(request)
        REQUESTS_ENQUEUED.inc()
        logger.debug("request_enqueued", extra={"fields": sorted(request)})
        self._persist()
        return True

    def peek_head(self) -> Request | None:
        return self._items[0] if self._items else None

    def pop_head(self) -> Request | None:
        """Take the head for delivery; it stays persisted until acknowledged."""
        if not self._items:
            return None
        self._in_flight = self._items.popleft()
        self._persist()
        return self._in_flight

    def acknowledge(self, request: Request) -> None:
        """Forget a delivered request."""
        if self._in_flight is request:
            self._in_flight = None
        self._persist()

    def requeue_head(self, request: Request) -> None:
        """Put a failed request back at the front, ahead of newer data."""
        if self._in_flight is request:
            self._in_flight = None
        self._items.appendleft(request)
        self._persist()

    def persisted_state(self) -> list[Request]:
        head = [self._in_flight] if self._in_flight is not None else []
        return head + list(self._items)

    def _persist(self) -> None:
        QUEUE_DEPTH.set(len(self._items))
        self.store.set(StoreKeys.QUEUE, self.persisted_state())
