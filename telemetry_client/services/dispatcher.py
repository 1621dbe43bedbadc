"""Single-in-flight delivery of queued requests.

The dispatcher is driven by heartbeat ticks. A tick starts at most one
delivery; the transport call runs as a task and its outcome is applied back on
the loop thread. Failures put the request back at the queue head and hold
further deliveries until a fixed backoff deadline passes.
"""

from __future__ import annotations

import asyncio
import enum
import time

from telemetry_client.core.logger import get_logger
from telemetry_client.domain.payloads import Request
from telemetry_client.domain.transport import Transport
from telemetry_client.metrics import DELIVERY_FAILURES, REQUESTS_DELIVERED
from telemetry_client.utils.clock import Clock, timestamp

from .request_queue import RequestQueue

logger = get_logger("telemetry.dispatcher")

DEFAULT_FAIL_TIMEOUT_SECONDS = 60


class DispatchState(str, enum.Enum):
    IDLE = "idle"
    DISPATCHING = "dispatching"
    BACKOFF = "backoff"


class Dispatcher:
    def __init__(
        self,
        queue: RequestQueue,
        transport: Transport,
        clock: Clock = time.time,
        fail_timeout_seconds: int = DEFAULT_FAIL_TIMEOUT_SECONDS,
    ):
        self.queue = queue
        self.transport = transport
        self.clock = clock
        self.fail_timeout_seconds = fail_timeout_seconds
        self.state = DispatchState.IDLE
        self.backoff_deadline = 0
        self._task: asyncio.Task | None = None

    @property
    def in_flight(self) -> asyncio.Task | None:
        if self._task is not None and not self._task.done():
            return self._task
        return None

    def tick(self) -> bool:
        """Start one delivery if eligible. Must run inside the event loop."""
        now = timestamp(self.clock)
        if self.state is DispatchState.BACKOFF and now >= self.backoff_deadline:
            logger.debug("backoff_cleared", extra={"deadline": self.backoff_deadline})
            self.state = DispatchState.IDLE
        if self.state is not DispatchState.IDLE or len(self.queue) == 0:
            return False

        request = self.queue.pop_head()
        if request is None:
            return False
        self.state = DispatchState.DISPATCHING
        logger.debug("dispatch_started", extra={"fields": sorted(request)})
        self._task = asyncio.get_running_loop().create_task(self._deliver(request))
        return True

    async def _deliver(self, request: Request) -> None:
        try:
            ok = await self.transport.send(request)
        except asyncio.CancelledError:
            # Shutdown mid-delivery: keep the request for the next run.
            self._on_failure(request, reason="cancelled")
            raise
        except Exception as exc:  # noqa: BLE001
            logger.exception("transport_unexpected_error", extra={"error": str(exc)})
            ok = False
        if ok:
            self._on_success(request)
        else:
            self._on_failure(request, reason="transport_failure")

    def _on_success(self, request: Request) -> None:
        self.queue.acknowledge(request)
        REQUESTS_DELIVERED.inc()
        self.state = DispatchState.IDLE
        logger.debug("delivery_succeeded", extra={"remaining": len(self.queue)})

    def _on_failure(self, request: Request, reason: str) -> None:
        self.queue.requeue_head(request)
        DELIVERY_FAILURES.inc()
        self.backoff_deadline = timestamp(self.clock) + self.fail_timeout_seconds
        self.state = DispatchState.BACKOFF
        logger.warning(
            "delivery_failed",
            extra={
                "reason": reason,
                "retry_at": self.backoff_deadline,
                "queue_size": len(self.queue),
            },
        )

    async def wait_idle(self, timeout: float | None = None) -> bool:
        """Wait for the in-flight delivery, if any. Returns False on timeout."""
        task = self.in_flight
        if task is None:
            return True
        try:
            await asyncio.wait_for(asyncio.shield(task), timeout)
        except asyncio.TimeoutError:
            return False
        return True

    async def cancel(self) -> None:
        task = self.in_flight
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        # Cancelled before the coroutine ever ran.
        if self.queue.in_flight is not None:
            self._on_failure(self.queue.in_flight, reason="cancelled")
