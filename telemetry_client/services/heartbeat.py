"""The heartbeat loop: the single driver of session extension, event
flushing and dispatch.

Each tick runs to completion before the next sleep, so ticks never overlap.
"""

from __future__ import annotations

import asyncio

from telemetry_client.core.logger import get_logger
from telemetry_client.domain.payloads import EventsBatch

from .dispatcher import Dispatcher
from .event_batcher import EventBatcher
from .request_queue import RequestQueue
from .session_tracker import SessionTracker

logger = get_logger("telemetry.heartbeat")

DEFAULT_INTERVAL_MS = 500


class HeartbeatScheduler:
    def __init__(
        self,
        session: SessionTracker,
        batcher: EventBatcher,
        queue: RequestQueue,
        dispatcher: Dispatcher,
        interval_ms: int = DEFAULT_INTERVAL_MS,
    ):
        self.session = session
        self.batcher = batcher
        self.queue = queue
        self.dispatcher = dispatcher
        self.interval = interval_ms / 1000
        self.ticks = 0
        self._stop = asyncio.Event()
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def tick(self) -> None:
        """One heartbeat: extend session, flush one event batch, dispatch."""
        self.ticks += 1
        self.session.maybe_extend()
        self.flush_events()
        self.dispatcher.tick()

    def flush_events(self) -> bool:
        batch = self.batcher.drain()
        if not batch:
            return False
        return self.queue.enqueue(EventsBatch(events=batch))

    def drain_events(self) -> int:
        """Fold every buffered event into queued requests. Used on shutdown."""
        flushed = 0
        while len(self.batcher):
            if not self.flush_events():
                break
            flushed += 1
        return flushed

    async def run(self) -> None:
        logger.info("heartbeat_started", extra={"interval_seconds": self.interval})
        try:
            while not self._stop.is_set():
                try:
                    self.tick()
                except Exception as exc:  # noqa: BLE001
                    logger.exception("heartbeat_tick_error", extra={"error": str(exc)})
                try:
                    await asyncio.wait_for(self._stop.wait(), self.interval)
                except asyncio.TimeoutError:
                    pass
        finally:
            logger.info("heartbeat_stopped", extra={"ticks": self.ticks})

    def start(self) -> asyncio.Task:
        if self.running:
            return self._task  # type: ignore[return-value]
        self._stop.clear()
        self._task = asyncio.get_running_loop().create_task(self.run())
        return self._task

    async def stop(self) -> None:
        self._stop.set()
        if self._task is not None:
            await self._task
            self._task = None
