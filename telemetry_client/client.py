"""The client context: one object owning store, queue, batcher, dispatcher
and heartbeat, with an explicit create/start/shutdown lifecycle.

Producer methods are synchronous and never wait on the network; they only
touch in-memory state and schedule store writes.
"""

from __future__ import annotations

import time
from typing import Any, Mapping

from telemetry_client.constants import StoreKeys
from telemetry_client.core.config import Settings, settings as default_settings
from telemetry_client.core.exceptions import ClientStateError
from telemetry_client.core.logger import get_logger
from telemetry_client.domain.events import Event
from telemetry_client.domain.payloads import CampaignConversion, DeviceIdMerge
from telemetry_client.domain.transport import Transport
from telemetry_client.infrastructure.http import HttpTransport
from telemetry_client.infrastructure.storage import FileStore
from telemetry_client.services import (
    ClientIdentity,
    CrashReporter,
    DeviceMetricsProvider,
    Dispatcher,
    EventBatcher,
    HeartbeatScheduler,
    RequestQueue,
    SessionTracker,
    UserProfile,
    resolve_device_id,
)
from telemetry_client.services.device_metrics import MetricsProvider
from telemetry_client.startup import initialize_logging
from telemetry_client.utils.clock import Clock

logger = get_logger("telemetry.client")


class TelemetryClient:
    def __init__(
        self,
        settings: Settings,
        store: FileStore,
        transport: Transport,
        clock: Clock = time.time,
        metrics_provider: MetricsProvider | None = None,
    ):
        self.settings = settings
        self.clock = clock
        self.store = store
        self.transport = transport
        self.metrics_provider = metrics_provider or DeviceMetricsProvider(
            settings.app_version, settings.device_metrics
        )

        self.identity = ClientIdentity(
            app_key=settings.app_key,
            device_id=resolve_device_id(store, settings.device_id),
            country_code=settings.geo_country_code,
            city=settings.geo_city,
            ip_address=settings.geo_ip_address,
        )
        self.queue = RequestQueue(store, self.identity, clock)
        self.batcher = EventBatcher(store, clock, settings.event_batch_size)
        self.dispatcher = Dispatcher(
            self.queue, transport, clock, settings.dispatch_fail_timeout_seconds
        )
        self.session = SessionTracker(
            self.queue,
            self.batcher,
            self.metrics_provider,
            clock,
            settings.session_extend_after_seconds,
        )
        self.heartbeat = HeartbeatScheduler(
            self.session,
            self.batcher,
            self.queue,
            self.dispatcher,
            settings.heartbeat_interval_ms,
        )
        self.user_data = UserProfile(self.queue)
        self.crashes = CrashReporter(self.queue, store, self.metrics_provider, clock)
        self._closed = False

    @classmethod
    def create(
        cls,
        settings: Settings | None = None,
        *,
        transport: Transport | None = None,
        clock: Clock = time.time,
        metrics_provider: MetricsProvider | None = None,
    ) -> "TelemetryClient":
        """Build a client, replaying any queue and timed events left on disk."""
        settings = settings or default_settings
        if settings.app_log_json:
            initialize_logging(settings)
        store = FileStore(settings.store_path)
        transport = transport or HttpTransport(
            settings.collector_url,
            settings.collector_api_path,
            settings.collector_timeout_seconds,
        )
        client = cls(settings, store, transport, clock, metrics_provider)
        logger.info(
            "client_initialized",
            extra={
                "collector": settings.collector_url,
                "queued": len(client.queue),
                "timed_events": len(client.batcher.timed_events),
            },
        )
        return client

    # Lifecycle

    async def start(self) -> "TelemetryClient":
        self._ensure_open()
        if self.heartbeat.running:
            raise ClientStateError("client already started")
        self.heartbeat.start()
        return self

    async def shutdown(self, drain_timeout: float = 5.0) -> None:
        """Stop the heartbeat, settle the in-flight delivery and flush state."""
        if self._closed:
            return
        self._closed = True
        await self.heartbeat.stop()
        # Buffered events exist only in memory; queue them before the final write.
        self.heartbeat.drain_events()
        if not await self.dispatcher.wait_idle(drain_timeout):
            logger.warning("in_flight_delivery_abandoned", extra={"timeout": drain_timeout})
            await self.dispatcher.cancel()
        self.crashes.untrack_errors()
        await self.store.aclose()
        await self.transport.aclose()
        logger.info("client_shutdown", extra={"queued": len(self.queue)})

    async def __aenter__(self) -> "TelemetryClient":
        return await self.start()

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.shutdown()

    def _ensure_open(self) -> None:
        if self._closed:
            raise ClientStateError("client is shut down")

    @property
    def queue_size(self) -> int:
        return len(self.queue)

    # Sessions

    def begin_session(self, no_heartbeat: bool = False) -> bool:
        self._ensure_open()
        return self.session.begin(no_heartbeat)

    def session_duration(self, seconds: int) -> bool:
        self._ensure_open()
        return self.session.extend(seconds)

    def end_session(self, seconds: int | None = None) -> bool:
        self._ensure_open()
        return self.session.end(seconds)

    def stop_time(self) -> None:
        self._ensure_open()
        self.session.pause()

    def start_time(self) -> None:
        self._ensure_open()
        self.session.resume()

    def track_view(self, name: str) -> bool:
        self._ensure_open()
        return self.session.track_view(name)

    # Identity

    def change_id(self, new_id: str, merge: bool = False) -> None:
        self._ensure_open()
        if not new_id:
            logger.warning("change_id_rejected_empty")
            return
        old_id = self.identity.device_id
        self.identity.device_id = new_id
        self.store.set(StoreKeys.DEVICE_ID, new_id, durable=True)
        logger.info("device_id_changed", extra={"merge": merge})
        if merge and old_id and old_id != new_id:
            self.queue.enqueue(DeviceIdMerge(old_device_id=old_id))

    # Events

    def add_event(self, event: Mapping[str, Any] | Event) -> bool:
        self._ensure_open()
        return self.batcher.record(event)

    def start_event(self, key: str) -> bool:
        self._ensure_open()
        return self.batcher.start(key)

    def end_event(self, event: str | Mapping[str, Any] | Event) -> bool:
        self._ensure_open()
        return self.batcher.end(event)

    # Users

    def user_details(self, details: Mapping[str, Any]) -> bool:
        self._ensure_open()
        return self.user_data.user_details(details)

    def report_conversion(
        self, campaign_id: str | None = None, campaign_user_id: str | None = None
    ) -> bool:
        self._ensure_open()
        if not campaign_id:
            logger.info("conversion_skipped_no_campaign")
            return False
        return self.queue.enqueue(
            CampaignConversion(campaign_id=campaign_id, campaign_user=campaign_user_id)
        )

    # Crashes

    def track_errors(self, segments: dict[str, Any] | None = None) -> None:
        self._ensure_open()
        self.crashes.track_errors(segments)

    def log_error(self, err: Any, segments: dict[str, Any] | None = None) -> bool:
        self._ensure_open()
        return self.crashes.log_error(err, segments)

    def add_log(self, record: str) -> None:
        self._ensure_open()
        self.crashes.add_log(record)


def create(settings: Settings | None = None, **kwargs: Any) -> TelemetryClient:
    return TelemetryClient.create(settings, **kwargs)


async def shutdown(client: TelemetryClient, drain_timeout: float = 5.0) -> None:
    await client.shutdown(drain_timeout)


__all__ = ["TelemetryClient", "create", "shutdown"]
