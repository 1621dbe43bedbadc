import asyncio
import json

import pytest

from telemetry_client import ClientStateError, Settings, TelemetryClient
from telemetry_client.client import create, shutdown


@pytest.fixture
def settings(store_path):
    return Settings(
        app_key="test-app-key",
        store_path=str(store_path),
        heartbeat_interval_ms=5,
        collector_url="https://collector.example",
    )


async def wait_for(predicate, timeout: float = 2.0):
    deadline = asyncio.get_running_loop().time() + timeout
    while not predicate():
        if asyncio.get_running_loop().time() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.005)


class TestIdentity:
    def test_device_id_generated_once_and_reused(self, settings, transport):
        first = TelemetryClient.create(settings, transport=transport)
        second = TelemetryClient.create(settings, transport=transport)

        assert first.identity.device_id
        assert second.identity.device_id == first.identity.device_id

    def test_configured_device_id_wins(self, settings, transport, store_path):
        settings.device_id = "configured"

        client = TelemetryClient.create(settings, transport=transport)

        assert client.identity.device_id == "configured"
        assert json.loads(store_path.read_text())["cly_id"] == "configured"

    def test_change_id_with_merge(self, settings, transport, store_path):
        client = TelemetryClient.create(settings, transport=transport)
        old_id = client.identity.device_id

        client.change_id("new-id", merge=True)

        request = client.queue.peek_head()
        assert request["old_device_id"] == old_id
        assert request["device_id"] == "new-id"
        assert json.loads(store_path.read_text())["cly_id"] == "new-id"

    def test_change_id_without_merge_sends_nothing(self, settings, transport):
        client = TelemetryClient.create(settings, transport=transport)

        client.change_id("new-id")

        assert client.queue_size == 0


class TestProducers:
    def test_missing_app_key_drops_requests(self, store_path, transport):
        client = TelemetryClient.create(
            Settings(app_key=None, store_path=str(store_path)), transport=transport
        )

        assert client.begin_session() is False
        assert client.queue_size == 0

    def test_report_conversion(self, settings, transport):
        client = TelemetryClient.create(settings, transport=transport)

        assert client.report_conversion() is False
        assert client.report_conversion("camp", "user") is True
        assert client.queue.peek_head()["campaign_user"] == "user"

    def test_user_data_save(self, settings, transport):
        client = TelemetryClient.create(settings, transport=transport)

        client.user_data.increment("logins")
        client.user_data.save()

        assert json.loads(client.queue.peek_head()["user_details"]) == {
            "custom": {"logins": {"$inc": 1}}
        }


class TestRestart:
    def test_queue_survives_crash_and_restart(self, settings, transport):
        client = TelemetryClient.create(settings, transport=transport)
        client.begin_session()
        # No shutdown: the process "crashes" here.

        restarted = TelemetryClient.create(settings, transport=transport)

        assert restarted.queue.peek_head()["begin_session"] == 1

    def test_timed_event_survives_restart(self, settings, transport):
        TelemetryClient.create(settings, transport=transport).start_event("tutorial")

        restarted = TelemetryClient.create(settings, transport=transport)

        assert restarted.end_event("tutorial") is True
        assert restarted.batcher.drain()[0].key == "tutorial"

    @pytest.mark.asyncio
    async def test_restart_resumes_dispatch_from_head(self, settings, transport):
        crashed = TelemetryClient.create(settings, transport=transport)
        crashed.begin_session()
        crashed.add_event({"key": "opened"})
        await crashed.store.aclose()

        client = await TelemetryClient.create(settings, transport=transport).start()
        await wait_for(lambda: len(transport.sent) >= 1)
        await client.shutdown()

        assert transport.sent[0]["begin_session"] == 1
        # The unflushed event buffer is memory-only and did not survive.
        assert all("events" not in r for r in transport.sent)


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_events_are_delivered_in_order(self, settings, transport):
        async with TelemetryClient.create(settings, transport=transport) as client:
            client.begin_session()
            for i in range(12):
                client.add_event({"key": f"e{i}"})
            await wait_for(lambda: len(transport.sent) >= 3)

        assert transport.sent[0]["begin_session"] == 1
        assert len(json.loads(transport.sent[1]["events"])) == 10
        assert len(json.loads(transport.sent[2]["events"])) == 2
        assert transport.closed

    @pytest.mark.asyncio
    async def test_failed_delivery_stays_queued_across_shutdown(
        self, settings, transport, store_path
    ):
        transport.default = False
        client = await create(settings, transport=transport).start()
        client.begin_session()
        await wait_for(lambda: len(transport.sent) >= 1)
        await shutdown(client)

        on_disk = json.loads(store_path.read_text())["cly_queue"]
        assert [r.get("begin_session") for r in on_disk] == [1]

    @pytest.mark.asyncio
    async def test_start_twice_raises(self, settings, transport):
        client = await TelemetryClient.create(settings, transport=transport).start()
        with pytest.raises(ClientStateError):
            await client.start()
        await client.shutdown()

    @pytest.mark.asyncio
    async def test_use_after_shutdown_raises(self, settings, transport):
        client = await TelemetryClient.create(settings, transport=transport).start()
        await client.shutdown()
        await client.shutdown()  # idempotent

        with pytest.raises(ClientStateError):
            client.add_event({"key": "late"})


class TestShutdownFlush:
    @pytest.fixture
    def slow_settings(self, settings):
        settings.heartbeat_interval_ms = 60_000
        return settings

    @pytest.mark.asyncio
    async def test_buffered_event_is_persisted_on_shutdown(
        self, slow_settings, transport, store_path
    ):
        client = await TelemetryClient.create(slow_settings, transport=transport).start()
        await wait_for(lambda: client.heartbeat.ticks >= 1)

        client.add_event({"key": "purchase"})
        await client.shutdown()

        on_disk = json.loads(store_path.read_text())["cly_queue"]
        [events] = [r for r in on_disk if "events" in r]
        assert [e["key"] for e in json.loads(events["events"])] == ["purchase"]
        assert transport.sent == []

    @pytest.mark.asyncio
    async def test_view_recorded_by_end_session_is_persisted(
        self, slow_settings, transport, store_path
    ):
        client = await TelemetryClient.create(slow_settings, transport=transport).start()
        await wait_for(lambda: client.heartbeat.ticks >= 1)
        client.begin_session()
        client.track_view("home")

        client.end_session()
        await client.shutdown()

        on_disk = json.loads(store_path.read_text())["cly_queue"]
        keys = [e["key"] for r in on_disk if "events" in r for e in json.loads(r["events"])]
        assert keys == ["[CLY]_view"]
        assert any(r.get("end_session") == 1 for r in on_disk)


class TestClosedClient:
    @pytest.mark.parametrize(
        "call",
        [
            lambda c: c.stop_time(),
            lambda c: c.start_time(),
            lambda c: c.track_errors(),
            lambda c: c.log_error(RuntimeError("late")),
            lambda c: c.add_log("late"),
        ],
    )
    @pytest.mark.asyncio
    async def test_operations_after_shutdown_raise(self, settings, transport, call):
        client = TelemetryClient.create(settings, transport=transport)
        await client.shutdown()

        with pytest.raises(ClientStateError):
            call(client)
        assert client.queue_size == 0
