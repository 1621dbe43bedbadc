import asyncio

import pytest

from telemetry_client.infrastructure.storage import FileStore
from telemetry_client.services.identity import ClientIdentity
from telemetry_client.services.request_queue import RequestQueue

START_TS = 1_700_000_000


class FakeClock:
    """Manually advanced replacement for time.time."""

    def __init__(self, start: float = START_TS):
        self.now = float(start)

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeTransport:
    """Transport double: records requests, answers from a scripted list."""

    def __init__(self, results=None, default: bool = True):
        self.results = list(results or [])
        self.default = default
        self.sent = []
        self.gate: asyncio.Event | None = None
        self.closed = False

    async def send(self, request):
        self.sent.append(request)
        if self.gate is not None:
            await self.gate.wait()
        if self.results:
            outcome = self.results.pop(0)
            if isinstance(outcome, BaseException):
                raise outcome
            return outcome
        return self.default

    async def aclose(self):
        self.closed = True


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store_path(tmp_path):
    return tmp_path / "state.json"


@pytest.fixture
def store(store_path):
    return FileStore(store_path)


@pytest.fixture
def identity():
    return ClientIdentity(app_key="test-app-key", device_id="device-1")


@pytest.fixture
def queue(store, identity, clock):
    return RequestQueue(store, identity, clock)


@pytest.fixture
def transport():
    return FakeTransport()
