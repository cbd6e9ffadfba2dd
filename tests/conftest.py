import asyncio
import json

import httpx
import pytest

from shared_config.services.config.store import ConfigStore
from shared_config.services.config.sync import RemoteSnapshotClient
from shared_config.storage.backend import MemoryBackend


class Recorder:
    """Collects listener calls in the order they happen"""

    def __init__(self):
        self.calls: list[tuple] = []

    def key(self, key, value):
        self.calls.append(("key", key, value))

    def any(self):
        self.calls.append(("any",))

    def condition(self):
        self.calls.append(("condition",))

    def kinds(self) -> list[str]:
        return [c[0] for c in self.calls]

    def count(self, kind: str) -> int:
        return self.kinds().count(kind)


class FakeSnapshotEndpoint:
    """Mutable snapshot served through httpx.MockTransport"""

    def __init__(self, snapshot: dict | None = None):
        self.snapshot = dict(snapshot or {})
        self.status_code = 200
        self.body: bytes | None = None
        self.gets = 0
        self.puts: list[dict] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        if request.method == "PUT":
            body = json.loads(request.content)
            self.puts.append(body)
            if self.status_code == 200:
                self.snapshot = body
            return httpx.Response(self.status_code, json={"success": self.status_code == 200})

        self.gets += 1
        if self.body is not None:
            return httpx.Response(self.status_code, content=self.body)
        return httpx.Response(self.status_code, json=self.snapshot)

    def client(self) -> RemoteSnapshotClient:
        return RemoteSnapshotClient("http://background.local", transport=httpx.MockTransport(self.handler))


@pytest.fixture
def recorder():
    return Recorder()


@pytest.fixture
def memory_backend():
    return MemoryBackend()


@pytest.fixture
def store():
    """Store for a context without backend access, seeded with defaults"""
    return ConfigStore(defaults={"vodDownload": False, "clipDownload": True})


@pytest.fixture
def endpoint():
    return FakeSnapshotEndpoint({"vodDownload": False, "clipDownload": True})


@pytest.fixture
def wait_until():
    async def _wait(predicate, timeout: float = 3.0, interval: float = 0.02) -> bool:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while loop.time() < deadline:
            if predicate():
                return True
            await asyncio.sleep(interval)
        return predicate()

    return _wait
