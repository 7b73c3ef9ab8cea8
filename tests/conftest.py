"""
Pytest fixtures and test configuration for memosync tests.
"""

import json
from typing import Callable, List

import httpx
import pytest
import pytest_asyncio

from memosync.storage import SnapshotManager
from memosync.testing import InMemoryEntityStore, InMemoryHistoryStore, InMemorySyncState, ManualClock
from memosync.types import Memo


@pytest.fixture(autouse=True)
def memosync_home(tmp_path, monkeypatch):
    """Keep logs and default databases inside the test's tmp dir."""
    monkeypatch.setenv("MEMOSYNC_DATA_DIR", str(tmp_path))
    return tmp_path


@pytest.fixture
def make_memo() -> Callable[..., Memo]:
    """Build a Memo with explicit id and timestamp."""

    def _make(memo_id: str, updated_at: int, **fields) -> Memo:
        fields.setdefault("created_at", updated_at)
        return Memo(id=memo_id, updated_at=updated_at, **fields)

    return _make


@pytest.fixture
def clock():
    return ManualClock(start=1_000)


@pytest.fixture
def store():
    return InMemoryEntityStore()


@pytest.fixture
def state():
    return InMemorySyncState(device_id="device-local-0001")


@pytest.fixture
def history():
    return InMemoryHistoryStore()


@pytest.fixture
def snapshots(store, history, clock):
    return SnapshotManager(store, history, clock)


class RecordingTransport:
    """Routes requests to a handler and keeps every request it saw.

    The handler gets the ``httpx.Request`` and returns an ``httpx.Response``.
    """

    def __init__(self, handler: Callable[[httpx.Request], httpx.Response]):
        self.handler = handler
        self.requests: List[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.handler(request)

    def methods(self) -> List[str]:
        return [r.method for r in self.requests]

    def json_body(self, index: int = -1):
        return json.loads(self.requests[index].content)


@pytest_asyncio.fixture
async def http():
    """Factory for an (AsyncClient, RecordingTransport) pair backed by httpx.MockTransport."""
    clients = []

    def _make(handler):
        recorder = RecordingTransport(handler)
        client = httpx.AsyncClient(transport=httpx.MockTransport(recorder))
        clients.append(client)
        return client, recorder

    yield _make
    for client in clients:
        await client.aclose()
