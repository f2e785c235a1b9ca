"""Shared test fixtures for all test modules."""

import asyncio
import threading
from collections.abc import Callable
from pathlib import Path

import httpx
import pytest

from shiplog.adapters.storage.in_memory import InMemoryBlobStorage
from shiplog.core.models import Batch, LogEntry


class RecordingHandler:
    """Batch handler that records every batch it is given.

    Optionally sleeps inside each call and tracks how many calls overlap.
    """

    def __init__(self, delay: float = 0.0, result: bool = True) -> None:
        self.batches: list[Batch] = []
        self.delay = delay
        self.result = result
        self.in_flight = 0
        self.max_in_flight = 0
        self.committed = asyncio.Event()

    async def __call__(self, batch: Batch) -> bool:
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            self.batches.append(batch)
            self.committed.set()
            return self.result
        finally:
            self.in_flight -= 1


@pytest.fixture
def recording_handler() -> RecordingHandler:
    """Provide a batch handler that records batches."""
    return RecordingHandler()


@pytest.fixture
def make_entry() -> Callable[..., LogEntry]:
    """Factory fixture for LogEntry objects with sequential ids."""
    counter = {"n": 0}

    def _entry(
        payload: bytes = b"line\n", category: str = "service", stream_id: str = "host-1"
    ) -> LogEntry:
        counter["n"] += 1
        return LogEntry(
            id=f"entry-{counter['n']:04d}",
            category=category,
            stream_id=stream_id,
            payload=payload,
        )

    return _entry


@pytest.fixture
def blob_storage() -> InMemoryBlobStorage:
    """Provide an empty in-memory blob storage."""
    return InMemoryBlobStorage()


@pytest.fixture
def blob_db_path(tmp_path: Path) -> str:
    """Provide a temporary database path for SQLite blob storage tests."""
    return str(tmp_path / "blobs.db")


@pytest.fixture
def asgi_test_client():
    """Factory fixture that creates an httpx.AsyncClient for ASGI testing.

    Usage:
        async def test_something(asgi_test_client):
            app = create_asgi_app(intake)
            async with asgi_test_client(app) as client:
                response = await client.put("/upload/service/host-1", content=b"x")
    """

    def _get_client(app):
        """Return an AsyncClient context manager for the given app."""
        return httpx.AsyncClient(
            transport=httpx.ASGITransport(app=app), base_url="http://test"
        )

    return _get_client


class ArchiveRecorder:
    """httpx MockTransport handler that records submitted requests."""

    def __init__(self, status_code: int = 200, error: Exception | None = None) -> None:
        self.requests: list[httpx.Request] = []
        self.status_code = status_code
        self.error = error
        self.received = threading.Event()

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        self.received.set()
        if self.error is not None:
            raise self.error
        return httpx.Response(self.status_code)

    def client(self) -> httpx.Client:
        return httpx.Client(transport=httpx.MockTransport(self))


@pytest.fixture
def archive_recorder() -> ArchiveRecorder:
    """Provide a recorder standing in for the archive's HTTP endpoint."""
    return ArchiveRecorder()
