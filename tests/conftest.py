"""Shared fakes for fileuploader tests."""
import asyncio
from dataclasses import dataclass
from typing import List, Optional

import pytest

from fileuploader.models import UploadCancelled


@dataclass(frozen=True)
class FakeSource:
    """In-memory IFileSource."""
    name: str
    size: int
    content_type: str = "application/octet-stream"
    data: bytes = b""

    def read_bytes(self) -> bytes:
        return self.data

    async def read_chunks(self, chunk_size: int = 65536):
        for i in range(0, len(self.data), chunk_size):
            yield self.data[i:i + chunk_size]


class FakeHandler:
    """Transport handle whose outcome is driven by the owning FakeTransport or by the test."""

    def __init__(self, transport: "FakeTransport", on_progress, on_cancel):
        self.transport = transport
        self.on_progress = on_progress
        self.on_cancel = on_cancel
        self.source = None
        self.cancelled = False
        self.cancel_calls = 0
        self._future: Optional[asyncio.Future] = None

    async def start(self, source):
        self.source = source
        self.transport.started.append(source.name)
        if self.cancelled:
            raise UploadCancelled()

        if not self.transport.manual:
            await asyncio.sleep(0)
            if source.name in self.transport.fail_names:
                raise RuntimeError(f"boom: {source.name}")
            return {"name": source.name}

        self._future = asyncio.get_running_loop().create_future()
        return await self._future

    def resolve(self, response=None):
        self._future.set_result(response)

    def fail(self, error: BaseException):
        self._future.set_exception(error)

    def cancel(self):
        self.cancel_calls += 1
        self.cancelled = True
        if self.transport.call_on_cancel:
            self.on_cancel()
        if self._future is not None and not self._future.done():
            self._future.set_exception(UploadCancelled())


class FakeTransport:
    """Handler factory recording every handle it builds."""

    def __init__(self, manual: bool = False, fail_names=(), call_on_cancel: bool = True, handler_cls=FakeHandler):
        self.manual = manual
        self.handler_cls = handler_cls
        self.fail_names = set(fail_names)
        self.call_on_cancel = call_on_cancel
        self.created: List[FakeHandler] = []
        self.started: List[str] = []

    def __call__(self, on_progress, on_cancel) -> FakeHandler:
        handler = self.handler_cls(self, on_progress, on_cancel)
        self.created.append(handler)
        return handler

    def handler_for(self, name: str) -> FakeHandler:
        return next(h for h in self.created if h.source is not None and h.source.name == name)


async def settle(rounds: int = 10):
    """Let pending transfer tasks run."""
    for _ in range(rounds):
        await asyncio.sleep(0)


class EventLog:
    """Records (event, args) tuples for every subscribed event."""

    def __init__(self):
        self.entries = []

    def listen(self, emitter, *events):
        for event in events:
            emitter.on(event, self._recorder(event))
        return self

    def _recorder(self, event):
        name = getattr(event, "value", event)

        def record(*args):
            self.entries.append((name, args))

        return record

    def names(self):
        return [name for name, _ in self.entries]

    def of(self, name):
        return [args for n, args in self.entries if n == name]


@pytest.fixture
def make_source():
    def _make(name="file.bin", size=100, content_type="application/octet-stream", data=None):
        return FakeSource(name=name, size=size, content_type=content_type, data=data if data is not None else b"x" * size)

    return _make


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def manual_transport():
    return FakeTransport(manual=True)
