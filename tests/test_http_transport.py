"""Tests for the httpx-backed transport handler."""
import asyncio

import httpx
import pytest
from conftest import EventLog, FakeSource, settle

from fileuploader.models import UploadCancelled, UploaderConfig
from fileuploader.orchestrator import FileUploader
from fileuploader.services.http_transport import HTTPTransportHandler, http_handler_factory

URL = "https://uploads.example.com/files"


class Recorder:
    def __init__(self):
        self.progress = []
        self.cancels = 0

    def on_progress(self, uploaded, total):
        self.progress.append((uploaded, total))

    def on_cancel(self):
        self.cancels += 1


def _client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


@pytest.mark.asyncio
async def test_streams_body_and_reports_progress():
    received = {}

    async def handler(request: httpx.Request):
        received["body"] = await request.aread()
        received["headers"] = request.headers
        return httpx.Response(201, json={"id": "abc"})

    recorder = Recorder()
    source = FakeSource("notes.txt", 10, "text/plain", b"0123456789")
    async with _client(handler) as client:
        transport = HTTPTransportHandler(
            URL, recorder.on_progress, recorder.on_cancel, client=client, chunk_size=4,
            headers={"Authorization": "Bearer token"},
        )
        response = await transport.start(source)

    assert response == {"id": "abc"}
    assert received["body"] == b"0123456789"
    assert received["headers"]["content-type"] == "text/plain"
    assert received["headers"]["x-file-name"] == "notes.txt"
    assert received["headers"]["authorization"] == "Bearer token"
    assert recorder.progress == [(0, 10), (4, 10), (8, 10), (10, 10)]
    assert recorder.cancels == 0


@pytest.mark.asyncio
async def test_plain_text_response_is_returned():
    async def handler(request: httpx.Request):
        await request.aread()
        return httpx.Response(200, text="stored")

    recorder = Recorder()
    async with _client(handler) as client:
        transport = HTTPTransportHandler(URL, recorder.on_progress, recorder.on_cancel, client=client)
        assert await transport.start(FakeSource("a", 1, data=b"x")) == "stored"


@pytest.mark.asyncio
async def test_error_status_raises():
    async def handler(request: httpx.Request):
        await request.aread()
        return httpx.Response(413, json={"detail": "too large"})

    recorder = Recorder()
    async with _client(handler) as client:
        transport = HTTPTransportHandler(URL, recorder.on_progress, recorder.on_cancel, client=client)
        with pytest.raises(RuntimeError, match="Upload error 413"):
            await transport.start(FakeSource("a", 3, data=b"abc"))


@pytest.mark.asyncio
async def test_cancel_aborts_request():
    gate = asyncio.Event()

    async def handler(request: httpx.Request):
        await gate.wait()
        return httpx.Response(200)

    recorder = Recorder()
    async with _client(handler) as client:
        transport = HTTPTransportHandler(URL, recorder.on_progress, recorder.on_cancel, client=client)
        task = asyncio.ensure_future(transport.start(FakeSource("a", 3, data=b"abc")))
        await settle()

        transport.cancel()
        transport.cancel()

        with pytest.raises(UploadCancelled):
            await task

    assert transport.cancel_requested
    assert recorder.cancels == 1


@pytest.mark.asyncio
async def test_cancel_before_start():
    recorder = Recorder()
    transport = HTTPTransportHandler(URL, recorder.on_progress, recorder.on_cancel)
    transport.cancel()

    with pytest.raises(UploadCancelled):
        await transport.start(FakeSource("a", 1))
    assert recorder.cancels == 1


@pytest.mark.asyncio
async def test_uploader_with_http_factory():
    async def handler(request: httpx.Request):
        body = await request.aread()
        if request.headers["x-file-name"] == "bad.bin":
            return httpx.Response(500, text="server exploded")
        return httpx.Response(200, json={"size": len(body)})

    async with _client(handler) as client:
        uploader = FileUploader(
            UploaderConfig(allowed_concurrent_upload=2),
            handler_factory=http_handler_factory(URL, client=client, chunk_size=8),
        )
        log = EventLog().listen(uploader, "upload_successful", "upload_failed", "total_progress")
        good, bad = await uploader.add_files([
            FakeSource("good.bin", 20, data=b"g" * 20),
            FakeSource("bad.bin", 5, data=b"b" * 5),
        ])

        uploader.start_all()
        await uploader.wait()

    assert log.of("upload_successful") == [(good.id, {"size": 20})]
    (failed_id, error), = log.of("upload_failed")
    assert failed_id == bad.id
    assert "server exploded" in str(error)
    assert uploader.get_file_progress(good.id).uploaded_bytes == 20
    assert uploader.get_progress_totals()[1] == 25
