"""
Tests for streaming upload ingestion and transfer accounting
"""

import asyncio

import pytest

from starlette.requests import ClientDisconnect

from folderview.metrics import MetricsManager, endpoint_name
from folderview.models import UploadResult
from folderview.paths import PathResolver, to_slash
from folderview.uploads import base_filename, ingest

BOUNDARY = "folderviewtestboundary"
CONTENT_TYPE = f"multipart/form-data; boundary={BOUNDARY}"


def part(filename, data, name="files"):
    return (
        f"--{BOUNDARY}\r\n"
        f'Content-Disposition: form-data; name="{name}"; filename="{filename}"\r\n'
        "Content-Type: application/octet-stream\r\n\r\n"
    ).encode() + data + b"\r\n"


def closing():
    return f"--{BOUNDARY}--\r\n".encode()


async def chunked(*chunks):
    for chunk in chunks:
        yield chunk


@pytest.fixture()
def folder(tmp_path):
    return tmp_path.resolve()


def run_ingest(folder, chunks, relative_path=None):
    resolver = PathResolver([str(folder)])
    return asyncio.run(ingest(resolver, folder, CONTENT_TYPE, chunks, relative_path))


def test_parts_split_across_chunks(folder):
    """Part boundaries may fall anywhere inside the received chunks"""

    body = part("one.txt", b"first file") + part("two.txt", b"second file") + closing()
    chunks = [body[i:i + 7] for i in range(0, len(body), 7)]

    result = run_ingest(folder, chunked(*chunks))
    assert result.success
    assert result.files == [to_slash(folder / "one.txt"), to_slash(folder / "two.txt")]
    assert result.bytes_written == len(b"first file") + len(b"second file")
    assert (folder / "two.txt").read_bytes() == b"second file"


def test_disconnect_keeps_partial_file(folder):
    """A client that goes away mid-part fails the upload without cleanup"""

    async def disconnecting():
        yield part("partial.bin", b"only the beginning")[:-2]
        raise ClientDisconnect()

    result = run_ingest(folder, disconnecting())
    assert result.success is False
    assert result.kind == "io_error"
    assert result.files == [to_slash(folder / "partial.bin")]

    partial = folder / "partial.bin"
    assert partial.is_file()
    assert b"only the beginning".startswith(partial.read_bytes())


def test_truncated_body(folder):
    """A body without its closing boundary is invalid input"""

    result = run_ingest(folder, chunked(part("cut.txt", b"data")))
    assert result.success is False
    assert result.kind == "invalid_input"
    assert result.error == "Unexpected end of multipart body"


def test_base_filename():
    assert base_filename("photo.jpg") == "photo.jpg"
    assert base_filename("a/b/photo.jpg") == "photo.jpg"
    assert base_filename("C:\\Users\\me\\photo.jpg") == "photo.jpg"


class TestMetricsManager:
    """Test transfer and request accounting"""

    def test_endpoint_names(self):
        assert endpoint_name("/api/tree") == "tree"
        assert endpoint_name("/api/download") == "download"
        assert endpoint_name("/static/app.js") == "static"
        assert endpoint_name("/healthz") == "healthz"
        assert endpoint_name("/") == "index"

    def test_upload_accounting(self):
        metrics = MetricsManager()
        metrics.record_upload(UploadResult(success=True, files=["/a/x", "/a/y"], bytes_written=10))
        metrics.record_upload(UploadResult(success=False, error="boom", kind="io_error", bytes_written=3))

        snapshot = metrics.get_metrics()
        assert snapshot["transfer"]["upload_bytes"] == 13
        assert snapshot["transfer"]["uploaded_files"] == 2
        assert snapshot["transfer"]["failed_uploads"] == 1
        assert snapshot["errors"]["by_kind"] == {"io_error": 1}

    def test_active_requests(self):
        metrics = MetricsManager()
        metrics.request_started("download")
        metrics.request_started("tree")
        metrics.request_finished("tree", 200, 0.5)

        snapshot = metrics.get_metrics()["requests"]
        assert snapshot["total"] == 2
        assert snapshot["active"] == 1
        assert snapshot["by_endpoint"]["tree"] == {"requests": 1, "active": 0, "avg_response_time": 0.5}
        assert snapshot["by_status"] == {200: 1}
