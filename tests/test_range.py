"""
Tests for Range handling and the delivery helpers
"""

import asyncio

import pytest

from folderview import delivery as delivery_module
from folderview.delivery import RangeNotSatisfiable, delivery_content_type, prepare
from folderview.errors import NotFound, UpstreamIOError
from folderview.models import DeliveryMode, HttpRange
from folderview.utils import (
    content_disposition,
    content_range,
    parse_http_range,
)


async def collect(delivery):
    return b"".join([chunk async for chunk in delivery.body])


class TestHttpRange:
    """Test HTTP Range header parsing"""

    def test_parse_forms(self):
        """Closed, open-ended and suffix ranges"""

        result = parse_http_range("bytes=0-499")
        assert (result.start, result.end, result.suffix_length) == (0, 499, None)

        result = parse_http_range("bytes=500-")
        assert (result.start, result.end) == (500, None)

        result = parse_http_range("bytes=-200")
        assert (result.start, result.suffix_length) == (None, 200)

    def test_parse_invalid(self):
        """Malformed headers are ignored rather than rejected"""

        for header in [
            "0-499",
            "items=0-499",
            "bytes=",
            "bytes=-",
            "bytes=abc-def",
            "bytes=100",
            "bytes=100-200-300",
            "bytes=500-100",
        ]:
            assert parse_http_range(header) is None, header

    def test_parse_first_of_many(self):
        """Only the first of several ranges is honoured"""

        result = parse_http_range("bytes=100-199, 300-399")
        assert (result.start, result.end) == (100, 199)

        result = parse_http_range("bytes= 0 - 9 ")
        assert (result.start, result.end) == (0, 9)

    def test_resolve(self):
        """Ranges resolve against the file size"""

        assert HttpRange(start=0, end=1999).resolve(1000) == (0, 999)
        assert HttpRange(start=500).resolve(1000) == (500, 999)
        assert HttpRange(suffix_length=200).resolve(1000) == (800, 999)
        assert HttpRange(suffix_length=100).resolve(50) == (0, 49)
        assert HttpRange(start=0, end=0).resolve(0) == (0, -1)

        # Past the end is left for delivery to reject
        assert HttpRange(start=1500).resolve(1000) == (1500, 999)

    def test_content_range(self):
        assert content_range(100, 100, 1000) == "bytes 100-100/1000"


class TestContentDisposition:
    """Test attachment header values"""

    def test_plain_name(self):
        assert content_disposition("attachment", "report.pdf") == "attachment; filename=report.pdf"

    def test_name_needing_quotes(self):
        """Spaces and non-ASCII names get a fallback plus filename*"""

        value = content_disposition("attachment", "年度 报告.pdf")
        assert value.startswith('attachment; filename="__ __.pdf"')
        assert value.endswith("filename*=UTF-8''%E5%B9%B4%E5%BA%A6%20%E6%8A%A5%E5%91%8A.pdf")

        value = content_disposition("attachment", 'say "hi".txt')
        assert 'filename="say _hi_.txt"' in value


class TestPrepare:
    """Test delivery preparation on real files"""

    def test_full_attachment(self, tmp_path):
        path = tmp_path / "notes.txt"
        path.write_bytes(b"0123456789")

        delivery = asyncio.run(prepare(path, DeliveryMode.ATTACHMENT))
        assert delivery.status_code == 200
        assert delivery.headers["Content-Length"] == "10"
        assert delivery.headers["Content-Disposition"] == "attachment; filename=notes.txt"
        assert delivery.media_type == "text/plain"
        assert asyncio.run(collect(delivery)) == b"0123456789"

    def test_partial_raw(self, tmp_path):
        path = tmp_path / "notes.txt"
        path.write_bytes(b"0123456789")

        delivery = asyncio.run(prepare(path, DeliveryMode.RAW, HttpRange(start=7)))
        assert delivery.status_code == 206
        assert delivery.headers["Content-Range"] == "bytes 7-9/10"
        assert "Content-Disposition" not in delivery.headers
        assert asyncio.run(collect(delivery)) == b"789"

    def test_large_file_streams_in_chunks(self, tmp_path):
        """Bodies larger than one chunk arrive intact"""

        data = bytes(range(256)) * 1024
        path = tmp_path / "big.bin"
        path.write_bytes(data)

        delivery = asyncio.run(prepare(path, DeliveryMode.ATTACHMENT))
        assert asyncio.run(collect(delivery)) == data

    def test_unsatisfiable(self, tmp_path):
        path = tmp_path / "tiny.txt"
        path.write_bytes(b"abc")

        with pytest.raises(RangeNotSatisfiable) as exc_info:
            asyncio.run(prepare(path, DeliveryMode.RAW, HttpRange(start=3)))
        assert exc_info.value.status_code == 416
        assert exc_info.value.total_size == 3

    def test_directory_rejected(self, tmp_path):
        with pytest.raises(NotFound) as exc_info:
            asyncio.run(prepare(tmp_path, DeliveryMode.ATTACHMENT))
        assert exc_info.value.status_code == 404

    def test_unreadable_file_fails_before_streaming(self, tmp_path, monkeypatch):
        """Permission problems surface as io errors, not truncated bodies"""

        path = tmp_path / "locked.txt"
        path.write_bytes(b"secret")
        monkeypatch.setattr(delivery_module, "_readable", lambda p: False)

        with pytest.raises(UpstreamIOError) as exc_info:
            asyncio.run(prepare(path, DeliveryMode.ATTACHMENT))
        assert exc_info.value.status_code == 500
        assert exc_info.value.kind == "io_error"

    def test_content_types(self, tmp_path):
        """Attachments only use the extension table"""

        assert delivery_content_type(tmp_path / "a.pdf", DeliveryMode.ATTACHMENT) == "application/pdf"
        assert delivery_content_type(tmp_path / "a.PNG", DeliveryMode.RAW) == "image/png"
        assert delivery_content_type(tmp_path / "a.xyz123", DeliveryMode.ATTACHMENT) == "application/octet-stream"
