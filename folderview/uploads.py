"""
Streaming multipart upload ingestion

Parts are decoded incrementally as request chunks arrive and file bodies are
appended to disk chunk by chunk, so no upload is ever held whole in memory.
"""

from __future__ import annotations

import logging
import ntpath
import posixpath
from pathlib import Path
from typing import Any, AsyncIterable, List, Optional, Tuple

import aiofiles
import aiofiles.os
from python_multipart.exceptions import FormParserError
from python_multipart.multipart import MultipartParser, parse_options_header
from starlette.requests import ClientDisconnect

from .errors import FileServiceError, InvalidInput, UpstreamIOError
from .models import UploadResult, UploadTarget
from .paths import PathResolver, to_slash

logger = logging.getLogger(__name__)

# Only parts submitted under this form field are treated as files
UPLOAD_FIELD = "files"


def base_filename(filename: str) -> str:
    """Strip any directory part a client put into a multipart filename"""
    return ntpath.basename(posixpath.basename(filename))


class StreamingMultipartDecoder:
    """
    Push-style multipart decoder

    ``feed`` hands raw body chunks to python-multipart and returns the events
    they produced: ``("begin", (field_name, filename))``, ``("data", bytes)``
    and ``("end", None)``.
    """

    def __init__(self, content_type: Optional[str]):
        ctype, params = parse_options_header(content_type)
        if ctype != b"multipart/form-data":
            raise InvalidInput("Not a multipart request")
        try:
            boundary = params[b"boundary"]
        except KeyError:
            raise InvalidInput("Missing boundary in multipart request")

        charset = params.get(b"charset", b"utf-8")
        self.charset = charset.decode("latin-1")
        self.complete = False

        self._events: List[Tuple[str, Any]] = []
        self._header_name = b""
        self._header_value = b""
        self._disposition = b""
        self._parser = MultipartParser(boundary, {
            "on_part_begin": self.on_part_begin,
            "on_part_data": self.on_part_data,
            "on_part_end": self.on_part_end,
            "on_header_field": self.on_header_field,
            "on_header_value": self.on_header_value,
            "on_header_end": self.on_header_end,
            "on_headers_finished": self.on_headers_finished,
            "on_end": self.on_end,
        })

    def on_part_begin(self) -> None:
        self._disposition = b""

    def on_header_field(self, data: bytes, start: int, end: int) -> None:
        self._header_name += data[start:end]

    def on_header_value(self, data: bytes, start: int, end: int) -> None:
        self._header_value += data[start:end]

    def on_header_end(self) -> None:
        if self._header_name.lower() == b"content-disposition":
            self._disposition = self._header_value
        self._header_name = b""
        self._header_value = b""

    def on_headers_finished(self) -> None:
        _, options = parse_options_header(self._disposition)
        name = options.get(b"name", b"").decode(self.charset, errors="replace")
        filename = options.get(b"filename")
        if filename is not None:
            filename = filename.decode(self.charset, errors="replace")
        self._events.append(("begin", (name, filename)))

    def on_part_data(self, data: bytes, start: int, end: int) -> None:
        self._events.append(("data", data[start:end]))

    def on_part_end(self) -> None:
        self._events.append(("end", None))

    def on_end(self) -> None:
        self.complete = True

    def feed(self, chunk: bytes) -> List[Tuple[str, Any]]:
        self._parser.write(chunk)
        events, self._events = self._events, []
        return events

    def close(self) -> None:
        self._parser.finalize()
        if not self.complete:
            raise InvalidInput("Unexpected end of multipart body")


class UploadSession:
    """Writes the file parts of one upload request, strictly in stream order"""

    def __init__(self, resolver: PathResolver, folder: Path, relative_path: Optional[str] = None):
        self.resolver = resolver
        self.folder = folder
        self.relative_path = relative_path or None
        self.written: List[str] = []
        self.bytes_written = 0
        self._out = None

    def target_for(self, filename: str) -> UploadTarget:
        """The relativePath hint, when given, overrides the part's filename"""
        return UploadTarget(
            destination_folder=to_slash(self.folder),
            relative_file_path=self.relative_path or base_filename(filename),
        )

    async def apply(self, events: List[Tuple[str, Any]]) -> None:
        for event, payload in events:
            if event == "begin":
                name, filename = payload
                if name == UPLOAD_FIELD and filename:
                    await self._open(self.target_for(filename))
            elif event == "data":
                if self._out is not None:
                    await self._out.write(payload)
                    self.bytes_written += len(payload)
            elif event == "end":
                await self.close()

    async def _open(self, target: UploadTarget) -> None:
        out_path = self.resolver.join(self.folder, target.relative_file_path)
        await aiofiles.os.makedirs(out_path.parent, exist_ok=True)
        self._out = await aiofiles.open(out_path, "wb")
        self.written.append(to_slash(out_path))
        logger.debug("Receiving upload into %s", out_path)

    async def close(self) -> None:
        if self._out is not None:
            out, self._out = self._out, None
            await out.close()


async def ingest(
    resolver: PathResolver,
    folder: Path,
    content_type: Optional[str],
    chunks: AsyncIterable[bytes],
    relative_path: Optional[str] = None,
) -> UploadResult:
    """
    Stream a multipart body into a destination folder

    Args:
        resolver: Path resolver confining the written files
        folder: Resolved destination folder (may not exist yet)
        content_type: Request Content-Type header carrying the boundary
        chunks: Request body chunks in arrival order
        relative_path: Optional path overriding each part's filename

    Returns:
        UploadResult; the first failure aborts the whole request and leaves
        already written data in place
    """
    session = UploadSession(resolver, folder, relative_path)
    try:
        decoder = StreamingMultipartDecoder(content_type)
        async for chunk in chunks:
            await session.apply(decoder.feed(chunk))
        decoder.close()
    except FileServiceError as e:
        return _failed(e.message, e.kind, session)
    except FormParserError as e:
        return _failed(f"Malformed multipart body: {e}", InvalidInput.kind, session)
    except ClientDisconnect:
        return _failed("Client disconnected during upload", UpstreamIOError.kind, session)
    except OSError as e:
        return _failed(str(e), UpstreamIOError.kind, session)
    finally:
        await session.close()

    logger.info(
        "Uploaded %d file(s) into %s (%d bytes)",
        len(session.written), folder, session.bytes_written,
    )
    return UploadResult(success=True, files=session.written, bytes_written=session.bytes_written)


def _failed(message: str, kind: str, session: UploadSession) -> UploadResult:
    logger.warning("Upload into %s failed: %s", session.folder, message)
    return UploadResult(
        success=False, error=message, kind=kind,
        files=session.written, bytes_written=session.bytes_written,
    )
