"""
Raw and attachment delivery of file bytes
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import AsyncGenerator, Dict, Optional

import aiofiles
import aiofiles.os

from .errors import FileServiceError, NotFound, UpstreamIOError
from .models import DEFAULT_MIME_TYPE, DeliveryMode, HttpRange, MIME_TYPES
from .utils import content_disposition, content_range, file_headers, guess_mime_type

logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024


class RangeNotSatisfiable(FileServiceError):
    """Requested byte range lies outside the file"""

    kind = "range_not_satisfiable"
    status_code = 416

    def __init__(self, message: str, total_size: int):
        super().__init__(message)
        self.total_size = total_size


@dataclass
class Delivery:
    """A prepared file stream plus the headers describing it"""
    body: AsyncGenerator[bytes, None]
    headers: Dict[str, str]
    media_type: str
    status_code: int = 200


def delivery_content_type(path: Path, mode: DeliveryMode) -> str:
    """
    Content-Type for a delivered file

    Attachments use the extension table only; raw delivery also consults the
    platform's MIME registry.
    """
    if mode is DeliveryMode.ATTACHMENT:
        return MIME_TYPES.get(path.suffix.lower(), DEFAULT_MIME_TYPE)
    return guess_mime_type(path)


def _readable(path: Path) -> bool:
    return os.access(path, os.R_OK)


async def read_range(path: Path, start: int, end: int) -> AsyncGenerator[bytes, None]:
    """Yield bytes ``start..end`` (inclusive) of a file in fixed-size chunks"""
    async with aiofiles.open(path, "rb") as f:
        await f.seek(start)
        remaining = end - start + 1

        while remaining > 0:
            chunk = await f.read(min(CHUNK_SIZE, remaining))
            if not chunk:
                break

            remaining -= len(chunk)
            yield chunk


async def prepare(
    path: Path,
    mode: DeliveryMode,
    http_range: Optional[HttpRange] = None,
) -> Delivery:
    """
    Prepare a file for delivery

    Args:
        path: Resolved file path
        mode: Raw (inline) or attachment delivery
        http_range: Optional parsed Range header

    Raises:
        NotFound: If the path is not a regular file
        RangeNotSatisfiable: If the range starts past the end of the file
        UpstreamIOError: If the file cannot be inspected
    """
    try:
        if not await aiofiles.os.path.isfile(path):
            raise NotFound(f"File not found: {path.name}", status_code=404)
        stat = await aiofiles.os.stat(path)
    except OSError as e:
        raise UpstreamIOError(f"Failed to open file: {e}")

    # Headers go out before the body is read, so an unreadable file must fail here
    if not _readable(path):
        raise UpstreamIOError(f"Failed to open file: permission denied: {path.name}")

    total_size = stat.st_size
    content_type = delivery_content_type(path, mode)
    status_code = 200

    if http_range is not None:
        start, end = http_range.resolve(total_size)
        if start >= total_size or start > end:
            raise RangeNotSatisfiable(
                f"Range not satisfiable for {total_size} byte file", total_size
            )
        status_code = 206
    else:
        start, end = 0, total_size - 1

    headers = file_headers(stat, path, content_type, end - start + 1)
    if status_code == 206:
        headers["Content-Range"] = content_range(start, end, total_size)

    if mode is DeliveryMode.ATTACHMENT:
        headers["Content-Disposition"] = content_disposition("attachment", path.name)

    logger.debug("Delivering %s bytes %d-%d/%d (%s)", path, start, end, total_size, mode.value)
    return Delivery(
        body=read_range(path, start, end),
        headers=headers,
        media_type=content_type,
        status_code=status_code,
    )
