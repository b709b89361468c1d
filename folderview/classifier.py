"""
Content classification for the file viewer
"""

import base64
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional
from urllib.parse import quote

import aiofiles
import aiofiles.os

from .errors import UpstreamIOError
from .models import (
    BINARY_PLACEHOLDER,
    LANGUAGES,
    MARKDOWN_EXTENSIONS,
    OVERSIZE_MESSAGE,
    TRUNCATION_NOTICE,
    FileView,
    ViewKind,
    ViewerConfig,
)
from .paths import to_slash
from .utils import guess_mime_type

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Classification:
    """Decision taken from a file's size, extension and leading bytes"""
    kind: ViewKind
    language: Optional[str] = None
    mime: Optional[str] = None


def is_binary(head: bytes) -> bool:
    """
    Sniff leading bytes for binary content

    NUL, or any control byte below 0x20 other than TAB, LF, VT, FF and CR,
    marks the data as binary.
    """
    for b in head:
        if b == 0 or b < 0x09 or 0x0D < b < 0x20:
            return True
    return False


def language_for(extension: str) -> str:
    """Syntax highlighting hint for an extension, empty when unknown"""
    return LANGUAGES.get(extension.lower(), "")


def classify(path: Path, size: int, head: bytes, limits: ViewerConfig = ViewerConfig()) -> Classification:
    """
    Decide how a file should be displayed

    Args:
        path: File path, only its extension is used
        size: File size in bytes
        head: Leading bytes of the file (at most ``limits.sniffBytes`` are inspected)
        limits: Viewer thresholds

    Returns:
        Classification with the view kind and metadata
    """
    if size > limits.maxViewBytes:
        return Classification(ViewKind.ERROR)

    binary = is_binary(head[:limits.sniffBytes])
    ext = path.suffix.lower()

    if ext == ".pdf":
        return Classification(ViewKind.PDF)

    if ext in MARKDOWN_EXTENSIONS:
        return Classification(ViewKind.MARKDOWN)

    if binary:
        mime = guess_mime_type(path)
        if mime.startswith("image/"):
            return Classification(ViewKind.IMAGE, mime=mime)
        return Classification(ViewKind.BINARY, language="")

    return Classification(ViewKind.TEXT, language=language_for(ext))


def raw_url(client_path: str) -> str:
    """URL of the raw delivery endpoint for a client path"""
    return "/api/raw?path=" + quote(client_path, safe="/")


async def view_file(path: Path, client_path: str, limits: ViewerConfig = ViewerConfig()) -> FileView:
    """
    Build the viewer payload for a file

    Args:
        path: Resolved filesystem path
        client_path: Path as the client addressed it (forward slashes)
        limits: Viewer thresholds

    Raises:
        UpstreamIOError: If the file cannot be read
    """
    try:
        async with aiofiles.open(path, "rb") as f:
            stat = await aiofiles.os.stat(path)
            size = stat.st_size

            if size > limits.maxViewBytes:
                logger.info("Refusing to view %s (%d bytes)", path, size)
                return FileView(
                    ViewKind.ERROR,
                    OVERSIZE_MESSAGE.format(limit_mb=limits.maxViewBytes // (1024 * 1024)),
                )

            head = await f.read(limits.sniffBytes)
            decision = classify(path, size, head, limits)
            await f.seek(0)

            if decision.kind is ViewKind.PDF:
                return FileView(ViewKind.PDF, raw_url(client_path))

            if decision.kind is ViewKind.MARKDOWN:
                data = await f.read()
                return FileView(ViewKind.MARKDOWN, data.decode("utf-8", errors="replace"))

            if decision.kind is ViewKind.IMAGE:
                data = await f.read()
                payload = base64.b64encode(data).decode("ascii")
                return FileView(
                    ViewKind.IMAGE,
                    f"data:{decision.mime};base64,{payload}",
                    mime=decision.mime,
                )

            if decision.kind is ViewKind.BINARY:
                return FileView(ViewKind.BINARY, BINARY_PLACEHOLDER, language="")

            data = await f.read(limits.maxTextBytes)
            content = data.decode("utf-8", errors="replace")
            if size > limits.maxTextBytes:
                content += TRUNCATION_NOTICE
            return FileView(ViewKind.TEXT, content, language=decision.language)

    except OSError as e:
        raise UpstreamIOError(f"Failed to read {to_slash(path)}: {e.strerror or e}")
