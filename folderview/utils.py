"""
Header and option helpers shared by the viewer and the delivery path
"""

import hashlib
import mimetypes
import os
import re
from email.utils import formatdate
from pathlib import Path
from typing import Dict, Optional, Tuple
from urllib.parse import quote

from .models import HttpRange, MIME_TYPES, DEFAULT_MIME_TYPE

_TOKEN_SAFE = re.compile(r"^[A-Za-z0-9!#$%&'*+.^_`|~-]+$")
_BYTE_RANGE = re.compile(r"^(\d*)-(\d*)$")


def guess_mime_type(path: Path) -> str:
    """Extension table first, then the platform registry"""
    return (
        MIME_TYPES.get(path.suffix.lower())
        or mimetypes.guess_type(path.name)[0]
        or DEFAULT_MIME_TYPE
    )


def parse_http_range(range_header: Optional[str]) -> Optional[HttpRange]:
    """
    Parse a ``Range: bytes=...`` header

    Only the first range of a multi-range request is used. Anything that is
    not a well-formed byte range yields None, so the caller serves the whole
    file instead.
    """
    if not range_header:
        return None

    unit, _, ranges = range_header.partition("=")
    if unit.strip().lower() != "bytes":
        return None

    first = "".join(ranges.split(",")[0].split())
    match = _BYTE_RANGE.match(first)
    if match is None or first == "-":
        return None

    start, end = match.groups()
    if not start:
        return HttpRange(suffix_length=int(end))
    if not end:
        return HttpRange(start=int(start))
    if int(end) < int(start):
        return None
    return HttpRange(start=int(start), end=int(end))


def content_range(start: int, end: int, total: int) -> str:
    return f"bytes {start}-{end}/{total}"


def file_headers(st: os.stat_result, path: Path, content_type: str, length: int) -> Dict[str, str]:
    """Framing and validator headers for a delivered file"""
    tag = hashlib.md5(f"{path}:{st.st_mtime_ns}:{st.st_size}".encode()).hexdigest()
    return {
        "Content-Type": content_type,
        "Content-Length": str(length),
        "Accept-Ranges": "bytes",
        "Cache-Control": "no-cache",
        "ETag": f'"{tag}"',
        "Last-Modified": formatdate(st.st_mtime, usegmt=True),
    }


def content_disposition(disposition: str, filename: str) -> str:
    """
    Build a Content-Disposition value

    Plain token-safe names are sent bare; anything else gets an ASCII
    fallback plus an RFC 5987 ``filename*`` parameter.
    """
    if _TOKEN_SAFE.match(filename):
        return f"{disposition}; filename={filename}"

    fallback_name = "".join(
        ch if 32 <= ord(ch) < 127 and ch not in {'"', '\\'} else "_"
        for ch in filename
    ) or "download"
    return (
        f"{disposition}; filename=\"{fallback_name}\"; "
        f"filename*=UTF-8''{quote(filename, safe='')}"
    )


def split_csv(value: Optional[str]) -> Tuple[str, ...]:
    """Split a comma-separated option into trimmed, non-empty items"""
    if not value:
        return ()
    return tuple(item.strip() for item in value.split(",") if item.strip())
