"""
Error taxonomy for folderview

Every error carries a stable machine-readable ``kind`` next to its message
and the HTTP status it maps to by default.
"""

from typing import Any, Dict, Optional


class FileServiceError(Exception):
    """Base exception for folder service operations"""

    kind = "error"
    status_code = 400

    def __init__(self, message: str, *, status_code: Optional[int] = None):
        super().__init__(message)
        if status_code is not None:
            self.status_code = status_code

    @property
    def message(self) -> str:
        return str(self)

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.message, "kind": self.kind}


class InvalidInput(FileServiceError):
    """A required parameter is missing or malformed"""

    kind = "invalid_input"
    status_code = 400


class NotFound(FileServiceError):
    """Path does not exist or is not the expected type"""

    kind = "not_found"
    status_code = 400


class Forbidden(FileServiceError):
    """Path resolves outside every configured folder root"""

    kind = "forbidden"
    status_code = 403


class UpstreamIOError(FileServiceError):
    """Read, write or copy failure while serving a request"""

    kind = "io_error"
    status_code = 500


class ConfigError(Exception):
    """Startup configuration is unusable"""
    pass


_STATUS_BY_KIND = {
    cls.kind: cls.status_code
    for cls in (InvalidInput, NotFound, Forbidden, UpstreamIOError)
}


def status_for_kind(kind: Optional[str]) -> int:
    """Default HTTP status for an error kind"""
    return _STATUS_BY_KIND.get(kind, 500)
