"""
Per-endpoint request and transfer counters for folderview
"""

import threading
import time
from dataclasses import dataclass, field
from typing import Any, Dict

from .models import UploadResult


def endpoint_name(path: str) -> str:
    """Metrics bucket for a request path: ``/api/tree`` counts as ``tree``"""
    if path.startswith("/api/"):
        return path[len("/api/"):].split("/", 1)[0] or "api"
    if path.startswith("/static/"):
        return "static"
    return path.strip("/") or "index"


@dataclass
class EndpointStats:
    requests: int = 0
    active: int = 0
    response_time: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        finished = self.requests - self.active
        return {
            "requests": self.requests,
            "active": self.active,
            "avg_response_time": self.response_time / finished if finished else 0.0,
        }


@dataclass
class Metrics:
    endpoints: Dict[str, EndpointStats] = field(default_factory=dict)
    responses_by_status: Dict[int, int] = field(default_factory=dict)
    errors_by_kind: Dict[str, int] = field(default_factory=dict)

    upload_bytes: int = 0
    uploaded_files: int = 0
    failed_uploads: int = 0
    download_bytes: int = 0

    started: float = field(default_factory=time.time)


class MetricsManager:
    """
    Counters shared by every request of one application

    A request is active from the moment it is routed until its response body
    has been sent, so streaming downloads stay counted while they run.
    """

    def __init__(self):
        self._metrics = Metrics()
        self._lock = threading.Lock()

    def request_started(self, endpoint: str):
        with self._lock:
            stats = self._metrics.endpoints.setdefault(endpoint, EndpointStats())
            stats.requests += 1
            stats.active += 1

    def request_finished(self, endpoint: str, status_code: int, duration: float):
        with self._lock:
            stats = self._metrics.endpoints.setdefault(endpoint, EndpointStats())
            stats.active = max(0, stats.active - 1)
            stats.response_time += duration

            by_status = self._metrics.responses_by_status
            by_status[status_code] = by_status.get(status_code, 0) + 1

    def record_error(self, kind: str):
        with self._lock:
            by_kind = self._metrics.errors_by_kind
            by_kind[kind] = by_kind.get(kind, 0) + 1

    def record_upload(self, result: UploadResult):
        """Account one upload request, successful or not"""
        with self._lock:
            self._metrics.upload_bytes += result.bytes_written
            self._metrics.uploaded_files += len(result.files or [])
            if not result.success:
                self._metrics.failed_uploads += 1
                kind = result.kind or "error"
                self._metrics.errors_by_kind[kind] = self._metrics.errors_by_kind.get(kind, 0) + 1

    def add_download_bytes(self, count: int):
        with self._lock:
            self._metrics.download_bytes += count

    def get_metrics(self) -> Dict[str, Any]:
        with self._lock:
            m = self._metrics
            return {
                "uptime_seconds": time.time() - m.started,
                "requests": {
                    "total": sum(s.requests for s in m.endpoints.values()),
                    "active": sum(s.active for s in m.endpoints.values()),
                    "by_endpoint": {name: s.to_dict() for name, s in m.endpoints.items()},
                    "by_status": dict(m.responses_by_status),
                },
                "transfer": {
                    "upload_bytes": m.upload_bytes,
                    "uploaded_files": m.uploaded_files,
                    "failed_uploads": m.failed_uploads,
                    "download_bytes": m.download_bytes,
                },
                "errors": {
                    "total": sum(m.errors_by_kind.values()),
                    "by_kind": dict(m.errors_by_kind),
                },
            }
