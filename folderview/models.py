"""
Data models and constants for folderview
"""

from enum import Enum
from typing import Any, Dict, List, Optional, Tuple
from dataclasses import dataclass, field


class EntryKind(Enum):
    """Tree entry types"""
    FOLDER = "folder"
    FILE = "file"


class ViewKind(Enum):
    """File viewer display kinds"""
    TEXT = "text"
    MARKDOWN = "markdown"
    IMAGE = "image"
    PDF = "pdf"
    BINARY = "binary"
    ERROR = "error"


class DeliveryMode(Enum):
    """How file bytes are handed back to the client"""
    RAW = "raw"
    ATTACHMENT = "attachment"


@dataclass(frozen=True)
class TreeEntry:
    """One row of a tree listing"""
    name: str
    kind: EntryKind
    path: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "type": self.kind.value,
            "path": self.path,
        }


@dataclass
class FileView:
    """Viewer payload for a single file"""
    kind: ViewKind
    content: str
    language: Optional[str] = None
    mime: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "type": self.kind.value,
            "content": self.content,
        }
        if self.language is not None:
            data["language"] = self.language
        if self.mime is not None:
            data["mime"] = self.mime
        return data


@dataclass(frozen=True)
class UploadTarget:
    """Destination of a single uploaded part"""
    destination_folder: str
    relative_file_path: str


@dataclass
class UploadResult:
    """Outcome of one upload request"""
    success: bool
    error: Optional[str] = None
    kind: Optional[str] = None
    files: List[str] = field(default_factory=list)
    bytes_written: int = 0

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"success": self.success}
        if self.success:
            data["files"] = list(self.files)
        else:
            data["error"] = self.error
            if self.kind:
                data["kind"] = self.kind
        return data


@dataclass(frozen=True)
class ServerConfig:
    """Server configuration"""
    addr: str = "0.0.0.0"
    port: int = 30006


@dataclass(frozen=True)
class LoggingConfig:
    """Logging configuration"""
    json: bool = False
    file: str = ""
    level: str = "INFO"
    max_size_mb: int = 100
    backup_count: int = 5


@dataclass(frozen=True)
class ViewerConfig:
    """Content classifier limits"""
    maxViewBytes: int = 50 * 1024 * 1024
    maxTextBytes: int = 1 * 1024 * 1024
    sniffBytes: int = 800


@dataclass(frozen=True)
class SecurityConfig:
    """Path confinement configuration"""
    confineToRoots: bool = True


@dataclass(frozen=True)
class StaticConfig:
    """Static web client location"""
    dir: str = "static"


@dataclass(frozen=True)
class Config:
    """Main configuration container"""
    server: ServerConfig = field(default_factory=ServerConfig)
    folders: Tuple[str, ...] = ()
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    viewer: ViewerConfig = field(default_factory=ViewerConfig)
    security: SecurityConfig = field(default_factory=SecurityConfig)
    static: StaticConfig = field(default_factory=StaticConfig)


# HTTP Range parsing result
@dataclass
class HttpRange:
    """HTTP Range header parsing result"""
    start: Optional[int] = None
    end: Optional[int] = None
    suffix_length: Optional[int] = None

    def resolve(self, content_length: int) -> Tuple[int, int]:
        """Resolve range to actual start/end positions"""
        if content_length <= 0:
            return 0, -1

        if self.suffix_length is not None:
            # bytes=-500 (last 500 bytes)
            start = max(0, content_length - self.suffix_length)
            end = content_length - 1
        else:
            start = self.start if self.start is not None else 0
            end = self.end if self.end is not None else content_length - 1
            end = min(end, content_length - 1)

        return start, end


# MIME types used for downloads and image detection
MIME_TYPES = {
    '.txt': 'text/plain',
    '.md': 'text/markdown',
    '.html': 'text/html',
    '.css': 'text/css',
    '.js': 'application/javascript',
    '.json': 'application/json',
    '.xml': 'application/xml',
    '.pdf': 'application/pdf',
    '.zip': 'application/zip',
    '.tar': 'application/x-tar',
    '.gz': 'application/gzip',
    '.jpg': 'image/jpeg',
    '.jpeg': 'image/jpeg',
    '.png': 'image/png',
    '.gif': 'image/gif',
    '.bmp': 'image/bmp',
    '.webp': 'image/webp',
    '.ico': 'image/x-icon',
    '.svg': 'image/svg+xml',
    '.mp3': 'audio/mpeg',
    '.wav': 'audio/wav',
    '.mp4': 'video/mp4',
    '.avi': 'video/x-msvideo',
    '.mov': 'video/quicktime',
}

# Default MIME type for unknown files
DEFAULT_MIME_TYPE = 'application/octet-stream'

# Extension -> syntax highlighting hint for the text viewer
LANGUAGES = {
    '.go': 'go',
    '.js': 'javascript',
    '.py': 'python',
    '.java': 'java',
    '.html': 'html',
    '.css': 'css',
    '.json': 'json',
    '.md': 'markdown',
}

MARKDOWN_EXTENSIONS = ('.md', '.markdown')

OVERSIZE_MESSAGE = "File is too large to view (over {limit_mb}MB). Please download it."
BINARY_PLACEHOLDER = "[Binary file will not be displayed]"
TRUNCATION_NOTICE = "\n\n... [File truncated because it is too large] ..."
