"""
Data models and constants for httpupload
"""

from enum import IntEnum
from typing import Optional, Tuple
from dataclasses import dataclass, field


class ResponseStatus(IntEnum):
    """HTTP status codes used by the upload handler"""
    OK = 200
    PARTIAL_CONTENT = 206
    FORBIDDEN = 403
    NOT_FOUND = 404
    METHOD_NOT_ALLOWED = 405
    CONFLICT = 409
    RANGE_NOT_SATISFIABLE = 416
    INTERNAL_ERROR = 500


@dataclass(frozen=True)
class LoggingConfig:
    """Logging configuration"""
    json: bool = False
    file: str = ""
    level: str = "INFO"
    max_size_mb: int = 100
    backup_count: int = 5


@dataclass(frozen=True)
class Config:
    """Server configuration, immutable once loaded"""
    listenport: str
    secret: str
    storedir: str
    upload_sub_dir: str
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    def __repr__(self) -> str:
        # Keep the shared secret out of logs and tracebacks
        return (
            f"Config(listenport={self.listenport!r}, secret='***', "
            f"storedir={self.storedir!r}, upload_sub_dir={self.upload_sub_dir!r})"
        )


@dataclass
class FileInfo:
    """Stored object information"""
    path: str
    size: int
    modified: float
    mime_type: str = ""


# HTTP Range parsing result
@dataclass
class HttpRange:
    """HTTP Range header parsing result"""
    start: Optional[int] = None
    end: Optional[int] = None
    suffix_length: Optional[int] = None

    def resolve(self, content_length: int) -> Optional[Tuple[int, int]]:
        """
        Resolve range to inclusive start/end positions

        Returns None when the range cannot be satisfied for a file of
        ``content_length`` bytes.
        """
        if content_length <= 0:
            return None

        if self.suffix_length is not None:
            # bytes=-500 (last 500 bytes)
            if self.suffix_length <= 0:
                return None
            start = max(0, content_length - self.suffix_length)
            return start, content_length - 1

        start = self.start if self.start is not None else 0
        if start >= content_length:
            return None

        end = self.end if self.end is not None else content_length - 1
        if end < start:
            return None

        return start, min(end, content_length - 1)


# Common MIME types
MIME_TYPES = {
    '.txt': 'text/plain',
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
    '.webp': 'image/webp',
    '.bmp': 'image/bmp',
    '.svg': 'image/svg+xml',
    '.mp3': 'audio/mpeg',
    '.m4a': 'audio/mp4',
    '.ogg': 'audio/ogg',
    '.opus': 'audio/ogg',
    '.wav': 'audio/wav',
    '.mp4': 'video/mp4',
    '.webm': 'video/webm',
    '.mov': 'video/quicktime',
}

# Default MIME type for unknown files
DEFAULT_MIME_TYPE = 'application/octet-stream'
