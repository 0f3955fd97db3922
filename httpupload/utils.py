"""
Utility functions for httpupload
"""

import hashlib
import mimetypes
import time
from pathlib import Path
from typing import Optional, Tuple

from .models import HttpRange, MIME_TYPES, DEFAULT_MIME_TYPE


def get_mime_type(file_path: Path) -> str:
    """Get MIME type for file"""
    suffix = file_path.suffix.lower()

    # Check our custom MIME types first
    if suffix in MIME_TYPES:
        return MIME_TYPES[suffix]

    # Fall back to system mimetypes
    mime_type, _ = mimetypes.guess_type(str(file_path))
    return mime_type or DEFAULT_MIME_TYPE


def format_file_size(size_bytes: int) -> str:
    """Format file size in human readable format"""
    if size_bytes <= 0:
        return "0 B"

    size_names = ["B", "KB", "MB", "GB", "TB"]
    i = 0
    size = float(size_bytes)

    while size >= 1024.0 and i < len(size_names) - 1:
        size /= 1024.0
        i += 1

    if i == 0:
        return f"{int(size)} {size_names[i]}"
    else:
        return f"{size:.1f} {size_names[i]}"


def normalize_prefix(upload_sub_dir: str) -> str:
    """
    Turn the configured upload sub directory into a URL prefix

    ``"upload"``, ``"/upload"`` and ``"upload/"`` all become ``"/upload/"``.
    An empty value maps to ``"/"``.
    """
    stripped = upload_sub_dir.strip("/")
    if not stripped:
        return "/"
    return f"/{stripped}/"


def strip_prefix(url_path: str, prefix: str) -> Optional[str]:
    """
    Remove the exact upload prefix from a request path

    Returns the relative path that is both the signed message and the
    storage key, or None if the path does not start with the prefix.
    """
    if not url_path.startswith(prefix):
        return None
    return url_path[len(prefix):]


def parse_listen_address(listenport: str) -> Tuple[str, int]:
    """
    Parse a ``host:port`` listen address

    ``":5050"`` binds all interfaces and ``"[::1]:5050"`` is accepted for
    IPv6 literals.

    Raises:
        ValueError: If the address is malformed
    """
    host, sep, port_str = listenport.strip().rpartition(":")
    if not sep:
        raise ValueError(f"Listen address must be host:port, got {listenport!r}")

    if host.startswith("[") and host.endswith("]"):
        host = host[1:-1]

    try:
        port = int(port_str)
    except ValueError:
        raise ValueError(f"Invalid port in listen address: {listenport!r}")

    if not 0 < port < 65536:
        raise ValueError(f"Port out of range in listen address: {listenport!r}")

    return host or "0.0.0.0", port


def parse_http_range(range_header: str) -> Optional[HttpRange]:
    """
    Parse HTTP Range header

    Supports:
    - bytes=start-end
    - bytes=start-
    - bytes=-suffix

    Args:
        range_header: Range header value (e.g., "bytes=0-1023")

    Returns:
        HttpRange object or None if invalid
    """
    if not range_header:
        return None

    # Must start with "bytes="
    if not range_header.startswith("bytes="):
        return None

    range_spec = range_header[6:].strip()

    # Handle multiple ranges (not supported, take first one)
    if ',' in range_spec:
        range_spec = range_spec.split(',')[0].strip()

    if range_spec.count('-') != 1:
        return None

    start_str, end_str = (part.strip() for part in range_spec.split('-', 1))

    if start_str and not start_str.isdigit():
        return None
    if end_str and not end_str.isdigit():
        return None

    if not start_str and not end_str:
        return None

    if not start_str:
        # Suffix range: bytes=-500
        return HttpRange(suffix_length=int(end_str))

    if not end_str:
        # Start range: bytes=500-
        return HttpRange(start=int(start_str))

    start = int(start_str)
    end = int(end_str)
    if end < start:
        return None
    return HttpRange(start=start, end=end)


def generate_etag(size: int, modified: float) -> str:
    """Generate ETag from file size and mtime"""
    data = f"{modified}:{size}"
    return hashlib.md5(data.encode()).hexdigest()


def format_http_date(timestamp: float) -> str:
    """Format a unix timestamp as an HTTP date"""
    return time.strftime("%a, %d %b %Y %H:%M:%S GMT", time.gmtime(timestamp))


def create_response_headers(
    content_length: Optional[int] = None,
    content_type: str = DEFAULT_MIME_TYPE,
    etag: Optional[str] = None,
    last_modified: Optional[float] = None,
) -> dict:
    """Create standard download response headers"""
    headers = {
        "Content-Type": content_type,
        "Accept-Ranges": "bytes",
        "X-Content-Type-Options": "nosniff",
    }

    if content_length is not None:
        headers["Content-Length"] = str(content_length)

    if etag:
        headers["ETag"] = f'"{etag}"'

    if last_modified:
        headers["Last-Modified"] = format_http_date(last_modified)

    return headers
