"""
Safe filesystem operations for httpupload

Functions here raise and never log; the request handler decides what is
reported to the client and what goes to the log.
"""

from pathlib import Path
from stat import S_ISREG
from typing import AsyncGenerator, AsyncIterable, Optional, Tuple
import aiofiles
import aiofiles.os

from .models import FileInfo, HttpRange, ResponseStatus
from .utils import get_mime_type

CHUNK_SIZE = 64 * 1024


class StorageError(Exception):
    """Raised when an upload cannot be stored"""
    status_code = ResponseStatus.CONFLICT


class PathTraversalError(StorageError):
    """Raised when a relative path would escape the storage root"""
    pass


class NotFoundError(Exception):
    """Raised when a stored object cannot be read"""
    status_code = ResponseStatus.NOT_FOUND


class RangeNotSatisfiableError(Exception):
    """Raised when a requested byte range lies outside the file"""
    status_code = ResponseStatus.RANGE_NOT_SATISFIABLE

    def __init__(self, size: int):
        super().__init__(f"Range not satisfiable for {size} bytes")
        self.size = size


def safe_join(root_path: Path, rel_path: str) -> Path:
    """
    Safely join root path with relative path, preventing directory traversal

    Empty and ``.`` segments are dropped, ``..`` segments are refused and the
    resolved result (symlinks included) must stay inside the root.

    Args:
        root_path: Storage root directory
        rel_path: Relative path taken from the request URL

    Returns:
        Resolved absolute path within root

    Raises:
        PathTraversalError: If path would escape root directory
    """
    if '\x00' in rel_path:
        raise PathTraversalError(f"Invalid path: {rel_path!r}")

    parts = []
    for part in rel_path.split('/'):
        if not part or part == '.':
            continue
        if part == '..':
            raise PathTraversalError(f"Path traversal detected: {rel_path}")
        parts.append(part)

    base_path = root_path.resolve()
    full_path = base_path.joinpath(*parts) if parts else base_path

    # Resolve symlinks without requiring the target to exist
    try:
        resolved_path = full_path.resolve(strict=False)
    except (OSError, RuntimeError) as e:
        raise PathTraversalError(f"Failed to resolve path {rel_path}: {e}")

    try:
        resolved_path.relative_to(base_path)
    except ValueError:
        raise PathTraversalError(f"Path traversal detected: {rel_path}")

    return resolved_path


async def save_stream(
    root_path: Path,
    rel_path: str,
    chunks: AsyncIterable[bytes],
) -> int:
    """
    Store an upload body, replacing any previous object at the same path

    Intermediate directories are created as needed. A body that fails
    mid-copy leaves the partially written file in place.

    Args:
        root_path: Storage root directory
        rel_path: Relative path of the object
        chunks: Request body

    Returns:
        Number of bytes written

    Raises:
        StorageError: If the directory or file cannot be created or written
    """
    file_path = safe_join(root_path, rel_path)
    if file_path == root_path.resolve():
        raise StorageError("Creating new file failed: empty path")

    try:
        await aiofiles.os.makedirs(file_path.parent, exist_ok=True)
    except OSError as e:
        raise StorageError(f"Creating directory failed: {e}")

    try:
        f = await aiofiles.open(file_path, 'wb')
    except OSError as e:
        raise StorageError(f"Creating new file failed: {e}")

    bytes_written = 0
    try:
        async for chunk in chunks:
            if not chunk:
                continue
            await f.write(chunk)
            bytes_written += len(chunk)
    except OSError as e:
        raise StorageError(f"Writing to new file failed after {bytes_written} bytes: {e}")
    finally:
        await f.close()

    return bytes_written


async def get_file_info(root_path: Path, rel_path: str) -> FileInfo:
    """
    Get stored object information

    Raises:
        NotFoundError: If the path is not a readable regular file
    """
    try:
        file_path = safe_join(root_path, rel_path)
    except PathTraversalError as e:
        raise NotFoundError(str(e))

    try:
        st = await aiofiles.os.stat(file_path)
    except OSError as e:
        raise NotFoundError(f"Getting file information failed: {e}")

    if not S_ISREG(st.st_mode):
        raise NotFoundError(f"Not a regular file: {rel_path}")

    return FileInfo(
        path=rel_path,
        size=st.st_size,
        modified=st.st_mtime,
        mime_type=get_mime_type(file_path)
    )


async def open_file_for_download(
    root_path: Path,
    rel_path: str,
    http_range: Optional[HttpRange] = None
) -> Tuple[AsyncGenerator[bytes, None], int, int, FileInfo]:
    """
    Open file for download with optional range support

    Args:
        root_path: Storage root directory
        rel_path: Relative file path
        http_range: Optional HTTP range specification

    Returns:
        (file_generator, start_pos, end_pos, file_info) tuple, end inclusive

    Raises:
        NotFoundError: If the file cannot be opened
        RangeNotSatisfiableError: If the range lies outside the file
    """
    info = await get_file_info(root_path, rel_path)
    total_size = info.size

    if http_range:
        resolved = http_range.resolve(total_size)
        if resolved is None:
            raise RangeNotSatisfiableError(total_size)
        start, end = resolved
    else:
        start, end = 0, total_size - 1

    file_path = safe_join(root_path, rel_path)
    try:
        f = await aiofiles.open(file_path, 'rb')
    except OSError as e:
        raise NotFoundError(f"Opening file failed: {e}")

    async def file_generator():
        try:
            await f.seek(start)
            remaining = end - start + 1

            while remaining > 0:
                chunk = await f.read(min(CHUNK_SIZE, remaining))

                # File shrank under a concurrent upload
                if not chunk:
                    break

                remaining -= len(chunk)
                yield chunk
        finally:
            await f.close()

    return file_generator(), start, end, info
