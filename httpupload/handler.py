"""
Upload, metadata and download handler for httpupload
"""

import logging
from http import HTTPStatus
from pathlib import Path
from typing import AsyncGenerator, Optional

from fastapi import FastAPI, Request, Response
from fastapi.responses import PlainTextResponse, StreamingResponse
from starlette.requests import ClientDisconnect

from .auth import (
    check_upload_signature,
    MissingSignatureError,
    SignatureMismatchError,
)
from .fs import (
    save_stream,
    get_file_info,
    open_file_for_download,
    StorageError,
    NotFoundError,
    RangeNotSatisfiableError,
)
from .models import Config, ResponseStatus
from .utils import (
    normalize_prefix,
    strip_prefix,
    parse_http_range,
    create_response_headers,
    generate_etag,
    format_file_size,
)

logger = logging.getLogger(__name__)

SIGNATURE_PARAM = "v"

# Routed to the handler so that everything but PUT, HEAD and GET gets a logged 405
ROUTED_METHODS = [
    "GET", "HEAD", "PUT", "POST", "DELETE", "PATCH", "OPTIONS", "TRACE",
]


class ProtocolError(Exception):
    """Raised for request methods the upload endpoint does not serve"""
    status_code = ResponseStatus.METHOD_NOT_ALLOWED


def error_response(status_code: int, headers: Optional[dict] = None) -> Response:
    """Generic status line response, never carrying internal detail"""
    status = HTTPStatus(status_code)
    return PlainTextResponse(
        f"{status.value} {status.phrase}",
        status_code=status.value,
        headers=headers,
    )


def get_content_length(request: Request) -> int:
    """Declared body length, -1 when absent or unparsable"""
    value = request.headers.get("content-length")
    if value is None:
        return -1
    try:
        length = int(value)
    except ValueError:
        return -1
    return length if length >= 0 else -1


def get_signature(request: Request) -> Optional[str]:
    """First ``v`` query parameter, None if the parameter is absent"""
    values = request.query_params.getlist(SIGNATURE_PARAM)
    return values[0] if values else None


async def _request_body(request: Request) -> AsyncGenerator[bytes, None]:
    try:
        async for chunk in request.stream():
            yield chunk
    except ClientDisconnect:
        raise StorageError("Client disconnected during upload")


class UploadHandler:
    """Serves PUT, HEAD and GET for every path under the upload prefix"""

    def __init__(self, config: Config):
        self.config = config
        self.prefix = normalize_prefix(config.upload_sub_dir)
        self.storage_root = Path(config.storedir)

    @property
    def route_path(self) -> str:
        return f"{self.prefix}{{rel_path:path}}"

    def relative_path(self, request: Request) -> str:
        """Request path with the upload prefix removed"""
        # Decoded path, exactly as the issuer signed it
        rel_path = strip_prefix(request.scope["path"], self.prefix)
        # The route only matches below the prefix
        return rel_path if rel_path is not None else ""

    async def handle_request(self, request: Request) -> Response:
        """Dispatch by method and turn errors into status-only responses"""
        method = request.method
        rel_path = self.relative_path(request)

        try:
            if method == "PUT":
                return await self.handle_put(request, rel_path)
            elif method == "HEAD":
                return await self.handle_head(rel_path)
            elif method == "GET":
                return await self.handle_get(request, rel_path)
            else:
                raise ProtocolError(method)

        except MissingSignatureError:
            logger.warning(f"No HMAC attached to URL: {method} {rel_path}")
            return error_response(MissingSignatureError.status_code)

        except SignatureMismatchError as e:
            logger.warning(
                f"Invalid MAC for {rel_path}: wanted {e.expected}, got {e.received!r}"
            )
            return error_response(SignatureMismatchError.status_code)

        except StorageError as e:
            logger.error(f"Storing {rel_path} failed: {e}")
            return error_response(StorageError.status_code)

        except NotFoundError as e:
            logger.info(f"{method} {rel_path}: {e}")
            return error_response(NotFoundError.status_code)

        except RangeNotSatisfiableError as e:
            logger.info(f"{method} {rel_path}: {e}")
            return error_response(
                RangeNotSatisfiableError.status_code,
                headers={"Content-Range": f"bytes */{e.size}"},
            )

        except ProtocolError:
            logger.warning(f"Invalid method {method} for access to {self.prefix}{rel_path}")
            return error_response(ProtocolError.status_code)

    async def handle_put(self, request: Request, rel_path: str) -> Response:
        content_length = get_content_length(request)
        check_upload_signature(
            self.config.secret,
            rel_path,
            content_length,
            get_signature(request),
        )

        bytes_written = await save_stream(
            self.storage_root,
            rel_path,
            _request_body(request),
        )
        logger.info(
            f"Successfully written {bytes_written} bytes "
            f"({format_file_size(bytes_written)}) to file {rel_path}"
        )
        return Response(status_code=ResponseStatus.OK.value)

    async def handle_head(self, rel_path: str) -> Response:
        info = await get_file_info(self.storage_root, rel_path)
        return Response(
            status_code=ResponseStatus.OK.value,
            headers={"Content-Length": str(info.size)},
        )

    async def handle_get(self, request: Request, rel_path: str) -> Response:
        range_header = request.headers.get("Range")
        http_range = parse_http_range(range_header) if range_header else None

        file_generator, start, end, info = await open_file_for_download(
            self.storage_root, rel_path, http_range
        )

        headers = create_response_headers(
            content_length=end - start + 1,
            content_type=info.mime_type,
            etag=generate_etag(info.size, info.modified),
            last_modified=info.modified,
        )

        if http_range:
            headers["Content-Range"] = f"bytes {start}-{end}/{info.size}"
            status_code = ResponseStatus.PARTIAL_CONTENT.value
        else:
            status_code = ResponseStatus.OK.value

        return StreamingResponse(
            file_generator,
            status_code=status_code,
            headers=headers,
            media_type=info.mime_type,
        )


def setup_upload_routes(app: FastAPI, handler: UploadHandler):
    """Register the handler for every method below the upload prefix"""
    app.add_route(handler.route_path, handler.handle_request, methods=ROUTED_METHODS)
    logger.info(f"Upload handler registered on {handler.prefix}")
