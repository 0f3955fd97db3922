"""
Middleware for httpupload
"""

import logging
import time
from typing import Callable, Optional
from fastapi import FastAPI, Request, Response
from fastapi.responses import PlainTextResponse
from starlette.middleware.base import BaseHTTPMiddleware

from .models import ResponseStatus

logger = logging.getLogger(__name__)


def get_client_ip(request: Request) -> str:
    """Extract client IP from request, considering the reverse proxy"""

    # Check X-Forwarded-For header (proxy)
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        # Take the first IP (original client)
        return forwarded_for.split(",")[0].strip()

    # Check X-Real-IP header (nginx)
    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return real_ip.strip()

    # Fall back to direct connection IP
    if request.client:
        return request.client.host

    return "unknown"


class AccessLogMiddleware(BaseHTTPMiddleware):
    """Access logging middleware"""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        start_time = time.time()
        client_ip = get_client_ip(request)

        try:
            response = await call_next(request)
        except Exception as e:
            self._log_access(
                request=request,
                response=None,
                duration=time.time() - start_time,
                client_ip=client_ip,
                error=str(e)
            )
            raise

        self._log_access(
            request=request,
            response=response,
            duration=time.time() - start_time,
            client_ip=client_ip
        )
        return response

    def _log_access(
        self,
        request: Request,
        response: Optional[Response],
        duration: float,
        client_ip: str,
        error: Optional[str] = None
    ):
        """Log access information"""

        status_code = response.status_code if response else ResponseStatus.INTERNAL_ERROR.value
        content_length = response.headers.get("content-length", "-") if response else "-"

        # The query carries the upload signature, only log whether one was sent
        log_data = {
            "method": request.method,
            "path": str(request.url.path),
            "signed": "v" in request.query_params,
            "status": status_code,
            "size": content_length,
            "duration": round(duration * 1000, 2),  # milliseconds
            "ip": client_ip,
            "user_agent": request.headers.get("user-agent", "-"),
        }

        if error:
            log_data["error"] = error

        # Log level based on status code
        if status_code >= 500:
            logger.error(f"ACCESS {log_data}")
        elif status_code >= 400:
            logger.warning(f"ACCESS {log_data}")
        else:
            logger.info(f"ACCESS {log_data}")


class ExceptionHandlerMiddleware(BaseHTTPMiddleware):
    """Keep unexpected request errors from reaching the server"""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        try:
            return await call_next(request)

        except Exception as e:
            logger.exception(f"Unhandled exception: {request.method} {request.url.path} - {e}")
            return PlainTextResponse(
                "500 Internal Server Error",
                status_code=ResponseStatus.INTERNAL_ERROR.value
            )


def setup_middleware(app: FastAPI):
    """Setup all middleware for the application"""

    # Added last runs first: access log wraps the exception handler
    app.add_middleware(ExceptionHandlerMiddleware)
    app.add_middleware(AccessLogMiddleware)

    logger.debug("Middleware setup complete")
