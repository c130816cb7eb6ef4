"""
Request Context Middleware

Assigns every request an ID (taken from ``X-Request-ID`` when the caller
sends one), binds it to the logging context so every log line of the request
carries it, echoes it on the response and logs the request outcome.
"""

import time
import uuid
from collections.abc import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from comicwise.config.constants import HEADER_REQUEST_ID
from comicwise.core.logging.logger import clear_request_id, get_logger, set_request_id

logger = get_logger(__name__)


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Request ID correlation and request/response logging."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get(HEADER_REQUEST_ID) or str(uuid.uuid4())
        set_request_id(request_id)
        start_time = time.perf_counter()

        try:
            response = await call_next(request)
        except Exception as e:
            logger.error(
                f"Request failed: {request.method} {request.url.path}",
                method=request.method,
                path=request.url.path,
                error=str(e),
                error_type=type(e).__name__,
                duration_seconds=round(time.perf_counter() - start_time, 4),
            )
            raise
        finally:
            clear_request_id()

        response.headers[HEADER_REQUEST_ID] = request_id
        logger.info(
            f"Request completed: {request.method} {request.url.path}",
            request_id=request_id,
            method=request.method,
            path=request.url.path,
            status_code=response.status_code,
            duration_seconds=round(time.perf_counter() - start_time, 4),
        )
        return response


def add_request_context_middleware(app) -> None:
    app.add_middleware(RequestContextMiddleware)
    logger.info("Request context middleware registered")
