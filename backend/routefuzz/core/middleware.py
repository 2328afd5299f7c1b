"""
Custom middleware for monitoring and error handling.
"""
import time
import logging
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from routefuzz.core.monitoring import record_http_request

logger = logging.getLogger(__name__)

SLOW_REQUEST_SECONDS = 5.0


class MonitoringMiddleware(BaseHTTPMiddleware):
    """Middleware for request monitoring."""

    async def dispatch(self, request: Request, call_next):
        start_time = time.time()

        response = await call_next(request)

        duration = time.time() - start_time
        endpoint = request.url.path
        method = request.method

        record_http_request(method, endpoint, response.status_code, duration)

        # generation runs synchronously inside the request
        if duration > SLOW_REQUEST_SECONDS:
            logger.warning(
                f"Slow request: {method} {endpoint} took {duration:.2f}s"
            )

        return response


class ErrorHandlingMiddleware(BaseHTTPMiddleware):
    """Middleware for error handling."""

    async def dispatch(self, request: Request, call_next):
        try:
            return await call_next(request)
        except Exception as e:
            logger.error(
                f"Unhandled error on {request.method} {request.url.path}: {str(e)}",
                exc_info=True
            )
            # Re-raise to let FastAPI handle it
            raise
