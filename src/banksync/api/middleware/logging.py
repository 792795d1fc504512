"""Request logging middleware with sensitive-data filtering.

This module provides structured logging for all API requests with:
- Unique request IDs for tracing
- Request duration tracking
- Household context (when provided)
- Filtering of card numbers, IDs and credential values to prevent leaks
"""

import logging
import time
import uuid
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from banksync.utils.logger import filter_sensitive

logger = logging.getLogger(__name__)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Middleware to log all HTTP requests with sensitive-data filtering."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        """Process request and log details.

        Args:
            request: Incoming HTTP request
            call_next: Next middleware or route handler

        Returns:
            HTTP response
        """
        request_id = str(uuid.uuid4())
        request.state.request_id = request_id

        start_time = time.time()
        household_id = request.headers.get("x-household-id")

        logger.info(
            "Request started",
            extra={
                "request_id": request_id,
                "household_id": household_id,
                "method": request.method,
                "path": filter_sensitive(str(request.url.path)),
                "client_ip": request.client.host if request.client else None,
            },
        )

        try:
            response = await call_next(request)
        except Exception as exc:
            duration_ms = int((time.time() - start_time) * 1000)
            logger.error(
                "Request failed",
                extra={
                    "request_id": request_id,
                    "household_id": household_id,
                    "method": request.method,
                    "path": filter_sensitive(str(request.url.path)),
                    "duration_ms": duration_ms,
                    "error": filter_sensitive(str(exc)),
                },
            )
            raise

        duration_ms = int((time.time() - start_time) * 1000)

        response.headers["X-Request-ID"] = request_id

        logger.info(
            "Request completed",
            extra={
                "request_id": request_id,
                "household_id": household_id,
                "method": request.method,
                "path": filter_sensitive(str(request.url.path)),
                "status_code": response.status_code,
                "duration_ms": duration_ms,
            },
        )

        return response
