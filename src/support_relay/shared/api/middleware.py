"""
Shared API Middleware
======================

Per-request correlation ids, access logging and the catch-all 500 handler.
"""

import time
import uuid
from datetime import datetime, timezone
from typing import Awaitable, Callable

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from support_relay.core import ApplicationException
from support_relay.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)

CORRELATION_HEADER = "X-Correlation-ID"

NextHandler = Callable[[Request], Awaitable[Response]]


def _elapsed_ms(started: float) -> int:
    return int((time.perf_counter() - started) * 1000)


class CorrelationIDMiddleware(BaseHTTPMiddleware):
    """Reuses the caller's correlation id or mints one, and echoes it back."""

    async def dispatch(self, request: Request, call_next: NextHandler) -> Response:
        request.state.correlation_id = request.headers.get(CORRELATION_HEADER) or uuid.uuid4().hex
        response = await call_next(request)
        response.headers[CORRELATION_HEADER] = request.state.correlation_id
        return response


class LoggingMiddleware(BaseHTTPMiddleware):
    """One access-log record per request, including failed ones."""

    async def dispatch(self, request: Request, call_next: NextHandler) -> Response:
        started = time.perf_counter()
        request_info = {
            "correlation_id": getattr(request.state, "correlation_id", None),
            "method": request.method,
            "path": request.url.path,
        }

        try:
            response = await call_next(request)
        except Exception as e:
            logger.error(
                "Request failed",
                extra={**request_info, "error": str(e), "response_time_ms": _elapsed_ms(started)}
            )
            raise

        logger.info(
            "Request completed",
            extra={
                **request_info,
                "status_code": response.status_code,
                "response_time_ms": _elapsed_ms(started)
            }
        )
        return response


async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Turn anything the routes did not handle into a JSON 500.

    The error text and ``ApplicationException.details`` are only included
    when the service runs in the development environment.
    """
    correlation_id = getattr(request.state, "correlation_id", None)

    logger.error(
        "Unhandled exception",
        extra={
            "correlation_id": correlation_id,
            "method": request.method,
            "path": request.url.path,
            "error_type": type(exc).__name__,
            "error": str(exc)
        }
    )

    settings = getattr(request.app.state, "settings", None)
    expose = getattr(settings, "environment", None) == "development"
    details = exc.details if isinstance(exc, ApplicationException) else None

    return JSONResponse(
        status_code=500,
        content={
            "detail": "Internal server error",
            "correlation_id": correlation_id,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "debug_info": str(exc) if expose else None,
            "error_details": details if expose else None
        }
    )
