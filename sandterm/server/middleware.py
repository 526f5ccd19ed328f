"""
Request tracking middleware.

Provides:
- Request ID generation and propagation
- Request timing logs
"""

from __future__ import annotations

import logging
import time
import uuid
from contextvars import ContextVar
from typing import Awaitable, Callable, Optional

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

logger = logging.getLogger(__name__)

# Context variable for request tracking
request_id_var: ContextVar[Optional[str]] = ContextVar("request_id", default=None)


def get_request_id() -> Optional[str]:
    """Get the current request ID from context."""
    return request_id_var.get()


def generate_request_id() -> str:
    """Generate a unique request ID."""
    return f"req-{uuid.uuid4().hex[:16]}"


class RequestTrackingMiddleware(BaseHTTPMiddleware):
    """
    Assigns every request an ID (from X-Request-ID or generated), exposes it
    through request.state and a context variable, and logs request timing.
    """

    async def dispatch(
        self,
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        request_id = request.headers.get("X-Request-ID")
        if not request_id:
            request_id = generate_request_id()

        request_id_token = request_id_var.set(request_id)
        request.state.request_id = request_id

        start_time = time.time()

        try:
            response = await call_next(request)

            execution_time_ms = (time.time() - start_time) * 1000
            # Skip health checks
            if not request.url.path.startswith("/health"):
                logger.info(
                    "%s %s -> %d (%.1fms) request_id=%s",
                    request.method,
                    request.url.path,
                    response.status_code,
                    execution_time_ms,
                    request_id,
                )

            response.headers["X-Request-ID"] = request_id
            return response

        except Exception as e:
            execution_time_ms = (time.time() - start_time) * 1000
            logger.error(
                "%s %s failed with %s (%.1fms) request_id=%s",
                request.method,
                request.url.path,
                type(e).__name__,
                execution_time_ms,
                request_id,
            )
            raise

        finally:
            request_id_var.reset(request_id_token)
