"""
Request context middleware.

Assigns every request an id (reusing a client-supplied X-Request-ID), binds it
to the structlog context for the lifetime of the request, and writes one
structured access log line when the response is ready.
"""

import time
import uuid
from collections.abc import Awaitable, Callable

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from gatekeeper.core.logging import clear_request_context, get_logger, set_request_context

logger = get_logger("gatekeeper.requests")

# Liveness probes would drown out real traffic
EXCLUDED_PATHS = {"/health", "/favicon.ico"}

REQUEST_ID_HEADER = "X-Request-ID"


class RequestContextMiddleware(BaseHTTPMiddleware):
    async def dispatch(
        self,
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        set_request_context(request_id)
        start_time = time.perf_counter()

        try:
            response = await call_next(request)
        except Exception as e:
            logger.error(
                "request_failed",
                method=request.method,
                path=request.url.path,
                duration_ms=round((time.perf_counter() - start_time) * 1000, 2),
                error=str(e),
                error_type=type(e).__name__,
            )
            clear_request_context()
            raise

        response.headers[REQUEST_ID_HEADER] = request_id

        if request.url.path not in EXCLUDED_PATHS:
            duration_ms = round((time.perf_counter() - start_time) * 1000, 2)
            if response.status_code >= 500:
                log = logger.error
            elif response.status_code >= 400:
                log = logger.warning
            else:
                log = logger.info
            log(
                "request_completed",
                method=request.method,
                path=request.url.path,
                status_code=response.status_code,
                duration_ms=duration_ms,
                client_ip=request.client.host if request.client else "unknown",
            )

        clear_request_context()
        return response
