"""
HTTP request logging middleware.

Binds a request id into the structlog context so every log line emitted
while handling a dispatch call (orchestrator, bridge executor, RPC
retries) can be correlated, then logs one summary line per request.
"""

import time
import uuid
from typing import Iterable, Optional

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response
from starlette.types import ASGIApp

logger = structlog.stdlib.get_logger("http")

REQUEST_ID_HEADER = "x-request-id"


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log HTTP requests with timing and status info."""

    def __init__(self, app: ASGIApp, quiet_paths: Optional[Iterable[str]] = None) -> None:
        super().__init__(app)
        # Logged at debug
        self.quiet_paths = frozenset(quiet_paths or ("/healthz",))

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex[:12]

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(request_id=request_id, path=request.url.path)

        start = time.perf_counter()
        status_code = 500
        try:
            response = await call_next(request)
            status_code = response.status_code
            response.headers[REQUEST_ID_HEADER] = request_id
            return response
        finally:
            duration_ms = round((time.perf_counter() - start) * 1000, 1)

            if status_code >= 500:
                log = logger.error
            elif status_code >= 400:
                log = logger.warning
            elif request.url.path in self.quiet_paths:
                log = logger.debug
            else:
                log = logger.info

            log(
                "http_request",
                method=request.method,
                status=status_code,
                duration_ms=duration_ms,
            )
            structlog.contextvars.clear_contextvars()
