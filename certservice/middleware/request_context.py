"""Request ID propagation and the per-request access log line.

The request ID lives in a ContextVar, not a thread-local: concurrent
requests share the event loop thread, but each task sees its own copy.
A root-logger filter copies it onto every LogRecord, so a verification
log line from the service layer can be joined to its access log line.

The same ID is also folded into the caller_context recorded with each
verification attempt (see api/dependencies.py).
"""

from __future__ import annotations

import logging
import time
import uuid
from contextvars import ContextVar

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

logger = logging.getLogger(__name__)

request_id_var: ContextVar[str] = ContextVar("request_id", default="-")

# Client-supplied IDs longer than this are replaced, not trusted
_MAX_REQUEST_ID_LENGTH = 64


class _RequestContextFilter(logging.Filter):
    """Attach the current request_id to every record, whichever logger emits it."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = request_id_var.get("-")  # type: ignore[attr-defined]
        return True


root_logger = logging.getLogger()
if not any(isinstance(f, _RequestContextFilter) for f in root_logger.filters):
    root_logger.addFilter(_RequestContextFilter())


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Assign a request ID, time the request and log one summary line."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        supplied = request.headers.get("x-request-id", "")
        req_id = (
            supplied
            if supplied and len(supplied) <= _MAX_REQUEST_ID_LENGTH
            else str(uuid.uuid4())
        )
        token = request_id_var.set(req_id)

        start = time.monotonic()
        try:
            response = await call_next(request)
        finally:
            request_id_var.reset(token)
        duration_ms = round((time.monotonic() - start) * 1000, 1)

        # Query strings are left out: /v1/verify carries the code there
        logger.info(
            "%s %s -> %d (%.1fms)",
            request.method,
            request.url.path,
            response.status_code,
            duration_ms,
            extra={
                "request_id": req_id,
                "method": request.method,
                "path": request.url.path,
                "status_code": response.status_code,
                "duration_ms": duration_ms,
            },
        )

        response.headers["X-Request-ID"] = req_id
        return response
