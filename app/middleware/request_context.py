"""Request context middleware.

Assigns every request an id (``X-Request-ID``, generated when the client
sends none), times it, and logs one summary line on completion.

The id lives in a ``ContextVar`` rather than a thread-local: concurrent
requests share the event-loop thread, and each asyncio task gets its own
copy of the context.  RequestContextFilter (app/core/logging.py) copies it
onto every LogRecord emitted while the request is handled.
"""

from __future__ import annotations

import logging
import time
import uuid

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from app.core.logging import learner_id_var, request_id_var

logger = logging.getLogger(__name__)

__all__ = ["RequestContextMiddleware", "learner_id_var", "request_id_var"]


class RequestContextMiddleware(BaseHTTPMiddleware):
    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        req_id = request.headers.get("x-request-id") or str(uuid.uuid4())
        request_id_var.set(req_id)
        learner_id_var.set(None)

        start = time.monotonic()
        response = await call_next(request)
        duration_ms = round((time.monotonic() - start) * 1000, 1)

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
