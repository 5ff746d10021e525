"""
Habit Tracker Backend - Request ID Middleware
=============================================

What:  Assigns an ID to each request, returns it as X-Request-ID, and makes it
       available to every log record emitted while the request is handled.
How:   The ID lives in a ContextVar, so concurrent requests on one event loop
       each see their own value. RequestIDLogFilter copies it onto log
       records as `request_id` (installed on the root handler by
       main.setup_logging).

A client-supplied X-Request-ID is kept, which lets a frontend correlate its
own error reports with server logs.
"""

import logging
import uuid
from contextvars import ContextVar

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

request_id_var: ContextVar[str] = ContextVar("request_id", default="")


class RequestIDLogFilter(logging.Filter):
    """Adds `record.request_id` ("-" outside a request)."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = request_id_var.get("") or "-"
        return True


class RequestIDMiddleware(BaseHTTPMiddleware):
    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        # 8 hex chars is plenty for correlation and keeps log lines short
        rid = request.headers.get("X-Request-ID") or uuid.uuid4().hex[:8]
        token = request_id_var.set(rid)
        request.state.request_id = rid
        try:
            response = await call_next(request)
        finally:
            request_id_var.reset(token)

        response.headers["X-Request-ID"] = rid
        return response
