"""
Habit Tracker Backend - Rate Limiting Middleware
================================================

What:  Per-IP sliding-window limiter for the API (default 300 requests per
       15 minutes, RATE_LIMIT_REQUESTS / RATE_LIMIT_WINDOW).
How:   Each IP keeps a deque of request timestamps. Timestamps older than the
       window are dropped on every request; at the limit the request is
       answered with 429 and a Retry-After header.

State is in-process, so each worker process limits independently.
"""

import logging
import time
from collections import deque
from typing import Callable, Deque, Dict, Optional

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.types import ASGIApp

from habit_tracker.config import settings
from habit_tracker.exceptions import RateLimitExceededError

logger = logging.getLogger(__name__)


class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    Args:
        max_requests:  Requests allowed per window (defaults to settings)
        window:        Window length in seconds (defaults to settings)
        clock:         Time source, swappable in tests
    """

    EXCLUDED_PATHS = {"/api/health", "/docs", "/openapi.json", "/redoc"}

    # Inactive IPs are purged once this many are tracked
    CLEANUP_THRESHOLD = 1000

    def __init__(
        self,
        app: ASGIApp,
        max_requests: Optional[int] = None,
        window: Optional[int] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        super().__init__(app)
        self.max_requests = max_requests or settings.rate_limit_requests
        self.window = window or settings.rate_limit_window
        self._clock = clock
        self._requests: Dict[str, Deque[float]] = {}

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        if request.url.path in self.EXCLUDED_PATHS:
            return await call_next(request)

        client_ip = request.client.host if request.client else "unknown"
        now = self._clock()
        window_start = now - self.window

        timestamps = self._requests.setdefault(client_ip, deque())
        while timestamps and timestamps[0] <= window_start:
            timestamps.popleft()

        if len(timestamps) >= self.max_requests:
            retry_after = int(timestamps[0] + self.window - now) + 1
            logger.warning(
                "Rate limit exceeded for IP %s: %d requests in %ds window",
                client_ip,
                len(timestamps),
                self.window,
            )
            # Raised exceptions don't reach the app's handlers from here,
            # so the error body is rendered in place
            exc = RateLimitExceededError(retry_after=retry_after)
            return JSONResponse(
                status_code=exc.status_code,
                content={
                    "error": exc.error_code,
                    "message": exc.message,
                    "details": exc.context,
                    "request_id": None,
                },
                headers={"Retry-After": str(retry_after)},
            )

        timestamps.append(now)
        if len(self._requests) > self.CLEANUP_THRESHOLD:
            self._cleanup_inactive_ips(window_start)

        return await call_next(request)

    def _cleanup_inactive_ips(self, window_start: float) -> None:
        inactive = [
            ip for ip, stamps in self._requests.items() if not stamps or stamps[-1] <= window_start
        ]
        for ip in inactive:
            del self._requests[ip]
        if inactive:
            logger.debug("Cleaned up %d inactive IP entries", len(inactive))
