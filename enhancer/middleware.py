"""
HTTP middleware: request logging, security headers, a fixed-window
rate limiter keyed by client address and a catch-all for unexpected errors.
"""

import logging
import math
import time
from typing import Callable

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.types import ASGIApp

from enhancer.models import ErrorResponse

logger = logging.getLogger(__name__)


SECURITY_HEADERS: dict[str, str] = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "SAMEORIGIN",
    "Referrer-Policy": "no-referrer",
    "X-DNS-Prefetch-Control": "off",
    "Cross-Origin-Opener-Policy": "same-origin",
}


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        logger.info("%s %s", request.method, request.url.path)
        return await call_next(request)


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        response = await call_next(request)
        for name, value in SECURITY_HEADERS.items():
            response.headers.setdefault(name, value)
        return response


class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    Allow at most ``max_requests`` per client in each fixed window of
    ``window_seconds``. Counters reset when a client's window expires.

    Every response carries ``RateLimit-Limit``, ``RateLimit-Remaining`` and
    ``RateLimit-Reset`` headers; requests over the limit get a 429.
    """

    def __init__(
        self,
        app: ASGIApp,
        max_requests: int,
        window_seconds: float,
        clock: Callable[[], float] = time.monotonic,
    ):
        super().__init__(app)
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.clock = clock
        self._windows: dict[str, tuple[float, int]] = {}
        self._last_sweep = clock()

    def _sweep(self, now: float) -> None:
        """Drop every expired window; runs at most once per window period."""
        if now - self._last_sweep < self.window_seconds:
            return
        self._windows = {
            key: (start, count)
            for key, (start, count) in self._windows.items()
            if now - start < self.window_seconds
        }
        self._last_sweep = now

    def _hit(self, key: str) -> tuple[int, float]:
        """Count one request for ``key``; return (count, window reset time)."""
        now = self.clock()
        self._sweep(now)
        start, count = self._windows.get(key, (now, 0))
        if now - start >= self.window_seconds:
            start, count = now, 0
        count += 1
        self._windows[key] = (start, count)
        return count, start + self.window_seconds

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        key = request.client.host if request.client else "unknown"
        count, reset_at = self._hit(key)
        remaining = max(self.max_requests - count, 0)
        headers = {
            "RateLimit-Limit": str(self.max_requests),
            "RateLimit-Remaining": str(remaining),
            "RateLimit-Reset": str(max(math.ceil(reset_at - self.clock()), 0)),
        }

        if count > self.max_requests:
            logger.warning("Rate limit exceeded for %s", key)
            return JSONResponse(
                status_code=429,
                content=ErrorResponse(
                    error="Too many requests, please try again later."
                ).model_dump(),
                headers=headers,
            )

        response = await call_next(request)
        response.headers.update(headers)
        return response


class UnhandledErrorMiddleware(BaseHTTPMiddleware):
    """
    Turn unexpected exceptions into a 500 ``{"error": ...}`` response.

    Added innermost so CORS and security headers still apply to it.
    """

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        try:
            return await call_next(request)
        except Exception as exc:
            logger.exception("Unhandled error: %s", exc)
            return JSONResponse(
                status_code=500,
                content=ErrorResponse(error="Internal Server Error").model_dump(),
            )
