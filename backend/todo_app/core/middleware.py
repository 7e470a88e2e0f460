"""
HTTP middleware for the request pipeline.

- SecurityHeadersMiddleware: hardening headers on every response
- RateLimitMiddleware: fixed-window request budget per client address
"""
from __future__ import annotations

import logging
import math
import time

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import PlainTextResponse

logger = logging.getLogger(__name__)

RATE_LIMIT_MESSAGE = "Too many requests, please try again later."

_CSP = (
    "default-src 'self'; "
    "base-uri 'self'; "
    "form-action 'self'; "
    "frame-ancestors 'self'; "
    "img-src 'self' data:; "
    "object-src 'none'; "
    "style-src 'self' 'unsafe-inline'"
)


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Adds helmet-style headers. The CSP is skipped on the GraphQL path so the IDE can load."""

    def __init__(self, app, hsts: bool = False, csp_exempt_prefix: str = "/graphql"):
        super().__init__(app)
        self.hsts = hsts
        self.csp_exempt_prefix = csp_exempt_prefix

    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        headers = response.headers
        headers.setdefault("X-Content-Type-Options", "nosniff")
        headers.setdefault("X-Frame-Options", "SAMEORIGIN")
        headers.setdefault("Referrer-Policy", "no-referrer")
        headers.setdefault("X-DNS-Prefetch-Control", "off")
        headers.setdefault("Cross-Origin-Resource-Policy", "cross-origin")
        headers.setdefault("Cross-Origin-Opener-Policy", "same-origin")
        if not request.url.path.startswith(self.csp_exempt_prefix):
            headers.setdefault("Content-Security-Policy", _CSP)
        if self.hsts:
            headers.setdefault("Strict-Transport-Security", "max-age=15552000; includeSubDomains")
        return response


class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    Fixed-window limiter keyed by client host.

    Counters live in process memory; each window starts at the first request
    a client makes after the previous window ended.
    """

    def __init__(self, app, max_requests: int, window_seconds: int, clock=time.monotonic):
        super().__init__(app)
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock
        # client -> (window_start, count)
        self._windows: dict[str, tuple[float, int]] = {}

    def _client_key(self, request: Request) -> str:
        client = request.client
        return client.host if client else "unknown"

    def _hit(self, key: str, now: float) -> tuple[bool, float]:
        start, count = self._windows.get(key, (now, 0))
        if now - start >= self.window_seconds:
            start, count = now, 0
        count += 1
        self._windows[key] = (start, count)
        retry_after = start + self.window_seconds - now
        return count <= self.max_requests, retry_after

    def _prune(self, now: float) -> None:
        expired = [k for k, (start, _) in self._windows.items() if now - start >= self.window_seconds]
        for k in expired:
            del self._windows[k]

    async def dispatch(self, request: Request, call_next):
        now = self._clock()
        if len(self._windows) > 10_000:
            self._prune(now)
        key = self._client_key(request)
        allowed, retry_after = self._hit(key, now)
        if not allowed:
            logger.warning("rate limit exceeded for %s on %s %s", key, request.method, request.url.path)
            return PlainTextResponse(
                RATE_LIMIT_MESSAGE,
                status_code=429,
                headers={"Retry-After": str(max(1, math.ceil(retry_after)))},
            )
        return await call_next(request)
