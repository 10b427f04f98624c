"""
Per-client request throttling.

Two sliding windows: a tight one for the credential endpoints (login, register)
and a general one for everything else. State is in process memory, so each
worker counts on its own.
"""
import logging
import time
from collections import deque
from typing import Deque, Dict, Tuple

from fastapi import Request, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from pharmacare.core.config import settings

logger = logging.getLogger(__name__)

EXEMPT_PATHS = ("/health", "/docs", "/redoc", "/openapi.json")
CREDENTIAL_PATHS = ("/auth/login", "/auth/register")


class SlidingWindow:
    """At most `limit` hits per key in any `window`-second span."""

    def __init__(self, limit: int, window: int):
        self.limit = limit
        self.window = window
        self.hits: Dict[str, Deque[float]] = {}
        self._swept_at = time.monotonic()

    def hit(self, key: str) -> Tuple[bool, int]:
        """Record one request for `key`. Returns (allowed, remaining)."""
        now = time.monotonic()
        if now - self._swept_at > max(self.window * 5, 60):
            self._sweep(now)

        bucket = self.hits.setdefault(key, deque())
        while bucket and bucket[0] <= now - self.window:
            bucket.popleft()

        if len(bucket) >= self.limit:
            return False, 0
        bucket.append(now)
        return True, self.limit - len(bucket)

    def _sweep(self, now: float) -> None:
        stale = [key for key, bucket in self.hits.items() if not bucket or bucket[-1] <= now - self.window]
        for key in stale:
            del self.hits[key]
        self._swept_at = now
        logger.debug(f"[RateLimit] swept {len(stale)} idle clients, {len(self.hits)} active")


general_window = SlidingWindow(settings.RATE_LIMIT_REQUESTS, settings.RATE_LIMIT_WINDOW_SECONDS)
credential_window = SlidingWindow(settings.RATE_LIMIT_AUTH_REQUESTS, settings.RATE_LIMIT_WINDOW_SECONDS)


def _client_key(request: Request) -> str:
    # Signed-in callers share a NAT often; key them by token prefix instead of IP
    auth = request.headers.get("authorization", "")
    if auth.startswith("Bearer "):
        return f"token:{auth[7:23]}"
    return f"ip:{request.client.host if request.client else 'unknown'}"


class RateLimitMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        path = request.url.path
        if not settings.RATE_LIMIT_ENABLED or path in EXEMPT_PATHS:
            return await call_next(request)

        window = credential_window if path in CREDENTIAL_PATHS else general_window
        key = _client_key(request)
        allowed, remaining = window.hit(key)

        if not allowed:
            logger.warning(f"[RateLimit] {key} throttled on {request.method} {path}")
            # Returned, not raised: BaseHTTPMiddleware sits outside the exception handlers
            return JSONResponse(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                content={
                    "success": False,
                    "error": "rate_limited",
                    "detail": f"Too many requests. Try again in {window.window} seconds.",
                },
                headers={"Retry-After": str(window.window), "X-RateLimit-Remaining": "0"},
            )

        response = await call_next(request)
        response.headers["X-RateLimit-Limit"] = str(window.limit)
        response.headers["X-RateLimit-Remaining"] = str(remaining)
        return response
