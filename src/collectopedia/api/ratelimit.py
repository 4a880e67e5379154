"""Sliding-window ingress rate limiting keyed by client IP."""

from __future__ import annotations

import asyncio
import logging
import time
from collections import deque
from typing import Callable

from fastapi import Request
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)

LIMITED_PREFIXES = ("/api/ebay",)


class SlidingWindowLimiter:
    """Allows at most ``max_requests`` per key in any ``window_seconds`` span.

    Keeps a deque of accepted request timestamps per key; timestamps older
    than the window are dropped on each check. Keys whose deque empties are
    forgotten, and every key is swept once per window, so memory follows
    the number of recently active clients.
    """

    def __init__(
        self,
        max_requests: int,
        window_seconds: float,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock
        self._hits: dict[str, deque[float]] = {}
        self._last_sweep = clock()
        self._lock = asyncio.Lock()

    @property
    def tracked_keys(self) -> int:
        return len(self._hits)

    async def hit(self, key: str) -> tuple[bool, int]:
        """Record a request for key if allowed.

        Returns:
            (allowed, remaining) where remaining counts requests still
            permitted in the current window.
        """
        async with self._lock:
            now = self._clock()
            window_start = now - self.window_seconds
            if now - self._last_sweep >= self.window_seconds:
                self._sweep(window_start)
                self._last_sweep = now

            hits = self._hits.get(key)
            if hits is None:
                hits = self._hits[key] = deque()
            _expire(hits, window_start)

            if len(hits) >= self.max_requests:
                return False, 0

            hits.append(now)
            return True, self.max_requests - len(hits)

    def _sweep(self, window_start: float) -> None:
        for key in list(self._hits):
            hits = self._hits[key]
            _expire(hits, window_start)
            if not hits:
                del self._hits[key]

    def reset(self) -> None:
        self._hits.clear()


def _expire(hits: deque[float], window_start: float) -> None:
    while hits and hits[0] <= window_start:
        hits.popleft()


def client_key(request: Request, trust_forwarded: bool = False) -> str:
    """Client IP of the request.

    X-Forwarded-For is client-supplied, so its first hop is only used when
    the service sits behind a proxy that rewrites the header.
    """
    if trust_forwarded:
        forwarded = request.headers.get("X-Forwarded-For")
        if forwarded:
            return forwarded.split(",")[0].strip()
    if request.client:
        return request.client.host
    return "unknown"


async def rate_limit_middleware(request: Request, call_next):  # type: ignore[no-untyped-def]
    """Middleware: reject price requests over the per-IP window with 429."""
    if not request.url.path.startswith(LIMITED_PREFIXES):
        return await call_next(request)

    state = request.app.state.app_state
    limiter: SlidingWindowLimiter | None = state.limiter
    if limiter is None:
        return await call_next(request)

    key = client_key(request, trust_forwarded=state.config.rate_limit.trust_forwarded)
    allowed, remaining = await limiter.hit(key)
    if not allowed:
        logger.warning("Rate limit exceeded for client %s on %s", key, request.url.path)
        return JSONResponse(
            status_code=429,
            content={"error": "Too many requests", "detail": "Rate limit exceeded"},
            headers={
                "X-RateLimit-Limit": str(limiter.max_requests),
                "X-RateLimit-Remaining": "0",
                "Retry-After": str(int(limiter.window_seconds)),
            },
        )

    response = await call_next(request)
    response.headers["X-RateLimit-Limit"] = str(limiter.max_requests)
    response.headers["X-RateLimit-Remaining"] = str(remaining)
    return response
