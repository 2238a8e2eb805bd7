from __future__ import annotations

import time
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass
from threading import Lock

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse, Response

from moodflix.core.config import rate_limit_settings

RECOMMEND_PATH = "/api/recommendations"


@dataclass
class _Window:
    hits: deque[float]


class SlidingWindowRateLimiter:
    """Very small in-process rate limiter.

    It guards the paid upstream calls (OpenRouter, TMDb) against accidental
    hammering rather than acting as a real quota system.

    Keys are derived from client IP + a logical bucket.
    """

    def __init__(self, *, clock: Callable[[], float] = time.time) -> None:
        self._clock = clock
        self._lock = Lock()
        self._windows: dict[str, _Window] = {}

    def allow(self, *, key: str, limit: int, window_s: float) -> tuple[bool, int]:
        now = self._clock()
        cutoff = now - window_s
        with self._lock:
            w = self._windows.get(key)
            if w is None:
                w = _Window(hits=deque())
                self._windows[key] = w

            while w.hits and w.hits[0] < cutoff:
                w.hits.popleft()

            if len(w.hits) >= limit:
                return False, 0

            w.hits.append(now)
            return True, max(0, limit - len(w.hits))


def _limited() -> JSONResponse:
    return JSONResponse(status_code=429, content={"error": "Rate limit exceeded"})


class RateLimitMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, *, limiter: SlidingWindowRateLimiter | None = None) -> None:
        super().__init__(app)
        self._limiter = limiter or SlidingWindowRateLimiter()
        # Defaults can be tuned via env vars (useful for tests/deploy).
        self._settings = rate_limit_settings()

    async def dispatch(self, request: Request, call_next) -> Response:
        client_ip = request.client.host if request.client else "unknown"

        ok, _remaining = self._limiter.allow(
            key=f"{client_ip}:global",
            limit=self._settings.global_limit,
            window_s=self._settings.global_window_s,
        )
        if not ok:
            return _limited()

        if request.url.path == RECOMMEND_PATH:
            ok, _remaining = self._limiter.allow(
                key=f"{client_ip}:recommend",
                limit=self._settings.recommend_limit,
                window_s=self._settings.recommend_window_s,
            )
            if not ok:
                return _limited()

        return await call_next(request)
