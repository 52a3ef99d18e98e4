# spentiva/core/rate_limit.py
"""In-process sliding-window rate limiters used as router dependencies."""
import threading
import time
from collections import defaultdict, deque
from typing import Callable, Deque, Dict, Optional

from fastapi import HTTPException, Request, status

from spentiva.core.config import settings

TOO_MANY = "Too many requests, please try again later."


class RateLimiter:
    def __init__(self, name: str, max_requests: int, window_seconds: int, clock: Callable[[], float] = time.monotonic):
        self.name = name
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock
        self._hits: Dict[str, Deque[float]] = defaultdict(deque)
        self._lock = threading.Lock()
        self._last_sweep = clock()

    def hit(self, key: str) -> Optional[int]:
        """Record a request for ``key``; returns seconds to wait when over the limit, else None."""
        now = self._clock()
        with self._lock:
            if now - self._last_sweep >= self.window_seconds:
                self._sweep(now)
            q = self._hits[key]
            while q and q[0] <= now - self.window_seconds:
                q.popleft()
            if len(q) >= self.max_requests:
                return max(1, int(q[0] + self.window_seconds - now))
            q.append(now)
        return None

    def _sweep(self, now: float) -> None:
        # forget clients whose whole history is outside the window
        cutoff = now - self.window_seconds
        for key in [k for k, q in self._hits.items() if not q or q[-1] <= cutoff]:
            del self._hits[key]
        self._last_sweep = now

    def reset(self) -> None:
        with self._lock:
            self._hits.clear()

    def __call__(self, request: Request) -> None:
        if not settings.RATE_LIMIT_ENABLED:
            return
        client = request.client.host if request.client else "unknown"
        retry_after = self.hit(f"{self.name}:{client}")
        if retry_after is not None:
            raise HTTPException(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                detail=TOO_MANY,
                headers={"Retry-After": str(retry_after)},
            )


api_limiter = RateLimiter("api", 100, 15 * 60)
auth_limiter = RateLimiter("auth", 5, 15 * 60)
otp_limiter = RateLimiter("otp", 3, 10 * 60)
ai_limiter = RateLimiter("ai", 10, 60)
