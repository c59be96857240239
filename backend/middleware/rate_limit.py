"""
In-memory rate limiting for order-creating endpoints.

Order submission and admin token issuance are the two write paths a script
could hammer. Each (client IP, route template) pair gets a sliding window.

Not shared between worker processes; run a single worker or put a proxy
limiter in front.
"""
import logging
import time
from collections import defaultdict, deque
from typing import Callable, Optional

from fastapi import Request

from config import settings
from domain.errors import RateLimitError

logger = logging.getLogger(__name__)


class RateLimiter:
    """
    Sliding-window limiter.

    Args:
        clock: Monotonic time source (tests pass a fake clock)
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._hits: dict[str, deque[float]] = defaultdict(deque)

    def _window(self, key: str, window_seconds: float) -> deque[float]:
        hits = self._hits[key]
        cutoff = self._clock() - window_seconds
        while hits and hits[0] <= cutoff:
            hits.popleft()
        return hits

    def hit(self, key: str, max_requests: int, window_seconds: float) -> bool:
        """Record a request; False when it would exceed the limit."""
        hits = self._window(key, window_seconds)
        if len(hits) >= max_requests:
            return False
        hits.append(self._clock())
        return True

    def remaining(self, key: str, max_requests: int, window_seconds: float) -> int:
        return max(0, max_requests - len(self._window(key, window_seconds)))

    def reset(self) -> None:
        self._hits.clear()


# Global limiter instance
_limiter = RateLimiter()


def get_limiter() -> RateLimiter:
    return _limiter


def rate_limit(max_requests: Optional[int] = None, window_seconds: Optional[int] = None):
    """
    FastAPI dependency factory.

    Defaults come from ORDERS_RATE_LIMIT / ORDERS_RATE_WINDOW_SECONDS and are
    read per request, so tests and .env changes apply without re-import.

    Usage:
        @router.post("/api/orders", dependencies=[Depends(rate_limit())])
    """
    async def _check_rate_limit(request: Request):
        limit = max_requests or settings.orders_rate_limit
        window = window_seconds or settings.orders_rate_window_seconds
        client_ip = request.client.host if request.client else "unknown"
        route = request.scope.get("route")
        # Route template, so /sessions/{session_id}/submit shares one window per client
        path = getattr(route, "path", None) or request.url.path
        key = f"{client_ip}:{path}"

        if not _limiter.hit(key, limit, window):
            logger.warning(f"Rate limit exceeded: {client_ip} on {request.url.path} ({limit}/{window}s)")
            raise RateLimitError(
                f"Too many requests. Maximum {limit} per {window} seconds.",
                details={"limit": limit, "window_seconds": window},
                headers={"Retry-After": str(window)},
            )

    return _check_rate_limit
