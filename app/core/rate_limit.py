import logging
import threading
import time

from fastapi import HTTPException, Request

from app.core import config

logger = logging.getLogger(__name__)


class RateLimiter:
    """Fixed-window request counter keyed by client address."""

    def __init__(self, max_requests: int, window_seconds: int):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._hits: dict[str, tuple[float, int]] = {}
        self._lock = threading.Lock()

    def hit(self, key: str, now: float | None = None) -> bool:
        """Count one request; False once the window's quota is used up."""
        now = time.monotonic() if now is None else now

        with self._lock:
            window_start, count = self._hits.get(key, (now, 0))
            if now - window_start >= self.window_seconds:
                window_start, count = now, 0

            count += 1
            self._hits[key] = (window_start, count)
            return count <= self.max_requests

    def reset(self):
        with self._lock:
            self._hits.clear()


limiter = RateLimiter(config.RATE_LIMIT_MAX_REQUESTS, config.RATE_LIMIT_WINDOW_SECONDS)


def rate_limiter(request: Request):
    if not config.RATE_LIMIT_ENABLED:
        return

    client_host = request.client.host if request.client else "unknown"
    if not limiter.hit(client_host):
        logger.warning(f"Rate limit exceeded for {client_host} on {request.url.path}")
        raise HTTPException(
            status_code=429,
            detail="Too many requests, please try again later.",
        )
