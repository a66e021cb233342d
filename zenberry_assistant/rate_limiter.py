"""
Per-client rate limiting for the chat endpoints.

Keeps model spend bounded: each client address may make a small fixed number
of chat requests per window. Single-process, in-memory sliding window.
"""
import asyncio
import logging
import math
import time
from collections import defaultdict, deque
from typing import Callable, Deque, Dict, Optional, Tuple

from fastapi import HTTPException, Request

logger = logging.getLogger(__name__)


class InMemoryRateLimiter:
    def __init__(self, max_requests: int = 10, window_seconds: int = 60, clock: Callable[[], float] = time.monotonic):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock
        self._requests: Dict[str, Deque[float]] = defaultdict(deque)
        self._lock = asyncio.Lock()
        self._last_sweep = clock()

    async def hit(self, key: str) -> Tuple[bool, int]:
        """
        Records a request for `key` if it is allowed.

        Returns:
            Tuple of (is_allowed, retry_after_seconds)
        """
        async with self._lock:
            now = self._clock()
            cutoff = now - self.window_seconds
            window = self._requests[key]
            while window and window[0] <= cutoff:
                window.popleft()

            if len(window) >= self.max_requests:
                retry_after = max(1, math.ceil(window[0] + self.window_seconds - now))
                return False, retry_after

            window.append(now)
            if now - self._last_sweep >= self.window_seconds:
                self._cleanup(cutoff)
                self._last_sweep = now
            return True, 0

    def _cleanup(self, cutoff: float) -> None:
        stale = [k for k, times in self._requests.items() if not times or times[-1] <= cutoff]
        for k in stale:
            del self._requests[k]

    def reset(self, key: Optional[str] = None) -> None:
        if key is None:
            self._requests.clear()
        else:
            self._requests.pop(key, None)


def client_key(request: Request, trust_proxy_headers: bool = False) -> str:
    """Forwarded headers are honoured only when the service sits behind a trusted proxy."""
    if trust_proxy_headers:
        forwarded = request.headers.get("x-forwarded-for")
        if forwarded:
            return forwarded.split(",")[0].strip()
        real_ip = request.headers.get("x-real-ip")
        if real_ip:
            return real_ip.strip()
    return request.client.host if request.client else "unknown"


async def enforce_chat_rate_limit(request: Request) -> None:
    """FastAPI dependency guarding the chat endpoints."""
    container = request.app.state.container
    limiter: InMemoryRateLimiter = container.rate_limiter
    key = client_key(request, container.trust_proxy_headers)
    allowed, retry_after = await limiter.hit(key)
    if not allowed:
        logger.warning("Rate limit exceeded for %s", key)
        raise HTTPException(
            status_code=429,
            detail="Too many chat requests. Please wait a moment and try again.",
            headers={"Retry-After": str(retry_after)},
        )
