"""Sliding-window rate limiting keyed by client address and path."""

import asyncio
import time
from typing import Callable, Dict, List, Optional

from fastapi import Request
from fastapi.responses import JSONResponse
from structlog import get_logger

logger = get_logger()

EXEMPT_PATHS = frozenset({"/health", "/metrics"})


class RateLimitExceeded(Exception):
    """Raised when a key has used up its window."""

    def __init__(self, key: str, retry_after: float):
        super().__init__(f"Rate limit exceeded for {key}")
        self.key = key
        self.retry_after = retry_after


class RateLimiter:
    """Allows ``rate_limit`` requests per key within any ``time_window`` seconds."""

    def __init__(self, rate_limit: int = 50, time_window: int = 60, clock: Callable[[], float] = time.monotonic):
        self.rate_limit = rate_limit
        self.time_window = time_window
        self._clock = clock
        self.requests: Dict[str, List[float]] = {}
        self._lock = asyncio.Lock()
        self._cleanup_task: Optional[asyncio.Task] = None
        logger.info("rate_limiter_initialized", rate_limit=rate_limit, time_window=time_window)

    async def start(self) -> None:
        if self._cleanup_task is None:
            self._cleanup_task = asyncio.create_task(self._periodic_cleanup())

    async def stop(self) -> None:
        if self._cleanup_task is not None:
            self._cleanup_task.cancel()
            try:
                await self._cleanup_task
            except asyncio.CancelledError:
                pass
            self._cleanup_task = None

    def _prune(self, key: str, now: float) -> List[float]:
        cutoff = now - self.time_window
        kept = [ts for ts in self.requests.get(key, []) if ts > cutoff]
        if kept:
            self.requests[key] = kept
        else:
            self.requests.pop(key, None)
        return kept

    async def _periodic_cleanup(self) -> None:
        while True:
            await asyncio.sleep(self.time_window)
            async with self._lock:
                now = self._clock()
                for key in list(self.requests):
                    self._prune(key, now)

    async def check(self, key: str) -> None:
        """Record a request for ``key`` or raise :class:`RateLimitExceeded`."""
        async with self._lock:
            now = self._clock()
            window = self._prune(key, now)
            if len(window) >= self.rate_limit:
                retry_after = max(0.0, window[0] + self.time_window - now)
                logger.warning("rate_limit_exceeded", key=key, current_requests=len(window))
                raise RateLimitExceeded(key, retry_after)
            self.requests.setdefault(key, []).append(now)

    async def remaining(self, key: str) -> int:
        async with self._lock:
            return max(0, self.rate_limit - len(self._prune(key, self._clock())))


def client_key(request: Request) -> str:
    client_ip = request.client.host if request.client else "unknown"
    return f"{client_ip}:{request.url.path}"


async def enforce_rate_limit(request: Request, rate_limiter: Optional[RateLimiter]) -> Optional[JSONResponse]:
    """Return a 429 response when the request is over its limit, else None."""
    if rate_limiter is None or request.url.path in EXEMPT_PATHS:
        return None
    try:
        await rate_limiter.check(client_key(request))
    except RateLimitExceeded as e:
        return JSONResponse(
            status_code=429,
            content={"error": "Too many requests. Please slow down."},
            headers={"Retry-After": str(int(e.retry_after) + 1)},
        )
    return None
