"""In-memory rate limiter for report endpoints.

Every report request is a full scan of the shop's orders, so report paths
get a token bucket per client.
"""

import logging
import math
import time
from dataclasses import dataclass
from typing import Callable, Optional

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse

logger = logging.getLogger(__name__)


@dataclass
class _Bucket:
    tokens: float
    updated_at: float


class RateLimiter:
    """Token bucket per client key: ``burst`` tokens, refilled at ``requests_per_minute``."""

    def __init__(
        self,
        requests_per_minute: int = 60,
        burst: int = 10,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.per_second = requests_per_minute / 60.0
        self.burst = burst
        self.clock = clock
        self._buckets: dict[str, _Bucket] = {}

    def _bucket(self, key: str) -> _Bucket:
        now = self.clock()
        bucket = self._buckets.get(key)
        if bucket is None:
            bucket = self._buckets[key] = _Bucket(tokens=self.burst, updated_at=now)
        else:
            refill = (now - bucket.updated_at) * self.per_second
            bucket.tokens = min(self.burst, bucket.tokens + refill)
            bucket.updated_at = now
        return bucket

    def allow(self, key: str) -> bool:
        bucket = self._bucket(key)
        if bucket.tokens < 1:
            return False
        bucket.tokens -= 1
        return True

    def remaining(self, key: str) -> int:
        return int(self._bucket(key).tokens)

    def retry_after(self, key: str) -> int:
        """Whole seconds until ``key`` has a token again."""
        missing = 1 - self._bucket(key).tokens
        if missing <= 0:
            return 0
        if not self.per_second:
            return 60
        return math.ceil(missing / self.per_second)

    def reset(self, key: Optional[str] = None) -> None:
        """Forget one client, or all of them."""
        if key is None:
            self._buckets.clear()
        else:
            self._buckets.pop(key, None)


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Throttles requests whose path starts with ``path_prefix``."""

    def __init__(
        self,
        app,
        requests_per_minute: int = 60,
        burst: int = 10,
        path_prefix: str = "/api/v1/reports",
        key_func=None,
    ):
        super().__init__(app)
        self.limiter = RateLimiter(requests_per_minute, burst)
        self.path_prefix = path_prefix
        self.key_func = key_func or self._default_key

    @staticmethod
    def _default_key(request: Request) -> str:
        forwarded = request.headers.get("X-Forwarded-For")
        if forwarded:
            return forwarded.split(",")[0].strip()
        return request.client.host if request.client else "unknown"

    async def dispatch(self, request: Request, call_next) -> Response:
        if not request.url.path.startswith(self.path_prefix):
            return await call_next(request)

        key = self.key_func(request)
        if not self.limiter.allow(key):
            logger.warning(f"Rate limit exceeded for {key} on {request.url.path}")
            return JSONResponse(
                status_code=429,
                content={"error": "Rate limit exceeded"},
                headers={"Retry-After": str(self.limiter.retry_after(key))},
            )

        response = await call_next(request)
        response.headers["X-RateLimit-Remaining"] = str(self.limiter.remaining(key))
        return response
