from typing import Optional
import logging

import redis

from ...application.ports.rate_limiter import RateLimiter

logger = logging.getLogger(__name__)


class RedisRateLimiter(RateLimiter):
    """Fixed window limiter shared by every worker pointing at the same Redis."""

    def __init__(self, url: Optional[str] = None, prefix: str = "otp-rl:", client: Optional["redis.Redis"] = None) -> None:
        if client is None and not url:
            raise ValueError("Either a Redis url or client is required")
        self.client = client or redis.Redis.from_url(url)
        self.prefix = prefix

    def allow(self, key: str, max_requests: int, window_seconds: int) -> bool:
        rk = f"{self.prefix}{key}:{window_seconds}"
        pipe = self.client.pipeline()
        # The TTL is set only when the window opens; later hits never extend it
        pipe.set(rk, 0, ex=window_seconds, nx=True)
        pipe.incr(rk, 1)
        _, count = pipe.execute()
        return int(count) <= int(max_requests)
