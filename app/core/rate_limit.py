from __future__ import annotations

# fixed-window rate limiting with Redis + in-memory fallback
import logging
import math
import time
from threading import Lock
from typing import Dict, Optional, Tuple

from fastapi import Request
from redis import Connection, ConnectionPool, Redis, SSLConnection
from redis.exceptions import RedisError

from app.core.config import settings

logger = logging.getLogger(__name__)

RATE_LIMIT_MESSAGE = "Too many requests. Please wait a moment and try again."


class RateLimitExceeded(Exception):
    """Raised by the route dependency, rendered as 429 by main.py"""

    def __init__(self, retry_after: int):
        self.retry_after = retry_after
        self.message = RATE_LIMIT_MESSAGE
        super().__init__(self.message)


class HybridRateLimiter:
    """Count hits per key in fixed windows, in Redis when reachable, else in memory"""

    def __init__(
        self,
        limit: int,
        window_seconds: int = 60,
        redis_host: Optional[str] = None,
        redis_port: Optional[int] = None,
        redis_ssl: bool = False,
        redis_max_connections: Optional[int] = None,
        recheck_interval: int = settings.REDIS_RECHECK_INTERVAL,
    ):
        self.limit = limit
        self.window_seconds = window_seconds
        self.recheck_interval = recheck_interval
        self.redis_available = False
        self._last_redis_check: Optional[float] = None
        self._memory: Dict[str, Tuple[int, float]] = {}
        self._memory_lock = Lock()
        if redis_host is None or redis_host.strip() == "":
            self.pool = None
            return
        self.pool = ConnectionPool(
            host=redis_host,
            port=redis_port,
            socket_connect_timeout=0.05,
            socket_timeout=5,
            retry_on_timeout=False,
            max_connections=redis_max_connections,
            connection_class=SSLConnection if redis_ssl else Connection
        )

    def redis_connect(self) -> Optional[Redis]:
        """Connect to Redis, with a cooldown between probes when unavailable"""
        if self.pool is None:
            return None

        if self.redis_available:
            try:
                rc = Redis(connection_pool=self.pool)
                if rc.ping():
                    return rc
            except RedisError as e:
                logger.warning("redis unavailable, counting in memory: %s", e)
            self.redis_available = False
            self._last_redis_check = time.time()
            return None

        now = time.time()
        if self._last_redis_check is not None:
            if now - self._last_redis_check < self.recheck_interval:
                return None

        self._last_redis_check = now
        try:
            rc = Redis(connection_pool=self.pool)
            if rc.ping():
                self.redis_available = True
                return rc
        except RedisError:
            pass
        return None

    def hit(self, key: str) -> Tuple[bool, int]:
        """
        Register one request for `key`.

        Returns:
            (allowed, retry_after_seconds); retry_after is 0 when allowed
        """
        window = int(time.time() // self.window_seconds)
        bucket = f"ratelimit:{key}:{window}"
        count = self._incr_redis(bucket)
        if count is None:
            count = self._incr_memory(bucket)
        if count <= self.limit:
            return True, 0
        window_end = (window + 1) * self.window_seconds
        return False, max(1, math.ceil(window_end - time.time()))

    def reset(self) -> None:
        with self._memory_lock:
            self._memory.clear()

    def _incr_redis(self, bucket: str) -> Optional[int]:
        rc = self.redis_connect()
        if rc is None:
            return None
        try:
            pipe = rc.pipeline()
            pipe.incr(bucket)
            pipe.expire(bucket, self.window_seconds * 2)
            count, _ = pipe.execute()
            return int(count)
        except RedisError as e:
            logger.warning("redis rate limit write failed: %s", e)
            self.redis_available = False
            self._last_redis_check = time.time()
            return None
        finally:
            rc.close()

    def _incr_memory(self, bucket: str) -> int:
        now = time.time()
        with self._memory_lock:
            expired = [k for k, (_, exp) in self._memory.items() if exp <= now]
            for k in expired:
                self._memory.pop(k, None)
            count, expires_at = self._memory.get(bucket, (0, now + self.window_seconds))
            count += 1
            self._memory[bucket] = (count, expires_at)
            return count


auth_rate_limiter = HybridRateLimiter(
    limit=settings.AUTH_RATE_LIMIT_PER_MINUTE,
    window_seconds=60,
    redis_host=settings.REDIS_HOST,
    redis_port=settings.REDIS_PORT,
    redis_ssl=bool(settings.REDIS_SSL),
    redis_max_connections=settings.REDIS_MAX_CONNECTIONS,
)


def limit_auth_requests(request: Request) -> None:
    """Route dependency: per client IP limit on the auth endpoints"""
    client_ip = request.client.host if request.client else "unknown"
    allowed, retry_after = auth_rate_limiter.hit(f"auth:{client_ip}")
    if not allowed:
        logger.warning("auth rate limit exceeded for %s", client_ip)
        raise RateLimitExceeded(retry_after)

