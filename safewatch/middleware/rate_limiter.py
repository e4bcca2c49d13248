"""
Rate Limiter - fixed window request limiting keyed by client origin.

Gates SOS-triggering requests: at most `limit` requests per origin per window
(3 per 15 minutes by default). The first request for an origin opens a window;
every request inside it increments the counter, including denied ones, and the
counter resets once the window has elapsed.

Backends:
- InMemoryWindowStore: dict of origin -> window owned by the limiter, one
  asyncio.Lock per key. Single process, lost on restart.
- RedisWindowStore: atomic Lua script (INCR + PEXPIRE on first hit), shared by
  every worker pointing at the same Redis.

Fail-open: if the backend errors and fail_open is set, the request is admitted
and the error logged. Refusing an SOS because the limiter is down is worse
than letting one through.

Usage:
    from safewatch.middleware.rate_limiter import sos_rate_limiter

    allowed, info = await sos_rate_limiter.admit("ip:203.0.113.7")
    if not allowed:
        ...  # respond 429 with Retry-After: info["retry_after"]
"""

import asyncio
import math
import time
from collections import defaultdict
from collections.abc import Callable
from dataclasses import dataclass
from typing import Protocol

from safewatch.config import settings
from safewatch.infrastructure.observability.logging import get_logger
from safewatch.services.redis_client import FastRedisClient, fast_redis

logger = get_logger(__name__)


class WindowStore(Protocol):
    async def hit(self, key: str, window_seconds: int) -> tuple[int, float]:
        """Atomically count one request. Returns (count in window, seconds until reset)."""
        ...


@dataclass
class _Window:
    started_at: float
    count: int = 0


class InMemoryWindowStore:
    """Process-local window store with per-key locking."""

    PRUNE_EVERY = 1000

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._windows: dict[str, _Window] = {}
        self._locks: defaultdict[str, asyncio.Lock] = defaultdict(asyncio.Lock)
        self._hits_since_prune = 0

    async def hit(self, key: str, window_seconds: int) -> tuple[int, float]:
        async with self._locks[key]:
            now = self._clock()
            window = self._windows.get(key)
            if window is None or now - window.started_at >= window_seconds:
                window = _Window(started_at=now)
                self._windows[key] = window

            window.count += 1
            count = window.count
            reset_in = window.started_at + window_seconds - now

        self._hits_since_prune += 1
        if self._hits_since_prune >= self.PRUNE_EVERY:
            self._prune(window_seconds)

        return count, reset_in

    def _prune(self, window_seconds: int) -> None:
        """Drop expired windows whose lock nobody holds."""
        now = self._clock()
        expired = [
            key
            for key, window in self._windows.items()
            if now - window.started_at >= window_seconds and not self._locks[key].locked()
        ]
        for key in expired:
            self._windows.pop(key, None)
            self._locks.pop(key, None)
        self._hits_since_prune = 0


class RedisWindowStore:
    """Redis-backed window store; the Lua script makes check-and-increment atomic."""

    # Returns: {count, pttl_ms}
    FIXED_WINDOW_LUA_SCRIPT = """
    local current = redis.call('INCR', KEYS[1])
    if current == 1 then
        redis.call('PEXPIRE', KEYS[1], ARGV[1])
    end
    local ttl = redis.call('PTTL', KEYS[1])
    if ttl < 0 then
        redis.call('PEXPIRE', KEYS[1], ARGV[1])
        ttl = tonumber(ARGV[1])
    end
    return {current, ttl}
    """

    def __init__(self, redis_client: FastRedisClient = fast_redis, namespace: str = "ratelimit:sos"):
        self.redis = redis_client
        self.namespace = namespace

    async def hit(self, key: str, window_seconds: int) -> tuple[int, float]:
        if not self.redis.client:
            raise ConnectionError("Redis not initialized")

        result = await self.redis.client.eval(
            self.FIXED_WINDOW_LUA_SCRIPT,
            1,
            f"{self.namespace}:{key}",
            window_seconds * 1000,
        )
        return int(result[0]), int(result[1]) / 1000


class RateLimiter:
    """
    Fixed window rate limiter over a pluggable WindowStore.

    Example:
        limit=3, window=900s. Requests at t=0, 10, 20 are admitted; t=30 is
        denied with retry_after=870; the next request at t>=900 opens a new
        window and is admitted.
    """

    def __init__(
        self,
        store: WindowStore,
        limit: int = 3,
        window_seconds: int = 900,
        fail_open: bool = True,
    ):
        self.store = store
        self.limit = limit
        self.window_seconds = window_seconds
        self.fail_open = fail_open

    async def admit(self, origin_key: str) -> tuple[bool, dict]:
        """
        Count one request for origin_key and decide whether to admit it.

        Returns:
            Tuple of (allowed, info) where info carries limit, remaining and
            retry_after (seconds until the window resets)
        """
        try:
            count, reset_in = await self.store.hit(origin_key, self.window_seconds)
        except Exception as e:
            logger.error(
                "Rate limiter backend error",
                error=str(e),
                error_type=type(e).__name__,
                key=origin_key,
            )
            return self.fail_open, self._create_info_dict(
                allowed=self.fail_open,
                remaining=self.limit if self.fail_open else 0,
                error="rate_limiter_error",
            )

        retry_after = max(1, math.ceil(reset_in))

        if count > self.limit:
            logger.warning(
                "SOS rate limit exceeded",
                key=origin_key,
                count=count,
                limit=self.limit,
                retry_after=retry_after,
            )
            return False, self._create_info_dict(
                allowed=False, remaining=0, retry_after=retry_after
            )

        return True, self._create_info_dict(
            allowed=True, remaining=self.limit - count, retry_after=retry_after
        )

    def _create_info_dict(
        self,
        allowed: bool,
        remaining: int,
        retry_after: int | None = None,
        error: str | None = None,
    ) -> dict:
        info = {
            "allowed": allowed,
            "limit": self.limit,
            "remaining": remaining,
            "retry_after": retry_after,
            "window_seconds": self.window_seconds,
        }
        if error:
            info["error"] = error
        return info


def build_sos_rate_limiter() -> RateLimiter:
    if settings.RATE_LIMIT_BACKEND == "redis":
        store: WindowStore = RedisWindowStore(fast_redis)
    else:
        store = InMemoryWindowStore()

    return RateLimiter(
        store=store,
        limit=settings.SOS_RATE_LIMIT_MAX,
        window_seconds=settings.SOS_RATE_LIMIT_WINDOW_SECONDS,
        fail_open=settings.RATE_LIMIT_FAIL_OPEN,
    )


# Global singleton
sos_rate_limiter = build_sos_rate_limiter()
