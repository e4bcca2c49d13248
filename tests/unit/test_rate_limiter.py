"""
Tests for the fixed window SOS rate limiter.
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from safewatch.middleware.rate_limiter import (
    InMemoryWindowStore,
    RateLimiter,
    RedisWindowStore,
)


class FakeClock:
    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def make_limiter(clock=None, limit=3, window_seconds=900, fail_open=True):
    store = InMemoryWindowStore(clock=clock or FakeClock())
    return RateLimiter(store, limit=limit, window_seconds=window_seconds, fail_open=fail_open)


@pytest.mark.asyncio
async def test_fourth_request_in_window_is_rejected():
    limiter = make_limiter()

    results = [await limiter.admit("ip:10.0.0.1") for _ in range(4)]

    assert [allowed for allowed, _ in results] == [True, True, True, False]
    assert [info["remaining"] for _, info in results] == [2, 1, 0, 0]


@pytest.mark.asyncio
async def test_rejected_info_carries_retry_after():
    clock = FakeClock()
    limiter = make_limiter(clock)

    for _ in range(3):
        await limiter.admit("ip:10.0.0.1")
    clock.advance(30)
    allowed, info = await limiter.admit("ip:10.0.0.1")

    assert allowed is False
    assert info["allowed"] is False
    assert info["limit"] == 3
    assert info["retry_after"] == 870
    assert info["window_seconds"] == 900


@pytest.mark.asyncio
async def test_window_resets_after_expiry():
    clock = FakeClock()
    limiter = make_limiter(clock)

    for _ in range(4):
        await limiter.admit("ip:10.0.0.1")

    clock.advance(900)
    allowed, info = await limiter.admit("ip:10.0.0.1")

    assert allowed is True
    assert info["remaining"] == 2


@pytest.mark.asyncio
async def test_denied_requests_still_count_toward_window():
    clock = FakeClock()
    limiter = make_limiter(clock)

    for _ in range(10):
        await limiter.admit("ip:10.0.0.1")
    clock.advance(899)
    allowed, info = await limiter.admit("ip:10.0.0.1")

    assert allowed is False
    assert info["retry_after"] == 1


@pytest.mark.asyncio
async def test_origins_have_independent_counters():
    limiter = make_limiter()

    for _ in range(3):
        await limiter.admit("ip:10.0.0.1")
    blocked, _ = await limiter.admit("ip:10.0.0.1")
    other, info = await limiter.admit("ip:10.0.0.2")

    assert blocked is False
    assert other is True
    assert info["remaining"] == 2


@pytest.mark.asyncio
async def test_concurrent_requests_admit_exactly_limit():
    limiter = make_limiter(limit=3)

    results = await asyncio.gather(*(limiter.admit("ip:10.0.0.9") for _ in range(10)))

    assert sum(1 for allowed, _ in results if allowed) == 3


@pytest.mark.asyncio
async def test_backend_error_fails_open():
    store = MagicMock()
    store.hit = AsyncMock(side_effect=ConnectionError("redis down"))
    limiter = RateLimiter(store, limit=3, window_seconds=900, fail_open=True)

    allowed, info = await limiter.admit("ip:10.0.0.1")

    assert allowed is True
    assert info["error"] == "rate_limiter_error"


@pytest.mark.asyncio
async def test_backend_error_fails_closed_when_configured():
    store = MagicMock()
    store.hit = AsyncMock(side_effect=ConnectionError("redis down"))
    limiter = RateLimiter(store, limit=3, window_seconds=900, fail_open=False)

    allowed, info = await limiter.admit("ip:10.0.0.1")

    assert allowed is False
    assert info["remaining"] == 0


@pytest.mark.asyncio
async def test_prune_drops_expired_windows():
    clock = FakeClock()
    store = InMemoryWindowStore(clock=clock)
    await store.hit("old", 60)
    clock.advance(120)

    store._prune(60)

    assert "old" not in store._windows


@pytest.mark.asyncio
async def test_redis_store_uses_namespaced_key():
    redis_client = MagicMock()
    redis_client.client.eval = AsyncMock(return_value=[2, 450_000])
    store = RedisWindowStore(redis_client, namespace="ratelimit:sos")

    count, reset_in = await store.hit("ip:10.0.0.1", 900)

    assert count == 2
    assert reset_in == 450.0
    args = redis_client.client.eval.await_args.args
    assert args[1] == 1
    assert args[2] == "ratelimit:sos:ip:10.0.0.1"
    assert args[3] == 900_000


@pytest.mark.asyncio
async def test_redis_store_without_client_raises():
    redis_client = MagicMock()
    redis_client.client = None
    store = RedisWindowStore(redis_client)

    with pytest.raises(ConnectionError):
        await store.hit("ip:10.0.0.1", 900)
