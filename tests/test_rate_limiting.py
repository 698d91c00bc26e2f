"""Rate limiting tests."""

from __future__ import annotations

import pytest

from mcp_router.middleware.rate_limit import InMemoryCounterStore, RateLimiter

from tests.conftest import ADMIN, OTHER, OVERRIDDEN, PREMIUM, SUBSCRIBER


async def _spend(limiter: RateLimiter, caller_id: int, n: int) -> None:
    for _ in range(n):
        assert (await limiter.check(caller_id)).allowed
        await limiter.increment(caller_id)


@pytest.mark.asyncio
async def test_rate_limit_allows_within_window(limiter):
    """The first 60 requests in a window should all be allowed."""
    await _spend(limiter, SUBSCRIBER, 60)
    assert await limiter.count(SUBSCRIBER) == 60


@pytest.mark.asyncio
async def test_rate_limit_blocks_over_window(limiter):
    """The 61st request should be blocked with limit and retry-after."""
    await _spend(limiter, SUBSCRIBER, 60)

    result = await limiter.check(SUBSCRIBER)
    assert result.allowed is False
    assert result.limit == 60
    assert 0 < result.retry_after <= 60


@pytest.mark.asyncio
async def test_rate_limit_per_caller_isolation(limiter):
    """Counters are independent per caller."""
    await _spend(limiter, SUBSCRIBER, 60)
    assert not (await limiter.check(SUBSCRIBER)).allowed
    assert (await limiter.check(OTHER)).allowed


@pytest.mark.asyncio
async def test_limit_by_role_and_override(limiter):
    assert await limiter.limit_for(SUBSCRIBER) == 60
    assert await limiter.limit_for(ADMIN) == 600
    assert await limiter.limit_for(PREMIUM) == 180
    # Override beats the administrator multiplier
    assert await limiter.limit_for(OVERRIDDEN) == 5


@pytest.mark.asyncio
async def test_override_limit_enforced(limiter):
    await _spend(limiter, OVERRIDDEN, 5)
    result = await limiter.check(OVERRIDDEN)
    assert result.allowed is False
    assert result.limit == 5


@pytest.mark.asyncio
async def test_increment_keeps_window_expiry(limiter, counter_store, clock):
    """Later increments never push the window's end further out."""
    key = limiter.key_for(SUBSCRIBER)
    await limiter.increment(SUBSCRIBER)
    first_ttl = await counter_store.remaining_ttl(key)
    assert first_ttl == 60

    clock.advance(20)
    await limiter.increment(SUBSCRIBER)
    assert await counter_store.remaining_ttl(key) == pytest.approx(40)
    assert await limiter.count(SUBSCRIBER) == 2


@pytest.mark.asyncio
async def test_window_expiry_resets_count(limiter, clock):
    await _spend(limiter, SUBSCRIBER, 60)
    assert not (await limiter.check(SUBSCRIBER)).allowed

    clock.advance(61)
    assert await limiter.count(SUBSCRIBER) == 0
    assert (await limiter.check(SUBSCRIBER)).allowed


@pytest.mark.asyncio
async def test_retry_after_tracks_remaining_window(limiter, clock):
    await _spend(limiter, SUBSCRIBER, 60)
    clock.advance(45.5)

    result = await limiter.check(SUBSCRIBER)
    assert result.retry_after == 15


@pytest.mark.asyncio
async def test_anonymous_is_never_limited(limiter, counter_store):
    for _ in range(100):
        assert (await limiter.check(None)).allowed
        await limiter.increment(None)
    assert counter_store._entries == {}


@pytest.mark.asyncio
async def test_disabled_limiter_allows_everything(counter_store, callers):
    limiter = RateLimiter(counter_store, callers, max_requests=1, enabled=False)
    await limiter.increment(SUBSCRIBER)
    await limiter.increment(SUBSCRIBER)
    assert (await limiter.check(SUBSCRIBER)).allowed


@pytest.mark.asyncio
async def test_acquire_counts_only_allowed_requests(counter_store, callers):
    limiter = RateLimiter(counter_store, callers, max_requests=3)
    results = [await limiter.acquire(SUBSCRIBER) for _ in range(5)]

    assert [r.allowed for r in results] == [True, True, True, False, False]
    assert await limiter.count(SUBSCRIBER) == 3


@pytest.mark.asyncio
async def test_counter_store_drops_non_positive_ttl(clock):
    store = InMemoryCounterStore(clock=clock)
    await store.set("k", 3, 10)
    assert await store.get("k") == 3

    await store.set("k", 4, 0)
    assert await store.get("k") == 0
    assert await store.remaining_ttl("k") == 0.0


@pytest.mark.asyncio
async def test_counter_store_clear(clock):
    store = InMemoryCounterStore(clock=clock)
    await store.set("a", 1, 10)
    await store.set("b", 1, 10)
    store.clear()
    assert await store.get("a") == 0
    assert await store.get("b") == 0


class TickingClock:
    """Clock that moves forward a little on every read."""

    def __init__(self, start: float = 1000.0, step: float = 0.25) -> None:
        self.now = start
        self.step = step

    def __call__(self) -> float:
        self.now += self.step
        return self.now


@pytest.mark.asyncio
async def test_increment_keeps_stored_expiry_exactly(callers):
    store = InMemoryCounterStore(clock=TickingClock())
    limiter = RateLimiter(store, callers)
    key = limiter.key_for(SUBSCRIBER)

    await limiter.increment(SUBSCRIBER)
    _, expires_at = store._entries[key]

    for _ in range(10):
        await limiter.increment(SUBSCRIBER)

    assert store._entries[key] == (11, expires_at)


@pytest.mark.asyncio
async def test_store_increment_opens_window_after_expiry(clock):
    store = InMemoryCounterStore(clock=clock)
    assert await store.increment("k", 60) == 1
    assert await store.increment("k", 60) == 2

    clock.advance(60)
    assert await store.increment("k", 60) == 1
    assert await store.remaining_ttl("k") == 60
