"""Per-caller rate limiting for tool calls.

Fixed-window counters: the first counted request opens a window of
``window_seconds``; later requests bump the count but keep the window's
original expiry, so a burst can never stretch its own window.

Default limits:
    Base: 60 requests / 60 seconds
    administrator role: 10x base
    mcp_premium role: 3x base
    Per-caller override (``callers.rate_limit``) beats both.
"""

from __future__ import annotations

import asyncio
import math
import time
from dataclasses import dataclass
from typing import Callable, Dict, Protocol, Tuple

from mcp_router.services.caller_service import CallerDirectory


class CounterStore(Protocol):
    """Key/value store with expiry backing the counters."""

    async def get(self, key: str) -> int: ...

    async def set(self, key: str, value: int, ttl_seconds: float) -> None: ...

    async def remaining_ttl(self, key: str) -> float: ...

    async def increment(self, key: str, ttl_seconds: float) -> int:
        """Add one to *key*; a missing key starts at 1 with a fresh *ttl_seconds*.

        An existing key keeps its stored expiry.
        """
        ...


class InMemoryCounterStore:
    """Process-local counter store.

    Attributes:
        clock: Monotonic time source in seconds; swap it out in tests.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self.clock = clock
        # key -> (value, expires_at)
        self._entries: Dict[str, Tuple[int, float]] = {}

    def _live(self, key: str) -> Tuple[int, float] | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry[1] <= self.clock():
            self._entries.pop(key, None)
            return None
        return entry

    async def get(self, key: str) -> int:
        entry = self._live(key)
        return entry[0] if entry else 0

    async def set(self, key: str, value: int, ttl_seconds: float) -> None:
        if ttl_seconds <= 0:
            self._entries.pop(key, None)
            return
        self._entries[key] = (value, self.clock() + ttl_seconds)

    async def remaining_ttl(self, key: str) -> float:
        entry = self._live(key)
        if entry is None:
            return 0.0
        return max(0.0, entry[1] - self.clock())

    async def increment(self, key: str, ttl_seconds: float) -> int:
        entry = self._live(key)
        if entry is None:
            await self.set(key, 1, ttl_seconds)
            return 1
        value, expires_at = entry
        self._entries[key] = (value + 1, expires_at)
        return value + 1

    def clear(self) -> None:
        self._entries.clear()


@dataclass(frozen=True)
class RateLimitResult:
    allowed: bool
    retry_after: int | None = None
    limit: int | None = None


class RateLimiter:
    """Fixed-window limiter keyed by caller id.

    ``check`` and ``increment`` are separate calls so the router can count a
    request after it ran. That leaves a gap in which concurrent requests from
    the same caller may all pass ``check``; ``acquire`` closes it by doing
    both under one lock.
    """

    def __init__(
        self,
        store: CounterStore,
        callers: CallerDirectory,
        *,
        max_requests: int = 60,
        window_seconds: int = 60,
        admin_multiplier: int = 10,
        premium_multiplier: int = 3,
        admin_role: str = "administrator",
        premium_role: str = "mcp_premium",
        enabled: bool = True,
    ) -> None:
        self.store = store
        self.callers = callers
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.admin_multiplier = admin_multiplier
        self.premium_multiplier = premium_multiplier
        self.admin_role = admin_role
        self.premium_role = premium_role
        self.enabled = enabled
        self._lock = asyncio.Lock()

    @staticmethod
    def key_for(caller_id: int) -> str:
        return f"mcp_rate_{caller_id}"

    async def limit_for(self, caller_id: int) -> int:
        """Effective requests-per-window for *caller_id*."""
        override = await self.callers.rate_override_of(caller_id)
        if override:
            return int(override)

        roles = await self.callers.roles_of(caller_id)
        if self.admin_role in roles:
            return self.max_requests * self.admin_multiplier
        if self.premium_role in roles:
            return self.max_requests * self.premium_multiplier
        return self.max_requests

    async def count(self, caller_id: int) -> int:
        return await self.store.get(self.key_for(caller_id))

    async def check(self, caller_id: int | None) -> RateLimitResult:
        """Is *caller_id* still under its limit for the current window?"""
        if not caller_id or not self.enabled:
            return RateLimitResult(allowed=True)

        key = self.key_for(caller_id)
        current = await self.store.get(key)
        limit = await self.limit_for(caller_id)

        if current >= limit:
            ttl = await self.store.remaining_ttl(key)
            retry_after = math.ceil(ttl) if ttl > 0 else self.window_seconds
            return RateLimitResult(allowed=False, retry_after=retry_after, limit=limit)

        return RateLimitResult(allowed=True, limit=limit)

    async def increment(self, caller_id: int | None) -> None:
        """Count one request without moving the window's expiry."""
        if not caller_id:
            return

        await self.store.increment(self.key_for(caller_id), self.window_seconds)

    async def acquire(self, caller_id: int | None) -> RateLimitResult:
        """Atomic check-and-increment; rejected requests are not counted."""
        async with self._lock:
            result = await self.check(caller_id)
            if result.allowed:
                await self.increment(caller_id)
            return result
