"""Performance benchmarks for the tool router.

Run:
    python -m scripts.benchmark
"""

from __future__ import annotations

import asyncio
import logging
import time

from mcp_router.config import Settings
from mcp_router.mcp.bootstrap import build_router


async def _bench(label: str, coro_factory, iterations: int = 1000):
    """Run a coroutine *iterations* times and print average wall-clock ms."""
    # Warm up
    await coro_factory()

    start = time.perf_counter()
    for _ in range(iterations):
        await coro_factory()
    elapsed = time.perf_counter() - start

    avg_ms = elapsed / iterations * 1000
    print(f"  {label}: {avg_ms:.3f} ms avg ({iterations} iterations)")
    return avg_ms


async def main():
    # Audit lines would dominate the timings
    logging.getLogger("mcp").setLevel(logging.WARNING)

    router = build_router(Settings(store_backend="memory", rate_limit_enabled=False))
    router.register_pack("bench", {"bench_echo": lambda params, caller_id: {"success": True}})
    router.gate.store.activate("bench")

    print("Running benchmarks …\n")

    await _bench("route('ml_ping', anonymous)", lambda: router.route("ml_ping", {}))
    await _bench("route('ml_ping', caller=1)", lambda: router.route("ml_ping", {}, 1))
    await _bench("route('ml_me', caller=1)", lambda: router.route("ml_me", {}, 1))
    await _bench("route('bench_echo') pack tier", lambda: router.route("bench_echo", {}, 1))
    await _bench("route('ml_search') legacy tier", lambda: router.route("ml_search", {"query": "x"}, 1))
    await _bench("route('nope') unknown", lambda: router.route("nope", {}, 1))

    print("\nDone.")


if __name__ == "__main__":
    asyncio.run(main())
