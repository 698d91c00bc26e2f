"""SQL-backed pack and caller stores against async SQLite."""

from __future__ import annotations

import pytest
from sqlalchemy import update

from mcp_router.config import Settings
from mcp_router.mcp.bootstrap import build_router
from mcp_router.middleware.rate_limit import InMemoryCounterStore, RateLimiter
from mcp_router.models import Pack
from mcp_router.services.caller_service import SqlCallerDirectory
from mcp_router.services.pack_service import PackGate, SqlPackStore

from tests.conftest import ADMIN, OTHER, OVERRIDDEN, SUBSCRIBER


@pytest.mark.asyncio
async def test_pack_store_reads_table(seeded_factory):
    store = SqlPackStore(seeded_factory)

    assert await store.all_packs() == ["analytics", "integration", "quality"]
    assert await store.active_packs() == ["analytics", "quality"]
    assert await store.is_active("quality") is True
    assert await store.is_active("integration") is False
    assert await store.is_active("missing") is False

    config = await store.config_for("analytics")
    assert config["allowed_roles"] == ["administrator", "mcp_premium"]
    assert await store.config_for("missing") == {}


@pytest.mark.asyncio
async def test_pack_activation_is_read_fresh(seeded_factory):
    store = SqlPackStore(seeded_factory)
    assert await store.is_active("integration") is False

    async with seeded_factory() as sess:
        await sess.execute(update(Pack).where(Pack.name == "integration").values(active=True))
        await sess.commit()

    assert await store.is_active("integration") is True


@pytest.mark.asyncio
async def test_caller_directory_reads_table(seeded_factory):
    callers = SqlCallerDirectory(seeded_factory)

    assert await callers.roles_of(ADMIN) == ["administrator"]
    assert await callers.roles_of(OTHER) == []
    assert await callers.rate_override_of(OVERRIDDEN) == 5
    assert await callers.rate_override_of(SUBSCRIBER) is None
    assert await callers.rate_override_of(OTHER) is None


@pytest.mark.asyncio
async def test_limits_from_sql_callers(seeded_factory, clock):
    limiter = RateLimiter(InMemoryCounterStore(clock=clock), SqlCallerDirectory(seeded_factory))

    assert await limiter.limit_for(SUBSCRIBER) == 60
    assert await limiter.limit_for(ADMIN) == 600
    assert await limiter.limit_for(OVERRIDDEN) == 5
    # Unknown callers get the base limit
    assert await limiter.limit_for(OTHER) == 60


@pytest.mark.asyncio
async def test_gate_uses_sql_roles(seeded_factory):
    gate = PackGate(SqlPackStore(seeded_factory), SqlCallerDirectory(seeded_factory))

    assert await gate.pack_permission("analytics", ADMIN) is True
    assert await gate.pack_permission("analytics", SUBSCRIBER) is False
    assert await gate.pack_permission("quality", SUBSCRIBER) is True


@pytest.mark.asyncio
async def test_build_router_with_sql_backend(seeded_factory):
    router = build_router(Settings(store_backend="sql"), session_factory=seeded_factory)
    router.register_pack_tool("ml_export", "analytics", lambda p, c: {"success": True, "data": "csv"})
    router.register_pack_tool("ml_webhook", "integration", lambda p, c: {"success": True})

    assert (await router.route("ml_export", {}, ADMIN))["data"] == "csv"
    assert (await router.route("ml_export", {}, SUBSCRIBER))["error"]["kind"] == "permission_error"
    assert (await router.route("ml_webhook", {}, ADMIN))["error"]["kind"] == "permission_error"

    status = await router.packs_status()
    assert status == {
        "available": ["analytics", "integration", "quality"],
        "active": ["analytics", "quality"],
    }


def test_build_router_rejects_unknown_backend():
    with pytest.raises(ValueError):
        build_router(Settings(store_backend="redis"))


@pytest.mark.asyncio
async def test_build_router_memory_backend_activates_configured_packs():
    router = build_router(Settings(store_backend="memory", active_packs=["quality"]))
    router.register_pack_tool("ml_compare", "quality", lambda p, c: {"success": True})

    assert (await router.route("ml_compare", {}, SUBSCRIBER))["success"] is True
