"""Router wiring – builds a Router from settings."""

from __future__ import annotations

import logging
from functools import lru_cache

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from mcp_router.config import Settings, settings
from mcp_router.db import async_session_factory
from mcp_router.mcp.router import Router
from mcp_router.middleware.rate_limit import InMemoryCounterStore, RateLimiter
from mcp_router.services.caller_service import InMemoryCallerDirectory, SqlCallerDirectory
from mcp_router.services.content import ContentBackend
from mcp_router.services.pack_service import InMemoryPackStore, PackGate, SqlPackStore

logger = logging.getLogger("mcp.bootstrap")


def build_router(
    cfg: Settings = settings,
    *,
    content: ContentBackend | None = None,
    session_factory: async_sessionmaker[AsyncSession] | None = None,
) -> Router:
    """Assemble stores, limiter and gate for *cfg* and return a Router."""
    if cfg.store_backend == "sql":
        factory = session_factory or async_session_factory
        callers = SqlCallerDirectory(factory)
        packs = SqlPackStore(factory)
    elif cfg.store_backend == "memory":
        callers = InMemoryCallerDirectory()
        packs = InMemoryPackStore(cfg.active_packs)
    else:
        raise ValueError(f"Unknown store_backend: {cfg.store_backend!r}")

    limiter = RateLimiter(
        InMemoryCounterStore(),
        callers,
        max_requests=cfg.rate_limit_requests,
        window_seconds=cfg.rate_limit_window_seconds,
        admin_multiplier=cfg.rate_limit_admin_multiplier,
        premium_multiplier=cfg.rate_limit_premium_multiplier,
        admin_role=cfg.admin_role,
        premium_role=cfg.premium_role,
        enabled=cfg.rate_limit_enabled,
    )

    logger.info(
        "Router built (store=%s, base_limit=%d/%ds, atomic=%s)",
        cfg.store_backend,
        cfg.rate_limit_requests,
        cfg.rate_limit_window_seconds,
        cfg.rate_limit_atomic,
    )
    return Router(
        limiter,
        PackGate(packs, callers),
        callers,
        content=content,
        public_tool=cfg.public_tool,
        redacted_keys=cfg.redacted_keys,
        atomic_rate_limit=cfg.rate_limit_atomic,
        version=cfg.mcp_server_version,
    )


@lru_cache(maxsize=1)
def get_router() -> Router:
    """Process-wide router used by the transports."""
    return build_router()
