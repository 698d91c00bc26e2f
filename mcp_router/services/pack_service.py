"""Pack activation and access policy.

A pack is an optional bundle of tools. Whether it is switched on and who may
use it is persisted configuration; :class:`PackGate` only reads it, fresh on
every call, since an admin can flip it at any time.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Protocol

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from mcp_router.models.pack import Pack
from mcp_router.services.caller_service import CallerDirectory

logger = logging.getLogger("mcp.packs")

PermissionHook = Callable[[bool, str, int], bool]
"""``(allowed, pack_name, caller_id) -> allowed`` – applied as a filter chain."""


class PackConfigStore(Protocol):
    async def is_active(self, pack_name: str) -> bool: ...

    async def config_for(self, pack_name: str) -> dict[str, Any]: ...

    async def all_packs(self) -> list[str]: ...

    async def active_packs(self) -> list[str]: ...


class InMemoryPackStore:
    def __init__(self, active: list[str] | None = None) -> None:
        self._active: set[str] = set(active or [])
        self._configs: dict[str, dict[str, Any]] = {name: {} for name in self._active}

    def activate(self, pack_name: str) -> None:
        self._configs.setdefault(pack_name, {})
        self._active.add(pack_name)

    def deactivate(self, pack_name: str) -> None:
        self._configs.setdefault(pack_name, {})
        self._active.discard(pack_name)

    def configure(self, pack_name: str, **config: Any) -> None:
        self._configs.setdefault(pack_name, {}).update(config)

    async def is_active(self, pack_name: str) -> bool:
        return pack_name in self._active

    async def config_for(self, pack_name: str) -> dict[str, Any]:
        return dict(self._configs.get(pack_name, {}))

    async def all_packs(self) -> list[str]:
        return sorted(self._configs)

    async def active_packs(self) -> list[str]:
        return sorted(self._active)


class SqlPackStore:
    """Reads the ``packs`` table."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self.session_factory = session_factory

    async def _get(self, pack_name: str) -> Pack | None:
        async with self.session_factory() as session:
            result = await session.execute(select(Pack).where(Pack.name == pack_name))
            return result.scalar_one_or_none()

    async def is_active(self, pack_name: str) -> bool:
        pack = await self._get(pack_name)
        return bool(pack and pack.active)

    async def config_for(self, pack_name: str) -> dict[str, Any]:
        pack = await self._get(pack_name)
        if pack is None:
            return {}
        return {"allowed_roles": list(pack.allowed_roles or []), "description": pack.description}

    async def all_packs(self) -> list[str]:
        async with self.session_factory() as session:
            result = await session.execute(select(Pack.name).order_by(Pack.name))
            return list(result.scalars().all())

    async def active_packs(self) -> list[str]:
        async with self.session_factory() as session:
            result = await session.execute(
                select(Pack.name).where(Pack.active.is_(True)).order_by(Pack.name)
            )
            return list(result.scalars().all())


class PackGate:
    """Answers "is this pack on?" and "may this caller use it?"."""

    def __init__(self, store: PackConfigStore, callers: CallerDirectory) -> None:
        self.store = store
        self.callers = callers
        self._hooks: list[PermissionHook] = []

    def add_permission_hook(self, hook: PermissionHook) -> None:
        self._hooks.append(hook)

    def clear_permission_hooks(self) -> None:
        self._hooks.clear()

    async def is_pack_active(self, pack_name: str) -> bool:
        return await self.store.is_active(pack_name)

    async def pack_permission(self, pack_name: str, caller_id: int) -> bool:
        config = await self.store.config_for(pack_name)

        allowed_roles = config.get("allowed_roles") or []
        if allowed_roles:
            roles = await self.callers.roles_of(caller_id)
            if not set(roles) & set(allowed_roles):
                logger.info(
                    "pack_denied pack=%s user_id=%s roles=%s allowed=%s",
                    pack_name,
                    caller_id,
                    roles,
                    allowed_roles,
                )
                return False

        allowed = True
        for hook in self._hooks:
            allowed = bool(hook(allowed, pack_name, caller_id))
        return allowed
