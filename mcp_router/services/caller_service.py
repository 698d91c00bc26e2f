"""Caller attributes and the ambient "current caller" context.

Transports (stdio, SSE, debug HTTP) resolve who is calling and bind it with
:func:`caller_context`; the router falls back to :func:`current_caller_id`
when it is not handed an explicit id.
"""

from __future__ import annotations

from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any, Iterator, Protocol

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from mcp_router.models.caller import Caller

_current_caller_id: ContextVar[int | None] = ContextVar("current_caller_id", default=None)


def current_caller_id() -> int | None:
    return _current_caller_id.get()


@contextmanager
def caller_context(caller_id: int | None) -> Iterator[None]:
    """Bind *caller_id* as the current caller for the enclosed block."""
    token = _current_caller_id.set(caller_id)
    try:
        yield
    finally:
        _current_caller_id.reset(token)


def parse_caller_id(raw: Any) -> int | None:
    """Coerce a header / config value into a positive caller id, else None."""
    if raw is None or isinstance(raw, bool):
        return None
    try:
        value = int(str(raw).strip())
    except ValueError:
        return None
    return value if value > 0 else None


class CallerDirectory(Protocol):
    async def roles_of(self, caller_id: int) -> list[str]: ...

    async def rate_override_of(self, caller_id: int) -> int | None: ...


class InMemoryCallerDirectory:
    """Dict-backed directory, used by default and in tests."""

    def __init__(self) -> None:
        self._roles: dict[int, list[str]] = {}
        self._overrides: dict[int, int] = {}

    def add(self, caller_id: int, roles: list[str] | None = None, rate_limit: int | None = None) -> None:
        self._roles[caller_id] = list(roles or [])
        if rate_limit is not None:
            self._overrides[caller_id] = rate_limit
        else:
            self._overrides.pop(caller_id, None)

    async def roles_of(self, caller_id: int) -> list[str]:
        return list(self._roles.get(caller_id, []))

    async def rate_override_of(self, caller_id: int) -> int | None:
        return self._overrides.get(caller_id)


class SqlCallerDirectory:
    """Reads the ``callers`` table on every lookup."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self.session_factory = session_factory

    async def _get(self, caller_id: int) -> Caller | None:
        async with self.session_factory() as session:
            result = await session.execute(select(Caller).where(Caller.id == caller_id))
            return result.scalar_one_or_none()

    async def roles_of(self, caller_id: int) -> list[str]:
        caller = await self._get(caller_id)
        return list(caller.roles or []) if caller else []

    async def rate_override_of(self, caller_id: int) -> int | None:
        caller = await self._get(caller_id)
        if caller is None or not caller.rate_limit:
            return None
        return int(caller.rate_limit)
