"""Shared pytest fixtures – in-memory stores, a fake clock and async SQLite."""

from __future__ import annotations

from typing import Any

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from mcp_router.mcp import responses
from mcp_router.mcp.router import Router
from mcp_router.middleware.rate_limit import InMemoryCounterStore, RateLimiter
from mcp_router.models import Base, Caller, Pack
from mcp_router.services.caller_service import InMemoryCallerDirectory
from mcp_router.services.pack_service import InMemoryPackStore, PackGate

# Caller ids used across the suite
SUBSCRIBER = 1
ADMIN = 2
PREMIUM = 3
OVERRIDDEN = 4
OTHER = 5


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingAudit:
    """Audit sink that keeps every event for assertions."""

    def __init__(self) -> None:
        self.events: list[tuple[str, dict[str, Any]]] = []

    def emit(self, event_name: str, payload: dict[str, Any]) -> None:
        self.events.append((event_name, payload))

    def names(self) -> list[str]:
        return [name for name, _ in self.events]

    def of(self, event_name: str) -> list[dict[str, Any]]:
        return [payload for name, payload in self.events if name == event_name]


class FakeContent:
    """Content backend double: records calls and returns canned results."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, Any]] = []
        self.publications: dict[int, dict[str, Any]] = {
            456: {"id": 456, "title": "Follow-up letter", "type": "content"},
        }

    async def find(self, query, caller_id):
        self.calls.append(("find", query))
        if query.get("id") is not None:
            return self.publications.get(query["id"])
        return {"items": list(self.publications.values()), "total": len(self.publications)}

    async def save(self, publication, caller_id):
        self.calls.append(("save", publication))
        if publication["mode"] == "update" and publication["id"] not in self.publications:
            return None
        pub_id = publication["id"] or 999
        return {"id": pub_id, "status": publication["status"]}

    async def run(self, request, caller_id):
        self.calls.append(("run", request))
        return {"tool_id": request["tool_id"], "output": "done"}

    async def assist(self, request, caller_id):
        self.calls.append(("assist", request))
        return {"suggestions": [{"tool_id": 12, "score": 0.9}]}

    async def attach_image(self, publication_id, image, caller_id):
        self.calls.append(("attach_image", (publication_id, image)))
        if publication_id not in self.publications:
            return None
        return {"publication_id": publication_id, "mime_type": image["mime_type"]}

    async def me(self, action, params, caller_id):
        self.calls.append(("me", action))
        return {"action": action, "items": []}


# ---------------------------------------------------------------------------
# In-memory wiring
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_request_id():
    yield
    responses.reset()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def callers():
    directory = InMemoryCallerDirectory()
    directory.add(SUBSCRIBER, ["subscriber"])
    directory.add(ADMIN, ["administrator"])
    directory.add(PREMIUM, ["mcp_premium"])
    directory.add(OVERRIDDEN, ["administrator"], rate_limit=5)
    directory.add(OTHER, ["subscriber"])
    return directory


@pytest.fixture
def counter_store(clock):
    return InMemoryCounterStore(clock=clock)


@pytest.fixture
def limiter(counter_store, callers):
    return RateLimiter(counter_store, callers)


@pytest.fixture
def pack_store():
    return InMemoryPackStore()


@pytest.fixture
def gate(pack_store, callers):
    return PackGate(pack_store, callers)


@pytest.fixture
def audit():
    return RecordingAudit()


@pytest.fixture
def content():
    return FakeContent()


@pytest.fixture
def router(limiter, gate, callers, audit, content):
    return Router(limiter, gate, callers, audit=audit, content=content)


# ---------------------------------------------------------------------------
# Async SQLite
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def engine():
    """Create an async in-memory SQLite engine with the schema in place."""
    eng = create_async_engine("sqlite+aiosqlite:///:memory:", echo=False)
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest_asyncio.fixture
async def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def seeded_factory(session_factory):
    """Session factory over a database holding a few packs and callers."""
    async with session_factory() as sess:
        sess.add_all(
            [
                Pack(name="quality", active=True, allowed_roles=[], description="Content quality"),
                Pack(name="analytics", active=True, allowed_roles=["administrator", "mcp_premium"]),
                Pack(name="integration", active=False, allowed_roles=[]),
                Caller(id=SUBSCRIBER, display_name="Sub", email="sub@example.com", roles=["subscriber"]),
                Caller(id=ADMIN, display_name="Admin", email="admin@example.com", roles=["administrator"]),
                Caller(
                    id=OVERRIDDEN,
                    display_name="Tuned",
                    email="tuned@example.com",
                    roles=["administrator"],
                    rate_limit=5,
                ),
            ]
        )
        await sess.commit()
    return session_factory
