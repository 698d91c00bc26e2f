"""Schemas for tool discovery and pack introspection."""

from __future__ import annotations

from pydantic import BaseModel


class ToolListing(BaseModel):
    name: str
    tier: str
    available: bool
    pack: str | None = None


class PacksStatus(BaseModel):
    available: list[str]
    active: list[str]


class CallerProfile(BaseModel):
    """What ``ml_me`` reports about the calling principal."""

    user_id: int
    roles: list[str]
    rate_limit: int
    tools: list[str]
