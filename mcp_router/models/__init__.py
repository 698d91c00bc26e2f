"""SQLAlchemy ORM models."""

from mcp_router.models.pack import Base, Pack
from mcp_router.models.caller import Caller

__all__ = ["Base", "Pack", "Caller"]
