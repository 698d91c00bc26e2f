"""Caller ORM model – roles and per-caller rate limit override."""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import JSON, DateTime, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from mcp_router.models.pack import Base


class Caller(Base):
    """An authenticated principal allowed to call tools.

    Authentication itself happens upstream; this table only carries the
    attributes the router consults: role membership and an optional
    request-per-window override.
    """

    __tablename__ = "callers"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    display_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    email: Mapped[str | None] = mapped_column(String(255), unique=True, nullable=True)
    roles: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    rate_limit: Mapped[int | None] = mapped_column(Integer, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )

    __table_args__ = (Index("ix_callers_email", "email"),)

    def __repr__(self) -> str:
        return f"<Caller {self.id} roles={self.roles}>"
