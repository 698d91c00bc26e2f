"""Shared ToolResponse envelope and error schema."""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class ErrorKind(str, Enum):
    """Fixed taxonomy of router-level failures."""

    AUTH = "auth_error"
    RATE_LIMIT = "rate_limit"
    VALIDATION = "validation_error"
    PERMISSION = "permission_error"
    NOT_FOUND = "not_found"
    INTERNAL = "internal_error"
    UNKNOWN_TOOL = "unknown_tool"


class ErrorDetail(BaseModel):
    """Structured error returned when a tool call fails."""

    kind: ErrorKind
    message: str
    detail: dict[str, Any] | None = None


class Meta(BaseModel):
    """Execution metadata attached to every response."""

    execution_ms: float | None = Field(None, description="Wall-clock milliseconds")
    tier: str | None = Field(None, description="Resolution tier that produced the result")


class ToolResponse(BaseModel):
    """Standard envelope for every tool result."""

    success: bool
    tool: str | None = None
    request_id: str | None = None
    data: Any | None = None
    error: ErrorDetail | None = None
    meta: Meta = Field(default_factory=Meta)
