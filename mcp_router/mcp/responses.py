"""Envelope builders – every dispatch path returns one of these dicts.

The correlation id for the call in flight lives in a context variable so
builders deep inside a handler pick it up without it being threaded through
every signature.
"""

from __future__ import annotations

import logging
import uuid
from contextvars import ContextVar
from typing import Any, Iterable

from mcp_router.mcp.registry import TIER_LEGACY
from mcp_router.schemas.common import ErrorDetail, ErrorKind, Meta, ToolResponse

logger = logging.getLogger("mcp.responses")

_request_id: ContextVar[str | None] = ContextVar("mcp_request_id", default=None)


# ---------------------------------------------------------------------------
# Correlation id
# ---------------------------------------------------------------------------


def generate_request_id() -> str:
    return f"req_{uuid.uuid4().hex}"


def set_request_id(request_id: str | None) -> None:
    _request_id.set(request_id)


def get_request_id() -> str | None:
    return _request_id.get()


def reset() -> None:
    """Forget the current correlation id."""
    _request_id.set(None)


# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------


def ok(
    data: Any = None,
    tool: str | None = None,
    elapsed: float | None = None,
    tier: str | None = None,
) -> dict:
    return ToolResponse(
        success=True,
        tool=tool,
        request_id=get_request_id(),
        data=data,
        error=None,
        meta=Meta(execution_ms=elapsed, tier=tier),
    ).model_dump(mode="json")


def error(
    kind: ErrorKind | str,
    message: str,
    detail: dict[str, Any] | None = None,
    tool: str | None = None,
    elapsed: float | None = None,
) -> dict:
    return ToolResponse(
        success=False,
        tool=tool,
        request_id=get_request_id(),
        data=None,
        error=ErrorDetail(kind=ErrorKind(kind), message=message, detail=detail),
        meta=Meta(execution_ms=elapsed),
    ).model_dump(mode="json")


def auth_error(message: str = "Authentication required.") -> dict:
    return error(
        ErrorKind.AUTH,
        message,
        {"suggestion": "Call with an authenticated user id, or use ml_ping to check the connection."},
    )


def rate_limit(retry_after: int, limit: int) -> dict:
    return error(
        ErrorKind.RATE_LIMIT,
        f"Rate limit exceeded: {limit} requests per window. Retry after {retry_after}s.",
        {"retry_after": retry_after, "limit": limit},
    )


def validation_error(message: str, fields: dict[str, str] | None = None) -> dict:
    return error(ErrorKind.VALIDATION, message, {"fields": fields} if fields else None)


def permission_error(action: str, resource: str) -> dict:
    return error(
        ErrorKind.PERMISSION,
        f"Permission denied: cannot {action} {resource}.",
        {"action": action, "resource": resource},
    )


def not_found(message: str) -> dict:
    return error(ErrorKind.NOT_FOUND, message)


def internal_error(message: str, exc: BaseException | None = None, **detail: Any) -> dict:
    if exc is not None:
        detail["exception"] = type(exc).__name__
    return error(ErrorKind.INTERNAL, message, detail or None)


def unknown_tool(tool_name: str, available: Iterable[str]) -> dict:
    names = list(available)
    return error(
        ErrorKind.UNKNOWN_TOOL,
        f"Unknown tool '{tool_name}'.",
        {
            "available": names,
            "suggestion": f"Use one of: {', '.join(names)}",
        },
        tool=tool_name,
    )


def wrap_legacy(result: Any, tool: str | None = None) -> dict:
    """Fold a legacy-style result into the standard envelope."""
    if isinstance(result, dict) and result.get("success") is False:
        kind = result.get("error_kind")
        if kind not in {k.value for k in ErrorKind}:
            kind = ErrorKind.INTERNAL
        message = result.get("message") or result.get("error") or "Legacy tool failed."
        return error(kind, str(message), {"legacy": True}, tool=tool)
    return ok(result, tool=tool, tier=TIER_LEGACY)


# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------


def log_error(response: dict, caller_id: int | None = None) -> None:
    """Log a failure envelope with the caller and correlation id."""
    err = response.get("error") or {}
    logger.error(
        "tool_error request_id=%s user_id=%s tool=%s kind=%s message=%s",
        response.get("request_id") or get_request_id(),
        caller_id,
        response.get("tool"),
        err.get("kind"),
        err.get("message"),
    )
