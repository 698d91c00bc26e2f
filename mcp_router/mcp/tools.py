"""Core tool handlers – argument validation in front of the content backend."""

from __future__ import annotations

import base64
import binascii
import functools
import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable

from mcp_router.mcp import responses
from mcp_router.mcp.catalog import (
    ASSIST_ACTIONS,
    ME_ACTIONS,
    PUBLICATION_STATUSES,
    PUBLICATION_TYPES,
    RUN_MODES,
    VISIBILITIES,
)
from mcp_router.mcp.registry import TIER_CORE
from mcp_router.middleware.rate_limit import RateLimiter
from mcp_router.schemas.registry import CallerProfile
from mcp_router.services.caller_service import CallerDirectory
from mcp_router.services.content import ContentBackend

logger = logging.getLogger("mcp.tools")


@dataclass
class ToolContext:
    """Collaborators shared by the core handlers."""

    callers: CallerDirectory
    limiter: RateLimiter
    content: ContentBackend | None
    available_tools: Callable[[], Awaitable[list[dict]]]
    version: str = "3.0.0"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _elapsed(t0: float) -> float:
    return round((time.perf_counter() - t0) * 1000, 2)


def _ok(tool: str, data: Any, t0: float) -> dict:
    return responses.ok(data, tool=tool, elapsed=_elapsed(t0), tier=TIER_CORE)


def _no_backend(tool: str) -> dict:
    return responses.internal_error(f"No content backend configured for {tool}.", tool=tool)


_TYPE_NAMES = {str: "string", list: "array"}


def _check_types(arguments: dict, expected: dict[str, type]) -> dict | None:
    """validation_error naming every supplied argument of the wrong type, else None."""
    wrong = {
        name: f"Expected {_TYPE_NAMES[kind]}"
        for name, kind in expected.items()
        if arguments.get(name) is not None and not isinstance(arguments[name], kind)
    }
    if wrong:
        return responses.validation_error(f"Invalid argument type: {', '.join(wrong)}", wrong)
    return None


def _int_or_none(value: Any) -> int | None:
    if value is None or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _decode_image(raw: str) -> bytes:
    """Decode a base64 payload, tolerating a ``data:image/...;base64,`` prefix."""
    if raw.startswith("data:") and "," in raw:
        raw = raw.split(",", 1)[1]
    return base64.b64decode(raw, validate=True)


_IMAGE_SIGNATURES = {
    b"\x89PNG\r\n\x1a\n": "image/png",
    b"\xff\xd8\xff": "image/jpeg",
}


def _sniff_mime(data: bytes) -> str | None:
    for signature, mime in _IMAGE_SIGNATURES.items():
        if data.startswith(signature):
            return mime
    if data[:4] == b"RIFF" and data[8:12] == b"WEBP":
        return "image/webp"
    return None


# ---------------------------------------------------------------------------
# Tool implementations
# ---------------------------------------------------------------------------


async def handle_ping(arguments: dict, caller_id: int | None, ctx: ToolContext) -> dict:
    """Public health check; the only tool anonymous callers may use."""
    t0 = time.perf_counter()
    data = {
        "status": "ok",
        "version": ctx.version,
        "server_time": datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ"),
        "authenticated": bool(caller_id),
    }
    return _ok("ml_ping", data, t0)


async def handle_me(arguments: dict, caller_id: int | None, ctx: ToolContext) -> dict:
    """Caller profile and quotas; other actions are answered by the backend.

    Args:
        arguments: {"action": one of ME_ACTIONS (default "profile"), ...}
    """
    t0 = time.perf_counter()
    if not caller_id:
        return responses.auth_error()

    action = arguments.get("action") or "profile"
    if action not in ME_ACTIONS:
        return responses.validation_error(
            f"Invalid action: {action}", {"action": f"Valid values: {', '.join(ME_ACTIONS)}"}
        )

    if action == "profile":
        tools = await ctx.available_tools()
        profile = CallerProfile(
            user_id=caller_id,
            roles=await ctx.callers.roles_of(caller_id),
            rate_limit=await ctx.limiter.limit_for(caller_id),
            tools=[t["name"] for t in tools if t["available"]],
        )
        return _ok("ml_me", profile.model_dump(), t0)

    if action == "quotas":
        limit = await ctx.limiter.limit_for(caller_id)
        used = await ctx.limiter.count(caller_id)
        ttl = await ctx.limiter.store.remaining_ttl(ctx.limiter.key_for(caller_id))
        data = {
            "limit": limit,
            "used": used,
            "remaining": max(0, limit - used),
            "window_seconds": ctx.limiter.window_seconds,
            "resets_in": round(ttl, 1) if used else None,
        }
        return _ok("ml_me", data, t0)

    if ctx.content is None:
        return _no_backend("ml_me")
    result = await ctx.content.me(action, arguments, caller_id)
    logger.info("ml_me action=%s user_id=%s ms=%.1f", action, caller_id, _elapsed(t0))
    return _ok("ml_me", result, t0)


async def handle_find(arguments: dict, caller_id: int | None, ctx: ToolContext) -> dict:
    """Search publications (query) or read one (id).

    Args:
        arguments: {"query": str, "id": int, "type": str, "space_id": int,
                     "limit": int (default 10), "offset": int}
    """
    t0 = time.perf_counter()
    bad = _check_types(arguments, {"query": str})
    if bad:
        return bad

    query = (arguments.get("query") or "").strip()
    pub_id = _int_or_none(arguments.get("id"))
    pub_type = arguments.get("type")
    limit = _int_or_none(arguments.get("limit", 10))

    if not query and pub_id is None and not pub_type:
        return responses.validation_error(
            "Provide a query, an id, or a type",
            {"query": "Search terms", "id": "Publication id to read"},
        )
    if pub_type is not None and pub_type not in PUBLICATION_TYPES:
        return responses.validation_error(
            f"Invalid type: {pub_type}", {"type": f"Valid values: {', '.join(PUBLICATION_TYPES)}"}
        )
    if limit is None or not 1 <= limit <= 50:
        return responses.validation_error("limit must be between 1 and 50")

    if ctx.content is None:
        return _no_backend("ml_find")

    request = {**arguments, "query": query or None, "id": pub_id, "limit": limit}
    result = await ctx.content.find(request, caller_id)
    if pub_id is not None and result is None:
        return responses.not_found(f"Publication #{pub_id} not found")

    logger.info("ml_find query=%s id=%s user_id=%s ms=%.1f", query, pub_id, caller_id, _elapsed(t0))
    return _ok("ml_find", result, t0)


async def handle_save(arguments: dict, caller_id: int | None, ctx: ToolContext) -> dict:
    """Create, update or trash a publication.

    Args:
        arguments: {"id" | "publication_id": int, "title": str, "content": str,
                     "status": str, "visibility": str, "type": str,
                     "mode": "auto" | "create" | "update", ...}
    """
    t0 = time.perf_counter()
    if not caller_id:
        return responses.auth_error("Authentication required to save.")
    bad = _check_types(arguments, {"title": str, "content": str})
    if bad:
        return bad

    pub_id = _int_or_none(arguments.get("publication_id", arguments.get("id")))
    title = (arguments.get("title") or "").strip()
    content = arguments.get("content") or ""
    status = arguments.get("status") or "pending"
    visibility = arguments.get("visibility") or "public"
    pub_type = arguments.get("type")
    mode = arguments.get("mode") or "auto"

    # type="draft" is a frequent mix-up for status="draft"
    if isinstance(pub_type, str) and pub_type.lower() == "draft":
        if "status" not in arguments:
            status = "draft"
        pub_type = "content"

    if mode == "auto":
        mode = "update" if pub_id else "create"
    if mode not in ("create", "update"):
        return responses.validation_error(f"Invalid mode: {mode}")

    if status not in PUBLICATION_STATUSES:
        return responses.validation_error(
            f"Invalid status: {status}",
            {"status": f"Valid values: {', '.join(PUBLICATION_STATUSES)}"},
        )
    if visibility not in VISIBILITIES:
        return responses.validation_error(
            f"Invalid visibility: {visibility}",
            {"visibility": f"Valid values: {', '.join(VISIBILITIES)}"},
        )
    if pub_type is not None and pub_type not in PUBLICATION_TYPES:
        return responses.validation_error(
            f"Invalid type: {pub_type}",
            {"type": f"Valid values: {', '.join(PUBLICATION_TYPES)}"},
        )
    if mode == "create" and not title and not content:
        return responses.validation_error(
            "Title or content required",
            {"title": "At least one of the two is required", "content": "At least one of the two is required"},
        )
    if mode == "update" and not pub_id:
        return responses.validation_error("Id required to update", {"id": "Provide id or publication_id"})

    if ctx.content is None:
        return _no_backend("ml_save")

    publication = {
        **arguments,
        "id": pub_id,
        "title": title,
        "content": content,
        "status": status,
        "visibility": visibility,
        "type": pub_type,
        "mode": mode,
    }
    publication.pop("publication_id", None)
    saved = await ctx.content.save(publication, caller_id)
    if saved is None:
        return responses.not_found(f"Publication #{pub_id} not found")

    logger.info("ml_save mode=%s id=%s status=%s user_id=%s", mode, pub_id, status, caller_id)
    return _ok("ml_save", saved, t0)


async def handle_run(arguments: dict, caller_id: int | None, ctx: ToolContext) -> dict:
    """Execute a prompt/tool.

    Args:
        arguments: {"tool_id": int, "input": str, "source_id": int,
                     "source_ids": [int], "mode": "sync" | "async" | "delegate"}
    """
    t0 = time.perf_counter()
    bad = _check_types(arguments, {"source_ids": list})
    if bad:
        return bad

    tool_id = _int_or_none(arguments.get("tool_id"))
    mode = arguments.get("mode") or "sync"
    source_ids = arguments.get("source_ids") or []

    if tool_id is None:
        return responses.validation_error("tool_id is required", {"tool_id": "Prompt/tool id"})
    if mode not in RUN_MODES:
        return responses.validation_error(
            f"Invalid mode: {mode}", {"mode": f"Valid values: {', '.join(RUN_MODES)}"}
        )
    if mode == "sync" and len(source_ids) > 5:
        return responses.validation_error(
            "At most 5 source_ids in sync mode", {"mode": "Use mode=async for larger batches"}
        )
    if len(source_ids) > 100:
        return responses.validation_error("At most 100 source_ids")

    if ctx.content is None:
        return _no_backend("ml_run")

    result = await ctx.content.run({**arguments, "tool_id": tool_id, "mode": mode}, caller_id)
    if result is None:
        return responses.not_found(f"Tool #{tool_id} not found")

    logger.info("ml_run tool_id=%s mode=%s user_id=%s ms=%.1f", tool_id, mode, caller_id, _elapsed(t0))
    return _ok("ml_run", result, t0)


async def handle_assist(arguments: dict, caller_id: int | None, ctx: ToolContext) -> dict:
    t0 = time.perf_counter()
    bad = _check_types(arguments, {"context": str})
    if bad:
        return bad

    context = (arguments.get("context") or "").strip()
    action = arguments.get("action") or "suggest"

    if not context:
        return responses.validation_error("context is required", {"context": "User request to analyse"})
    if action not in ASSIST_ACTIONS:
        return responses.validation_error(
            f"Invalid action: {action}", {"action": f"Valid values: {', '.join(ASSIST_ACTIONS)}"}
        )
    if action == "apply" and _int_or_none(arguments.get("tool_id")) is None:
        return responses.validation_error("tool_id is required when action=apply")

    if ctx.content is None:
        return _no_backend("ml_assist")

    result = await ctx.content.assist({**arguments, "context": context, "action": action}, caller_id)
    return _ok("ml_assist", result, t0)


async def handle_image(arguments: dict, caller_id: int | None, ctx: ToolContext) -> dict:
    """Attach a featured image to an existing publication."""
    t0 = time.perf_counter()
    bad = _check_types(arguments, {"image_base64": str})
    if bad:
        return bad

    pub_id = _int_or_none(arguments.get("publication_id"))
    raw = arguments.get("image_base64") or ""

    if pub_id is None or not raw:
        return responses.validation_error(
            "publication_id and image_base64 are required",
            {"publication_id": "Publication to illustrate", "image_base64": "Base64 image"},
        )
    try:
        data = _decode_image(raw)
    except (binascii.Error, ValueError):
        return responses.validation_error("image_base64 is not valid base64")

    mime = _sniff_mime(data)
    if mime is None:
        return responses.validation_error("Unsupported image format", {"image_base64": "PNG, JPEG or WebP"})

    if ctx.content is None:
        return _no_backend("ml_image")

    image = {
        "data": data,
        "mime_type": mime,
        "alt": arguments.get("alt"),
        "caption": arguments.get("caption"),
    }
    result = await ctx.content.attach_image(pub_id, image, caller_id)
    if result is None:
        return responses.not_found(f"Publication #{pub_id} not found")

    logger.info("ml_image publication_id=%s mime=%s bytes=%d", pub_id, mime, len(data))
    return _ok("ml_image", result, t0)


CORE_TOOL_HANDLERS = {
    "ml_ping": handle_ping,
    "ml_find": handle_find,
    "ml_me": handle_me,
    "ml_save": handle_save,
    "ml_run": handle_run,
    "ml_assist": handle_assist,
    "ml_image": handle_image,
}


def core_handlers(ctx: ToolContext) -> dict[str, Callable[..., Awaitable[dict]]]:
    """Bind every core handler to *ctx* so it can be called as ``(params, caller_id)``."""
    return {name: functools.partial(fn, ctx=ctx) for name, fn in CORE_TOOL_HANDLERS.items()}
