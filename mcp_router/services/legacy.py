"""Backward compatibility for V2 tool names.

V2 exposed one tool per operation (``ml_search``, ``ml_publication_create``
...). Each maps onto one of the current core tools plus an argument rewrite.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Protocol

from mcp_router.mcp.registry import call_handler, resolve_invoker

logger = logging.getLogger("mcp.legacy")


class LegacyTranslator(Protocol):
    async def translate_and_execute(
        self, tool_name: str, params: dict, caller_id: int | None
    ) -> dict | None:
        """Return None when *tool_name* is not a legacy tool."""
        ...


# ---------------------------------------------------------------------------
# Argument rewrites
# ---------------------------------------------------------------------------


def _publication_to_find(params: dict) -> dict:
    out = dict(params)
    if "publication_id" in out and "id" not in out:
        out["id"] = out.pop("publication_id")
    return out


def _search_to_find(params: dict) -> dict:
    out = dict(params)
    if "search" in out and "query" not in out:
        out["query"] = out.pop("search")
    return out


def _me_action(action: str) -> Callable[[dict], dict]:
    def rewrite(params: dict) -> dict:
        return {**params, "action": action}

    return rewrite


def _save_mode(mode: str) -> Callable[[dict], dict]:
    def rewrite(params: dict) -> dict:
        return {**_publication_to_find(params), "mode": mode}

    return rewrite


def _apply_to_run(params: dict) -> dict:
    out = dict(params)
    if "prompt_id" in out and "tool_id" not in out:
        out["tool_id"] = out.pop("prompt_id")
    return out


def _assist_action(action: str) -> Callable[[dict], dict]:
    def rewrite(params: dict) -> dict:
        out = dict(params)
        if "text" in out and "context" not in out:
            out["context"] = out.pop("text")
        out.setdefault("action", action)
        return out

    return rewrite


LEGACY_MAPPINGS: dict[str, tuple[str, Callable[[dict], dict]]] = {
    # Search/Read -> ml_find
    "ml_publication_get": ("ml_find", _publication_to_find),
    "ml_publications_list": ("ml_find", dict),
    "ml_search": ("ml_find", _search_to_find),
    "ml_search_advanced": ("ml_find", _search_to_find),
    # Context -> ml_me
    "ml_spaces_list": ("ml_me", _me_action("spaces")),
    "ml_get_my_context": ("ml_me", _me_action("context")),
    "ml_favorites_list": ("ml_me", _me_action("favorites")),
    # Execute -> ml_run
    "ml_apply_tool": ("ml_run", _apply_to_run),
    "ml_context_bundle_build": ("ml_run", _apply_to_run),
    # Create/Update -> ml_save
    "ml_publication_create": ("ml_save", _save_mode("create")),
    "ml_publication_update": ("ml_save", _save_mode("update")),
    # Recommend -> ml_assist
    "ml_recommend": ("ml_assist", _assist_action("suggest")),
    "ml_assist_prepare": ("ml_assist", _assist_action("suggest")),
    # Feedback -> ml_me
    "ml_feedback": ("ml_me", _me_action("feedback")),
    "ml_rate": ("ml_me", _me_action("feedback")),
}


def is_legacy_tool(name: str) -> bool:
    return name in LEGACY_MAPPINGS


class MappingLegacyTranslator:
    """Executes legacy names through the mapped core handler.

    Attributes:
        lookup: ``name -> handler`` for current core tools (``None`` if unknown).
    """

    def __init__(self, lookup: Callable[[str], Any]) -> None:
        self.lookup = lookup

    async def translate_and_execute(
        self, tool_name: str, params: dict, caller_id: int | None
    ) -> dict | None:
        mapping = LEGACY_MAPPINGS.get(tool_name)
        if mapping is None:
            return None

        target, rewrite = mapping
        invoker = resolve_invoker(self.lookup(target))
        if invoker is None:
            logger.warning("legacy_target_missing legacy=%s target=%s", tool_name, target)
            return None

        logger.info("legacy_call legacy=%s target=%s user_id=%s", tool_name, target, caller_id)
        envelope = await call_handler(invoker, rewrite(params), caller_id)

        result: dict[str, Any] = {
            "success": bool(envelope.get("success")),
            "legacy_tool": tool_name,
            "tool": target,
            "result": envelope.get("data"),
        }
        if not result["success"]:
            err = envelope.get("error") or {}
            result["error_kind"] = err.get("kind")
            result["message"] = err.get("message")
        return result
