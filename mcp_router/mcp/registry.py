"""Tool registry – fixed core handlers plus packs registered at startup.

A handler is anything that can be invoked as ``handler(params, caller_id)``
or ``handler.invoke(params, caller_id)``, sync or async, returning an
envelope dict.
"""

from __future__ import annotations

import inspect
from dataclasses import dataclass
from typing import Any, Callable, Mapping

TIER_CORE = "core"
TIER_PACK = "pack"
TIER_LEGACY = "legacy"


@dataclass
class ToolEntry:
    name: str
    tier: str
    handler: Any
    pack: str | None = None
    description: str | None = None
    input_schema: dict | None = None


def resolve_invoker(handler: Any) -> Callable[..., Any] | None:
    """Return the callable behind *handler*, or None if it cannot be invoked."""
    invoke = getattr(handler, "invoke", None)
    if callable(invoke):
        return invoke
    if callable(handler):
        return handler
    return None


async def call_handler(invoker: Callable[..., Any], params: dict, caller_id: int | None) -> Any:
    result = invoker(params, caller_id)
    if inspect.isawaitable(result):
        result = await result
    return result


class ToolRegistry:
    """Name -> handler lookup for the core and pack tiers.

    Core names are fixed when the registry is built. Pack registrations
    overwrite earlier pack registrations under the same name; a pack tool
    that reuses a core name is kept but never wins a lookup.
    """

    def __init__(self, core_handlers: Mapping[str, Any]) -> None:
        self._core: dict[str, ToolEntry] = {
            name: ToolEntry(name=name, tier=TIER_CORE, handler=handler)
            for name, handler in core_handlers.items()
        }
        self._packs: dict[str, ToolEntry] = {}

    # ── Lookup ────────────────────────────────────────────────────────────

    def core(self, tool_name: str) -> ToolEntry | None:
        return self._core.get(tool_name)

    def pack(self, tool_name: str) -> ToolEntry | None:
        return self._packs.get(tool_name)

    @property
    def core_names(self) -> list[str]:
        return list(self._core)

    def pack_entries(self) -> list[ToolEntry]:
        return list(self._packs.values())

    def tool_names(self) -> list[str]:
        """Every known name, core first, without duplicates."""
        names = list(self._core)
        names.extend(name for name in self._packs if name not in self._core)
        return names

    def registered_packs(self) -> set[str]:
        return {entry.pack for entry in self._packs.values() if entry.pack}

    # ── Registration ──────────────────────────────────────────────────────

    def register_pack_tool(
        self,
        tool_name: str,
        pack_name: str,
        handler: Any,
        *,
        description: str | None = None,
        input_schema: dict | None = None,
    ) -> None:
        self._packs[tool_name] = ToolEntry(
            name=tool_name,
            tier=TIER_PACK,
            handler=handler,
            pack=pack_name,
            description=description,
            input_schema=input_schema,
        )

    def register_pack(self, pack_name: str, tools: Mapping[str, Any]) -> None:
        for tool_name, handler in tools.items():
            self.register_pack_tool(tool_name, pack_name, handler)

    def clear_packs(self) -> None:
        self._packs.clear()
