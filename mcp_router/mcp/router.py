"""Router – central request routing for MCP tool calls.

Every call goes through :meth:`Router.route`:

    auth check -> rate check -> audit start -> dispatch -> audit end -> count

Dispatch tries, in order: core tools, registered pack tools, legacy (V2)
names, and finally answers ``unknown_tool``. Whatever happens, the caller
gets an envelope dict back, never an exception.
"""

from __future__ import annotations

import logging
import time
from datetime import datetime, timezone
from typing import Any, Callable, Iterable, Mapping

from mcp_router.mcp import responses
from mcp_router.mcp.registry import ToolEntry, ToolRegistry, call_handler, resolve_invoker
from mcp_router.mcp.tools import ToolContext, core_handlers
from mcp_router.middleware.rate_limit import RateLimiter
from mcp_router.schemas.common import ErrorKind
from mcp_router.schemas.registry import PacksStatus, ToolListing
from mcp_router.services.audit import AuditSink, LoggingAuditSink
from mcp_router.services.caller_service import CallerDirectory, current_caller_id, parse_caller_id
from mcp_router.services.content import ContentBackend
from mcp_router.services.legacy import LegacyTranslator, MappingLegacyTranslator
from mcp_router.services.pack_service import PackGate

logger = logging.getLogger("mcp.router")

REDACTED = "[REDACTED]"
DEFAULT_REDACTED_KEYS = ("password", "token", "api_key", "secret", "key")


def _utc_timestamp() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def sanitize_params_for_log(value: Any, sensitive: Iterable[str] = DEFAULT_REDACTED_KEYS) -> Any:
    """Copy *value* with every sensitive key's value replaced, at any depth."""
    keys = {k.lower() for k in sensitive}

    def _walk(node: Any) -> Any:
        if isinstance(node, Mapping):
            return {
                k: REDACTED if str(k).lower() in keys else _walk(v)
                for k, v in node.items()
            }
        if isinstance(node, (list, tuple)):
            return [_walk(item) for item in node]
        return node

    return _walk(value)


class Router:
    """Routes named tool calls to core, pack or legacy handlers.

    Attributes:
        registry: Core + pack tool lookup owned by this router.
        limiter: Per-caller rate limiter.
        gate: Pack activation / permission queries.
        translator: Legacy name translator (``None`` disables the legacy tier).
        audit: Sink receiving ``mcp_request_start`` / ``mcp_request_end`` events.
        caller_resolver: Fallback used when ``route`` gets no caller id.
        public_tool: The one tool anonymous callers may use.
    """

    def __init__(
        self,
        limiter: RateLimiter,
        gate: PackGate,
        callers: CallerDirectory,
        *,
        audit: AuditSink | None = None,
        content: ContentBackend | None = None,
        translator: LegacyTranslator | None = None,
        caller_resolver: Callable[[], int | None] = current_caller_id,
        core: Mapping[str, Any] | None = None,
        public_tool: str = "ml_ping",
        redacted_keys: Iterable[str] = DEFAULT_REDACTED_KEYS,
        atomic_rate_limit: bool = False,
        version: str = "3.0.0",
    ) -> None:
        self.limiter = limiter
        self.gate = gate
        self.callers = callers
        self.audit = audit or LoggingAuditSink()
        self.caller_resolver = caller_resolver
        self.public_tool = public_tool
        self.redacted_keys = tuple(redacted_keys)
        self.atomic_rate_limit = atomic_rate_limit
        self.version = version

        if core is None:
            ctx = ToolContext(
                callers=callers,
                limiter=limiter,
                content=content,
                available_tools=self.list_available_tools,
                version=version,
            )
            core = core_handlers(ctx)
        self.registry = ToolRegistry(core)
        self.translator = translator or MappingLegacyTranslator(self._core_handler)

    # ------------------------------------------------------------------
    # Routing
    # ------------------------------------------------------------------

    async def route(
        self,
        tool_name: str,
        params: dict | None = None,
        caller_id: int | None = None,
    ) -> dict:
        """Authenticate, rate-limit, dispatch and audit one tool call."""
        params = params or {}
        request_id = responses.generate_request_id()
        responses.set_request_id(request_id)

        if caller_id is None:
            caller_id = self.caller_resolver()
        caller_id = parse_caller_id(caller_id)

        if caller_id is None and tool_name != self.public_tool:
            response = responses.auth_error()
            self._record_failure(response, tool_name, params, caller_id)
            return response

        try:
            if self.atomic_rate_limit:
                rate = await self.limiter.acquire(caller_id)
            else:
                rate = await self.limiter.check(caller_id)
        except Exception as exc:
            logger.exception("rate_check_failed request_id=%s tool=%s", request_id, tool_name)
            response = responses.internal_error(
                f"Rate limit check failed for {tool_name}: {exc}", exc, tool=tool_name
            )
            self._record_failure(response, tool_name, params, caller_id)
            return response
        if not rate.allowed:
            response = responses.rate_limit(rate.retry_after, rate.limit)
            self._record_failure(response, tool_name, params, caller_id)
            return response

        self._log_request_start(tool_name, params, caller_id, request_id)
        t0 = time.perf_counter()

        try:
            response = await self._dispatch(tool_name, params, caller_id)
            if not isinstance(response, Mapping) or "success" not in response:
                logger.error(
                    "invalid_response request_id=%s tool=%s type=%s",
                    request_id,
                    tool_name,
                    type(response).__name__,
                )
                response = responses.internal_error(
                    f"Tool {tool_name} returned an invalid response.", tool=tool_name
                )
        except Exception as exc:
            logger.exception("dispatch_failed request_id=%s tool=%s", request_id, tool_name)
            response = responses.internal_error(
                f"Error while executing {tool_name}: {exc}", exc, tool=tool_name
            )

        if not response.get("success"):
            self._record_failure(response, tool_name, params, caller_id)

        duration_ms = round((time.perf_counter() - t0) * 1000, 2)
        self._log_request_end(tool_name, response, caller_id, request_id, duration_ms)

        if not self.atomic_rate_limit:
            await self.limiter.increment(caller_id)

        return response

    async def _dispatch(self, tool_name: str, params: dict, caller_id: int | None) -> dict:
        # 1. Core tools
        entry = self.registry.core(tool_name)
        if entry is not None:
            return await call_handler(resolve_invoker(entry.handler), params, caller_id)

        # 2. Registered pack tools
        entry = self.registry.pack(tool_name)
        if entry is not None:
            return await self._execute_pack_tool(entry, params, caller_id)

        # 3. Legacy (V2) names
        if self.translator is not None:
            legacy = await self.translator.translate_and_execute(tool_name, params, caller_id)
            if legacy is not None:
                return responses.wrap_legacy(legacy, tool=tool_name)

        # 4. Unknown
        return responses.unknown_tool(tool_name, self.registry.tool_names())

    async def _execute_pack_tool(self, entry: ToolEntry, params: dict, caller_id: int | None) -> dict:
        pack = entry.pack or ""

        if not await self.gate.is_pack_active(pack):
            return responses.error(
                ErrorKind.PERMISSION,
                f"Pack '{pack}' is not activated.",
                {"pack": pack, "suggestion": "Activate the pack in the MCP settings."},
                tool=entry.name,
            )

        if not await self.gate.pack_permission(pack, caller_id):
            return responses.permission_error("execute", f"pack '{pack}'")

        invoker = resolve_invoker(entry.handler)
        if invoker is None:
            return responses.internal_error(
                f"No handler found for pack tool '{entry.name}'.", pack=pack, tool=entry.name
            )
        return await call_handler(invoker, params, caller_id)

    def _core_handler(self, tool_name: str) -> Any:
        entry = self.registry.core(tool_name)
        return entry.handler if entry else None

    # ------------------------------------------------------------------
    # Registration & discovery
    # ------------------------------------------------------------------

    def register_pack_tool(
        self,
        tool_name: str,
        pack_name: str,
        handler: Any,
        *,
        description: str | None = None,
        input_schema: dict | None = None,
    ) -> None:
        self.registry.register_pack_tool(
            tool_name, pack_name, handler, description=description, input_schema=input_schema
        )

    def register_pack(self, pack_name: str, tools: Mapping[str, Any]) -> None:
        self.registry.register_pack(pack_name, tools)

    async def list_available_tools(self) -> list[dict]:
        tools = [
            ToolListing(name=name, tier="core", available=True).model_dump()
            for name in self.registry.core_names
        ]
        for entry in self.registry.pack_entries():
            tools.append(
                ToolListing(
                    name=entry.name,
                    tier="pack",
                    pack=entry.pack,
                    available=await self.gate.is_pack_active(entry.pack or ""),
                ).model_dump()
            )
        return tools

    async def packs_status(self) -> dict:
        known = set(await self.gate.store.all_packs()) | self.registry.registered_packs()
        active = [name for name in sorted(known) if await self.gate.is_pack_active(name)]
        return PacksStatus(available=sorted(known), active=active).model_dump()

    def reset(self) -> None:
        """Drop pack registrations and the current correlation id."""
        self.registry.clear_packs()
        responses.reset()

    # ------------------------------------------------------------------
    # Audit
    # ------------------------------------------------------------------

    def _emit(self, event_name: str, payload: dict) -> None:
        # A broken sink must not turn a finished call into an exception
        try:
            self.audit.emit(event_name, payload)
        except Exception:
            logger.exception(
                "audit_emit_failed event=%s request_id=%s", event_name, payload.get("request_id")
            )

    def _log_request_start(
        self, tool_name: str, params: dict, caller_id: int | None, request_id: str
    ) -> None:
        self._emit(
            "mcp_request_start",
            {
                "request_id": request_id,
                "tool": tool_name,
                "params": sanitize_params_for_log(params, self.redacted_keys),
                "user_id": caller_id,
                "timestamp": _utc_timestamp(),
            },
        )

    def _log_request_end(
        self,
        tool_name: str,
        response: dict,
        caller_id: int | None,
        request_id: str,
        duration_ms: float,
    ) -> None:
        self._emit(
            "mcp_request_end",
            {
                "request_id": request_id,
                "tool": tool_name,
                "success": bool(response.get("success", False)),
                "user_id": caller_id,
                "timestamp": _utc_timestamp(),
                "duration_ms": duration_ms,
            },
        )

    def _record_failure(
        self, response: dict, tool_name: str, params: dict, caller_id: int | None
    ) -> None:
        responses.log_error(response, caller_id)
        err = response.get("error") or {}
        self._emit(
            "mcp_request_error",
            {
                "request_id": response.get("request_id"),
                "tool": tool_name,
                "kind": err.get("kind"),
                "message": err.get("message"),
                "params": sanitize_params_for_log(params, self.redacted_keys),
                "user_id": caller_id,
                "timestamp": _utc_timestamp(),
            },
        )
