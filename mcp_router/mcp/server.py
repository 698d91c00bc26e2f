"""MCP server bootstrap – exposes the router's tools and runs the stdio transport."""

from __future__ import annotations

import asyncio
import json
import logging

from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import Resource, TextContent, Tool

from mcp_router.config import settings
from mcp_router.mcp.bootstrap import get_router
from mcp_router.mcp.catalog import TOOL_DEFINITIONS, pack_tool_definition
from mcp_router.mcp.router import Router
from mcp_router.services.caller_service import caller_context

logger = logging.getLogger("mcp.server")

RESOURCE_TOOLS = "router://tools"
RESOURCE_PACKS = "router://packs"


async def list_tool_definitions(router: Router) -> list[Tool]:
    """Core definitions plus every pack tool whose pack is active."""
    tools = list(TOOL_DEFINITIONS)
    for entry in router.registry.pack_entries():
        if router.registry.core(entry.name) is not None:
            continue
        if await router.gate.is_pack_active(entry.pack or ""):
            tools.append(pack_tool_definition(entry))
    return tools


# ---------------------------------------------------------------------------
# Server factory
# ---------------------------------------------------------------------------


def create_mcp_server(router: Router | None = None) -> Server:
    """Create and configure the MCP server instance."""
    router = router or get_router()
    server = Server(settings.mcp_server_name)

    # ── Tools ─────────────────────────────────────────────────────────────

    @server.list_tools()
    async def list_tools() -> list[Tool]:
        return await list_tool_definitions(router)

    @server.call_tool()
    async def call_tool(name: str, arguments: dict | None) -> list[TextContent]:
        result = await router.route(name, arguments or {})
        return [TextContent(type="text", text=json.dumps(result, default=str))]

    # ── Resources ─────────────────────────────────────────────────────────

    @server.list_resources()
    async def list_resources() -> list[Resource]:
        return [
            Resource(
                uri=RESOURCE_TOOLS,
                name="Available Tools",
                description="Core and pack tools with their availability",
                mimeType="application/json",
            ),
            Resource(
                uri=RESOURCE_PACKS,
                name="Packs Status",
                description="Known and active tool packs",
                mimeType="application/json",
            ),
        ]

    @server.read_resource()
    async def read_resource(uri) -> str:
        if str(uri) == RESOURCE_TOOLS:
            return json.dumps({"tools": await router.list_available_tools()}, indent=2)
        if str(uri) == RESOURCE_PACKS:
            return json.dumps(await router.packs_status(), indent=2)

        raise ValueError(f"Unknown resource: {uri}")

    return server


# ---------------------------------------------------------------------------
# Entry-point: run MCP server over stdio
# ---------------------------------------------------------------------------


async def run_mcp_server() -> None:
    """Start the MCP server using stdio transport."""
    server = create_mcp_server()
    logger.info(
        "Starting MCP server '%s' v%s (stdio, caller=%s)",
        settings.mcp_server_name,
        settings.mcp_server_version,
        settings.stdio_caller_id,
    )

    with caller_context(settings.stdio_caller_id):
        async with stdio_server() as (read_stream, write_stream):
            await server.run(read_stream, write_stream, server.create_initialization_options())


def main() -> None:
    """CLI entry-point."""
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    asyncio.run(run_mcp_server())


if __name__ == "__main__":
    main()
