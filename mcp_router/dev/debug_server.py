"""FastAPI debug server – HTTP endpoints for manual tool testing.

This is NOT part of the MCP protocol surface. It is a convenience for local
development without an MCP client (Claude Desktop, Cursor).

Run with:
    python -m mcp_router.dev.debug_server
    # → http://localhost:8000/health
    # → http://localhost:8000/docs  (Swagger UI)

Tool calls take the caller id from the ``X-MCP-User-Id`` header.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any

from fastapi import Body, Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from mcp_router.config import settings
from mcp_router.mcp.bootstrap import get_router
from mcp_router.mcp.router import Router
from mcp_router.services.caller_service import caller_context, parse_caller_id

logger = logging.getLogger("mcp_router.dev.debug_server")


def parse_cors_origins(origins_string: str) -> list[str]:
    """Parse a comma-separated origin list ("*" allows all)."""
    if origins_string == "*":
        return ["*"]
    return [origin.strip() for origin in origins_string.split(",") if origin.strip()]


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Debug server starting (env=%s)", settings.app_env)
    yield
    logger.info("Debug server shutting down")


app = FastAPI(
    title="MCP Tool Router – Debug HTTP",
    description="Developer-only HTTP wrapper around the tool router.",
    version=settings.mcp_server_version,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=parse_cors_origins(settings.allowed_origins),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ── Health ────────────────────────────────────────────────────────────────────


@app.get("/health")
async def health():
    return {"status": "ok", "version": settings.mcp_server_version}


# ── Discovery ─────────────────────────────────────────────────────────────────


@app.get("/tools")
async def list_tools(router: Router = Depends(get_router)):
    return {"tools": await router.list_available_tools()}


@app.get("/packs")
async def packs_status(router: Router = Depends(get_router)):
    return await router.packs_status()


# ── Tool calls ────────────────────────────────────────────────────────────────


@app.post("/tools/{tool_name}")
async def call_tool(
    tool_name: str,
    request: Request,
    arguments: dict[str, Any] | None = Body(None),
    router: Router = Depends(get_router),
):
    caller_id = parse_caller_id(request.headers.get(settings.caller_header))
    with caller_context(caller_id):
        result = await router.route(tool_name, arguments or {})
    return JSONResponse(content=result)


# ── Run via uvicorn ───────────────────────────────────────────────────────────

if __name__ == "__main__":
    import uvicorn

    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    uvicorn.run(
        "mcp_router.dev.debug_server:app",
        host=settings.fastapi_host,
        port=settings.fastapi_port,
        reload=(settings.app_env == "development"),
    )
