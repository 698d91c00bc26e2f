"""SSE (Server-Sent Events) transport for the MCP tool router.

Exposes the router over HTTP for web-based MCP clients and environments
where stdio is not available. The caller id is read from the
``X-MCP-User-Id`` header (``settings.caller_header``) of each POST and bound
as the current caller while the request is routed.

Run with:
    python -m mcp_router.mcp.sse_server

SSE endpoint: GET  /sse
Message post: POST /messages?session_id=<id>
Health check: GET  /health
"""

from __future__ import annotations

import asyncio
import json
import logging
from contextlib import asynccontextmanager
from typing import Any

from fastapi import Depends, FastAPI, Request, Response
from fastapi.responses import JSONResponse
from sse_starlette.sse import EventSourceResponse

from mcp_router.config import settings
from mcp_router.mcp.bootstrap import get_router
from mcp_router.mcp.router import Router
from mcp_router.mcp.server import list_tool_definitions
from mcp_router.services.caller_service import caller_context, parse_caller_id

logger = logging.getLogger("mcp.sse")

PROTOCOL_VERSION = "2024-11-05"

# In-memory message queues keyed by session_id
_sessions: dict[str, asyncio.Queue] = {}
_session_counter = 0


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(
        "MCP SSE transport starting on %s:%s",
        settings.fastapi_host,
        settings.fastapi_port,
    )
    yield
    logger.info("MCP SSE transport shutting down")
    _sessions.clear()


app = FastAPI(
    title="MCP Tool Router – SSE Transport",
    version=settings.mcp_server_version,
    lifespan=lifespan,
)


# ---------------------------------------------------------------------------
# JSON-RPC handling
# ---------------------------------------------------------------------------


def _result(rpc_id: Any, result: dict) -> dict:
    return {"jsonrpc": "2.0", "id": rpc_id, "result": result}


async def handle_rpc(body: dict, router: Router, caller_id: int | None = None) -> dict:
    """Answer one JSON-RPC request on behalf of *caller_id*."""
    method = body.get("method", "")
    params = body.get("params") or {}
    rpc_id = body.get("id")

    if method == "initialize":
        return _result(
            rpc_id,
            {
                "protocolVersion": PROTOCOL_VERSION,
                "capabilities": {
                    "tools": {"listChanged": False},
                    "resources": {"listChanged": False},
                },
                "serverInfo": {
                    "name": settings.mcp_server_name,
                    "version": settings.mcp_server_version,
                },
            },
        )

    if method == "tools/list":
        tools = await list_tool_definitions(router)
        return _result(rpc_id, {"tools": [t.model_dump(exclude_none=True) for t in tools]})

    if method == "tools/call":
        with caller_context(caller_id):
            envelope = await router.route(params.get("name", ""), params.get("arguments") or {})
        return _result(
            rpc_id,
            {
                "content": [{"type": "text", "text": json.dumps(envelope, default=str)}],
                "isError": not envelope.get("success", False),
            },
        )

    return {
        "jsonrpc": "2.0",
        "id": rpc_id,
        "error": {"code": -32601, "message": f"Method '{method}' not found"},
    }


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------


@app.get("/health")
async def health():
    return {
        "status": "ok",
        "transport": "sse",
        "version": settings.mcp_server_version,
    }


# ---------------------------------------------------------------------------
# SSE endpoint
# ---------------------------------------------------------------------------


@app.get("/sse")
async def sse_endpoint(request: Request):
    """Server-Sent Events stream for MCP protocol messages.

    The client opens this endpoint, then posts requests to
    ``/messages?session_id=<id>`` and reads the responses from this stream.
    """
    global _session_counter
    _session_counter += 1
    session_id = f"session-{_session_counter}"

    queue: asyncio.Queue = asyncio.Queue()
    _sessions[session_id] = queue

    async def event_generator():
        yield {
            "event": "endpoint",
            "data": f"/messages?session_id={session_id}",
        }

        try:
            while True:
                if await request.is_disconnected():
                    break
                try:
                    message = await asyncio.wait_for(queue.get(), timeout=30.0)
                    yield {
                        "event": "message",
                        "data": json.dumps(message, default=str),
                    }
                except asyncio.TimeoutError:
                    yield {"comment": "keepalive"}
        finally:
            _sessions.pop(session_id, None)

    return EventSourceResponse(event_generator())


# ---------------------------------------------------------------------------
# Message endpoint (client → server)
# ---------------------------------------------------------------------------


@app.post("/messages")
async def messages_endpoint(request: Request, session_id: str, router: Router = Depends(get_router)):
    """Process a JSON-RPC request and push the response onto the session's stream."""
    queue = _sessions.get(session_id)
    if queue is None:
        return JSONResponse(
            status_code=404,
            content={"error": f"Session '{session_id}' not found. Connect to /sse first."},
        )

    body = await request.json()
    caller_id = parse_caller_id(request.headers.get(settings.caller_header))
    logger.debug("SSE recv session=%s user_id=%s method=%s", session_id, caller_id, body.get("method"))

    response = await handle_rpc(body, router, caller_id)
    await queue.put(response)

    return Response(status_code=202, content="Accepted")


# ---------------------------------------------------------------------------
# Entry-point
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    import uvicorn

    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    uvicorn.run(
        "mcp_router.mcp.sse_server:app",
        host=settings.fastapi_host,
        port=settings.fastapi_port,
        reload=False,
    )
