"""MCP tool definitions for the core tools, plus pack tool listings."""

from __future__ import annotations

from mcp.types import Tool, ToolAnnotations

from mcp_router.mcp.registry import ToolEntry

PUBLICATION_TYPES = ["content", "tool", "prompt", "style", "client", "project", "publication"]
PUBLICATION_STATUSES = ["draft", "publish", "pending", "trash"]
VISIBILITIES = ["public", "private", "space"]
ME_ACTIONS = [
    "profile",
    "quotas",
    "spaces",
    "context",
    "favorites",
    "feedback",
    "audit",
    "stats",
    "jobs",
    "job",
    "labels",
]
ASSIST_ACTIONS = ["suggest", "apply", "create", "labels", "job"]
RUN_MODES = ["sync", "async", "delegate"]

READ_ONLY = ToolAnnotations(readOnlyHint=True)

# ---------------------------------------------------------------------------
# Core tools
# ---------------------------------------------------------------------------

TOOL_DEFINITIONS: list[Tool] = [
    Tool(
        name="ml_ping",
        description=(
            "Check that the MCP server is reachable. Returns server status, version, "
            "server time, and whether the call was authenticated. No parameters."
        ),
        inputSchema={"type": "object", "properties": {}},
        annotations=READ_ONLY,
    ),
    Tool(
        name="ml_find",
        description=(
            "Search or read publications. Search mode: query='follow-up letter'. "
            "Read mode: id=456."
        ),
        inputSchema={
            "type": "object",
            "properties": {
                "query": {"type": "string", "description": "Search terms (or id)"},
                "id": {"type": "integer", "description": "Publication id to read (or query)"},
                "type": {
                    "type": "string",
                    "enum": PUBLICATION_TYPES,
                    "description": "Filter by type",
                },
                "space_id": {"type": "integer", "description": "Filter by space"},
                "limit": {
                    "type": "integer",
                    "description": "Max results (1-50)",
                    "default": 10,
                    "minimum": 1,
                    "maximum": 50,
                },
                "offset": {"type": "integer", "description": "Pagination offset", "default": 0},
            },
        },
        annotations=READ_ONLY,
    ),
    Tool(
        name="ml_me",
        description=(
            "Information about the calling user: profile, rate-limit quotas, spaces, "
            "context, favorites, or submit feedback."
        ),
        inputSchema={
            "type": "object",
            "properties": {
                "action": {
                    "type": "string",
                    "enum": ME_ACTIONS,
                    "description": "What to return (default: profile)",
                },
            },
        },
        annotations=READ_ONLY,
    ),
    Tool(
        name="ml_save",
        description=(
            "Create or update a publication. Without an id a new publication is "
            "created; with an id the existing one is updated. status=trash deletes."
        ),
        inputSchema={
            "type": "object",
            "properties": {
                "id": {"type": "integer", "description": "Publication id (update mode)"},
                "title": {"type": "string", "description": "Title"},
                "content": {"type": "string", "description": "Body"},
                "space_id": {"type": "integer", "description": "Target space"},
                "type": {"type": "string", "enum": PUBLICATION_TYPES},
                "status": {"type": "string", "enum": PUBLICATION_STATUSES, "default": "pending"},
                "visibility": {"type": "string", "enum": VISIBILITIES, "default": "public"},
                "mode": {"type": "string", "enum": ["auto", "create", "update"], "default": "auto"},
                "tags": {"type": "array", "items": {"type": "string"}},
            },
        },
    ),
    Tool(
        name="ml_run",
        description=(
            "Execute a prompt/tool on text or publications. sync returns the AI result, "
            "async returns a job id, delegate returns the assembled prompt."
        ),
        inputSchema={
            "type": "object",
            "properties": {
                "tool_id": {"type": "integer", "description": "Prompt/tool to execute"},
                "input": {"type": "string", "description": "Raw input text"},
                "source_id": {"type": "integer", "description": "Publication used as input"},
                "source_ids": {
                    "type": "array",
                    "items": {"type": "integer"},
                    "description": "Several publications used as input",
                },
                "mode": {"type": "string", "enum": RUN_MODES, "default": "sync"},
            },
            "required": ["tool_id"],
        },
    ),
    Tool(
        name="ml_assist",
        description=(
            "Analyse a request and suggest the best tool (suggest), run it (apply), "
            "or assemble a new one (create)."
        ),
        inputSchema={
            "type": "object",
            "properties": {
                "context": {"type": "string", "description": "User request to analyse"},
                "action": {"type": "string", "enum": ASSIST_ACTIONS, "default": "suggest"},
                "tool_id": {"type": "integer", "description": "Tool to run when action=apply"},
                "space_id": {"type": "integer", "description": "Restrict to a space"},
            },
            "required": ["context"],
        },
        annotations=READ_ONLY,
    ),
    Tool(
        name="ml_image",
        description=(
            "Attach a base64 image as the featured image of an existing publication. "
            "Accepted formats: PNG, JPEG, WebP."
        ),
        inputSchema={
            "type": "object",
            "properties": {
                "publication_id": {"type": "integer", "description": "Publication to illustrate"},
                "image_base64": {
                    "type": "string",
                    "description": "Base64 image, with or without a data:image/...;base64, prefix",
                },
                "alt": {"type": "string", "description": "Alternative text"},
                "caption": {"type": "string", "description": "Caption"},
            },
            "required": ["publication_id", "image_base64"],
        },
    ),
]


def pack_tool_definition(entry: ToolEntry) -> Tool:
    """Describe a registered pack tool for ``tools/list``."""
    return Tool(
        name=entry.name,
        description=entry.description or f"Tool from the '{entry.pack}' pack.",
        inputSchema=entry.input_schema or {"type": "object", "properties": {}},
    )
