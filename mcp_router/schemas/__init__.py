"""Pydantic response schemas."""

from mcp_router.schemas.common import ErrorDetail, ErrorKind, Meta, ToolResponse
from mcp_router.schemas.registry import CallerProfile, PacksStatus, ToolListing

__all__ = [
    "ErrorDetail",
    "ErrorKind",
    "Meta",
    "ToolResponse",
    "CallerProfile",
    "PacksStatus",
    "ToolListing",
]
