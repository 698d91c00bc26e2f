"""Audit sinks for request start/end events."""

from __future__ import annotations

import json
import logging
from typing import Any, Protocol

logger = logging.getLogger("mcp.audit")


class AuditSink(Protocol):
    def emit(self, event_name: str, payload: dict[str, Any]) -> None: ...


class LoggingAuditSink:
    """Writes one INFO line per event with the JSON payload."""

    def __init__(self, log: logging.Logger | None = None) -> None:
        self.log = log or logger

    def emit(self, event_name: str, payload: dict[str, Any]) -> None:
        self.log.info("%s %s", event_name, json.dumps(payload, default=str, sort_keys=True))
