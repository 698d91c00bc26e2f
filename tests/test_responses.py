"""Envelope builder tests."""

from __future__ import annotations

import logging

from mcp_router.mcp import responses
from mcp_router.mcp.registry import TIER_LEGACY
from mcp_router.schemas.common import ErrorKind


def test_ok_envelope_shape():
    responses.set_request_id("req_abc")
    resp = responses.ok({"foo": "bar"}, tool="ml_ping", elapsed=1.5, tier="core")

    assert resp == {
        "success": True,
        "tool": "ml_ping",
        "request_id": "req_abc",
        "data": {"foo": "bar"},
        "error": None,
        "meta": {"execution_ms": 1.5, "tier": "core"},
    }


def test_error_envelope_shape():
    resp = responses.error(ErrorKind.NOT_FOUND, "gone", {"id": 3}, tool="ml_find")

    assert resp["success"] is False
    assert resp["data"] is None
    assert resp["error"] == {"kind": "not_found", "message": "gone", "detail": {"id": 3}}


def test_error_accepts_kind_as_string():
    assert responses.error("permission_error", "no")["error"]["kind"] == "permission_error"


def test_request_id_lifecycle():
    rid = responses.generate_request_id()
    assert rid.startswith("req_")
    assert rid != responses.generate_request_id()

    responses.set_request_id(rid)
    assert responses.get_request_id() == rid
    assert responses.not_found("x")["request_id"] == rid

    responses.reset()
    assert responses.get_request_id() is None


def test_rate_limit_detail():
    resp = responses.rate_limit(42, 60)
    assert resp["error"]["kind"] == "rate_limit"
    assert resp["error"]["detail"] == {"retry_after": 42, "limit": 60}
    assert "42" in resp["error"]["message"]


def test_validation_error_fields():
    resp = responses.validation_error("bad", {"limit": "1..50"})
    assert resp["error"]["detail"] == {"fields": {"limit": "1..50"}}
    assert responses.validation_error("bad")["error"]["detail"] is None


def test_internal_error_names_exception():
    resp = responses.internal_error("boom", ValueError("x"), tool="ml_run")
    assert resp["error"]["detail"] == {"tool": "ml_run", "exception": "ValueError"}


def test_unknown_tool_lists_names():
    resp = responses.unknown_tool("nope", ["ml_ping", "ml_find"])
    assert resp["tool"] == "nope"
    assert resp["error"]["detail"]["available"] == ["ml_ping", "ml_find"]
    assert resp["error"]["detail"]["suggestion"] == "Use one of: ml_ping, ml_find"


def test_wrap_legacy_success():
    resp = responses.wrap_legacy({"success": True, "result": [1]}, tool="ml_search")
    assert resp["success"] is True
    assert resp["meta"]["tier"] == "legacy"
    assert resp["data"] == {"success": True, "result": [1]}


def test_wrap_legacy_non_dict_result():
    assert responses.wrap_legacy(["a", "b"])["data"] == ["a", "b"]


def test_wrap_legacy_failure_unknown_kind_is_internal():
    resp = responses.wrap_legacy({"success": False, "error_kind": "weird", "message": "nope"})
    assert resp["error"]["kind"] == "internal_error"
    assert resp["error"]["message"] == "nope"


def test_log_error_includes_request_id(caplog):
    responses.set_request_id("req_log")
    resp = responses.not_found("missing")

    with caplog.at_level(logging.ERROR, logger="mcp.responses"):
        responses.log_error(resp, caller_id=7)

    assert "req_log" in caplog.text
    assert "user_id=7" in caplog.text
    assert "not_found" in caplog.text


def test_wrap_legacy_tags_legacy_tier():
    assert responses.wrap_legacy({"success": True})["meta"]["tier"] == TIER_LEGACY
