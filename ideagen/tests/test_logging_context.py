"""Tests for structured logging and request_id propagation."""

import json
import logging

from fastapi.testclient import TestClient

from ideagen.core.clerk_auth import create_test_jwt
from ideagen.core.logging import JsonFormatter, PrettyFormatter, latency_bucket_ms, log_event
from ideagen.main import create_app
from ideagen.tests.mocks import FakeProvider, make_settings


def _client():
    return TestClient(create_app(make_settings(), provider=FakeProvider(["ok"])))


def test_request_id_in_response_and_logs(caplog):
    client = _client()
    with caplog.at_level(logging.INFO, logger="ideagen"):
        response = client.get("/healthz")
    rid = response.headers.get("x-request-id")
    assert rid
    records = [r for r in caplog.records if getattr(r, "request_id", None) == rid]
    assert records, "Expected logs to contain request_id from response"
    assert len({r.request_id for r in records}) == 1


def test_request_id_in_json_error_response():
    response = _client().get("/no-such-route")
    rid = response.headers.get("x-request-id")
    assert response.status_code == 404
    assert rid
    assert response.json()["error"]["request_id"] == rid


def test_stream_logs_share_request_id(caplog):
    client = _client()
    with caplog.at_level(logging.INFO, logger="ideagen"):
        response = client.get(
            "/api/generate",
            headers={"Authorization": f"Bearer {create_test_jwt(sub='user_9')}", "X-Request-Id": "rid-stream"},
        )
    assert response.status_code == 200
    messages = {r.getMessage() for r in caplog.records if getattr(r, "request_id", None) == "rid-stream"}
    assert {"generate.accepted", "stream.open", "stream.complete"} <= messages


def test_auth_failure_is_logged_as_warning(caplog):
    with caplog.at_level(logging.INFO, logger="ideagen"):
        _client().get("/api/generate", headers={"X-Request-Id": "rid-denied"})
    errors = [r for r in caplog.records if r.getMessage() == "app.error"]
    assert errors
    assert errors[0].levelno == logging.WARNING
    assert errors[0].error_code == "unauthorized"
    assert errors[0].request_id == "rid-denied"


def test_json_formatter_includes_structured_fields():
    record = logging.LogRecord("ideagen", logging.INFO, __file__, 1, "stream.complete", None, None)
    record.request_id = "rid-json"
    record.model = "llama-3.1-8b-instant"
    record.frames = 3

    payload = json.loads(JsonFormatter().format(record))

    assert payload["message"] == "stream.complete"
    assert payload["request_id"] == "rid-json"
    assert payload["model"] == "llama-3.1-8b-instant"
    assert payload["frames"] == 3
    assert "user_id" not in payload


def test_pretty_formatter_shows_request_id():
    record = logging.LogRecord("ideagen", logging.WARNING, __file__, 1, "app.error", None, None)
    record.request_id = "rid-pretty"
    record.error_code = "unauthorized"

    line = PrettyFormatter().format(record)

    assert "[rid=rid-pretty]" in line
    assert "error_code=unauthorized" in line


def test_log_event_truncates_extra(caplog):
    with caplog.at_level(logging.INFO, logger="ideagen"):
        log_event("info", "probe", request_id="rid-x", extra={"blob": "x" * 600})
    record = next(r for r in caplog.records if r.getMessage() == "probe")
    assert record.request_id == "rid-x"
    assert record.blob.endswith("...<truncated>")


def test_latency_buckets():
    assert latency_bucket_ms(None) == "unknown"
    assert latency_bucket_ms(5) == "<10ms"
    assert latency_bucket_ms(250) == "100-500ms"
    assert latency_bucket_ms(5000) == ">=1000ms"
