"""Tests for logging_config.py — request ids on log records and JSON output."""

from __future__ import annotations

import json
import logging

from flask import g

from logging_config import JSONFormatter, RequestIdFilter


def _record(name="game_engine", msg="Student %s spun", args=(1,), **extra):
    record = logging.LogRecord(name, logging.INFO, __file__, 1, msg, args, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestRequestIdFilter:
    def test_outside_request(self):
        record = _record()
        assert RequestIdFilter().filter(record) is True
        assert record.request_id == "-"

    def test_inside_request(self, app):
        with app.test_request_context("/health"):
            g.request_id = "req-42"
            record = _record()
            RequestIdFilter().filter(record)
        assert record.request_id == "req-42"

    def test_explicit_id_kept(self, app):
        with app.test_request_context("/health"):
            g.request_id = "req-42"
            record = _record(request_id="given")
            RequestIdFilter().filter(record)
        assert record.request_id == "given"

    def test_installed_on_root_handler(self, app):
        handlers = logging.getLogger().handlers
        assert any(isinstance(f, RequestIdFilter) for h in handlers for f in h.filters)


class TestJSONFormatter:
    def test_module_log_line(self):
        record = _record(request_id="abc")
        entry = json.loads(JSONFormatter().format(record))
        assert entry["logger"] == "game_engine"
        assert entry["message"] == "Student 1 spun"
        assert entry["request_id"] == "abc"
        assert "status" not in entry

    def test_access_fields(self):
        record = _record(name="learning_quest.access", msg="GET /health 200", args=(),
                         request_id="abc", method="GET", path="/health", status=200, duration_ms=1.5)
        entry = json.loads(JSONFormatter().format(record))
        assert entry["method"] == "GET"
        assert entry["status"] == 200
        assert entry["duration_ms"] == 1.5


class TestRequestIdHeader:
    def test_blank_header_gets_generated_id(self, client):
        resp = client.get("/health", headers={"X-Request-ID": "   "})
        assert resp.headers["X-Request-ID"].strip()

    def test_long_header_truncated(self, client):
        resp = client.get("/health", headers={"X-Request-ID": "x" * 100})
        assert resp.headers["X-Request-ID"] == "x" * 64
