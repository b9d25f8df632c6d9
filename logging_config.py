"""
Logging setup for Learning Quest.

Every record passes through ``RequestIdFilter`` so engine, storage and route
log lines all carry the id of the request that produced them. The id is taken
from an incoming ``X-Request-ID`` header when present and echoed back on the
response. ``LOG_FORMAT=json`` switches to one JSON object per line.
"""

from __future__ import annotations

import json
import logging
import time
import uuid

from flask import Flask, g, has_request_context, request

REQUEST_ID_HEADER = "X-Request-ID"
ACCESS_LOGGER = "learning_quest.access"

# Attributes the access log passes through ``extra=`` for the JSON output.
_ACCESS_FIELDS = ("method", "path", "status", "duration_ms")

TEXT_FORMAT = "%(asctime)s [%(levelname)s] %(name)s [%(request_id)s]: %(message)s"


class RequestIdFilter(logging.Filter):
    """Stamp ``record.request_id`` from the active request, or ``-`` outside one."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "request_id"):
            record.request_id = getattr(g, "request_id", "-") if has_request_context() else "-"
        return True


class JSONFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "request_id": getattr(record, "request_id", "-"),
            "message": record.getMessage(),
        }
        for field in _ACCESS_FIELDS:
            if hasattr(record, field):
                entry[field] = getattr(record, field)
        if record.exc_info and record.exc_info[0]:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def _new_request_id() -> str:
    incoming = request.headers.get(REQUEST_ID_HEADER, "").strip()
    return incoming[:64] if incoming else uuid.uuid4().hex[:12]


def init_logging(app: Flask) -> None:
    """Install the root handler and the per-request id/access-log hooks."""
    handler = logging.StreamHandler()
    handler.addFilter(RequestIdFilter())
    if app.config.get("LOG_FORMAT", "text") == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(TEXT_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(getattr(logging, str(app.config.get("LOG_LEVEL", "INFO")).upper(), logging.INFO))
    logging.getLogger("werkzeug").setLevel(logging.WARNING)

    access_log = logging.getLogger(ACCESS_LOGGER)

    @app.before_request
    def _start_request():
        g.request_id = _new_request_id()
        g.request_start = time.perf_counter()

    @app.after_request
    def _finish_request(response):
        request_id = getattr(g, "request_id", "-")
        response.headers[REQUEST_ID_HEADER] = request_id
        duration_ms = round((time.perf_counter() - g.get("request_start", time.perf_counter())) * 1000, 1)
        access_log.info(
            "%s %s %s %.1fms", request.method, request.path, response.status_code, duration_ms,
            extra={"method": request.method, "path": request.path,
                   "status": response.status_code, "duration_ms": duration_ms},
        )
        return response
