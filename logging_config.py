"""
Logging setup for the planner API.

Text lines in development, one JSON object per line in production. Every
record carries the request id and, when someone is signed in, their user id.
"""

from __future__ import annotations

import json
import logging
import time
import uuid

from flask import Flask, g, has_request_context, request

# Liveness probes hit these every few seconds; keep them out of the access log.
QUIET_PATHS = frozenset({"/health", "/live", "/ready"})

TEXT_FORMAT = "%(asctime)s %(levelname)-7s %(name)s req=%(request_id)s user=%(user_id)s %(message)s"


class RequestIdFilter(logging.Filter):
    """Add ``request_id`` and ``user_id`` to each record ("-" outside a request)."""

    def filter(self, record: logging.LogRecord) -> bool:
        in_request = has_request_context()
        if not hasattr(record, "request_id"):
            record.request_id = g.get("request_id", "-") if in_request else "-"
        if not hasattr(record, "user_id"):
            record.user_id = g.get("log_user_id", "-") if in_request else "-"
        return True


class JSONFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "ts": self.formatTime(record, "%Y-%m-%dT%H:%M:%S"),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
            "request_id": getattr(record, "request_id", "-"),
            "user_id": getattr(record, "user_id", "-"),
        }
        if record.exc_info and record.exc_info[0]:
            payload["exc"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


def init_logging(app: Flask) -> None:
    """Install the root handler and the per-request id/access-log hooks."""
    level_name = str(app.config.get("LOG_LEVEL", "INFO")).upper()
    root = logging.getLogger()
    root.setLevel(getattr(logging, level_name, logging.INFO))
    root.handlers.clear()

    handler = logging.StreamHandler()
    handler.addFilter(RequestIdFilter())
    if app.config.get("LOG_FORMAT", "text") == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(TEXT_FORMAT, datefmt="%H:%M:%S"))
    root.addHandler(handler)

    # reminders.py logs one summary line per run
    for noisy in ("werkzeug", "apscheduler"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    access_log = logging.getLogger("planner.access")

    @app.before_request
    def _start_request():
        g.request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex[:12]
        g.request_start = time.monotonic()

    @app.after_request
    def _finish_request(response):
        response.headers["X-Request-ID"] = g.get("request_id", "-")
        if request.path in QUIET_PATHS:
            return response
        elapsed = (time.monotonic() - g.get("request_start", time.monotonic())) * 1000
        access_log.info("%s %s -> %d (%.0fms)", request.method, request.path, response.status_code, elapsed)
        return response
