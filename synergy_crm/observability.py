"""
synergy_crm/observability.py

Logging setup and per-request correlation ids.

configure_logging() installs one stream handler on the root logger. JSON lines by default
(machine parsing in the hosting platform), a short human format when LOG_JSON is off.
"""

from __future__ import annotations

import json
import logging
import uuid
from datetime import datetime, timezone
from typing import Dict

from flask import Flask, g, has_request_context, request

_RESERVED_KEYS = {
    "name",
    "msg",
    "args",
    "levelname",
    "levelno",
    "pathname",
    "filename",
    "module",
    "exc_info",
    "exc_text",
    "stack_info",
    "lineno",
    "funcName",
    "created",
    "msecs",
    "relativeCreated",
    "thread",
    "threadName",
    "processName",
    "process",
    "taskName",
    "message",
}

_NOISY_LOGGERS = ("httpx", "httpcore", "hpack", "urllib3", "werkzeug")


class JsonLogFormatter(logging.Formatter):
    """One JSON object per line. Extra fields passed via `extra=` are merged in."""

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, object] = {
            "ts": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname.lower(),
            "logger": record.name,
            "message": record.getMessage(),
        }
        if has_request_context():
            payload["request_id"] = getattr(g, "request_id", None) or "n/a"
            payload["path"] = request.path
            payload["method"] = request.method

        for key, value in record.__dict__.items():
            if key in _RESERVED_KEYS or key.startswith("_") or key in payload:
                continue
            if callable(value):
                continue
            payload[key] = value

        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=True, separators=(",", ":"), default=str)


class HumanLogFormatter(logging.Formatter):
    def __init__(self) -> None:
        super().__init__("%(asctime)s [%(levelname).1s] %(name)s: %(message)s", "%H:%M:%S")


def configure_logging(app: Flask) -> None:
    level_name = str(app.config.get("LOG_LEVEL", "INFO")).strip().upper()
    level = getattr(logging, level_name, logging.INFO)

    handler = logging.StreamHandler()
    if app.config.get("LOG_JSON", True):
        handler.setFormatter(JsonLogFormatter())
    else:
        handler.setFormatter(HumanLogFormatter())

    root_logger = logging.getLogger()
    root_logger.handlers = [handler]
    root_logger.setLevel(level)
    app.logger.handlers = []
    app.logger.propagate = True

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def ensure_request_id() -> str:
    request_id = str(getattr(g, "request_id", "") or "").strip()
    if request_id:
        return request_id
    incoming = str(request.headers.get("X-Request-Id") or "").strip()
    g.request_id = incoming or str(uuid.uuid4())
    return g.request_id


def register_request_ids(app: Flask) -> None:
    @app.before_request
    def _assign_request_id() -> None:
        ensure_request_id()

    @app.after_request
    def _echo_request_id(response):
        response.headers["X-Request-Id"] = ensure_request_id()
        return response
