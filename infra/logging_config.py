"""Centralized logging configuration.

Ingest runs log either human-friendly text or one JSON object per line (for
CloudWatch). Setup is defensive: it won't replace handlers that a host
runtime (Lambda, pytest, Jupyter) already installed unless asked to.
"""

from __future__ import annotations

import json
import logging
import sys
import time
from collections.abc import Mapping
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any

from infra.config import get_settings

# Fields attached to every log line of the current invocation (report key, table, run id...)
invocation_ctx: ContextVar[dict[str, Any] | None] = ContextVar("invocation_ctx", default=None)

_STANDARD_RECORD_ATTRS = frozenset(
    {
        "name", "msg", "args", "levelname", "levelno", "pathname", "filename", "module",
        "exc_info", "exc_text", "stack_info", "lineno", "funcName", "created", "msecs",
        "relativeCreated", "thread", "threadName", "processName", "process", "taskName",
    }
)


def set_invocation_context(**kwargs: Any) -> None:
    """Add fields to every subsequent log entry of this invocation."""
    current = dict(invocation_ctx.get() or {})
    current.update(kwargs)
    invocation_ctx.set(current)


def clear_invocation_context() -> None:
    invocation_ctx.set({})


def get_invocation_context() -> dict[str, Any]:
    return dict(invocation_ctx.get() or {})


def _utc_iso8601() -> str:
    # Example: 2026-01-24T18:03:12.123Z
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class JsonFormatter(logging.Formatter):
    """
    One JSON object per record:
      - core fields (timestamp, level, logger, message)
      - anything passed via ``extra={...}``
      - the invocation context
    """

    def __init__(self, *, static_fields: Mapping[str, Any] | None = None) -> None:
        super().__init__()
        self._static_fields = dict(static_fields or {})

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": _utc_iso8601(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "func": record.funcName,
            "line": record.lineno,
        }
        for key, value in record.__dict__.items():
            if key not in _STANDARD_RECORD_ATTRS and key not in payload:
                payload[key] = value
        for key, value in self._static_fields.items():
            payload.setdefault(key, value)
        for key, value in get_invocation_context().items():
            payload.setdefault(key, value)
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


class TextFormatter(logging.Formatter):
    """
    Human-friendly logs with UTC timestamps.
    """
    converter = time.gmtime

    def __init__(self) -> None:
        super().__init__("%(asctime)sZ | %(levelname)s | %(name)s | %(message)s")


class StructuredLogger:
    """
    Event-style logger: ``log.info("batch_flushed", table="reports", items=25)``.

    The event name is the message; keyword fields travel as ``extra`` so the
    JSON formatter emits them as top-level keys.
    """

    def __init__(self, name: str) -> None:
        self._logger = logging.getLogger(name)

    def _log(self, level: int, event: str, **fields: Any) -> None:
        self._logger.log(level, event, extra={"event": event, **fields})

    def debug(self, event: str, **fields: Any) -> None:
        self._log(logging.DEBUG, event, **fields)

    def info(self, event: str, **fields: Any) -> None:
        self._log(logging.INFO, event, **fields)

    def warning(self, event: str, **fields: Any) -> None:
        self._log(logging.WARNING, event, **fields)

    def error(self, event: str, **fields: Any) -> None:
        self._log(logging.ERROR, event, **fields)


def setup_logging(
    *,
    level: str | None = None,
    json_logs: bool | None = None,
    override_root_handlers: bool | None = None,
    static_fields: Mapping[str, Any] | None = None,
) -> None:
    """
    Configure the root logger from settings, with explicit arguments winning.

    Env vars:
      - INGEST_LOG_LEVEL: DEBUG|INFO|WARNING|ERROR (default INFO)
      - INGEST_LOG_JSON: 1/0 (default 0)
      - INGEST_LOG_OVERRIDE: 1/0 (default 0), replace pre-configured root handlers
    """
    cfg = get_settings(reload=True).logging
    resolved_level = (level or cfg.level).upper()
    use_json = cfg.json_logs if json_logs is None else json_logs
    override = cfg.override_root_handlers if override_root_handlers is None else override_root_handlers

    root = logging.getLogger()
    root.setLevel(getattr(logging, resolved_level, logging.INFO))

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JsonFormatter(static_fields=static_fields) if use_json else TextFormatter())

    if override:
        for existing in list(root.handlers):
            root.removeHandler(existing)
        root.addHandler(handler)
    elif not root.handlers:
        root.addHandler(handler)

    for noisy in ("boto3", "botocore", "urllib3", "s3transfer"):
        logging.getLogger(noisy).setLevel(logging.WARNING)
