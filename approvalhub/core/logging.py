"""Logging setup shared by the API process and its background workers.

Modules log through structlog with keyword fields:
    logger.info("Workflow created", workflow_id=workflow.id)

structlog hands each event to the standard library as `extra` fields, and one
of the two formatters below renders it: JSON lines in staging/production,
pipe-delimited text in development. Credentials are blanked and phone numbers
shortened to their last four digits before an event leaves structlog.
"""

from datetime import datetime, timezone
import json
import logging
import sys
from typing import Any, TextIO

import structlog

# Pinned regardless of the application level; these are chatty at INFO.
THIRD_PARTY_LOGGER_LEVELS: dict[str, str] = {
    "uvicorn": "WARNING",
    "uvicorn.error": "WARNING",
    "uvicorn.access": "WARNING",
    "httpx": "WARNING",
    "httpcore": "WARNING",
}

# Every attribute a bare LogRecord carries; anything else on a record is an extra field.
_BUILTIN_RECORD_KEYS = frozenset(vars(logging.makeLogRecord({}))) | {
    "message",
    "asctime",
    "taskName",
    "color_message",
}

SECRET_KEYS = frozenset({"access_token", "auth_token", "app_secret", "verify_token", "signature"})
PHONE_KEYS = frozenset({"to", "recipient", "actor_id", "sender"})


def _mask_phone(value: str) -> str:
    digits = "".join(ch for ch in value if ch.isdigit())
    if len(digits) < 7:
        return value
    return f"***{digits[-4:]}"


def mask_sensitive_fields(
    logger: Any, method_name: str, event_dict: dict[str, Any]
) -> dict[str, Any]:
    """structlog processor: blank credentials, shorten phone numbers."""
    for key, value in event_dict.items():
        if key in SECRET_KEYS and value:
            event_dict[key] = "***"
        elif key in PHONE_KEYS and isinstance(value, str):
            event_dict[key] = _mask_phone(value)
    return event_dict


def _record_fields(record: logging.LogRecord) -> dict[str, Any]:
    return {
        key: value
        for key, value in vars(record).items()
        if key not in _BUILTIN_RECORD_KEYS and value is not None
    }


class JsonFormatter(logging.Formatter):
    """One JSON object per line, extra fields flattened next to the message."""

    def format(self, record: logging.LogRecord) -> str:
        document: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **_record_fields(record),
        }
        if record.exc_info:
            document["exception"] = self.formatException(record.exc_info)
        return json.dumps(document, default=str)


class DevFormatter(logging.Formatter):
    """Readable single line, tracebacks indented below it.

        2026-03-02 09:00:00 | INFO     | approvalhub.services.approvals | Workflow created  workflow_id=...
    """

    def format(self, record: logging.LogRecord) -> str:
        parts = [
            datetime.fromtimestamp(record.created).strftime("%Y-%m-%d %H:%M:%S"),
            f"{record.levelname:<8}",
            record.name,
            record.getMessage(),
        ]
        line = " | ".join(parts)
        fields = _record_fields(record)
        if fields:
            line += "  " + " ".join(f"{key}={value}" for key, value in fields.items())
        if record.exc_info:
            trace = self.formatException(record.exc_info).splitlines()
            line += "".join(f"\n  {trace_line}" for trace_line in trace)
        return line


def _as_level(level: str | int) -> int:
    return level if isinstance(level, int) else logging.getLevelName(level.upper())


def configure_logging(
    level: str | int = "INFO",
    *,
    environment: str = "production",
    stream: TextIO | None = None,
    logger_levels: dict[str, str | int] | None = None,
) -> None:
    """Install the root handler and the structlog bridge. Safe to call again.

    Args:
        level: Root level, e.g. "INFO" or logging.INFO.
        environment: "development" selects DevFormatter; anything else JSON.
        stream: Defaults to sys.stdout.
        logger_levels: Per-logger overrides on top of THIRD_PARTY_LOGGER_LEVELS.
    """
    root = logging.getLogger()
    root.setLevel(_as_level(level))
    root.handlers.clear()

    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setLevel(root.level)
    handler.setFormatter(DevFormatter() if environment == "development" else JsonFormatter())
    root.addHandler(handler)

    for logger_name, logger_level in {**THIRD_PARTY_LOGGER_LEVELS, **(logger_levels or {})}.items():
        logging.getLogger(logger_name).setLevel(_as_level(logger_level))

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            mask_sensitive_fields,
            structlog.stdlib.render_to_log_kwargs,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


__all__ = [
    "PHONE_KEYS",
    "SECRET_KEYS",
    "THIRD_PARTY_LOGGER_LEVELS",
    "DevFormatter",
    "JsonFormatter",
    "configure_logging",
    "mask_sensitive_fields",
]
