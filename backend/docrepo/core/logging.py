"""Structured stdout logging for the document repository."""

from __future__ import annotations

import logging
import os
import sys
from datetime import datetime, timezone
from typing import Any

import orjson

LEVEL_ENV = "DOCREPO_LOG_LEVEL"
CONTEXT_PREFIX = "ctx_"


class JsonFormatter(logging.Formatter):
    """One JSON object per line; ``ctx_*`` extras become top-level keys."""

    def format(self, record: logging.LogRecord) -> str:
        stamp = datetime.fromtimestamp(record.created, tz=timezone.utc)
        payload: dict[str, Any] = {
            "timestamp": stamp.isoformat(timespec="milliseconds"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key, value in record.__dict__.items():
            if key.startswith(CONTEXT_PREFIX):
                payload[key[len(CONTEXT_PREFIX) :]] = value
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return orjson.dumps(payload, default=str).decode("utf-8")


def ctx(**fields: Any) -> dict[str, Any]:
    """``extra=`` mapping for structured fields, e.g. ``logger.info(msg, extra=ctx(document_id=...))``."""
    return {f"{CONTEXT_PREFIX}{key}": value for key, value in fields.items()}


def configure_logging(level: str | int | None = None, use_json: bool = True) -> None:
    """Route the root logger to stdout; level defaults to $DOCREPO_LOG_LEVEL or INFO."""
    logging.captureWarnings(True)
    root = logging.getLogger()
    root.setLevel(level or os.environ.get(LEVEL_ENV, "INFO").upper())
    handler = logging.StreamHandler(sys.stdout)
    if use_json:
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
    root.handlers = [handler]


def get_logger(name: str = "docrepo") -> logging.Logger:
    if not logging.getLogger().handlers:
        configure_logging()
    return logging.getLogger(name)


__all__ = ["JsonFormatter", "configure_logging", "ctx", "get_logger"]
