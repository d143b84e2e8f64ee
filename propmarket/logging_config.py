from __future__ import annotations

import json
import logging
import os
import sys
from datetime import datetime, timezone
from typing import Any

from .middleware.request_id import get_request_id

# Structured extras copied onto the line when a log call sets them.
STRUCTURED_EXTRAS = ("user_id", "role", "listing_id", "order_id", "appointment_id", "path")


class RequestIdFilter(logging.Filter):
    """Stamps record.request_id so both formatters can print it."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = get_request_id() or "-"
        return True


class JsonFormatter(logging.Formatter):
    """
    One JSON object per line: ts, level, logger, message, request_id,
    any STRUCTURED_EXTRAS present on the record, and the exception if any.
    """

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        rid = getattr(record, "request_id", None) or get_request_id()
        if rid and rid != "-":
            payload["request_id"] = rid

        for k in STRUCTURED_EXTRAS:
            if hasattr(record, k):
                payload[k] = getattr(record, k)

        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)

        return json.dumps(payload, ensure_ascii=False, default=str)


TEXT_FORMAT = "%(asctime)s %(levelname)s [%(request_id)s] %(name)s: %(message)s"


def configure_logging() -> None:
    """
    LOG_LEVEL sets the root level; LOG_FORMAT=text switches to a readable
    single-line format for local runs. SQL_LOG_LEVEL and HTTPX_LOG_LEVEL tune
    the chatty library loggers separately.
    """
    level = (os.getenv("LOG_LEVEL") or "INFO").upper()
    fmt = (os.getenv("LOG_FORMAT") or "json").strip().lower()

    root = logging.getLogger()
    root.setLevel(level)

    for h in list(root.handlers):
        root.removeHandler(h)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.addFilter(RequestIdFilter())
    handler.setFormatter(logging.Formatter(TEXT_FORMAT) if fmt == "text" else JsonFormatter())
    root.addHandler(handler)

    logging.getLogger("uvicorn.access").setLevel(level)
    logging.getLogger("sqlalchemy.engine").setLevel((os.getenv("SQL_LOG_LEVEL") or "WARNING").upper())
    # httpx logs every provider call at INFO
    httpx_level = (os.getenv("HTTPX_LOG_LEVEL") or "WARNING").upper()
    logging.getLogger("httpx").setLevel(httpx_level)
    logging.getLogger("httpcore").setLevel(httpx_level)
