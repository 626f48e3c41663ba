"""Structured JSON logging configuration.

All log output goes to stdout in JSON format for easy Docker
log collection.

Format per line:
    {"ts": "2025-03-01T12:00:00Z", "level": "INFO", "logger": "vibesec.services.pipeline_service", "msg": "...", ...}
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone

from vibesec.core.config import settings

# Record attributes copied into the payload when attached via extra={}
_CONTEXT_FIELDS = ("job_id", "finding_id", "attempt")


class JSONFormatter(logging.Formatter):
    """Emit each log record as a single JSON line."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }

        for field in _CONTEXT_FIELDS:
            if hasattr(record, field):
                payload[field] = getattr(record, field)

        if record.exc_info and record.exc_info[0] is not None:
            payload["exc"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=str)


def setup_logging() -> None:
    """Configure root logger with JSON output to stdout.

    The log level is controlled by the ``LOG_LEVEL`` env var
    (default ``INFO``).
    """
    level_name = settings.LOG_LEVEL.upper()
    level = getattr(logging, level_name, logging.INFO)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JSONFormatter())

    root = logging.getLogger()
    root.setLevel(level)

    # Remove any pre-existing handlers (e.g. uvicorn defaults)
    root.handlers.clear()
    root.addHandler(handler)

    # Quiet noisy third-party loggers
    for noisy in ("uvicorn.access", "httpcore", "httpx", "git.cmd"):
        logging.getLogger(noisy).setLevel(logging.WARNING)
