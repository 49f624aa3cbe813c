"""
Structured JSON Logging Module.

Outputs one JSON document per log record with the correlation ID and
event ID of the request being served, when there is one.
"""

import logging
import json
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from contextvars import ContextVar

# Context vars to store correlation ID and event ID for the current request context
correlation_id_ctx: ContextVar[Optional[str]] = ContextVar("correlation_id", default=None)
event_id_ctx: ContextVar[Optional[str]] = ContextVar("event_id", default=None)


class JSONFormatter(logging.Formatter):
    """
    Formatter that dumps records as JSON.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "message": record.getMessage(),
            "logger": record.name,
            "module": record.module,
            "func": record.funcName,
            "line": record.lineno,
            "service": "crisissync-backend",
        }

        cid = correlation_id_ctx.get()
        if cid:
            log_data["correlation_id"] = cid

        eid = event_id_ctx.get()
        if eid:
            log_data["event_id"] = eid

        # Add extra fields if passed
        if hasattr(record, "extra_data"):
            log_data.update(record.extra_data)

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


def setup_logging(level: str = "INFO"):
    """
    Configures the root logger to use JSON formatting.
    """
    logger = logging.getLogger()
    logger.setLevel(level)

    # Clear existing handlers
    for handler in logger.handlers[:]:
        logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JSONFormatter())
    logger.addHandler(handler)

    # Silence noisy libraries
    logging.getLogger("uvicorn.access").disabled = True # TracingMiddleware logs requests
    logging.getLogger("httpx").setLevel("WARNING")
    logging.getLogger("aiosqlite").setLevel("WARNING")


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
