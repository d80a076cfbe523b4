# jwst_cosmos/logging_config.py
"""
Stderr-only JSON logging configuration.

Stdout is reserved for command output (generated paths, model lists), so
every log record goes to stderr.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any


class JsonFormatter(logging.Formatter):
    """Formats log records as JSON for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON line."""
        log_data: dict[str, Any] = {
            "ts": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }

        if record.exc_info:
            log_data["exc"] = self.formatException(record.exc_info)

        return json.dumps(log_data)


def configure_logging(verbose: bool = False) -> None:
    """
    Configure logging to output JSON to stderr only.

    Args:
        verbose: Log at DEBUG instead of WARNING for jwst_cosmos loggers
    """
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(JsonFormatter())

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(logging.WARNING)

    logging.getLogger("jwst_cosmos").setLevel(logging.DEBUG if verbose else logging.WARNING)

    # Per-request and per-frame chatter from transport libraries
    for logger_name in ["httpx", "httpcore", "websockets"]:
        logging.getLogger(logger_name).setLevel(logging.WARNING)
