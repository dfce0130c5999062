"""PULSE — Structured JSON Logging.

One JSON object per line on stdout. Request and engine context
(workspace, timings, record counts) travels in `extra=` and is lifted into
top-level keys.
"""

import logging
import json
import sys
import time
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Dict, Iterator

from pulse.config import settings

SERVICE_NAME = "pulse"

EXTRA_FIELDS = ("endpoint", "workspace_id", "duration_ms", "status_code", "record_count")


class JSONFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "service": SERVICE_NAME,
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        entry.update(
            {key: getattr(record, key) for key in EXTRA_FIELDS if hasattr(record, key)}
        )
        if record.exc_info and record.exc_info[0] is not None:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def get_logger(name: str) -> logging.Logger:
    """Return `pulse.<name>` with the JSON handler attached once."""
    logger = logging.getLogger(f"{SERVICE_NAME}.{name}")
    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(JSONFormatter())
        logger.addHandler(handler)
    logger.setLevel(getattr(logging, settings.log_level.upper(), logging.INFO))
    return logger


@contextmanager
def log_duration(logger: logging.Logger, message: str, **extra: Any) -> Iterator[Dict[str, Any]]:
    """Log `message` with `duration_ms` if the block completes.

    The yielded dict is the `extra` payload; the block may add fields to it.
    """
    started = time.perf_counter()
    yield extra
    extra["duration_ms"] = round((time.perf_counter() - started) * 1000, 1)
    logger.info(message, extra=extra)
