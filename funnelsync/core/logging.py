"""FunnelSync - Structured JSON Logging."""

import logging
import json
import sys
from datetime import datetime, timezone
from funnelsync.config import settings

# Extra fields copied from the LogRecord into the JSON line when present
EXTRA_FIELDS = (
    "event",
    "source",
    "url",
    "attempt",
    "max_retries",
    "date",
    "count",
    "ads_count",
    "crm_count",
    "rows",
    "status_code",
    "duration_ms",
    "request_id",
    "method",
    "path",
    "raw_value",
    "opportunity_id",
    "error",
)


class JSONFormatter(logging.Formatter):
    """Produces structured JSON log lines for production observability."""

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info and record.exc_info[0] is not None:
            log_entry["exception"] = self.formatException(record.exc_info)
        for key in EXTRA_FIELDS:
            if hasattr(record, key):
                log_entry[key] = getattr(record, key)
        return json.dumps(log_entry, default=str)


def get_logger(name: str) -> logging.Logger:
    """Return a named logger with structured JSON handler."""
    logger = logging.getLogger(f"funnelsync.{name}")
    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(JSONFormatter())
        logger.addHandler(handler)
    logger.setLevel(getattr(logging, settings.log_level.upper(), logging.INFO))
    return logger
