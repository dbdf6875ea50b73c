import json
import logging
import os
import sys
from datetime import datetime, timezone
from typing import Any

# Record attributes set through extra={} by the collection code
CONTEXT_KEYS = ("package", "owner_id", "transport", "period", "data")
QUIET_LOGGERS = ("PIL", "httpcore", "httpx", "multipart")


def resolve_level(raw: str | None = None) -> int:
    """Map NETMETER_LOG_LEVEL (or LOG_LEVEL) to a logging level, INFO when unknown."""
    name = (raw or os.getenv("NETMETER_LOG_LEVEL") or os.getenv("LOG_LEVEL") or "INFO").strip().upper()
    level = logging.getLevelName(name)
    return level if isinstance(level, int) else logging.INFO


class JSONFormatter(logging.Formatter):
    """One JSON object per record, with whichever collection context keys are present."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "name": record.name,
            "message": record.getMessage(),
        }
        payload.update({key: getattr(record, key) for key in CONTEXT_KEYS if hasattr(record, key)})

        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=str)


def setup_logging(level: int | None = None) -> logging.Logger:
    """Route the root logger to stderr as JSON. Calling it again replaces the handler."""
    logger = logging.getLogger()
    logger.setLevel(resolve_level() if level is None else level)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(JSONFormatter())
    # Uvicorn installs its own handlers; keep exactly one
    logger.handlers = [handler]

    logging.getLogger("uvicorn.access").disabled = True
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    return logger
