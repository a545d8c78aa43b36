import json
import logging
from datetime import datetime, timezone
from typing import Any

EXTRA_FIELDS = (
    "request_id", "path", "status", "latency_ms",
    "month", "year", "body", "instant", "natal",
    "episodes", "hits", "scan_days", "failures", "engine",
)


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "level": record.levelname,
            "ts": datetime.now(timezone.utc).isoformat(),
            "logger": record.name,
            "msg": record.getMessage(),
        }
        for k in EXTRA_FIELDS:
            if hasattr(record, k):
                payload[k] = getattr(record, k)
        if record.exc_info:
            payload["exc"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


def configure_logging(name: str = "astro-api", level: str = "INFO") -> logging.Logger:
    """Attach a single JSON stream handler to the ``name`` logger tree."""
    level = level.upper()
    logger = logging.getLogger(name)
    logger.setLevel(level)
    handler = logging.StreamHandler()
    handler.setLevel(level)
    handler.setFormatter(JsonFormatter())
    logger.handlers = [handler]
    logger.propagate = False
    return logger


def log_event(
    logger: logging.Logger, level: str, message: str, exc_info: bool = False, **extra: Any
) -> None:
    """Small wrapper to keep structured logging consistent."""
    log_method = getattr(logger, level)
    log_method(message, exc_info=exc_info, extra=extra)
