import json, logging, os, sys
from datetime import datetime, timezone
from typing import Optional

# Fields passed through logging's `extra=` that end up in the JSON line
EXTRA_FIELDS = ("request_id", "route", "remote_addr", "stage", "passed", "circuit")


class JsonFormatter(logging.Formatter):
    def format(self, record):
        payload = {
            "ts": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        payload.update({k: getattr(record, k) for k in EXTRA_FIELDS if hasattr(record, k)})
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False)


def _handler(handler: logging.Handler) -> logging.Handler:
    handler.setFormatter(JsonFormatter())
    return handler


def configure_logging(level: Optional[str] = None):
    """Install JSON handlers on the root logger.

    Level comes from ``level`` or ZKP_LOG_LEVEL (default INFO); ZKP_LOG_FILE
    adds an append-mode file handler next to stdout.
    """
    handlers = [_handler(logging.StreamHandler(sys.stdout))]
    log_file = os.getenv("ZKP_LOG_FILE")
    if log_file:
        handlers.append(_handler(logging.FileHandler(log_file, mode="a")))

    root = logging.getLogger()
    name = (level or os.getenv("ZKP_LOG_LEVEL", "INFO")).upper()
    root.setLevel(getattr(logging, name, logging.INFO))
    root.handlers = handlers
