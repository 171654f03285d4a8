from __future__ import annotations

import json
import logging
import sys
from typing import Any

from rentbooks.core.config import settings
from rentbooks.utils.money import Money

# Attributes every LogRecord carries; anything else was passed via ``extra=``
_RESERVED = set(logging.LogRecord("", 0, "", 0, "", None, None).__dict__) | {"message", "asctime"}

# Third-party loggers that drown the ledger/tax events at INFO
_NOISY_LOGGERS = ("sqlalchemy.engine", "sqlalchemy.pool", "uvicorn.access", "multipart")


def _json_default(value: Any) -> Any:
    if isinstance(value, Money):
        return value.to_decimal_string()
    return str(value)


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:  # pragma: no cover - formatting logic
        payload: dict[str, Any] = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "env": settings.ENV,
            "message": record.getMessage(),
        }
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        extra = {
            key: value
            for key, value in record.__dict__.items()
            if not key.startswith("_") and key not in _RESERVED and key not in payload
        }
        if extra:
            payload["extra"] = extra
        return json.dumps(payload, default=_json_default)


def init_logging(level: int | None = None) -> None:
    """Configure the root logger once; later calls are no-ops."""
    if logging.getLogger().handlers:
        return
    effective_level = level or getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)
    handler = logging.StreamHandler(sys.stdout)
    if settings.LOG_FORMAT.lower() == "json":
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(logging.Formatter("%(asctime)s | %(levelname)s | %(name)s | %(message)s"))
    root = logging.getLogger()
    root.setLevel(effective_level)
    root.addHandler(handler)
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(effective_level, logging.WARNING))
