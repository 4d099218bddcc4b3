"""Structured logging helpers."""

from __future__ import annotations

import json
import logging
import logging.config
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Dict

if TYPE_CHECKING:
    from .config import Config


PLAIN_FORMAT = "[%(asctime)s] [%(levelname)s] %(message)s"
PLAIN_DATEFMT = "%Y-%m-%d %H:%M:%S"

_RESERVED = {
    "name",
    "levelno",
    "levelname",
    "pathname",
    "filename",
    "module",
    "exc_info",
    "exc_text",
    "stack_info",
    "lineno",
    "funcName",
    "msg",
    "args",
    "created",
    "msecs",
    "relativeCreated",
    "thread",
    "threadName",
    "processName",
    "process",
    "taskName",
    "message",
    "asctime",
}


class JsonFormatter(logging.Formatter):
    """Minimal JSON formatter for structured logs."""

    def format(self, record: logging.LogRecord) -> str:  # noqa: D401
        base: Dict[str, Any] = {
            "ts": datetime.now(tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            base["exc_info"] = self.formatException(record.exc_info)
        if record.stack_info:
            base["stack"] = self.formatStack(record.stack_info)
        for key, value in record.__dict__.items():
            if key.startswith("_") or key in _RESERVED:
                continue
            base[key] = value
        return json.dumps(base, ensure_ascii=False, default=str)


def configure_logging(config: "Config") -> None:
    """Configure global logging based on the provided config."""

    level = config.log_level.upper()
    device_level = (config.device_log_level or config.log_level).upper()
    api_level = (config.api_log_level or config.log_level).upper()
    if config.log_format == "json":
        formatter: Dict[str, Any] = {
            "format": "json",
            "()": f"{__name__}.JsonFormatter",
        }
    else:
        formatter = {
            "format": PLAIN_FORMAT,
            "datefmt": PLAIN_DATEFMT,
        }

    handlers: Dict[str, Any] = {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "default",
            "level": level,
        }
    }
    if config.log_file is not None:
        config.log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers["file"] = {
            "class": "logging.FileHandler",
            "formatter": "default",
            "level": level,
            "filename": str(config.log_file),
            "mode": "a",
            "encoding": "utf-8",
        }
    handler_names = list(handlers)

    def _logger(logger_level: str) -> Dict[str, Any]:
        return {"level": logger_level, "handlers": handler_names, "propagate": False}

    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "default": formatter,
            },
            "handlers": handlers,
            "loggers": {
                "jap": _logger(level),
                "jap.panel": _logger(level),
                "jap.validation": _logger(level),
                "jap.device": _logger(device_level),
                "jap.api": _logger(api_level),
                "jap.api.middleware": _logger(api_level),
            },
            "root": {"level": level, "handlers": handler_names},
        }
    )


def get_logger(name: str) -> logging.Logger:
    """Return a namespaced logger for the requested subsystem."""

    return logging.getLogger(name)
