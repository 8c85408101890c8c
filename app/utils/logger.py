"""
Structured logging for the repeating task engine.

Each record is one JSON object per line, carrying the component name and any
keyword fields (owner, rule, task, dates) passed by the caller.
"""

import json
import logging
import sys
from datetime import date, datetime
from typing import Any, Dict

from app.config import settings

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def _json_default(value):
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    return str(value)


class StructuredLogger:
    """Structured logger for engine components."""

    def __init__(self, name: str, level=None):
        """
        Initialize structured logger.

        Args:
            name: Logger name
            level: Logging level, defaults to settings.LOG_LEVEL
        """
        self.logger = logging.getLogger(name)
        self.logger.setLevel(level if level is not None else settings.LOG_LEVEL)

        # Loggers are shared by name; only the first instance attaches a handler
        if not self.logger.handlers:
            handler = logging.StreamHandler(sys.stdout)
            handler.setFormatter(logging.Formatter(LOG_FORMAT))
            self.logger.addHandler(handler)
            # Already printed here; keep the root handler from repeating it
            self.logger.propagate = False

    def _record(self, level: int, message: str, fields: Dict[str, Any]) -> str:
        record = {
            "timestamp": datetime.utcnow().isoformat(),
            "level": logging.getLevelName(level),
            "message": message,
            "component": self.logger.name,
        }
        record.update(fields)
        return json.dumps(record, default=_json_default)

    def log(self, level: int, message: str, exc_info: bool = False, **fields):
        if self.logger.isEnabledFor(level):
            self.logger.log(level, self._record(level, message, fields), exc_info=exc_info)

    def debug(self, message: str, **fields):
        self.log(logging.DEBUG, message, **fields)

    def info(self, message: str, **fields):
        self.log(logging.INFO, message, **fields)

    def warning(self, message: str, **fields):
        self.log(logging.WARNING, message, **fields)

    def error(self, message: str, **fields):
        self.log(logging.ERROR, message, **fields)

    def exception(self, message: str, **fields):
        """Log at ERROR with the active exception's traceback."""
        self.log(logging.ERROR, message, exc_info=True, exception=True, **fields)


def get_logger(name: str) -> StructuredLogger:
    """Get a structured logger for the given component, usually ``__name__``."""
    return StructuredLogger(name)
