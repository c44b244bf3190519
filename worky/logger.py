"""
Structured logging for worky.
Outputs JSON-formatted log lines so store activity can be machine-read.
"""

import json
import sys
import logging
from datetime import datetime, timezone

logger = logging.getLogger("worky")
logger.setLevel(logging.INFO)
handler = logging.StreamHandler(sys.stderr)
logger.addHandler(handler)


class JsonFormatter(logging.Formatter):
    """JSON formatter that folds every extra field into the record."""

    # LogRecord internals that never belong in the output
    STANDARD_ATTRS = {
        'name', 'msg', 'args', 'created', 'filename', 'funcName', 'levelname',
        'levelno', 'lineno', 'module', 'msecs', 'message', 'pathname', 'process',
        'processName', 'relativeCreated', 'thread', 'threadName', 'exc_info',
        'exc_text', 'stack_info', 'asctime', 'taskName',
    }

    def format(self, record):
        log_record = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "message": record.getMessage(),
            "module": record.module,
        }

        for key, value in record.__dict__.items():
            if key not in self.STANDARD_ATTRS and not key.startswith('_'):
                try:
                    json.dumps(value)
                    log_record[key] = value
                except (TypeError, ValueError):
                    log_record[key] = str(value)

        if record.exc_info:
            log_record["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_record)


handler.setFormatter(JsonFormatter())


def get_logger(component: str = "store"):
    return StoreLogger(component)


class StoreLogger:
    def __init__(self, component):
        self.component = component
        self.logger = logging.getLogger("worky")

    def _extra(self, uid, kwargs):
        extra = {"component": self.component}
        if uid: extra["uid"] = uid
        extra.update(kwargs)
        return extra

    def debug(self, msg, uid=None, **kwargs):
        self.logger.debug(msg, extra=self._extra(uid, kwargs), stacklevel=2)

    def info(self, msg, uid=None, **kwargs):
        self.logger.info(msg, extra=self._extra(uid, kwargs), stacklevel=2)

    def warning(self, msg, uid=None, **kwargs):
        self.logger.warning(msg, extra=self._extra(uid, kwargs), stacklevel=2)

    def error(self, msg, uid=None, **kwargs):
        self.logger.error(msg, extra=self._extra(uid, kwargs), stacklevel=2)
