"""
Structured JSON logging configuration.

Usage:
    # At startup (once):
    from mailtriage.logging.config import setup_logging
    setup_logging()

    # Around a unit of work:
    with log_context(message_id_var, message.id):
        ...

    # In any module:
    import logging
    logger = logging.getLogger(__name__)
    logger.info("rules.loaded", extra={"action": "rules.loaded", "added": 2})
"""

import logging
import json
import sys
from contextlib import contextmanager
from datetime import datetime, timezone
from contextvars import ContextVar
from typing import Iterator


# Context variables, set once per batch run and once per message by the
# pipeline, automatically included in every log line emitted in between.
run_id_var: ContextVar[str] = ContextVar("run_id", default="-")
message_id_var: ContextVar[str] = ContextVar("message_id", default="-")


@contextmanager
def log_context(var: ContextVar[str], value: str) -> Iterator[None]:
    """Bind a context variable for the duration of a block, then restore it."""
    token = var.set(value)
    try:
        yield
    finally:
        var.reset(token)


class JSONFormatter(logging.Formatter):
    """Formats every log record as a single JSON line."""

    INTERNAL_FIELDS = {
        "name", "msg", "args", "created", "relativeCreated", "exc_info",
        "exc_text", "stack_info", "lineno", "funcName", "pathname",
        "filename", "module", "thread", "threadName", "process",
        "processName", "msecs", "levelname", "levelno", "message",
        "taskName",
    }

    def format(self, record: logging.LogRecord) -> str:
        log = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname.lower(),
            "logger": record.name,
            "message": record.getMessage(),
            "run_id": run_id_var.get(),
            "message_id": message_id_var.get(),
        }

        for key, val in record.__dict__.items():
            if key not in self.INTERNAL_FIELDS and key not in log:
                log[key] = val

        if record.exc_info and record.exc_info[0] is not None:
            log["exception_type"] = record.exc_info[0].__name__
            log["exception_message"] = str(record.exc_info[1])
            log["traceback"] = self.formatException(record.exc_info)

        return json.dumps(log, default=str, ensure_ascii=False)


def setup_logging(level: str = "info") -> None:
    """Configure the root logger to output structured JSON to stdout."""
    root = logging.getLogger()
    root.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JSONFormatter())
    root.addHandler(handler)
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("msal").setLevel(logging.WARNING)
