"""Logging configuration for the learning engine.

Two output modes, both written to stdout for the container runtime:

  _ContainerFormatter  : single-line text for local development.
  _JsonFormatter       : one JSON object per line for log aggregation.
                         Enabled with LOG_JSON=true.

Request-scoped fields (request_id, learner_id) are attached to each
LogRecord by RequestContextFilter on the stdout handler, and others by
``extra=`` arguments at call sites.  The JSON formatter promotes them to
top-level keys so they can be filtered on directly.
"""

from __future__ import annotations

import json
import logging
import sys
from contextvars import ContextVar

# Per-request context; set by RequestContextMiddleware and require_user.
request_id_var: ContextVar[str] = ContextVar("request_id", default="-")
learner_id_var: ContextVar[str | None] = ContextVar("learner_id", default=None)


class RequestContextFilter(logging.Filter):
    """Copy the request context onto every record passing the handler.

    An explicit ``extra={"learner_id": ...}`` at the call site wins.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = request_id_var.get()  # type: ignore[attr-defined]
        if getattr(record, "learner_id", None) is None:
            record.learner_id = learner_id_var.get()  # type: ignore[attr-defined]
        return True


class _ContainerFormatter(logging.Formatter):
    """Single-line formatter for container stdout.

    WARNING and above get a ``[filename:lineno]`` suffix.
    """

    _BASE_FMT = "%(asctime)s %(levelname)-8s %(name)s  %(message)s"
    _LOC_SUFFIX = "  [%(filename)s:%(lineno)d]"

    def __init__(self) -> None:
        super().__init__(datefmt="%Y-%m-%dT%H:%M:%S%z")

    def formatTime(self, record: logging.LogRecord, datefmt: str | None = None) -> str:
        base = super().formatTime(record, datefmt)
        ms = int(record.msecs)
        # Milliseconds go before the +0000 offset.
        return f"{base[:-5]}.{ms:03d}{base[-5:]}"

    def format(self, record: logging.LogRecord) -> str:
        if record.levelno >= logging.WARNING:
            self._style._fmt = self._BASE_FMT + self._LOC_SUFFIX
        else:
            self._style._fmt = self._BASE_FMT
        return super().format(record)


class _JsonFormatter(logging.Formatter):
    """JSON Lines formatter.

    Context fields present on the record are copied to the top level;
    absent ones are omitted rather than emitted as null.
    """

    _CONTEXT_FIELDS = (
        "request_id",
        "method",
        "path",
        "learner_id",
        "enrollment_id",
        "error_code",
        "status_code",
        "duration_ms",
    )

    def __init__(self) -> None:
        super().__init__(datefmt="%Y-%m-%dT%H:%M:%S%z")

    def format(self, record: logging.LogRecord) -> str:
        log_entry: dict[str, object] = {
            "timestamp": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        for key in self._CONTEXT_FIELDS:
            value = getattr(record, key, None)
            if value is not None:
                log_entry[key] = value

        if record.exc_info and record.exc_info[0] is not None:
            log_entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_entry, default=str)


def setup_logging(level_name: str, *, json_format: bool = False) -> None:
    """Configure the root logger.

    Args:
        level_name: debug/info/warning/error; unknown names fall back to info.
        json_format: emit JSON lines instead of text (LOG_JSON).
    """
    level = getattr(logging, level_name.upper(), logging.INFO)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(_JsonFormatter() if json_format else _ContainerFormatter())
    # On the handler, not the root logger: logger filters skip records
    # propagated from child loggers.
    handler.addFilter(RequestContextFilter())

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()
    root.addHandler(handler)

    for name in (
        "uvicorn",
        "uvicorn.access",
        "uvicorn.error",
        "httpcore",
        "httpx",
        "sqlalchemy.engine",
    ):
        logging.getLogger(name).setLevel(max(level, logging.WARNING))
