"""Structured logging helpers.

This module provides a LoggerAdapter that fills the ``operation`` and
``status`` fields of every record, a JSON formatter for command-line runs and
module-level loggers with a NullHandler so the library stays silent unless the
application configures logging.

Examples
--------
>>> from pkgscope.logging import get_logger
>>> logger = get_logger(__name__)
>>> logger.info("Acquisition started", extra={"operation": "update_db", "status": "started"})
"""

from __future__ import annotations

import json
import logging
import sys
from collections.abc import Iterator, Mapping, MutableMapping
from contextlib import contextmanager
from typing import Any

__all__ = [
    "JsonFormatter",
    "LoggerAdapter",
    "get_logger",
    "setup_logging",
    "with_fields",
]

_STRUCTURED_FIELDS = ("operation", "status", "package", "platform", "duration_ms")

_RESERVED = frozenset(
    {
        "name",
        "msg",
        "args",
        "created",
        "filename",
        "funcName",
        "levelname",
        "levelno",
        "lineno",
        "module",
        "msecs",
        "message",
        "pathname",
        "process",
        "processName",
        "relativeCreated",
        "thread",
        "threadName",
        "taskName",
        "exc_info",
        "exc_text",
        "stack_info",
    }
)


class JsonFormatter(logging.Formatter):
    """JSON formatter for structured logging.

    Formats log records as one JSON object per line with timestamp, level,
    logger name, message and every JSON-compatible ``extra`` field.

    Examples
    --------
    >>> import logging
    >>> handler = logging.StreamHandler()
    >>> handler.setFormatter(JsonFormatter())
    """

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON.

        Parameters
        ----------
        record : logging.LogRecord
            Log record to format. May include extra fields in record.__dict__.

        Returns
        -------
        str
            JSON-encoded log entry.
        """
        data: dict[str, object] = {
            "ts": self.formatTime(record, "%Y-%m-%dT%H:%M:%S"),
            "level": record.levelname,
            "name": record.name,
            "message": record.getMessage(),
        }
        for field in _STRUCTURED_FIELDS:
            value = getattr(record, field, None)
            if value is not None:
                data[field] = value
        for key, value in record.__dict__.items():
            if (
                key not in _RESERVED
                and key not in data
                and not key.startswith("_")
                and value is not None
                and isinstance(value, (str, int, float, bool, list, dict))
            ):
                data[key] = value
        if record.exc_info:
            data["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(data, default=str)


class LoggerAdapter(logging.LoggerAdapter):
    """Logger adapter that injects structured context fields.

    Fields bound on the adapter are merged into every call's ``extra`` without
    overriding values passed explicitly. ``operation`` and ``status`` are always
    present; a missing status is inferred from the log level.

    Examples
    --------
    >>> logger = get_logger(__name__)
    >>> logger.warning("Platform skipped", extra={"operation": "update_db", "platform": "osx64"})
    """

    logger: logging.Logger

    def process(
        self, msg: object, kwargs: MutableMapping[str, Any]
    ) -> tuple[object, MutableMapping[str, Any]]:
        """Merge bound fields into the call's ``extra`` mapping.

        Parameters
        ----------
        msg : object
            Log message.
        kwargs : MutableMapping[str, Any]
            Keyword arguments of the logging call.

        Returns
        -------
        tuple[object, MutableMapping[str, Any]]
            The message and the updated keyword arguments.
        """
        extra = dict(kwargs.get("extra") or {})
        for key, value in (self.extra or {}).items():
            extra.setdefault(key, value)
        extra.setdefault("operation", "unknown")
        kwargs["extra"] = extra
        return msg, kwargs

    def log(self, level: int, msg: object, *args: object, **kwargs: Any) -> None:
        """Log ``msg`` at ``level``, inferring ``status`` from the level when absent."""
        extra = dict(kwargs.get("extra") or {})
        if "status" not in extra and "status" not in (self.extra or {}):
            if level >= logging.ERROR:
                extra["status"] = "error"
            elif level >= logging.WARNING:
                extra["status"] = "warning"
            else:
                extra["status"] = "success"
        kwargs["extra"] = extra
        super().log(level, msg, *args, **kwargs)


def get_logger(name: str) -> LoggerAdapter:
    """Get a logger adapter with structured logging support.

    Module-level loggers use NullHandler to prevent "no handler" warnings in
    library use. Applications configure output via :func:`setup_logging`.

    Parameters
    ----------
    name : str
        Logger name (typically __name__ from the calling module).

    Returns
    -------
    LoggerAdapter
        Logger adapter with structured context injection.
    """
    logger = logging.getLogger(name)
    if not logger.handlers:
        logger.addHandler(logging.NullHandler())
    return LoggerAdapter(logger, {})


def setup_logging(level: int | str = logging.INFO) -> None:
    """Configure the root logger with a JSON formatter on stderr.

    Parameters
    ----------
    level : int | str, optional
        Logging level threshold. Defaults to logging.INFO.
    """
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(JsonFormatter())
    logging.basicConfig(level=level, handlers=[handler], force=True)


@contextmanager
def with_fields(logger: LoggerAdapter, **fields: object) -> Iterator[LoggerAdapter]:
    """Yield an adapter that binds ``fields`` to every record it emits.

    Parameters
    ----------
    logger : LoggerAdapter
        Adapter whose base logger receives the records.
    **fields : object
        Structured fields to bind.

    Yields
    ------
    LoggerAdapter
        Adapter with the merged field set.
    """
    bound: Mapping[str, object] = {**(logger.extra or {}), **fields}
    yield LoggerAdapter(logger.logger, dict(bound))
