"""
=============================================================================
LOG FORMATTING
=============================================================================

Structured logging on top of the standard library `logging` module.

Every module logs through `logging.getLogger(__name__)` and passes its
fields with `extra=`; this module decides how a record looks on the wire.

=============================================================================
TWO OUTPUT FORMATS
=============================================================================

    TEXT (default) - key=value pairs, one record per line:

        time=2026-10-17T12:00:00.123Z level=INFO msg=response method=GET uri=/ status=200 bytes=442

    JSON (--jsonlog) - one object per line, for log shippers:

        {"time": "2026-10-17T12:00:00.123Z", "level": "INFO", "msg": "response",
         "method": "GET", "uri": "/", "status": 200, "bytes": 442}

    DEBUG (--debug) lowers the level to DEBUG and adds the call site:

        time=... level=DEBUG source=/app/src/mdhttp/server.py:212 msg="reading markdown file" path=README.md

=============================================================================
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional, TextIO


LOGGER_NAME = "mdhttp"

# Attributes every LogRecord has; anything else came in through extra=
_RESERVED = frozenset(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {
    "message",
    "asctime",
    "taskName",
}


def _timestamp(record: logging.LogRecord) -> str:
    dt = datetime.fromtimestamp(record.created, tz=timezone.utc)
    return dt.strftime("%Y-%m-%dT%H:%M:%S.") + f"{int(record.msecs):03d}Z"


def record_fields(record: logging.LogRecord) -> Dict[str, Any]:
    """The structured fields attached to record via extra=."""
    return {
        key: value
        for key, value in record.__dict__.items()
        if key not in _RESERVED and not key.startswith("_")
    }


class _StructuredFormatter(logging.Formatter):
    def __init__(self, add_source: bool = False):
        super().__init__()
        self.add_source = add_source

    def build(self, record: logging.LogRecord) -> Dict[str, Any]:
        entry: Dict[str, Any] = {
            "time": _timestamp(record),
            "level": record.levelname,
        }
        if self.add_source:
            entry["source"] = f"{record.pathname}:{record.lineno}"
        entry["msg"] = record.getMessage()
        entry.update(record_fields(record))
        if record.exc_info:
            entry["error"] = self.formatException(record.exc_info)
        return entry


class TextFormatter(_StructuredFormatter):
    """key=value formatter; values with spaces, quotes or '=' are quoted."""

    def format(self, record: logging.LogRecord) -> str:
        return " ".join(
            f"{key}={_quote(value)}" for key, value in self.build(record).items()
        )


class JSONFormatter(_StructuredFormatter):
    """One JSON object per record."""

    def format(self, record: logging.LogRecord) -> str:
        return json.dumps(self.build(record), default=str)


def _quote(value: Any) -> str:
    text = str(value)
    if text == "" or any(c in text for c in ' ="\n\t'):
        return json.dumps(text)
    return text


def configure_logging(
    debug: bool = False,
    json_format: bool = False,
    stream: Optional[TextIO] = None,
) -> logging.Logger:
    """
    Install the mdhttp handler on the package logger.

    Calling this again replaces the previously installed handler, so the
    CLI and tests can reconfigure freely. Records still propagate to the
    root logger.

    Args:
        debug: DEBUG level plus source=file:line on every record.
        json_format: JSONFormatter instead of TextFormatter.
        stream: Where to write; stdout by default.

    Returns:
        The configured "mdhttp" logger.
    """
    logger = logging.getLogger(LOGGER_NAME)

    for handler in list(logger.handlers):
        if getattr(handler, "_mdhttp", False):
            logger.removeHandler(handler)
            handler.close()

    handler = logging.StreamHandler(stream or sys.stdout)
    handler._mdhttp = True
    formatter_cls = JSONFormatter if json_format else TextFormatter
    handler.setFormatter(formatter_cls(add_source=debug))

    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG if debug else logging.INFO)
    return logger
