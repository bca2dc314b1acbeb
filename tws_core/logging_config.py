"""
Log output for the ``tws`` logger hierarchy.

Console output is either ``human`` (one coloured line per record) or
``json`` (one object per line).  A log file, when configured, is always
JSON.  Records logged with ``extra={"event": <Event>}`` carry the event:
JSON output embeds ``event.to_dict()``, human output appends the event
name and its arguments.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

ROOT_LOGGER = "tws"

_LEVEL_COLOURS = {
    logging.DEBUG: "\033[36m",
    logging.INFO: "\033[32m",
    logging.WARNING: "\033[33m",
    logging.ERROR: "\033[31m",
    logging.CRITICAL: "\033[1;31m",
}
_RESET = "\033[0m"


def _event_payload(record: logging.LogRecord) -> Any:
    event = getattr(record, "event", None)
    if event is None:
        return None
    return event.to_dict() if hasattr(event, "to_dict") else event


class _JSONFormatter(logging.Formatter):

    def format(self, record: logging.LogRecord) -> str:
        out: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        payload = _event_payload(record)
        if payload is not None:
            out["event"] = payload
        if record.exc_info and record.exc_info[1]:
            out["exception"] = self.formatException(record.exc_info)
        return json.dumps(out, default=str)


class _HumanFormatter(logging.Formatter):

    def __init__(self, colour: bool = True) -> None:
        super().__init__()
        self.colour = colour

    def format(self, record: logging.LogRecord) -> str:
        ts = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")
        level = f"[{record.levelname:<7}]"
        if self.colour:
            level = f"{_LEVEL_COLOURS.get(record.levelno, '')}{level}{_RESET}"
        line = f"{ts} {level} {record.name}: {record.getMessage()}"
        payload = _event_payload(record)
        if isinstance(payload, dict) and "args" in payload:
            args = " ".join(f"{k}={v}" for k, v in payload["args"].items())
            line += f" | {payload['event']} {args}"
        if record.exc_info and record.exc_info[1]:
            line += "\n" + self.formatException(record.exc_info)
        return line


def _console_handler(fmt: str) -> logging.Handler:
    handler = logging.StreamHandler(sys.stderr)
    if fmt == "json":
        handler.setFormatter(_JSONFormatter())
    else:
        handler.setFormatter(_HumanFormatter(colour=sys.stderr.isatty()))
    return handler


def _file_handler(log_file: str) -> logging.Handler:
    path = Path(log_file)
    path.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(str(path))
    handler.setFormatter(_JSONFormatter())
    return handler


def setup_logging(
    level: str = "INFO",
    fmt: str = "human",
    log_file: Optional[str] = None,
) -> logging.Logger:
    """
    (Re)configure the ``tws`` logger and return it.

    Unknown level names fall back to INFO.  Calling this again replaces
    the handlers from the previous call, so it is safe to re-run after a
    config reload.
    """
    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    logger.propagate = False

    for old in list(logger.handlers):
        logger.removeHandler(old)
        old.close()

    logger.addHandler(_console_handler(fmt))
    if log_file:
        logger.addHandler(_file_handler(log_file))
    return logger
