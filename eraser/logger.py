"""Configuration of the logger shared by eraser components."""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any

LOGGER_NAME = "eraser"

_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "": logging.INFO,
    "warn": logging.WARNING,
    "error": logging.ERROR,
    "dpanic": logging.CRITICAL,
    "panic": logging.CRITICAL,
    "fatal": logging.CRITICAL,
}

_LEVEL_NAMES = {
    logging.DEBUG: "debug",
    logging.INFO: "info",
    logging.WARNING: "warn",
    logging.ERROR: "error",
    logging.CRITICAL: "fatal",
}

_STANDARD_ATTRS = frozenset(vars(logging.makeLogRecord({}))) | {"message", "asctime"}


class LogLevelError(ValueError):
    """The configured log level is not one of the known levels."""


def parse_level(level: str) -> int:
    """Return the logging level for a name such as ``debug`` or ``WARN``."""
    if level in (level.lower(), level.upper()) and level.lower() in _LEVELS:
        return _LEVELS[level.lower()]
    raise LogLevelError(
        f"unable to parse log level: unrecognized level: {json.dumps(level)}: {level}"
    )


def _extras(record: logging.LogRecord) -> dict[str, Any]:
    return {k: v for k, v in vars(record).items() if k not in _STANDARD_ATTRS}


def _level_name(levelno: int) -> str:
    return _LEVEL_NAMES.get(levelno, logging.getLevelName(levelno).lower())


class _JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        data: dict[str, Any] = {
            "level": _level_name(record.levelno),
            "ts": record.created,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        if record.exc_info and record.exc_info[1] is not None:
            data["error"] = str(record.exc_info[1])
        data.update(_extras(record))
        return json.dumps(data, default=str)


class _ConsoleFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        ts = datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat()
        parts = [ts, _level_name(record.levelno).upper(), record.name, record.getMessage()]
        extras = _extras(record)
        if extras:
            parts.append(json.dumps(extras, default=str))
        line = "\t".join(parts)
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


def configure(level: str = "info") -> logging.Logger:
    """Set up the eraser logger: console output at debug level, JSON otherwise."""
    parsed = parse_level(level)
    logger = logging.getLogger(LOGGER_NAME)
    handler = logging.StreamHandler()
    if parsed == logging.DEBUG:
        handler.setFormatter(_ConsoleFormatter())
    else:
        handler.setFormatter(_JsonFormatter())
    for old in list(logger.handlers):
        logger.removeHandler(old)
    logger.addHandler(handler)
    logger.setLevel(parsed)
    logger.propagate = False
    return logger