"""Logging for the extraction pipeline.

Everything logs under the ``starbound_kb`` logger. Output goes to stderr so
the CLI's rich output on stdout stays clean. Two environment variables
control it:

    SBKB_LOG_LEVEL: DEBUG, INFO, WARNING, ERROR or CRITICAL (default INFO)
    SBKB_LOG_JSON:  ``true`` switches to one JSON object per line

Extractors tag records with ``extra={"source_file": ...}`` or
``extra={"entity_type": ...}``; both formatters surface those tags.
"""

import json
import logging
import os
import sys
from datetime import UTC, datetime
from typing import Any

PACKAGE_LOGGER = "starbound_kb"
LEVEL_ENV = "SBKB_LOG_LEVEL"
JSON_ENV = "SBKB_LOG_JSON"

# Pipeline tags copied from ``extra=`` onto the output
EXTRA_FIELDS = ("source_file", "entity_type")


def _record_tags(record: logging.LogRecord) -> dict[str, Any]:
    return {name: getattr(record, name) for name in EXTRA_FIELDS if hasattr(record, name)}


class JSONFormatter(logging.Formatter):
    """One JSON object per record, for log shipping."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": datetime.now(UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **_record_tags(record),
        }
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        if record.levelno <= logging.DEBUG:
            payload["source"] = {
                "file": record.pathname,
                "line": record.lineno,
                "function": record.funcName,
            }
        return json.dumps(payload, ensure_ascii=False)


class ConsoleFormatter(logging.Formatter):
    """Coloured single-line output with pipeline tags appended."""

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, "")
        timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
        line = f"{color}{timestamp} [{record.levelname:8}]{self.RESET} {record.name}: {record.getMessage()}"

        tags = _record_tags(record)
        if tags:
            line += " (" + ", ".join(f"{k}={v}" for k, v in tags.items()) + ")"
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


_configured = False


def _level_from_env() -> int:
    name = os.environ.get(LEVEL_ENV, "INFO").upper()
    level = logging.getLevelName(name)
    return level if isinstance(level, int) else logging.INFO


def configure_logging(level: int | None = None, json_output: bool | None = None) -> None:
    """Install the package handler once.

    Explicit arguments win over the environment; later calls are no-ops
    until :func:`reset_logging` runs.
    """
    global _configured
    if _configured:
        return

    if level is None:
        level = _level_from_env()
    if json_output is None:
        json_output = os.environ.get(JSON_ENV, "false").lower() == "true"

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(JSONFormatter() if json_output else ConsoleFormatter())

    package_logger = logging.getLogger(PACKAGE_LOGGER)
    package_logger.setLevel(level)
    package_logger.handlers.clear()
    package_logger.addHandler(handler)
    package_logger.propagate = False

    _configured = True


def reset_logging() -> None:
    """Drop the package handler so the next call reconfigures."""
    global _configured
    logging.getLogger(PACKAGE_LOGGER).handlers.clear()
    _configured = False


def get_logger(name: str) -> logging.Logger:
    """Return a logger, configuring the package logger on first use."""
    configure_logging()
    return logging.getLogger(name)
