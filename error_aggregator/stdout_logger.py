# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Copilot-for-Consensus contributors

"""Stdout logger implementation with structured JSON output."""

import json
import logging
import sys
import threading
from datetime import datetime, timezone
from typing import Any

from .logger import Logger

LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
}

# Error record fields lifted out of "extra" so log queries can index them
RECORD_FIELDS = ("error_id", "severity", "context")


class StdoutLogger(Logger):
    """Logger that writes one JSON object per line to stdout.

    Lines written for an error record carry its ``error_id``, ``severity``
    and ``context`` as top-level fields next to the message, so a record
    can be correlated with its log line without parsing ``extra``.
    """

    def __init__(self, level: str = "INFO", name: str | None = None):
        """Initialize stdout logger.

        Args:
            level: Logging level (DEBUG, INFO, WARNING, ERROR)
            name: Logger name, "error-aggregator" by default

        Raises:
            ValueError: If level is not a known logging level
        """
        self.level = level.upper()
        self.name = name or "error-aggregator"

        if self.level not in LEVELS:
            raise ValueError(f"Invalid log level: {level}. Must be one of {list(LEVELS.keys())}")

        # Reports arrive from many threads; one line per write
        self._write_lock = threading.Lock()
        self._stdlib_logger = logging.getLogger(self.name)
        self._stdlib_logger.setLevel(logging.NOTSET)

    def _entry(self, level: str, message: str, fields: dict[str, Any]) -> dict[str, Any]:
        entry: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": level,
            "logger": self.name,
        }
        for key in RECORD_FIELDS:
            if key in fields:
                entry[key] = fields.pop(key)
        entry["message"] = message
        if fields:
            entry["extra"] = fields
        return entry

    def _log(self, level: str, message: str, **kwargs: Any) -> None:
        if LEVELS[level] < LEVELS[self.level]:
            return

        exc_info = kwargs.pop("exc_info", None)
        entry = self._entry(level, message, dict(kwargs))

        try:
            line = json.dumps(entry, default=str)
        except Exception as e:
            line = None
            print(f"{level}: {message} (JSON serialization failed: {e})", file=sys.stderr, flush=True)
        if line is not None:
            with self._write_lock:
                print(line, file=sys.stdout, flush=True)

        extra = {"extra": kwargs} if kwargs else None
        self._stdlib_logger.log(LEVELS[level], message, exc_info=exc_info, extra=extra)

    def info(self, message: str, **kwargs: Any) -> None:
        self._log("INFO", message, **kwargs)

    def warning(self, message: str, **kwargs: Any) -> None:
        self._log("WARNING", message, **kwargs)

    def error(self, message: str, **kwargs: Any) -> None:
        self._log("ERROR", message, **kwargs)

    def debug(self, message: str, **kwargs: Any) -> None:
        self._log("DEBUG", message, **kwargs)
