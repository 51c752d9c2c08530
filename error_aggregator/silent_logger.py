# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Copilot-for-Consensus contributors

"""In-memory logger used by tests and embedded callers."""

import threading
from typing import Any

from .logger import Logger


class SilentLogger(Logger):
    """Logger that keeps every entry in memory and writes nothing.

    Entries are not filtered by level. Appends are serialized so reports
    from concurrent threads are all captured.
    """

    def __init__(self, level: str = "INFO", name: str | None = None):
        self.level = level.upper()
        self.name = name or "error-aggregator"
        self.logs: list[dict[str, Any]] = []
        self._lock = threading.Lock()

    def _log(self, level: str, message: str, **kwargs: Any) -> None:
        entry: dict[str, Any] = {"level": level, "message": message}
        if kwargs:
            entry["extra"] = kwargs
        with self._lock:
            self.logs.append(entry)

    def info(self, message: str, **kwargs: Any) -> None:
        self._log("INFO", message, **kwargs)

    def warning(self, message: str, **kwargs: Any) -> None:
        self._log("WARNING", message, **kwargs)

    def error(self, message: str, **kwargs: Any) -> None:
        self._log("ERROR", message, **kwargs)

    def debug(self, message: str, **kwargs: Any) -> None:
        self._log("DEBUG", message, **kwargs)

    def clear_logs(self) -> None:
        with self._lock:
            self.logs.clear()

    def get_logs(self, level: str | None = None) -> list[dict[str, Any]]:
        """Snapshot of stored entries, optionally only those at ``level``."""
        with self._lock:
            entries = list(self.logs)
        if level is None:
            return entries
        return [entry for entry in entries if entry["level"] == level]

    def has_log(self, message: str, level: str | None = None) -> bool:
        """True if an entry whose message contains ``message`` was logged."""
        return any(message in entry["message"] for entry in self.get_logs(level))

    def logs_for_error(self, error_id: str) -> list[dict[str, Any]]:
        """Entries written for the error record with this id."""
        return [entry for entry in self.get_logs() if entry.get("extra", {}).get("error_id") == error_id]
