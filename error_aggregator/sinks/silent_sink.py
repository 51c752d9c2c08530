# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Copilot-for-Consensus contributors

"""Silent sink implementation for testing."""

from ..models import ErrorRecord, Severity
from .base import ErrorSink


class SilentErrorSink(ErrorSink):
    """Sink that keeps emitted records in memory.

    Useful in tests to verify what would have been forwarded without
    producing output.
    """

    def __init__(self):
        self.records: list[ErrorRecord] = []
        self.closed = False

    def emit(self, record: ErrorRecord) -> None:
        self.records.append(record)

    def close(self) -> None:
        self.closed = True

    def get_records(self, severity: Severity | None = None) -> list[ErrorRecord]:
        """Get emitted records, optionally filtered by severity."""
        if severity is None:
            return list(self.records)
        return [r for r in self.records if r.severity == severity]

    def clear(self) -> None:
        """Forget all emitted records."""
        self.records.clear()
