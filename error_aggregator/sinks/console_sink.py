# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Copilot-for-Consensus contributors

"""Console sink writing one JSON document per error record."""

import sys
import threading
from typing import TextIO

from ..models import ErrorRecord
from .base import ErrorSink


class ConsoleErrorSink(ErrorSink):
    """Writes each record's flat JSON form as a single line.

    Intended for log collectors that tail a process stream.
    """

    def __init__(self, stream: TextIO | None = None):
        """Initialize console sink.

        Args:
            stream: Text stream to write to (defaults to stderr at emit time)
        """
        self.stream = stream
        self._lock = threading.Lock()

    def emit(self, record: ErrorRecord) -> None:
        stream = self.stream or sys.stderr
        line = record.to_json()
        with self._lock:
            stream.write(line + "\n")
            stream.flush()
