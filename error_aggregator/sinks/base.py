# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Copilot-for-Consensus contributors

"""Abstract error sink interface."""

from abc import ABC, abstractmethod

from ..models import ErrorRecord


class ErrorSink(ABC):
    """Destination notified of every logged error record.

    Sinks are the extension point for forwarding records to an external
    logging or analytics system. The aggregator catches and logs any
    exception a sink raises.
    """

    @abstractmethod
    def emit(self, record: ErrorRecord) -> None:
        """Forward one error record.

        Args:
            record: The record that was just stored
        """
        pass

    def close(self) -> None:
        """Release any resources held by the sink."""
        pass
