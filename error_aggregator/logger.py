# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Copilot-for-Consensus contributors

"""Abstract structured logger interface."""

from abc import ABC, abstractmethod
from typing import Any


class Logger(ABC):
    """Abstract base class for structured loggers.

    Every method takes a message plus keyword arguments that are carried
    as structured fields alongside it.
    """

    @abstractmethod
    def info(self, message: str, **kwargs: Any) -> None:
        """Log an info-level message.

        Args:
            message: The log message
            **kwargs: Additional structured data to log
        """
        pass

    @abstractmethod
    def warning(self, message: str, **kwargs: Any) -> None:
        """Log a warning-level message.

        Args:
            message: The log message
            **kwargs: Additional structured data to log
        """
        pass

    @abstractmethod
    def error(self, message: str, **kwargs: Any) -> None:
        """Log an error-level message.

        Args:
            message: The log message
            **kwargs: Additional structured data to log
        """
        pass

    @abstractmethod
    def debug(self, message: str, **kwargs: Any) -> None:
        """Log a debug-level message.

        Args:
            message: The log message
            **kwargs: Additional structured data to log
        """
        pass

    def exception(self, message: str, **kwargs: Any) -> None:
        """Log an error-level message from inside an exception handler."""
        kwargs.setdefault("exc_info", True)
        self.error(message, **kwargs)
