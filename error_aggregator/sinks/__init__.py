# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Copilot-for-Consensus contributors

"""Pluggable destinations for logged error records."""

from .base import ErrorSink
from .console_sink import ConsoleErrorSink
from .silent_sink import SilentErrorSink


def create_error_sink(sink_type: str) -> ErrorSink | None:
    """Create an error sink by driver name.

    Args:
        sink_type: "console", "silent", or "none"

    Returns:
        ErrorSink instance, or None for "none"

    Raises:
        ValueError: If sink_type is not recognized
    """
    sink_type = (sink_type or "none").lower()
    if sink_type == "console":
        return ConsoleErrorSink()
    elif sink_type == "silent":
        return SilentErrorSink()
    elif sink_type == "none":
        return None
    else:
        raise ValueError(
            f"Unknown sink_type: {sink_type}. "
            f"Must be one of: console, silent, none"
        )


__all__ = [
    "ErrorSink",
    "ConsoleErrorSink",
    "SilentErrorSink",
    "create_error_sink",
]
