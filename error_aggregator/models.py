# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Copilot-for-Consensus contributors

"""Error record data model and severity taxonomy."""

import json
import traceback
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import IntEnum
from types import MappingProxyType, TracebackType
from typing import Any, Mapping

UNKNOWN_CONTEXT = "Unknown"


class Severity(IntEnum):
    """Ordered severity taxonomy for reported errors.

    LOW is cosmetic or a warning, MEDIUM is recoverable with degraded
    experience, HIGH is a failed backend or account operation the app
    survives, CRITICAL is reserved for app-breaking conditions.
    """

    LOW = 1
    MEDIUM = 2
    HIGH = 3
    CRITICAL = 4

    @property
    def label(self) -> str:
        """Lowercase name used in serialized records."""
        return self.name.lower()

    @classmethod
    def parse(cls, value: "Severity | str") -> "Severity":
        """Parse a severity from an instance or a case-insensitive name.

        Raises:
            ValueError: If the name is not a known severity
        """
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls[value.strip().upper()]
            except KeyError:
                pass
        valid = ", ".join(s.label for s in cls)
        raise ValueError(f"Invalid severity: {value!r}. Must be one of: {valid}")


@dataclass(frozen=True)
class ErrorCause:
    """Renderable description of a failure plus the original value, if any."""

    description: str
    attachment: Any = None

    @classmethod
    def from_value(cls, value: Any) -> "ErrorCause":
        """Wrap an arbitrary failure value. Never raises."""
        if isinstance(value, ErrorCause):
            return value
        if isinstance(value, BaseException):
            message = _safe_str(value)
            name = type(value).__name__
            return cls(description=f"{name}: {message}" if message else name, attachment=value)
        if isinstance(value, str):
            return cls(description=value)
        return cls(description=_safe_str(value), attachment=value)

    def __str__(self) -> str:
        return self.description


def _safe_str(value: Any) -> str:
    try:
        return str(value)
    except Exception:
        try:
            return repr(value)
        except Exception:
            return f"<unrenderable {type(value).__name__}>"


def render_trace(trace: Any, cause: ErrorCause, internal_files: tuple[str, ...] = ()) -> str:
    """Render trace information to text.

    Args:
        trace: A string, traceback object, StackSummary, or None
        cause: The normalized cause; its exception traceback is used when
            no trace is supplied
        internal_files: Source files whose innermost frames are dropped
            when capturing the caller's stack

    Returns:
        Trace text (never raises)
    """
    try:
        if isinstance(trace, str):
            return trace
        if isinstance(trace, TracebackType):
            return "".join(traceback.format_tb(trace))
        if isinstance(trace, traceback.StackSummary):
            return "".join(trace.format())
        if trace is not None:
            return _safe_str(trace)

        error = cause.attachment
        if isinstance(error, BaseException) and error.__traceback__ is not None:
            return "".join(traceback.format_exception(type(error), error, error.__traceback__))

        skipped = {__file__, *internal_files}
        stack = traceback.extract_stack()
        while stack and stack[-1].filename in skipped:
            stack.pop()
        return "".join(traceback.format_list(stack))
    except Exception:
        return ""


@dataclass(frozen=True, eq=False)
class ErrorRecord:
    """One immutable failure occurrence.

    Records compare and hash by identity: two reports of the same failure
    are still two occurrences.
    """

    cause: ErrorCause
    trace: str = ""
    context: str = UNKNOWN_CONTEXT
    tags: Mapping[str, Any] = field(default_factory=dict)
    severity: Severity = Severity.MEDIUM
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    id: str = field(default_factory=lambda: uuid.uuid4().hex)

    def __post_init__(self):
        # Freeze tags so a caller's dict cannot alter the stored record
        object.__setattr__(self, "tags", MappingProxyType(dict(self.tags)))
        if not self.context:
            object.__setattr__(self, "context", UNKNOWN_CONTEXT)

    @property
    def service(self) -> str | None:
        """The service discriminator tag, if present."""
        return self.tags.get("service")

    def to_dict(self) -> dict[str, Any]:
        """Flat representation for logging and analytics sinks."""
        return {
            "id": self.id,
            "cause": self.cause.description,
            "context": self.context,
            "tags": dict(self.tags),
            "severity": self.severity.label,
            "timestamp": self.timestamp.isoformat(),
            "trace": self.trace,
        }

    def to_json(self) -> str:
        """Serialize to JSON, rendering non-JSON tag values as text."""
        return json.dumps(self.to_dict(), default=str)

    def __str__(self) -> str:
        return f"ErrorRecord(context: {self.context}, error: {self.cause}, severity: {self.severity.label})"
