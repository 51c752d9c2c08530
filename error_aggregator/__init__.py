# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Copilot-for-Consensus contributors

"""Centralized error aggregation.

Collects failures from every subsystem, normalizes them into immutable
ErrorRecords, keeps a bounded recent history and broadcasts each record to
live subscribers.

Example:
    >>> from error_aggregator import ErrorAggregator, Severity, create_logger
    >>> aggregator = ErrorAggregator(logger=create_logger(logger_type="silent"))
    >>> record = aggregator.report_network_error("timeout", endpoint="/api/sync", status_code=503)
    >>> record.severity is Severity.HIGH
    True
"""

__version__ = "0.1.0"

from .aggregator import (
    DEFAULT_HISTORY_CAPACITY,
    ErrorAggregator,
    get_error_aggregator,
    set_error_aggregator,
    shutdown_error_aggregator,
)
from .backend import BackendClient, BackendService
from .config import AggregatorConfig, EnvConfigProvider, load_config
from .factory import create_logger, create_metrics_collector
from .logger import Logger
from .metrics import MetricsCollector, NoOpMetricsCollector
from .models import ErrorCause, ErrorRecord, Severity
from .silent_logger import SilentLogger
from .sinks import ConsoleErrorSink, ErrorSink, SilentErrorSink, create_error_sink
from .stdout_logger import StdoutLogger
from .subscription import Subscription

__all__ = [
    # Version
    "__version__",
    # Core
    "DEFAULT_HISTORY_CAPACITY",
    "ErrorAggregator",
    "ErrorCause",
    "ErrorRecord",
    "Severity",
    "Subscription",
    "get_error_aggregator",
    "set_error_aggregator",
    "shutdown_error_aggregator",
    # Collaborators
    "BackendClient",
    "BackendService",
    # Configuration
    "AggregatorConfig",
    "EnvConfigProvider",
    "load_config",
    # Logging
    "Logger",
    "SilentLogger",
    "StdoutLogger",
    "create_logger",
    # Metrics
    "MetricsCollector",
    "NoOpMetricsCollector",
    "create_metrics_collector",
    # Sinks
    "ErrorSink",
    "ConsoleErrorSink",
    "SilentErrorSink",
    "create_error_sink",
]
