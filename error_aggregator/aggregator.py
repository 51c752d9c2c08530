# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Copilot-for-Consensus contributors

"""Centralized error aggregation.

The ErrorAggregator is the terminal sink for failures raised anywhere in the
application. It normalizes each failure into an ErrorRecord, keeps a bounded
history of recent records, writes a diagnostic log line, and broadcasts every
record to all live subscriptions.

One aggregator is meant to exist per process. Construct it explicitly and
hand it to collaborators, or use get_error_aggregator() /
shutdown_error_aggregator() for the process-wide default instance.
"""

import itertools
import logging
import threading
from collections import deque
from collections.abc import Callable, Mapping
from datetime import datetime, timezone
from typing import Any

from .config import AggregatorConfig, load_config
from .factory import create_logger, create_metrics_collector
from .logger import Logger
from .metrics import MetricsCollector, NoOpMetricsCollector
from .models import ErrorCause, ErrorRecord, Severity, render_trace
from .sinks import ErrorSink, create_error_sink
from .subscription import DROP_OLDEST, Subscription

DEFAULT_HISTORY_CAPACITY = 100
DEFAULT_RECENT_COUNT = 10

_fallback_logger = logging.getLogger(__name__)

_LOG_METHODS = {
    Severity.LOW: "info",
    Severity.MEDIUM: "warning",
    Severity.HIGH: "error",
    Severity.CRITICAL: "error",
}


class ErrorAggregator:
    """Process-wide error aggregation service.

    Lifecycle is Active until close() is called, then Closed. A closed
    aggregator still stores and logs reports but no longer delivers them.

    Thread-safety: history and the subscription registry share one lock.
    Subscribers are notified from a snapshot taken under the lock, after the
    lock is released, and delivery only enqueues into each subscription's
    own channel.
    """

    def __init__(
        self,
        capacity: int = DEFAULT_HISTORY_CAPACITY,
        logger: Logger | None = None,
        metrics: MetricsCollector | None = None,
        sinks: list[ErrorSink] | None = None,
        subscriber_queue_size: int = 1000,
        subscriber_overflow: str = DROP_OLDEST,
    ):
        """Initialize the aggregator.

        Args:
            capacity: Number of records retained in history
            logger: Logger for diagnostic lines (defaults to create_logger())
            metrics: Metrics collector (defaults to NoOpMetricsCollector)
            sinks: Error sinks notified of every logged record
            subscriber_queue_size: Default channel capacity for subscriptions
            subscriber_overflow: Default overflow policy for subscriptions

        Raises:
            ValueError: If capacity is less than 1
        """
        if capacity < 1:
            raise ValueError("capacity must be at least 1")

        self.capacity = capacity
        self.logger = logger or create_logger()
        self.metrics = metrics or NoOpMetricsCollector()
        self.sinks: list[ErrorSink] = list(sinks or [])
        self.subscriber_queue_size = subscriber_queue_size
        self.subscriber_overflow = subscriber_overflow

        self._lock = threading.Lock()
        self._history: deque[ErrorRecord] = deque(maxlen=capacity)
        self._subscriptions: dict[str, Subscription] = {}
        self._subscription_ids = itertools.count(1)
        self._last_timestamp: datetime | None = None
        self._closed = False

    @classmethod
    def from_config(
        cls,
        config: AggregatorConfig,
        logger: Logger | None = None,
        metrics: MetricsCollector | None = None,
    ) -> "ErrorAggregator":
        """Create an aggregator from typed configuration.

        Args:
            config: Loaded AggregatorConfig
            logger: Optional logger override
            metrics: Optional metrics collector override

        Returns:
            Configured ErrorAggregator
        """
        sink = create_error_sink(config.sink_type)
        return cls(
            capacity=config.history_capacity,
            logger=logger,
            metrics=metrics or create_metrics_collector(config.metrics_type),
            sinks=[sink] if sink is not None else None,
            subscriber_queue_size=config.subscriber_queue_size,
            subscriber_overflow=config.subscriber_overflow,
        )

    @property
    def closed(self) -> bool:
        return self._closed

    # Ingestion

    def report(
        self,
        cause: Any,
        trace: Any = None,
        context: str | None = None,
        tags: Mapping[str, Any] | None = None,
        severity: Severity | str = Severity.MEDIUM,
        log: bool = True,
        notify: bool = True,
    ) -> ErrorRecord:
        """Record a failure.

        Never raises: whatever is passed in is stored as data.

        Args:
            cause: The failure (exception, message, or any value)
            trace: Traceback, StackSummary or text; defaults to the
                exception's traceback or the caller's stack
            context: Origin label; "Unknown" when absent
            tags: Structured metadata
            severity: Severity or severity name
            log: Write a diagnostic log line and notify sinks
            notify: Publish the record to current subscribers

        Returns:
            The stored record
        """
        error_cause = ErrorCause.from_value(cause)
        level = self._coerce_severity(severity)
        trace_text = render_trace(trace, error_cause, internal_files=(__file__,))
        tag_map = self._coerce_tags(tags)
        label = context if context is None or isinstance(context, str) else ErrorCause.from_value(context).description

        with self._lock:
            timestamp = datetime.now(timezone.utc)
            # Wall clock can step backwards; keep history ordered
            if self._last_timestamp is not None and timestamp < self._last_timestamp:
                timestamp = self._last_timestamp
            self._last_timestamp = timestamp

            record = ErrorRecord(
                cause=error_cause,
                trace=trace_text,
                context=label,
                tags=tag_map,
                severity=level,
                timestamp=timestamp,
            )
            self._history.append(record)
            history_size = len(self._history)
            subscribers = list(self._subscriptions.values()) if notify and not self._closed else []

        self._record_metrics(record, history_size)

        if log:
            self._log_record(record)
            self._emit_to_sinks(record)

        for subscription in subscribers:
            try:
                subscription.deliver(record)
            except Exception:
                _fallback_logger.exception("Failed to deliver error record to subscription %s", subscription.id)

        return record

    # Classification entry points

    def report_storage_error(
        self,
        cause: Any,
        operation: str | None = None,
        trace: Any = None,
        metadata: Mapping[str, Any] | None = None,
        severity: Severity | str = Severity.HIGH,
        log: bool = True,
        notify: bool = True,
    ) -> ErrorRecord:
        """Report a failed storage/backend (Firebase) operation."""
        return self.report(
            cause,
            trace=trace,
            context=f"Firebase: {operation or 'Unknown operation'}",
            tags=_merge_tags(metadata, {
                "service": "firebase",
                "operation": operation,
            }),
            severity=severity,
            log=log,
            notify=notify,
        )

    def report_network_error(
        self,
        cause: Any,
        endpoint: str | None = None,
        status_code: int | None = None,
        trace: Any = None,
        metadata: Mapping[str, Any] | None = None,
        severity: Severity | str | None = None,
        log: bool = True,
        notify: bool = True,
    ) -> ErrorRecord:
        """Report a network failure.

        Server errors (status code 500 and above) are HIGH, everything else
        MEDIUM, unless severity is given explicitly.
        """
        if severity is None:
            severity = Severity.HIGH if _is_server_error(status_code) else Severity.MEDIUM
        return self.report(
            cause,
            trace=trace,
            context=f"Network: {endpoint or 'Unknown endpoint'}",
            tags=_merge_tags(metadata, {
                "service": "network",
                "endpoint": endpoint,
                "statusCode": status_code,
            }),
            severity=severity,
            log=log,
            notify=notify,
        )

    def report_game_error(
        self,
        cause: Any,
        game_type: str | None = None,
        session_id: str | None = None,
        trace: Any = None,
        metadata: Mapping[str, Any] | None = None,
        severity: Severity | str = Severity.MEDIUM,
        log: bool = True,
        notify: bool = True,
    ) -> ErrorRecord:
        """Report a failure inside a game session."""
        return self.report(
            cause,
            trace=trace,
            context=f"Game: {game_type or 'Unknown game'}",
            tags=_merge_tags(metadata, {
                "service": "game",
                "gameType": game_type,
                "sessionId": session_id,
            }),
            severity=severity,
            log=log,
            notify=notify,
        )

    def report_user_error(
        self,
        cause: Any,
        operation: str | None = None,
        user_id: str | None = None,
        trace: Any = None,
        metadata: Mapping[str, Any] | None = None,
        severity: Severity | str = Severity.HIGH,
        log: bool = True,
        notify: bool = True,
    ) -> ErrorRecord:
        """Report a failed user/account management operation."""
        return self.report(
            cause,
            trace=trace,
            context=f"User Management: {operation or 'Unknown operation'}",
            tags=_merge_tags(metadata, {
                "service": "user_management",
                "operation": operation,
                "userId": user_id,
            }),
            severity=severity,
            log=log,
            notify=notify,
        )

    # Query and retention

    def recent(self, count: int = DEFAULT_RECENT_COUNT) -> list[ErrorRecord]:
        """Return the last ``count`` records, oldest first."""
        if count <= 0:
            return []
        with self._lock:
            snapshot = list(self._history)
        return snapshot[-count:]

    def by_severity(self, level: Severity | str) -> list[ErrorRecord]:
        """Return retained records with exactly this severity, in insertion order.

        Raises:
            ValueError: If level is not a known severity
        """
        level = Severity.parse(level)
        with self._lock:
            return [record for record in self._history if record.severity == level]

    def by_service(self, service: str) -> list[ErrorRecord]:
        """Return retained records whose ``service`` tag matches."""
        with self._lock:
            return [record for record in self._history if record.tags.get("service") == service]

    def all(self) -> tuple[ErrorRecord, ...]:
        """Return an immutable snapshot of the full history, oldest first."""
        with self._lock:
            return tuple(self._history)

    def get(self, record_id: str) -> ErrorRecord | None:
        """Find a retained record by id."""
        with self._lock:
            for record in self._history:
                if record.id == record_id:
                    return record
        return None

    def clear(self) -> None:
        """Empty the history. Subscriptions are not affected."""
        with self._lock:
            self._history.clear()
        self._safe_gauge("error_history_size", 0)

    def stats(self) -> dict[str, Any]:
        """Summarize retained history.

        Returns:
            Dictionary with total count, counts by severity and by service,
            the number of live subscriptions and the closed flag
        """
        with self._lock:
            snapshot = list(self._history)
            subscribers = len(self._subscriptions)

        by_severity = {severity.label: 0 for severity in Severity}
        by_service: dict[str, int] = {}
        for record in snapshot:
            by_severity[record.severity.label] += 1
            service = str(record.tags.get("service") or "unknown")
            by_service[service] = by_service.get(service, 0) + 1

        return {
            "total_errors": len(snapshot),
            "by_severity": by_severity,
            "by_service": by_service,
            "subscribers": subscribers,
            "closed": self._closed,
        }

    def __len__(self) -> int:
        with self._lock:
            return len(self._history)

    # Broadcast

    def subscribe(
        self,
        callback: Callable[[ErrorRecord], None] | None = None,
        maxsize: int | None = None,
        overflow: str | None = None,
    ) -> Subscription:
        """Open a live subscription to records reported from now on.

        History is not replayed; use recent() or all() for a snapshot.

        Args:
            callback: Optional handler invoked on a worker thread per record
            maxsize: Channel capacity (defaults to subscriber_queue_size)
            overflow: Overflow policy (defaults to subscriber_overflow)

        Returns:
            Subscription handle; already closed if the aggregator is closed
        """
        with self._lock:
            subscription = Subscription(
                subscription_id=f"sub-{next(self._subscription_ids)}",
                maxsize=self.subscriber_queue_size if maxsize is None else maxsize,
                overflow=overflow or self.subscriber_overflow,
                callback=callback,
                on_cancel=self._unsubscribe,
                on_drop=self._record_drop,
            )
            if self._closed:
                subscription._close(discard=True)
                return subscription
            self._subscriptions[subscription.id] = subscription
            count = len(self._subscriptions)

        self._safe_gauge("error_subscribers", count)
        self.logger.debug("Error subscription opened", subscription_id=subscription.id)
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        """Cancel a subscription. Equivalent to ``subscription.cancel()``."""
        subscription.cancel()

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscriptions)

    def _unsubscribe(self, subscription_id: str) -> None:
        with self._lock:
            removed = self._subscriptions.pop(subscription_id, None)
            count = len(self._subscriptions)
        if removed is not None:
            self._safe_gauge("error_subscribers", count)
            self.logger.debug("Error subscription closed", subscription_id=subscription_id)

    def close(self) -> None:
        """Tear down the broadcast channel.

        Ends every subscription's stream (already delivered records stay
        readable) and closes sinks. Idempotent.
        """
        with self._lock:
            if self._closed:
                return
            self._closed = True
            subscriptions = list(self._subscriptions.values())
            self._subscriptions.clear()

        for subscription in subscriptions:
            subscription._close(discard=False)

        for sink in self.sinks:
            try:
                sink.close()
            except Exception:
                _fallback_logger.exception("Failed to close error sink %s", type(sink).__name__)

        self._safe_gauge("error_subscribers", 0)
        self.logger.info("Error aggregator closed", subscriptions_closed=len(subscriptions))

    def __enter__(self) -> "ErrorAggregator":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    # Internals

    def _coerce_severity(self, severity: Any) -> Severity:
        try:
            return Severity.parse(severity)
        except ValueError:
            self._safe_log("warning", "Invalid severity in error report, using medium", severity=str(severity))
            return Severity.MEDIUM

    def _coerce_tags(self, tags: Any) -> dict[str, Any]:
        if tags is None:
            return {}
        try:
            return {str(key): value for key, value in dict(tags).items()}
        except Exception:
            return {"tags": ErrorCause.from_value(tags).description}

    def _log_record(self, record: ErrorRecord) -> None:
        self._safe_log(
            _LOG_METHODS[record.severity],
            f"ERROR [{record.severity.name}] {record.context}",
            error_id=record.id,
            severity=record.severity.label,
            context=record.context,
            cause=record.cause.description,
            timestamp=record.timestamp.isoformat(),
            tags=dict(record.tags),
            trace=record.trace,
        )

    def _safe_log(self, method: str, message: str, **kwargs: Any) -> None:
        try:
            getattr(self.logger, method)(message, **kwargs)
        except Exception:
            _fallback_logger.exception("Logger failed while writing: %s", message)

    def _emit_to_sinks(self, record: ErrorRecord) -> None:
        for sink in self.sinks:
            try:
                sink.emit(record)
            except Exception as e:
                self._safe_log("warning", "Error sink failed", sink=type(sink).__name__, error=str(e))

    def _record_metrics(self, record: ErrorRecord, history_size: int) -> None:
        try:
            self.metrics.increment(
                "errors_reported_total",
                tags={
                    "severity": record.severity.label,
                    "service": str(record.tags.get("service") or "unknown"),
                },
            )
            self.metrics.gauge("error_history_size", float(history_size))
        except Exception as e:
            _fallback_logger.warning(f"Failed to record error metrics: {e}")

    def _record_drop(self, subscription: Subscription) -> None:
        try:
            self.metrics.increment("error_deliveries_dropped_total")
        except Exception as e:
            _fallback_logger.warning(f"Failed to record dropped delivery: {e}")
        self._safe_log(
            "warning",
            "Error subscription channel full, record dropped",
            subscription_id=subscription.id,
            overflow=subscription.overflow,
            dropped=subscription.dropped,
        )

    def _safe_gauge(self, name: str, value: float) -> None:
        try:
            self.metrics.gauge(name, float(value))
        except Exception as e:
            _fallback_logger.warning(f"Failed to set gauge {name}: {e}")


def _merge_tags(metadata: Mapping[str, Any] | None, fixed: dict[str, Any]) -> dict[str, Any]:
    # Caller metadata first; fixed entries win on key collisions
    merged: dict[str, Any] = {}
    if metadata:
        try:
            merged.update(metadata)
        except Exception:
            merged["metadata"] = ErrorCause.from_value(metadata).description
    merged.update(fixed)
    return merged


def _is_server_error(status_code: Any) -> bool:
    try:
        return status_code is not None and int(status_code) >= 500
    except (TypeError, ValueError):
        return False


_default_lock = threading.Lock()
_default_aggregator: ErrorAggregator | None = None


def get_error_aggregator() -> ErrorAggregator:
    """Return the process-wide aggregator, creating it from the environment on first use."""
    global _default_aggregator
    with _default_lock:
        if _default_aggregator is None:
            _default_aggregator = ErrorAggregator.from_config(load_config())
        return _default_aggregator


def set_error_aggregator(aggregator: ErrorAggregator | None) -> None:
    """Install an explicitly constructed aggregator as the process-wide default."""
    global _default_aggregator
    with _default_lock:
        _default_aggregator = aggregator


def shutdown_error_aggregator() -> None:
    """Close and forget the process-wide aggregator. No-op if none exists."""
    global _default_aggregator
    with _default_lock:
        aggregator, _default_aggregator = _default_aggregator, None
    if aggregator is not None:
        aggregator.close()
